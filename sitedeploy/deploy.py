"""Deployment orchestration: reconcile the site's cloud resources, then sync files."""

import logging
import time
from dataclasses import dataclass

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from .certificates import delete_challenge_records, ensure_certificate
from .config import GLOBAL_REGION, DeploymentSpec
from .discovery import (
    bucket_exists,
    discover_infrastructure,
    empty_bucket,
    find_adoptable_distribution,
    is_account_verification_error,
)
from .dns import find_hosting_conflict, reconcile_dns, remove_conflicting_record, remove_site_records
from .errors import PollTimeout, SiteDeployError
from .models import AdoptedInfrastructure, ReconciliationResult, StackOutcomeKind, StackState
from .providers import create_dns_provider
from .stack import converge_stack, delete_stack, describe_stack, wait_for_stack
from .sync import invalidate_cache, upload_directory
from .template import build_site_template, template_body

logger = logging.getLogger(__name__)

ACCOUNT_VERIFICATION_MESSAGE = (
    "CloudFront account verification required. New AWS accounts must be verified "
    "before they can create CloudFront distributions: open a case in the AWS Support "
    "Center (Service limit increase, CloudFront) asking for account verification, "
    "then re-run the deployment."
)


@dataclass
class AwsClients:
    cloudformation: object
    s3: object
    cloudfront: object
    acm: object


def clients_from_session(session: boto3.Session, region: str) -> AwsClients:
    """CloudFront certificates must come from us-east-1; the bucket follows ``region``."""
    return AwsClients(
        cloudformation=session.client("cloudformation", region_name=GLOBAL_REGION),
        s3=session.client("s3", region_name=region),
        cloudfront=session.client("cloudfront", region_name=GLOBAL_REGION),
        acm=session.client("acm", region_name=GLOBAL_REGION),
    )


def _resolve(spec: DeploymentSpec, clients, provider):
    if clients is None or provider is None:
        session = boto3.Session(region_name=spec.region)
        clients = clients or clients_from_session(session, spec.region)
        provider = provider or create_dns_provider(spec.dns_provider, session)
    return clients, provider


def _failure(spec: DeploymentSpec, message: str, **kwargs) -> ReconciliationResult:
    logger.error(message)
    kwargs.setdefault("bucket", spec.bucket_name)
    return ReconciliationResult(
        success=False,
        stack_name=spec.resolved_stack_name,
        domain=spec.domain,
        message=message,
        **kwargs,
    )


def _adopted(spec: DeploymentSpec, found: AdoptedInfrastructure, message: str, certificate_arn: str = "") -> ReconciliationResult:
    logger.info("Reusing distribution %s and bucket %s", found.distribution_id, found.bucket_name)
    return ReconciliationResult(
        success=True,
        stack_name=spec.resolved_stack_name,
        bucket=found.bucket_name,
        domain=spec.domain,
        distribution_id=found.distribution_id,
        distribution_domain=found.distribution_domain,
        certificate_arn=certificate_arn,
        adopted=True,
        message=message,
    )


def _reconcile(spec: DeploymentSpec, clients: AwsClients, provider, confirm, sleep) -> ReconciliationResult:
    domain = spec.domain
    stack_name = spec.resolved_stack_name

    if not provider.can_manage_domain(domain):
        return _failure(
            spec,
            f"DNS provider '{provider.name}' cannot manage domain {domain}. "
            "Please check your API credentials and domain ownership.",
        )
    logger.info("DNS provider '%s' verified for %s", provider.name, domain)

    conflict = find_hosting_conflict(provider, domain)
    if conflict:
        if confirm is None or not confirm(conflict):
            return _failure(spec, "Deployment cancelled")
        removed = remove_conflicting_record(provider, domain, conflict)
        if not removed.success:
            return _failure(spec, f"Could not remove existing {conflict.hosting_provider} record: {removed.message}")

    # Live infrastructure is only adopted for a fresh deployment; an existing
    # stack owns its bucket and distribution.
    existing = describe_stack(clients.cloudformation, stack_name)
    if existing is not None and existing.state is StackState.DELETE_IN_PROGRESS:
        logger.info("Stack %s is being deleted, waiting for it to finish...", stack_name)
        try:
            existing = wait_for_stack(clients.cloudformation, existing.stack_id, sleep=sleep)
        except PollTimeout:
            return _failure(spec, f"Timed out waiting for stack {stack_name} to finish deleting")
    if existing is None:
        found = discover_infrastructure(clients.cloudfront, clients.s3, domain, spec.bucket_name)
        if isinstance(found, AdoptedInfrastructure):
            return _adopted(spec, found, "Using existing CloudFront distribution")
        bucket = found.bucket_name
    else:
        bucket = existing.outputs.get("BucketName", spec.bucket_name)
        logger.info("Found existing stack %s (%s)", stack_name, existing.state.value)

    certificate_arn = spec.certificate_arn
    if not certificate_arn:
        logger.info("Checking for existing SSL certificate for %s...", domain)
        cert = ensure_certificate(
            clients.acm,
            provider,
            domain,
            spec.extra_sans,
            max_wait_minutes=spec.max_wait_minutes,
            sleep=sleep,
        )
        if not cert.issued:
            return _failure(spec, cert.message, bucket=bucket, certificate_arn=cert.arn)
        certificate_arn = cert.arn

    template = build_site_template(
        bucket,
        spec.aliases,
        certificate_arn,
        spec.default_root_object,
        spec.error_document,
    )
    outcome = converge_stack(
        clients.cloudformation,
        stack_name,
        template_body(template),
        spec.stack_tags,
        sleep=sleep,
    )

    if not outcome.ok:
        if is_account_verification_error(outcome.reason):
            logger.info("CloudFront account verification required, checking for existing infrastructure...")
            found = find_adoptable_distribution(clients.cloudfront, domain)
            if found:
                return _adopted(
                    spec,
                    found,
                    "Using existing CloudFront distribution (account verification pending for new distributions)",
                    certificate_arn,
                )
            return _failure(spec, ACCOUNT_VERIFICATION_MESSAGE, bucket=bucket, stack_id=outcome.stack_id)
        return _failure(
            spec,
            f"Stack deployment failed: {outcome.reason}",
            bucket=bucket,
            stack_id=outcome.stack_id,
            certificate_arn=certificate_arn,
        )

    outputs = outcome.outputs
    distribution_domain = outputs.get("DistributionDomain", "")
    result = ReconciliationResult(
        success=True,
        stack_name=stack_name,
        stack_id=outcome.stack_id,
        bucket=outputs.get("BucketName", bucket),
        domain=domain,
        distribution_id=outputs.get("DistributionId", ""),
        distribution_domain=distribution_domain,
        certificate_arn=certificate_arn,
        message=(
            "Static site infrastructure is already up to date"
            if outcome.kind is StackOutcomeKind.NO_CHANGES
            else "Static site infrastructure deployed successfully"
        ),
    )
    if not distribution_domain:
        result.success = False
        result.message = f"Stack {stack_name} has no DistributionDomain output"
        return result

    logger.info("Creating DNS records via %s...", provider.name)
    applied = reconcile_dns(provider, domain, distribution_domain)
    result.warnings = list(applied.warnings)
    if not applied.primary_ok:
        result.success = False
        result.message = f"DNS record for {domain} could not be created: {'; '.join(applied.warnings)}"
    elif applied.warnings:
        result.message += f" (warnings: {'; '.join(applied.warnings)})"
    return result


def deploy_site(spec: DeploymentSpec, *, clients=None, provider=None, confirm=None, sleep=time.sleep) -> ReconciliationResult:
    """Converge the cloud resources serving ``spec.domain``.

    ``confirm`` is called with a HostingConflict when the domain points at
    another hosting service and must return True before that record is
    removed; without it such a deployment is cancelled. Never raises for
    AWS or provider failures: they come back as an unsuccessful result.
    """
    try:
        clients, provider = _resolve(spec, clients, provider)
        return _reconcile(spec, clients, provider, confirm, sleep)
    except (ClientError, BotoCoreError, requests.RequestException, SiteDeployError) as e:
        return _failure(spec, str(e))


def deploy_site_full(
    spec: DeploymentSpec,
    source_dir: str | None,
    *,
    clients=None,
    provider=None,
    confirm=None,
    sleep=time.sleep,
) -> ReconciliationResult:
    """Reconcile, then upload ``source_dir`` and invalidate the CDN cache.

    With ``source_dir`` None only the reconciliation runs.
    """
    try:
        clients, provider = _resolve(spec, clients, provider)
    except (ClientError, BotoCoreError, SiteDeployError) as e:
        return _failure(spec, str(e))

    result = deploy_site(spec, clients=clients, provider=provider, confirm=confirm, sleep=sleep)
    if not result.success or source_dir is None:
        return result

    try:
        uploaded, errors = upload_directory(
            clients.s3,
            result.bucket,
            source_dir,
            spec.cache_control,
            spec.html_cache_control,
        )
        result.files_uploaded = uploaded
        if errors:
            result.success = False
            result.message = f"Uploaded {uploaded} files, {len(errors)} failed: {'; '.join(errors[:5])}"
            return result

        if uploaded and result.distribution_id:
            invalidate_cache(clients.cloudfront, result.distribution_id)
    except (ClientError, BotoCoreError) as e:
        result.success = False
        result.message = f"File sync failed: {e}"
    return result


def destroy_site(
    spec: DeploymentSpec,
    *,
    clients=None,
    provider=None,
    certificate_arn: str | None = None,
    sleep=time.sleep,
) -> ReconciliationResult:
    """Tear down the site stack.

    Removes the DNS records pointing at the distribution and the
    certificate's challenge records, empties the bucket (CloudFormation
    refuses to delete a non-empty one) and deletes the stack. The
    certificate itself is kept for reuse.
    """
    stack_name = spec.resolved_stack_name
    try:
        clients, provider = _resolve(spec, clients, provider)
        current = describe_stack(clients.cloudformation, stack_name)
        if current is None:
            return _failure(spec, f"Stack {stack_name} does not exist")

        bucket = current.outputs.get("BucketName", spec.bucket_name)
        warnings = []
        distribution_domain = current.outputs.get("DistributionDomain")
        if distribution_domain:
            warnings += remove_site_records(provider, spec.domain, distribution_domain)
        certificate_arn = certificate_arn or spec.certificate_arn
        if certificate_arn:
            warnings += delete_challenge_records(clients.acm, provider, spec.domain, certificate_arn)

        if bucket_exists(clients.s3, bucket):
            logger.info("Emptying S3 bucket %s...", bucket)
            empty_bucket(clients.s3, bucket)

        outcome = delete_stack(clients.cloudformation, stack_name, sleep=sleep)
    except (ClientError, BotoCoreError, requests.RequestException, SiteDeployError) as e:
        return _failure(spec, str(e))

    if outcome.kind is not StackOutcomeKind.DELETED:
        return _failure(spec, f"Stack deletion failed: {outcome.reason}", bucket=bucket, stack_id=outcome.stack_id, warnings=warnings)
    return ReconciliationResult(
        success=True,
        stack_name=stack_name,
        stack_id=outcome.stack_id,
        bucket=bucket,
        domain=spec.domain,
        warnings=warnings,
        message=f"Stack {stack_name} destroyed",
    )
