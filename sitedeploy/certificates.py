"""ACM certificate issuance: find or request, publish DNS challenges, wait for issue."""

import hashlib
import logging
import time

from .config import is_apex
from .errors import PollTimeout
from .models import CertificateState, CertificateStatus, DnsRecord
from .polling import poll_until

logger = logging.getLogger(__name__)

CHALLENGE_TTL = 300
TERMINAL_FAILURES = ("FAILED", "VALIDATION_TIMED_OUT", "REVOKED")

OPTIONS_INTERVAL = 2
OPTIONS_MAX_ATTEMPTS = 30
ISSUANCE_INTERVAL = 30


def required_sans(domain: str, extra_sans=()) -> list:
    """Names the certificate must cover: the domain, www for an apex, then extras."""
    sans = [domain]
    if is_apex(domain):
        sans.append(f"www.{domain}")
    for san in extra_sans:
        if san not in sans:
            sans.append(san)
    return sans


def covers(names, san: str) -> bool:
    """Whether ``names`` include ``san`` exactly or through a one-level wildcard."""
    names = {n.lower() for n in names}
    if san in names:
        return True
    parts = san.split(".", 1)
    return len(parts) == 2 and f"*.{parts[1]}" in names


def _summaries(acm, statuses):
    paginator = acm.get_paginator("list_certificates")
    for page in paginator.paginate(CertificateStatuses=list(statuses)):
        yield from page.get("CertificateSummaryList", [])


def find_certificate(acm, domain: str, statuses=("ISSUED",), required=None) -> dict | None:
    """First certificate in ``statuses`` for ``domain`` (or its wildcard) covering ``required``.

    Returns the describe_certificate body, or None.
    """
    wildcard = "*." + domain.split(".", 1)[-1]
    for summary in _summaries(acm, statuses):
        if summary.get("DomainName") not in (domain, wildcard):
            continue
        cert = acm.describe_certificate(CertificateArn=summary["CertificateArn"])["Certificate"]
        names = cert.get("SubjectAlternativeNames") or [cert["DomainName"]]
        if required is None or all(covers(names, san) for san in required):
            return cert
        logger.debug("Certificate %s does not cover %s", summary["CertificateArn"], required)
    return None


def idempotency_token(sans) -> str:
    # ACM allows at most 32 word characters
    return hashlib.sha256("|".join(sorted(sans)).encode()).hexdigest()[:32]


def request_certificate(acm, domain: str, sans: list) -> str:
    logger.info("Requesting certificate for %s...", ", ".join(sans))
    resp = acm.request_certificate(
        DomainName=domain,
        SubjectAlternativeNames=sans,
        ValidationMethod="DNS",
        IdempotencyToken=idempotency_token(sans),
    )
    return resp["CertificateArn"]


def challenge_records(cert: dict) -> list:
    """De-duplicated DNS challenge records from a certificate's validation options.

    A domain and its www name often share one challenge.
    """
    records = []
    seen = set()
    for option in cert.get("DomainValidationOptions") or []:
        rr = option.get("ResourceRecord")
        if not rr:
            continue
        record = DnsRecord(
            name=rr["Name"].rstrip("."),
            type=rr["Type"],
            content=rr["Value"].rstrip("."),
            ttl=CHALLENGE_TTL,
        )
        if (record.key, record.content) in seen:
            continue
        seen.add((record.key, record.content))
        records.append(record)
    return records


def wait_for_challenge_records(acm, arn: str, *, sleep=time.sleep, interval=OPTIONS_INTERVAL, max_attempts=OPTIONS_MAX_ATTEMPTS) -> list:
    """Poll until every validation option carries its ResourceRecord.

    Raises PollTimeout when ACM has not produced them within the budget.
    """

    def ready(cert):
        options = cert.get("DomainValidationOptions") or []
        return bool(options) and all(o.get("ResourceRecord") for o in options)

    cert = poll_until(
        lambda: acm.describe_certificate(CertificateArn=arn)["Certificate"],
        ready,
        interval=interval,
        max_attempts=max_attempts,
        sleep=sleep,
        what="DNS validation options",
    )
    return challenge_records(cert)


def publish_challenge_records(provider, domain: str, records: list) -> list:
    """Upsert challenge records through ``provider``; returns those written."""
    published = []
    for record in records:
        result = provider.upsert_record(domain, record)
        if result.success:
            logger.info("Created validation record: %s", record.name)
            published.append(record)
        else:
            logger.warning("Failed to create validation record %s: %s", record.name, result.message)
    return published


def wait_for_issuance(acm, arn: str, *, max_wait_minutes: int = 10, sleep=time.sleep, interval=ISSUANCE_INTERVAL):
    """Poll the certificate until it settles. Returns (CertificateStatus, message)."""

    def settled(cert):
        return cert["Status"] == "ISSUED" or cert["Status"] in TERMINAL_FAILURES

    logger.info("Waiting for certificate validation (up to %d minutes)...", max_wait_minutes)
    try:
        cert = poll_until(
            lambda: acm.describe_certificate(CertificateArn=arn)["Certificate"],
            settled,
            interval=interval,
            max_attempts=max(1, 2 * max_wait_minutes),
            sleep=sleep,
            what=f"certificate {arn}",
        )
    except PollTimeout as e:
        last = (e.last or {}).get("Status", "UNKNOWN")
        return (
            CertificateStatus.TIMED_OUT,
            f"Certificate validation timed out after {max_wait_minutes} minutes (last status: {last})",
        )

    if cert["Status"] == "ISSUED":
        logger.info("Certificate issued: %s", arn)
        return CertificateStatus.ISSUED, "Certificate issued"

    message = f"Certificate validation failed with status {cert['Status']}"
    if cert.get("FailureReason"):
        message += f": {cert['FailureReason']}"
    return CertificateStatus.FAILED, message


def ensure_certificate(acm, provider, domain: str, extra_sans=(), *, max_wait_minutes: int = 10, sleep=time.sleep) -> CertificateState:
    """Return an issued certificate covering ``domain``, issuing one if needed.

    An issued certificate covering every required name is reused. A pending
    one left by an interrupted run is resumed. Otherwise a new certificate is
    requested, its DNS challenges published through ``provider``, and the
    call blocks until ACM settles or the wait budget runs out. Timeouts and
    validation failures come back as a non-issued CertificateState.
    """
    sans = required_sans(domain, extra_sans)

    existing = find_certificate(acm, domain, ("ISSUED",), sans)
    if existing:
        logger.info("Using existing certificate: %s", existing["CertificateArn"])
        return CertificateState(
            arn=existing["CertificateArn"],
            status=CertificateStatus.ISSUED,
            subject_alternative_names=existing.get("SubjectAlternativeNames") or sans,
            message="Existing certificate covers all names",
        )

    pending = find_certificate(acm, domain, ("PENDING_VALIDATION",), sans)
    if pending:
        logger.info("Resuming pending certificate: %s", pending["CertificateArn"])
        state = CertificateState(pending["CertificateArn"], CertificateStatus.PENDING_VALIDATION, sans)
    else:
        arn = request_certificate(acm, domain, sans)
        logger.info("Requested certificate: %s", arn)
        state = CertificateState(arn, CertificateStatus.PENDING_VALIDATION, sans, is_new=True)

    try:
        state.challenge_records = wait_for_challenge_records(acm, state.arn, sleep=sleep)
    except PollTimeout:
        state.status = CertificateStatus.TIMED_OUT
        state.message = "Timeout waiting for DNS validation options"
        return state

    publish_challenge_records(provider, domain, state.challenge_records)
    state.status, state.message = wait_for_issuance(acm, state.arn, max_wait_minutes=max_wait_minutes, sleep=sleep)
    return state


def delete_challenge_records(acm, provider, domain: str, arn: str) -> list:
    """Remove a certificate's challenge records. Returns error messages, empty on success."""
    cert = acm.describe_certificate(CertificateArn=arn)["Certificate"]
    errors = []
    for record in challenge_records(cert):
        result = provider.delete_record(domain, record)
        if result.success:
            logger.info("Deleted validation record: %s", record.name)
        else:
            errors.append(f"Failed to delete validation record {record.name}: {result.message}")
    return errors
