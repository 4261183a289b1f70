"""Point the site's names at the distribution through the active DNS provider."""

import logging

from .config import is_apex
from .models import DnsApplyResult, DnsRecord, HostingConflict, RecordResult

logger = logging.getLogger(__name__)

SITE_RECORD_TTL = 600

# Substrings of CNAME targets and the hosting service they belong to
HOSTING_SIGNATURES = (
    ("netlify", "Netlify"),
    ("vercel", "Vercel"),
    ("github.io", "GitHub Pages"),
    ("herokudns", "Heroku"),
    ("herokuapp", "Heroku"),
    ("pages.dev", "Cloudflare Pages"),
    ("azurestaticapps", "Azure Static Web Apps"),
    ("firebaseapp", "Firebase Hosting"),
    ("web.app", "Firebase Hosting"),
    ("onrender.com", "Render"),
    ("render.com", "Render"),
    ("fly.dev", "Fly.io"),
)
OTHER_PROVIDER = "another provider"


def classify_target(target: str) -> str | None:
    """Name of the hosting service ``target`` belongs to, None if it is CloudFront.

    Targets matching no known signature are still foreign: they map to
    OTHER_PROVIDER.
    """
    target = target.rstrip(".").lower()
    if "cloudfront.net" in target:
        return None
    for signature, service in HOSTING_SIGNATURES:
        if signature in target:
            return service
    return OTHER_PROVIDER


def find_hosting_conflict(provider, domain: str) -> HostingConflict | None:
    """A CNAME (or alias) for ``domain`` that points at another hosting service."""
    names = {domain, domain.split(".")[0], "@"}
    for record in provider.list_records(domain):
        if record.type.upper() not in ("CNAME", "ALIAS"):
            continue
        if record.name.rstrip(".").lower() not in names:
            continue
        service = classify_target(record.content)
        if service:
            logger.info("Found existing %s record for %s pointing to %s (%s)", record.type, domain, record.content, service)
            return HostingConflict(record=record, hosting_provider=service)
    return None


def remove_conflicting_record(provider, domain: str, conflict: HostingConflict) -> RecordResult:
    logger.info("Removing %s record pointing to %s...", conflict.record.type, conflict.hosting_provider)
    result = provider.delete_record(domain, conflict.record)
    if not result.success:
        logger.warning("Could not remove record %s: %s", conflict.record.name, result.message)
    return result


def _apply(provider, domain: str, record: DnsRecord, result: DnsApplyResult) -> bool:
    outcome = provider.upsert_record(domain, record)
    if outcome.success:
        logger.info("DNS %s %s -> %s (%s)", record.type, record.name, record.content, outcome.message or "ok")
        result.written.append(record)
        return True
    result.warnings.append(f"Failed to write {record.type} record for {record.name}: {outcome.message}")
    return False


def reconcile_dns(provider, domain: str, target: str) -> DnsApplyResult:
    """Upsert the records serving ``domain`` from ``target``.

    A subdomain gets one CNAME. An apex gets the first record type in the
    provider's ``apex_record_types`` that it accepts, plus a www CNAME.
    Failures become warnings; ``primary_ok`` tracks the record for ``domain``.
    """
    target = target.rstrip(".")
    result = DnsApplyResult()

    if not is_apex(domain):
        result.primary_ok = _apply(provider, domain, DnsRecord(domain, "CNAME", target, SITE_RECORD_TTL), result)
        return result

    attempts = []
    for rtype in provider.apex_record_types:
        outcome = provider.upsert_record(domain, DnsRecord(domain, rtype, target, SITE_RECORD_TTL))
        if outcome.success:
            logger.info("DNS %s %s -> %s", rtype, domain, target)
            result.written.append(DnsRecord(domain, rtype, target, SITE_RECORD_TTL))
            result.primary_ok = True
            break
        logger.debug("%s rejected %s at apex %s: %s", provider.name, rtype, domain, outcome.message)
        attempts.append(f"{rtype}: {outcome.message}")

    if not result.primary_ok:
        if attempts:
            result.warnings.append(f"Failed to point apex {domain} at {target} ({'; '.join(attempts)})")
        else:
            result.warnings.append(
                f"{provider.name} cannot point the apex {domain} at a hostname; "
                f"create a forwarding or ALIAS record to {target} manually"
            )

    _apply(provider, domain, DnsRecord(f"www.{domain}", "CNAME", target, SITE_RECORD_TTL), result)
    return result


def remove_site_records(provider, domain: str, target: str) -> list:
    """Delete the records for ``domain`` (and its www) that point at ``target``.

    Returns warning messages for records that could not be removed.
    """
    target = target.rstrip(".").lower()
    names = {domain, f"www.{domain}"} if is_apex(domain) else {domain}
    warnings = []
    for record in provider.list_records(domain):
        if record.name.rstrip(".").lower() not in names or record.content.rstrip(".").lower() != target:
            continue
        result = provider.delete_record(domain, record)
        if result.success:
            logger.info("Deleted %s record %s", record.type, record.name)
        else:
            warnings.append(f"Failed to delete {record.type} record for {record.name}: {result.message}")
    return warnings
