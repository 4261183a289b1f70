"""Find live infrastructure to adopt, and clear orphans left by failed runs."""

import logging
import re
import time

from botocore.exceptions import BotoCoreError, ClientError

from .errors import BucketCleanupTimeout
from .models import AdoptedInfrastructure, NotFound

logger = logging.getLogger(__name__)

# <bucket>.s3.amazonaws.com, <bucket>.s3.us-west-2.amazonaws.com, <bucket>.s3-website-...
S3_ORIGIN_RE = re.compile(r"^([^.]+)\.s3[.-]")

ORPHAN_CLEANUP_SECONDS = 30

VERIFICATION_MARKERS = ("must be verified", "Access denied for operation")


def _as_list(value, inner_key: str) -> list:
    """Normalise the list-or-singleton shapes CloudFront structures come in.

    Accepts ``{"Items": [...]}``, ``{"Items": {inner_key: x | [x]}}``,
    ``{inner_key: ...}``, a bare list, or a single item.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        if "Items" in value:
            return _as_list(value["Items"], inner_key)
        if inner_key in value:
            return _as_list(value[inner_key], inner_key)
        return [value] if value else []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def normalize_aliases(aliases) -> list:
    return [a.lower() for a in _as_list(aliases, "CNAME") if isinstance(a, str)]


def normalize_origins(origins) -> list:
    return [o for o in _as_list(origins, "Origin") if isinstance(o, dict)]


def origin_bucket(origins) -> str | None:
    """Bucket name of the first S3 origin, if any."""
    for origin in normalize_origins(origins):
        match = S3_ORIGIN_RE.match(origin.get("DomainName") or "")
        if match:
            return match.group(1)
    return None


def list_distributions(cloudfront) -> list:
    """Paginate through list_distributions."""
    distributions = []
    kwargs = {}
    while True:
        resp = cloudfront.list_distributions(**kwargs)
        dist_list = resp.get("DistributionList", {})
        distributions.extend(dist_list.get("Items") or [])
        marker = dist_list.get("NextMarker")
        if not dist_list.get("IsTruncated", False) or not marker:
            break
        kwargs["Marker"] = marker
    return distributions


def find_adoptable_distribution(cloudfront, domain: str) -> AdoptedInfrastructure | None:
    """A distribution aliased to ``domain`` whose origin is an S3 bucket."""
    domain = domain.lower()
    logger.info("Checking for existing CloudFront distribution for %s...", domain)
    for dist in list_distributions(cloudfront):
        if domain not in normalize_aliases(dist.get("Aliases")):
            continue

        logger.info("Found existing CloudFront distribution %s with alias %s", dist["Id"], domain)
        config = cloudfront.get_distribution_config(Id=dist["Id"])["DistributionConfig"]
        bucket = origin_bucket(config.get("Origins"))
        if bucket:
            logger.info("Using existing S3 bucket: %s", bucket)
            return AdoptedInfrastructure(
                distribution_id=dist["Id"],
                distribution_domain=dist["DomainName"],
                bucket_name=bucket,
            )
        logger.warning("Distribution %s has no S3 origin, not adopting it", dist["Id"])
    return None


def bucket_exists(s3, bucket: str) -> bool:
    try:
        s3.head_bucket(Bucket=bucket)
        return True
    except ClientError as e:
        code = str(e.response.get("Error", {}).get("Code", ""))
        if code in ("404", "NoSuchBucket", "NotFound"):
            return False
        # 403 and friends: the name is taken, whoever owns it
        logger.debug("head_bucket %s returned %s", bucket, code)
        return True


def _delete_keys(s3, bucket: str, objects: list):
    if objects:
        s3.delete_objects(Bucket=bucket, Delete={"Objects": objects, "Quiet": True})


def empty_bucket(s3, bucket: str, deadline: float | None = None, clock=time.monotonic):
    """Delete every object, version and delete marker in ``bucket``.

    With a ``deadline`` (in ``clock`` time) the budget is checked between
    pages and BucketCleanupTimeout raised once it is exceeded.
    """

    def check():
        if deadline is not None and clock() > deadline:
            raise BucketCleanupTimeout(f"Bucket cleanup timeout for {bucket}")

    for page in s3.get_paginator("list_objects_v2").paginate(Bucket=bucket):
        check()
        _delete_keys(s3, bucket, [{"Key": o["Key"]} for o in page.get("Contents", [])])

    for page in s3.get_paginator("list_object_versions").paginate(Bucket=bucket):
        check()
        versions = page.get("Versions", []) + page.get("DeleteMarkers", [])
        _delete_keys(s3, bucket, [{"Key": v["Key"], "VersionId": v["VersionId"]} for v in versions])
    check()


def _base36(n: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = digits[r] + out
        if not n:
            return out


def alternate_bucket_name(bucket: str, now=time.time) -> str:
    """``bucket`` with a short time-derived suffix, kept within S3's 63 characters."""
    suffix = _base36(int(now() * 1000))
    base = bucket[: 63 - len(suffix) - 1].rstrip("-.")
    return f"{base}-{suffix}"


def resolve_orphan_bucket(s3, bucket: str, budget: float = ORPHAN_CLEANUP_SECONDS, clock=time.monotonic, now=time.time) -> str:
    """Return the bucket name to provision into.

    An existing bucket without a stack is an orphan from an earlier run: it is
    emptied and deleted within ``budget`` seconds. If that fails for any
    reason, a fresh suffixed name is returned instead.
    """
    if not bucket_exists(s3, bucket):
        return bucket

    logger.info("Found orphaned S3 bucket %s, cleaning up...", bucket)
    try:
        empty_bucket(s3, bucket, deadline=clock() + budget, clock=clock)
        s3.delete_bucket(Bucket=bucket)
    except (ClientError, BotoCoreError, BucketCleanupTimeout) as e:
        logger.warning("Could not clean up S3 bucket %s: %s", bucket, e)
        alternate = alternate_bucket_name(bucket, now)
        logger.info("Using alternative bucket name: %s", alternate)
        return alternate

    logger.info("Deleted orphaned S3 bucket %s", bucket)
    return bucket


def discover_infrastructure(cloudfront, s3, domain: str, bucket: str, cleanup_orphans: bool = True, **cleanup_kwargs):
    """Decide between adopting live infrastructure and provisioning fresh.

    Returns AdoptedInfrastructure, or NotFound carrying the (possibly
    renamed) bucket name. ``cleanup_orphans`` must be False when the stack
    already exists, since its bucket is then not an orphan.
    """
    adopted = find_adoptable_distribution(cloudfront, domain)
    if adopted:
        return adopted
    if cleanup_orphans:
        bucket = resolve_orphan_bucket(s3, bucket, **cleanup_kwargs)
    return NotFound(bucket_name=bucket)


def is_account_verification_error(message: str) -> bool:
    """CloudFront's new-account restriction, as reported through a failed stack."""
    return any(marker in (message or "") for marker in VERIFICATION_MARKERS)
