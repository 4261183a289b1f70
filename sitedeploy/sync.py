"""Post-reconcile steps: upload the built site and invalidate the CDN cache."""

import logging
import mimetypes
import os
import uuid
from pathlib import Path

from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from .config import DEFAULT_CACHE_CONTROL, DEFAULT_HTML_CACHE_CONTROL
from .errors import ConfigError

logger = logging.getLogger(__name__)


def detect_output_dir(project_dir: str) -> str:
    for candidate in ["dist", "build", "out", "public"]:
        p = os.path.join(project_dir, candidate)
        if os.path.isdir(p):
            return p
    raise ConfigError(f"Could not detect build output directory in {project_dir}. Use --output to specify it.")


def upload_directory(
    s3,
    bucket_name: str,
    output_dir: str,
    cache_control: str = DEFAULT_CACHE_CONTROL,
    html_cache_control: str = DEFAULT_HTML_CACHE_CONTROL,
):
    """Upload every file under ``output_dir`` to the bucket root.

    Returns (files uploaded, error messages). A failed file does not stop the
    remaining uploads.
    """
    output_path = Path(output_dir)
    files = sorted(f for f in output_path.rglob("*") if f.is_file())
    logger.info("Uploading %d files to s3://%s/...", len(files), bucket_name)

    uploaded = 0
    errors = []
    for file_path in files:
        key = file_path.relative_to(output_path).as_posix()
        content_type, _ = mimetypes.guess_type(str(file_path))
        if content_type is None:
            content_type = "application/octet-stream"

        # html must revalidate so new deploys show up; everything else is fingerprinted
        extra_args = {
            "ContentType": content_type,
            "CacheControl": html_cache_control if file_path.suffix in (".html", ".htm") else cache_control,
        }

        try:
            s3.upload_file(str(file_path), bucket_name, key, ExtraArgs=extra_args)
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            logger.warning("Failed to upload %s: %s", key, e)
            errors.append(f"{key}: {e}")
            continue
        logger.debug("Uploaded %s (%s)", key, content_type)
        uploaded += 1

    logger.info("Upload complete: %d of %d files.", uploaded, len(files))
    return uploaded, errors


def invalidate_cache(cloudfront, distribution_id: str, paths=("/*",)) -> str:
    """Create a CloudFront invalidation and return its ID."""
    logger.info("Creating cache invalidation for %s...", distribution_id)
    resp = cloudfront.create_invalidation(
        DistributionId=distribution_id,
        InvalidationBatch={
            "Paths": {"Quantity": len(paths), "Items": list(paths)},
            "CallerReference": str(uuid.uuid4()),
        },
    )
    invalidation_id = resp["Invalidation"]["Id"]
    logger.info("Invalidation created: %s", invalidation_id)
    return invalidation_id
