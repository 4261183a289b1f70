"""Deploy static sites to S3 and CloudFront with certificates and DNS kept converged."""

from .config import DeploymentSpec
from .deploy import deploy_site, deploy_site_full, destroy_site
from .models import ReconciliationResult

__version__ = "0.1.0"

__all__ = [
    "DeploymentSpec",
    "ReconciliationResult",
    "deploy_site",
    "deploy_site_full",
    "destroy_site",
]
