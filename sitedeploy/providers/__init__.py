"""DNS provider backends, selected from configuration."""

from .base import DnsProvider
from .cloudflare import CloudflareProvider
from .godaddy import GoDaddyProvider
from .porkbun import PorkbunProvider
from .route53 import Route53Provider

_FACTORIES = {
    "route53": lambda config, session: Route53Provider(session=session, hosted_zone_id=config.hosted_zone_id),
    "porkbun": lambda config, session: PorkbunProvider(config.api_key, config.secret_key),
    "godaddy": lambda config, session: GoDaddyProvider(config.api_key, config.api_secret, config.environment),
    "cloudflare": lambda config, session: CloudflareProvider(config.api_token),
}


def create_dns_provider(config, session=None) -> DnsProvider:
    """Build the backend named by ``config.provider``.

    ``session`` is the boto3 session used by the native Route53 backend.
    """
    return _FACTORIES[config.provider](config, session)


__all__ = [
    "CloudflareProvider",
    "DnsProvider",
    "GoDaddyProvider",
    "PorkbunProvider",
    "Route53Provider",
    "create_dns_provider",
]
