"""Deployment configuration: the desired state for one run and DNS provider settings."""

import os
import re
from dataclasses import dataclass, field

from .errors import ConfigError

DEFAULT_REGION = "us-east-1"
# ACM certificates attached to CloudFront must live in us-east-1
GLOBAL_REGION = "us-east-1"

DEFAULT_CACHE_CONTROL = "public, max-age=31536000, immutable"
DEFAULT_HTML_CACHE_CONTROL = "no-cache"

_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


@dataclass(frozen=True)
class Route53Config:
    hosted_zone_id: str | None = None
    provider: str = field(default="route53", init=False)


@dataclass(frozen=True)
class PorkbunConfig:
    api_key: str
    secret_key: str
    provider: str = field(default="porkbun", init=False)


@dataclass(frozen=True)
class GoDaddyConfig:
    api_key: str
    api_secret: str
    environment: str = "production"
    provider: str = field(default="godaddy", init=False)


@dataclass(frozen=True)
class CloudflareConfig:
    api_token: str
    provider: str = field(default="cloudflare", init=False)


DNS_PROVIDER_NAMES = ("route53", "porkbun", "godaddy", "cloudflare")


def _require_env(environ, *names: str) -> list:
    missing = [n for n in names if not environ.get(n)]
    if missing:
        raise ConfigError(f"Missing environment variables for DNS provider: {', '.join(missing)}")
    return [environ[n] for n in names]


def dns_config_from_env(name: str, environ=None):
    """Build the DNS provider configuration for ``name`` from environment variables."""
    environ = os.environ if environ is None else environ

    if name == "route53":
        return Route53Config(hosted_zone_id=environ.get("ROUTE53_HOSTED_ZONE_ID") or None)
    if name == "porkbun":
        api_key, secret_key = _require_env(environ, "PORKBUN_API_KEY", "PORKBUN_SECRET_KEY")
        return PorkbunConfig(api_key=api_key, secret_key=secret_key)
    if name == "godaddy":
        api_key, api_secret = _require_env(environ, "GODADDY_API_KEY", "GODADDY_API_SECRET")
        env = environ.get("GODADDY_ENVIRONMENT") or "production"
        if env not in ("production", "ote"):
            raise ConfigError(f"GODADDY_ENVIRONMENT must be 'production' or 'ote', got {env!r}")
        return GoDaddyConfig(api_key=api_key, api_secret=api_secret, environment=env)
    if name == "cloudflare":
        (token,) = _require_env(environ, "CLOUDFLARE_API_TOKEN")
        return CloudflareConfig(api_token=token)

    raise ConfigError(f"Unknown DNS provider: {name!r} (expected one of {', '.join(DNS_PROVIDER_NAMES)})")


def is_apex(domain: str) -> bool:
    """A domain with exactly two labels, e.g. example.com."""
    return len(domain.rstrip(".").split(".")) == 2


def root_domain(domain: str) -> str:
    """The last two labels of ``domain`` (app.example.com -> example.com)."""
    parts = domain.rstrip(".").split(".")
    return ".".join(parts[-2:])


@dataclass(frozen=True)
class DeploymentSpec:
    """Desired state for one deployment run. Validated on construction, never mutated."""

    site_name: str
    domain: str
    region: str = DEFAULT_REGION
    bucket: str | None = None
    certificate_arn: str | None = None
    stack_name: str | None = None
    default_root_object: str = "index.html"
    error_document: str = "404.html"
    cache_control: str = DEFAULT_CACHE_CONTROL
    html_cache_control: str = DEFAULT_HTML_CACHE_CONTROL
    tags: dict = field(default_factory=dict)
    dns_provider: object = field(default_factory=Route53Config)
    extra_sans: tuple = ()
    max_wait_minutes: int = 10

    def __post_init__(self):
        domain = self.domain.strip().rstrip(".").lower()
        object.__setattr__(self, "domain", domain)
        object.__setattr__(self, "extra_sans", tuple(s.strip().lower() for s in self.extra_sans))

        if not self.site_name:
            raise ConfigError("site_name is required")
        labels = domain.split(".")
        if len(labels) < 2 or not all(_LABEL_RE.match(label) for label in labels):
            raise ConfigError(f"Invalid domain: {self.domain!r}")
        if not _BUCKET_RE.match(self.bucket_name):
            raise ConfigError(f"Invalid S3 bucket name: {self.bucket_name!r}")
        if self.max_wait_minutes < 1:
            raise ConfigError("max_wait_minutes must be at least 1")
        if getattr(self.dns_provider, "provider", None) not in DNS_PROVIDER_NAMES:
            raise ConfigError(f"Unsupported DNS provider configuration: {self.dns_provider!r}")

    @property
    def bucket_name(self) -> str:
        return self.bucket or self.domain.replace(".", "-")

    @property
    def resolved_stack_name(self) -> str:
        return self.stack_name or f"{self.site_name}-static-site"

    @property
    def is_apex(self) -> bool:
        return is_apex(self.domain)

    @property
    def www_domain(self) -> str | None:
        return f"www.{self.domain}" if self.is_apex else None

    @property
    def aliases(self) -> list:
        return [self.domain, self.www_domain] if self.is_apex else [self.domain]

    @property
    def stack_tags(self) -> list:
        tags = [{"Key": k, "Value": v} for k, v in self.tags.items()]
        tags.append({"Key": "ManagedBy", "Value": "sitedeploy"})
        tags.append({"Key": "Application", "Value": self.site_name})
        tags.append({"Key": "DnsProvider", "Value": self.dns_provider.provider})
        return tags
