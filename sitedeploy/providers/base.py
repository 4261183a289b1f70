"""DNS provider capability interface shared by the native and third-party backends."""

from abc import ABC, abstractmethod

from ..models import DnsRecord, RecordResult


class DnsProvider(ABC):
    """Uniform contract for a DNS backend.

    Write operations report provider-side rejections through RecordResult
    rather than raising; ``list_records`` raises DnsProviderError when the
    provider cannot be read. ``apex_record_types`` lists, in order of
    preference, the record types this provider accepts at a zone apex
    pointing at a hostname.
    """

    name = ""
    apex_record_types = ("ALIAS", "CNAME")

    @abstractmethod
    def can_manage_domain(self, domain: str) -> bool:
        """Whether the configured credentials can manage DNS for ``domain``."""

    @abstractmethod
    def list_records(self, domain: str, record_type: str | None = None) -> list:
        """Records in the zone serving ``domain``, optionally filtered by type."""

    @abstractmethod
    def upsert_record(self, domain: str, record: DnsRecord) -> RecordResult:
        """Create ``record`` or update the record with the same name and type."""

    @abstractmethod
    def delete_record(self, domain: str, record: DnsRecord) -> RecordResult:
        """Delete the record matching ``record``'s name, type and content."""

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"


def relative_name(record_name: str, zone: str, apex: str = "") -> str:
    """Strip ``zone`` from a fully-qualified record name.

    "_abc.www.example.com" in zone "example.com" -> "_abc.www"; the zone
    itself maps to ``apex`` ("" for Porkbun, "@" for GoDaddy).
    """
    name = record_name.rstrip(".").lower()
    zone = zone.rstrip(".").lower()
    if name in (zone, "@", ""):
        return apex
    if name.endswith(f".{zone}"):
        return name[: -(len(zone) + 1)]
    return name


def absolute_name(name: str, zone: str) -> str:
    """Inverse of relative_name: "www" in "example.com" -> "www.example.com"."""
    name = (name or "").rstrip(".").lower()
    zone = zone.rstrip(".").lower()
    if name in ("", "@", zone):
        return zone
    if name.endswith(f".{zone}"):
        return name
    return f"{name}.{zone}"
