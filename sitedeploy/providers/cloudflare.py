"""Cloudflare DNS backend (API v4)."""

import logging
from urllib.parse import urlencode

from ..config import root_domain
from ..errors import DnsProviderError
from ..models import DnsRecord, RecordResult
from .http import HttpDnsProvider

logger = logging.getLogger(__name__)


class CloudflareProvider(HttpDnsProvider):
    name = "cloudflare"
    base_url = "https://api.cloudflare.com/client/v4"
    # Cloudflare flattens a CNAME at the apex; it has no ALIAS type
    apex_record_types = ("CNAME",)

    def __init__(self, api_token: str, session=None):
        super().__init__(session)
        self.api_token = api_token
        self._zones = {}

    def _headers(self) -> dict:
        headers = super()._headers()
        headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def _error_message(self, resp) -> str:
        try:
            errors = resp.json().get("errors") or []
        except ValueError:
            errors = []
        if errors:
            return "; ".join(e.get("message", str(e)) for e in errors)
        return super()._error_message(resp)

    def _api(self, method: str, path: str, body=None):
        data = self._send(method, path, body) or {}
        if not data.get("success", False):
            errors = "; ".join(e.get("message", str(e)) for e in data.get("errors") or [])
            raise DnsProviderError(f"cloudflare API error: {errors or 'request was not successful'}")
        return data

    def _zone_id(self, domain: str) -> str:
        zone = root_domain(domain)
        if zone not in self._zones:
            result = self._api("GET", "/zones?" + urlencode({"name": zone}))["result"]
            if not result:
                raise DnsProviderError(f"cloudflare has no zone for {zone}")
            self._zones[zone] = result[0]["id"]
        return self._zones[zone]

    @staticmethod
    def _from_api(r: dict) -> DnsRecord:
        return DnsRecord(
            name=r["name"],
            type=r["type"],
            content=r["content"],
            ttl=r.get("ttl", 1),
            priority=r.get("priority"),
            id=r["id"],
        )

    @staticmethod
    def _to_api(record: DnsRecord) -> dict:
        body = {
            "type": record.type.upper(),
            "name": record.name.rstrip("."),
            "content": record.content.rstrip("."),
            "ttl": record.ttl,
            "proxied": False,
        }
        if record.priority is not None:
            body["priority"] = record.priority
        return body

    def _probe(self, domain: str):
        self._zone_id(domain)

    def list_records(self, domain: str, record_type: str | None = None) -> list:
        zone_id = self._zone_id(domain)
        params = {"per_page": 100}
        if record_type:
            params["type"] = record_type.upper()

        records = []
        page = 1
        while True:
            data = self._api("GET", f"/zones/{zone_id}/dns_records?" + urlencode({**params, "page": page}))
            records.extend(self._from_api(r) for r in data["result"])
            total_pages = (data.get("result_info") or {}).get("total_pages", 1)
            if page >= total_pages:
                break
            page += 1
        return records

    def upsert_record(self, domain: str, record: DnsRecord) -> RecordResult:
        return self._write(self._upsert, domain, record)

    def _upsert(self, domain: str, record: DnsRecord) -> RecordResult:
        zone_id = self._zone_id(domain)
        existing = self._find(domain, record)
        if existing and self._unchanged(existing, record):
            return RecordResult(True, "Record already up to date", existing.id)
        if existing:
            self._api("PUT", f"/zones/{zone_id}/dns_records/{existing.id}", self._to_api(record))
            return RecordResult(True, "Record updated", existing.id)

        data = self._api("POST", f"/zones/{zone_id}/dns_records", self._to_api(record))
        return RecordResult(True, "Record created", data["result"]["id"])

    def delete_record(self, domain: str, record: DnsRecord) -> RecordResult:
        return self._write(self._delete, domain, record)

    def _delete(self, domain: str, record: DnsRecord) -> RecordResult:
        existing = self._find(domain, record, match_content=True)
        if not existing:
            return RecordResult(False, "Record not found")
        self._api("DELETE", f"/zones/{self._zone_id(domain)}/dns_records/{existing.id}")
        return RecordResult(True, "Record deleted", existing.id)
