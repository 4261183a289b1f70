"""GoDaddy DNS backend (Domains API v1)."""

import logging

from ..config import root_domain
from ..models import DnsRecord, RecordResult
from .base import absolute_name, relative_name
from .http import HttpDnsProvider

logger = logging.getLogger(__name__)

API_URLS = {
    "production": "https://api.godaddy.com",
    "ote": "https://api.ote-godaddy.com",
}


class GoDaddyProvider(HttpDnsProvider):
    name = "godaddy"
    # GoDaddy offers neither ALIAS records nor a CNAME at the apex
    apex_record_types = ()

    def __init__(self, api_key: str, api_secret: str, environment: str = "production", session=None):
        super().__init__(session)
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = API_URLS[environment]

    def _headers(self) -> dict:
        headers = super()._headers()
        headers["Authorization"] = f"sso-key {self.api_key}:{self.api_secret}"
        return headers

    def _error_message(self, resp) -> str:
        try:
            data = resp.json()
        except ValueError:
            return super()._error_message(resp)
        message = data.get("message") or super()._error_message(resp)
        if data.get("fields"):
            message += f" - fields: {data['fields']}"
        return message

    @staticmethod
    def _to_api(record: DnsRecord, zone: str) -> dict:
        body = {
            "type": record.type.upper(),
            "name": relative_name(record.name, zone, apex="@"),
            "data": record.content.rstrip("."),
            "ttl": max(record.ttl, 600),
        }
        if record.priority is not None:
            body["priority"] = record.priority
        return body

    def _probe(self, domain: str):
        self._send("GET", f"/v1/domains/{root_domain(domain)}")

    def list_records(self, domain: str, record_type: str | None = None) -> list:
        zone = root_domain(domain)
        path = f"/v1/domains/{zone}/records"
        if record_type:
            path += f"/{record_type.upper()}"
        return [
            DnsRecord(
                name=absolute_name(r["name"], zone),
                type=r["type"],
                content=r["data"],
                ttl=r.get("ttl", 600),
                priority=r.get("priority"),
            )
            for r in self._send("GET", path) or []
        ]

    def upsert_record(self, domain: str, record: DnsRecord) -> RecordResult:
        return self._write(self._upsert, domain, record)

    def _upsert(self, domain: str, record: DnsRecord) -> RecordResult:
        zone = root_domain(domain)
        body = self._to_api(record, zone)
        path = f"/v1/domains/{zone}/records/{body['type']}/{body['name']}"
        existing = self._send("GET", path) or []
        if len(existing) == 1 and existing[0].get("data", "").rstrip(".") == body["data"] and existing[0].get("ttl") == body["ttl"]:
            return RecordResult(True, "Record already up to date")

        # PUT replaces every record with this type and name
        self._send("PUT", path, [body])
        return RecordResult(True, "Record upserted")

    def delete_record(self, domain: str, record: DnsRecord) -> RecordResult:
        return self._write(self._delete, domain, record)

    def _delete(self, domain: str, record: DnsRecord) -> RecordResult:
        zone = root_domain(domain)
        body = self._to_api(record, zone)
        path = f"/v1/domains/{zone}/records/{body['type']}/{body['name']}"
        existing = self._send("GET", path) or []
        remaining = [r for r in existing if r.get("data", "").rstrip(".") != body["data"]]
        if len(remaining) == len(existing):
            return RecordResult(False, "Record not found")

        if remaining:
            self._send("PUT", path, remaining)
        else:
            self._send("DELETE", path)
        return RecordResult(True, "Record deleted")
