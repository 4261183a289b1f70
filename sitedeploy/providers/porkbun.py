"""Porkbun DNS backend (JSON API v3)."""

import logging

from ..config import root_domain
from ..errors import DnsProviderError
from ..models import DnsRecord, RecordResult
from .base import absolute_name, relative_name
from .http import HttpDnsProvider

logger = logging.getLogger(__name__)

# Porkbun rejects TTLs below 600
MIN_TTL = 600


class PorkbunProvider(HttpDnsProvider):
    name = "porkbun"
    base_url = "https://api.porkbun.com/api/json/v3"

    def __init__(self, api_key: str, secret_key: str, session=None):
        super().__init__(session)
        self.api_key = api_key
        self.secret_key = secret_key

    def _call(self, endpoint: str, **body) -> dict:
        # Every Porkbun call is a POST carrying the key pair
        data = self._send("POST", endpoint, {"apikey": self.api_key, "secretapikey": self.secret_key, **body}) or {}
        if data.get("status") == "ERROR":
            raise DnsProviderError(f"porkbun API error: {data.get('message', 'unknown error')}")
        return data

    def _body(self, record: DnsRecord, zone: str) -> dict:
        body = {
            "name": relative_name(record.name, zone),
            "type": record.type.upper(),
            "content": record.content.rstrip("."),
            "ttl": str(max(record.ttl, MIN_TTL)),
        }
        if record.priority is not None:
            body["prio"] = str(record.priority)
        return body

    def _probe(self, domain: str):
        self._call(f"/dns/retrieve/{root_domain(domain)}")

    def list_records(self, domain: str, record_type: str | None = None) -> list:
        zone = root_domain(domain)
        data = self._call(f"/dns/retrieve/{zone}")
        records = []
        for r in data.get("records") or []:
            if record_type and r["type"] != record_type.upper():
                continue
            records.append(
                DnsRecord(
                    name=absolute_name(r.get("name") or zone, zone),
                    type=r["type"],
                    content=r["content"],
                    ttl=int(r.get("ttl") or MIN_TTL),
                    priority=int(r["prio"]) if r.get("prio") else None,
                    id=str(r["id"]),
                )
            )
        return records

    def upsert_record(self, domain: str, record: DnsRecord) -> RecordResult:
        return self._write(self._upsert, domain, record)

    def _upsert(self, domain: str, record: DnsRecord) -> RecordResult:
        zone = root_domain(domain)
        record = DnsRecord(record.name, record.type, record.content, max(record.ttl, MIN_TTL), record.priority)
        existing = self._find(domain, record)
        if existing and self._unchanged(existing, record):
            return RecordResult(True, "Record already up to date", existing.id)
        if existing:
            self._call(f"/dns/edit/{zone}/{existing.id}", **self._body(record, zone))
            return RecordResult(True, "Record updated", existing.id)

        data = self._call(f"/dns/create/{zone}", **self._body(record, zone))
        record_id = data.get("id")
        return RecordResult(True, "Record created", str(record_id) if record_id is not None else None)

    def delete_record(self, domain: str, record: DnsRecord) -> RecordResult:
        return self._write(self._delete, domain, record)

    def _delete(self, domain: str, record: DnsRecord) -> RecordResult:
        existing = self._find(domain, record, match_content=True)
        if not existing:
            return RecordResult(False, "Record not found")
        self._call(f"/dns/delete/{root_domain(domain)}/{existing.id}")
        return RecordResult(True, "Record deleted", existing.id)
