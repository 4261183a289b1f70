"""Native DNS backend: Route53 via boto3."""

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import DnsProviderError
from ..models import DnsRecord, RecordResult
from .base import DnsProvider

logger = logging.getLogger(__name__)

# CloudFront's fixed hosted zone ID, used as the alias target zone
CLOUDFRONT_HOSTED_ZONE_ID = "Z2FDTNDATAQYW2"


def _fqdn(name: str) -> str:
    return name if name.endswith(".") else f"{name}."


def find_hosted_zone(route53, domain: str) -> str | None:
    """Find the Route53 hosted zone ID for the given domain."""
    # Walk up the domain to find a matching zone (app.example.com -> example.com)
    parts = domain.rstrip(".").split(".")
    for i in range(len(parts) - 1):
        candidate = ".".join(parts[i:])
        resp = route53.list_hosted_zones_by_name(DNSName=candidate, MaxItems="1")
        for zone in resp["HostedZones"]:
            zone_name = zone["Name"].rstrip(".")
            if zone_name == candidate:
                zone_id = zone["Id"].split("/")[-1]
                logger.debug("Found hosted zone: %s (%s)", zone_name, zone_id)
                return zone_id
    return None


class Route53Provider(DnsProvider):
    name = "route53"
    # Alias records only: Route53 rejects a CNAME at the zone apex
    apex_record_types = ("ALIAS",)

    def __init__(self, session: boto3.Session | None = None, hosted_zone_id: str | None = None, client=None):
        self.client = client or (session or boto3.Session()).client("route53")
        self.hosted_zone_id = hosted_zone_id
        self._zones = {}

    def _zone_id(self, domain: str) -> str | None:
        if self.hosted_zone_id:
            return self.hosted_zone_id
        if domain not in self._zones:
            self._zones[domain] = find_hosted_zone(self.client, domain)
        return self._zones[domain]

    def _change(self, zone_id: str, action: str, record_sets: list, comment: str):
        self.client.change_resource_record_sets(
            HostedZoneId=zone_id,
            ChangeBatch={
                "Comment": comment,
                "Changes": [{"Action": action, "ResourceRecordSet": rs} for rs in record_sets],
            },
        )

    @staticmethod
    def _to_record_sets(record: DnsRecord) -> list:
        if record.type.upper() == "ALIAS":
            target = record.content.rstrip(".")
            if not target.endswith(".cloudfront.net"):
                raise ValueError(f"Route53 alias records can only target CloudFront here, got {target}")
            return [
                {
                    "Name": _fqdn(record.name),
                    "Type": rtype,
                    "AliasTarget": {
                        "HostedZoneId": CLOUDFRONT_HOSTED_ZONE_ID,
                        "DNSName": target,
                        "EvaluateTargetHealth": False,
                    },
                }
                for rtype in ("A", "AAAA")
            ]

        value = record.content
        if record.type.upper() == "TXT" and not value.startswith('"'):
            value = f'"{value}"'
        if record.type.upper() == "MX" and record.priority is not None:
            value = f"{record.priority} {value}"
        return [
            {
                "Name": _fqdn(record.name),
                "Type": record.type.upper(),
                "TTL": record.ttl,
                "ResourceRecords": [{"Value": value}],
            }
        ]

    def _record_sets(self, zone_id: str):
        paginator = self.client.get_paginator("list_resource_record_sets")
        for page in paginator.paginate(HostedZoneId=zone_id):
            yield from page["ResourceRecordSets"]

    def can_manage_domain(self, domain: str) -> bool:
        try:
            return self._zone_id(domain) is not None
        except (ClientError, BotoCoreError) as e:
            logger.debug("Route53 zone lookup failed for %s: %s", domain, e)
            return False

    def list_records(self, domain: str, record_type: str | None = None) -> list:
        try:
            zone_id = self._zone_id(domain)
            if not zone_id:
                raise DnsProviderError(f"No Route53 hosted zone found for {domain}")

            records = []
            seen_aliases = set()
            for rs in self._record_sets(zone_id):
                name = rs["Name"].rstrip(".")
                if "AliasTarget" in rs:
                    if name in seen_aliases:
                        continue
                    seen_aliases.add(name)
                    rtype, values, ttl = "ALIAS", [rs["AliasTarget"]["DNSName"].rstrip(".")], 60
                else:
                    rtype, values, ttl = rs["Type"], [r["Value"] for r in rs.get("ResourceRecords", [])], rs.get("TTL", 300)
                if record_type and rtype != record_type.upper():
                    continue
                for value in values:
                    priority = None
                    if rtype == "MX" and " " in value:
                        prio, value = value.split(" ", 1)
                        priority = int(prio)
                    if rtype == "TXT" and len(value) > 1 and value.startswith('"') and value.endswith('"'):
                        value = value[1:-1]
                    records.append(DnsRecord(name=name, type=rtype, content=value, ttl=ttl, priority=priority))
            return records
        except (ClientError, BotoCoreError) as e:
            raise DnsProviderError(f"Route53 list failed for {domain}: {e}") from e

    def upsert_record(self, domain: str, record: DnsRecord) -> RecordResult:
        try:
            zone_id = self._zone_id(domain)
            if not zone_id:
                return RecordResult(False, f"No Route53 hosted zone found for {domain}")
            self._change(zone_id, "UPSERT", self._to_record_sets(record), f"Upserted by sitedeploy for {domain}")
        except (ClientError, BotoCoreError, ValueError) as e:
            return RecordResult(False, str(e))
        return RecordResult(True, "Record upserted")

    def delete_record(self, domain: str, record: DnsRecord) -> RecordResult:
        try:
            zone_id = self._zone_id(domain)
            if not zone_id:
                return RecordResult(False, f"No Route53 hosted zone found for {domain}")

            # DELETE must match the live record set exactly, TTL included
            target = _fqdn(record.name).lower()
            wanted_types = ("A", "AAAA") if record.type.upper() == "ALIAS" else (record.type.upper(),)
            matches = [
                rs for rs in self._record_sets(zone_id)
                if rs["Name"].lower() == target
                and rs["Type"] in wanted_types
                and ("AliasTarget" in rs) == (record.type.upper() == "ALIAS")
            ]
            if not matches:
                return RecordResult(False, "Record not found")
            self._change(zone_id, "DELETE", matches, f"Deleted by sitedeploy for {domain}")
        except (ClientError, BotoCoreError) as e:
            return RecordResult(False, str(e))
        return RecordResult(True, "Record deleted")
