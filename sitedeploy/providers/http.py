"""Shared HTTP plumbing for the third-party DNS backends."""

import logging
from abc import abstractmethod

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import DnsProviderError
from ..models import DnsRecord, RecordResult
from .base import DnsProvider

logger = logging.getLogger(__name__)


class HttpDnsProvider(DnsProvider):
    """A DnsProvider backed by a JSON REST API reached through a requests.Session."""

    base_url = ""
    # (connect, read) in seconds
    DEFAULT_TIMEOUT = (10, 30)

    def __init__(self, session: requests.Session | None = None):
        if session is None:
            session = requests.Session()
            # Retry on transient server errors and connection failures
            retry = Retry(
                total=3,
                backoff_factor=0.5,
                status_forcelist=[502, 503, 504],
                allowed_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
                raise_on_status=False,
            )
            session.mount("https://", HTTPAdapter(max_retries=retry))
        self.session = session

    def _headers(self) -> dict:
        return {"Content-Type": "application/json", "Accept": "application/json"}

    def _error_message(self, resp) -> str:
        return f"{resp.status_code} {resp.reason}"

    def _send(self, method: str, path: str, body=None):
        """Send a request and return the decoded JSON body (None when empty)."""
        url = f"{self.base_url}{path}"
        logger.debug("%s %s %s", self.name, method, url)
        try:
            resp = self.session.request(method, url, json=body, headers=self._headers(), timeout=self.DEFAULT_TIMEOUT)
        except requests.RequestException as e:
            raise DnsProviderError(f"{self.name} API request failed: {e}") from e

        if not resp.ok:
            raise DnsProviderError(f"{self.name} API error: {self._error_message(resp)}")
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise DnsProviderError(f"{self.name} API returned invalid JSON") from e

    def _find(self, domain: str, record: DnsRecord, match_content: bool = False):
        for existing in self.list_records(domain, record.type):
            if existing.key != record.key:
                continue
            if match_content and existing.content.rstrip(".") != record.content.rstrip("."):
                continue
            return existing
        return None

    @staticmethod
    def _unchanged(existing: DnsRecord, record: DnsRecord) -> bool:
        return existing.content.rstrip(".") == record.content.rstrip(".") and existing.ttl == record.ttl

    def can_manage_domain(self, domain: str) -> bool:
        try:
            self._probe(domain)
        except DnsProviderError as e:
            logger.debug("%s cannot manage %s: %s", self.name, domain, e)
            return False
        return True

    @abstractmethod
    def _probe(self, domain: str):
        """Raise DnsProviderError unless ``domain`` can be managed."""

    def _write(self, fn, *args) -> RecordResult:
        """Run a write and convert provider errors into a failed RecordResult."""
        try:
            return fn(*args)
        except DnsProviderError as e:
            return RecordResult(False, str(e))
