"""Tests for the third-party DNS backends with a mocked requests session."""

import json
from unittest import mock

import pytest
import requests

from sitedeploy.config import CloudflareConfig, GoDaddyConfig, PorkbunConfig
from sitedeploy.errors import DnsProviderError
from sitedeploy.models import DnsRecord
from sitedeploy.providers import CloudflareProvider, GoDaddyProvider, PorkbunProvider, create_dns_provider
from sitedeploy.providers.base import absolute_name, relative_name
from sitedeploy.providers.http import HttpDnsProvider

TARGET = "d111111abcdef8.cloudfront.net"


def _response(data=None, status=200):
    resp = mock.Mock()
    resp.status_code = status
    resp.ok = status < 400
    resp.reason = "OK" if status < 400 else "Forbidden"
    resp.content = b"" if data is None else json.dumps(data).encode()
    resp.json.return_value = data
    return resp


def _session(*responses):
    session = mock.Mock()
    session.request.side_effect = list(responses)
    return session


def _calls(session):
    """(method, url, json body) for every request sent."""
    return [(c.args[0], c.args[1], c.kwargs.get("json")) for c in session.request.call_args_list]


def test_name_helpers():
    assert relative_name("_abc.www.example.com.", "example.com") == "_abc.www"
    assert relative_name("example.com", "example.com", apex="@") == "@"
    assert absolute_name("www", "example.com") == "www.example.com"
    assert absolute_name("@", "example.com") == "example.com"


def test_registry_builds_each_backend():
    assert isinstance(create_dns_provider(PorkbunConfig("pk", "sk")), PorkbunProvider)
    assert isinstance(create_dns_provider(GoDaddyConfig("k", "s", "ote")), GoDaddyProvider)
    assert isinstance(create_dns_provider(CloudflareConfig("t")), CloudflareProvider)


class TestPorkbun:
    RETRIEVE = {
        "status": "SUCCESS",
        "records": [
            {"id": "101", "name": "example.com", "type": "ALIAS", "content": TARGET, "ttl": "600", "prio": None},
            {"id": "102", "name": "www.example.com", "type": "CNAME", "content": "old.netlify.app", "ttl": "600", "prio": "0"},
        ],
    }

    def test_list_records(self):
        provider = PorkbunProvider("pk", "sk", session=_session(_response(self.RETRIEVE)))

        records = provider.list_records("www.example.com", "CNAME")

        assert [(r.name, r.content, r.id) for r in records] == [("www.example.com", "old.netlify.app", "102")]

    def test_unchanged_record_is_not_rewritten(self):
        session = _session(_response(self.RETRIEVE))
        provider = PorkbunProvider("pk", "sk", session=session)

        result = provider.upsert_record("example.com", DnsRecord("example.com", "ALIAS", TARGET))

        assert result.success
        assert result.id == "101"
        assert session.request.call_count == 1

    def test_existing_record_is_edited(self):
        session = _session(_response(self.RETRIEVE), _response({"status": "SUCCESS"}))
        provider = PorkbunProvider("pk", "sk", session=session)

        result = provider.upsert_record("example.com", DnsRecord("www.example.com", "CNAME", TARGET))

        assert result.success
        method, url, body = _calls(session)[1]
        assert (method, url) == ("POST", "https://api.porkbun.com/api/json/v3/dns/edit/example.com/102")
        assert body["apikey"] == "pk"
        assert body["secretapikey"] == "sk"
        assert body["name"] == "www"
        assert body["content"] == TARGET

    def test_new_record_created_with_minimum_ttl(self):
        session = _session(_response({"status": "SUCCESS", "records": []}), _response({"status": "SUCCESS", "id": 555}))
        provider = PorkbunProvider("pk", "sk", session=session)

        result = provider.upsert_record("example.com", DnsRecord("_acme.example.com", "CNAME", "x.acm-validations.aws", ttl=300))

        assert result.id == "555"
        method, url, body = _calls(session)[1]
        assert url.endswith("/dns/create/example.com")
        assert body["ttl"] == "600"
        assert body["name"] == "_acme"

    def test_api_error_is_failed_result(self):
        session = _session(
            _response({"status": "SUCCESS", "records": []}),
            _response({"status": "ERROR", "message": "Invalid type."}),
        )
        provider = PorkbunProvider("pk", "sk", session=session)

        result = provider.upsert_record("example.com", DnsRecord("example.com", "ALIAS", TARGET))

        assert not result.success
        assert "Invalid type." in result.message

    def test_delete_by_content(self):
        session = _session(_response(self.RETRIEVE), _response({"status": "SUCCESS"}))
        provider = PorkbunProvider("pk", "sk", session=session)

        result = provider.delete_record("example.com", DnsRecord("www.example.com", "CNAME", "old.netlify.app"))

        assert result.success
        assert _calls(session)[1][1].endswith("/dns/delete/example.com/102")

    def test_cannot_manage_on_http_error(self):
        provider = PorkbunProvider("pk", "sk", session=_session(_response({"status": "ERROR"}, status=403)))

        assert not provider.can_manage_domain("example.com")


class TestGoDaddy:
    def test_upsert_puts_record_set(self):
        session = _session(_response([]), _response())
        provider = GoDaddyProvider("key", "secret", session=session)

        result = provider.upsert_record("example.com", DnsRecord("www.example.com", "CNAME", TARGET))

        assert result.success
        method, url, body = _calls(session)[1]
        assert (method, url) == ("PUT", "https://api.godaddy.com/v1/domains/example.com/records/CNAME/www")
        assert body == [{"type": "CNAME", "name": "www", "data": TARGET, "ttl": 600}]
        headers = session.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "sso-key key:secret"

    def test_matching_record_is_left_alone(self):
        session = _session(_response([{"type": "CNAME", "name": "www", "data": TARGET, "ttl": 600}]))
        provider = GoDaddyProvider("key", "secret", environment="ote", session=session)

        assert provider.upsert_record("example.com", DnsRecord("www.example.com", "CNAME", TARGET)).success
        assert session.request.call_count == 1
        assert _calls(session)[0][1].startswith("https://api.ote-godaddy.com/")

    def test_deleting_last_record_deletes_set(self):
        session = _session(_response([{"type": "CNAME", "name": "www", "data": "x.github.io", "ttl": 600}]), _response())
        provider = GoDaddyProvider("key", "secret", session=session)

        result = provider.delete_record("example.com", DnsRecord("www.example.com", "CNAME", "x.github.io"))

        assert result.success
        assert _calls(session)[1][0] == "DELETE"

    def test_no_apex_capability(self):
        assert GoDaddyProvider.apex_record_types == ()

    def test_error_message_includes_fields(self):
        session = _session(_response([]), _response({"code": "INVALID_BODY", "message": "Request body doesn't fulfill schema", "fields": [{"path": "records[0].data"}]}, status=422))
        provider = GoDaddyProvider("key", "secret", session=session)

        result = provider.upsert_record("example.com", DnsRecord("www.example.com", "CNAME", TARGET))

        assert not result.success
        assert "schema" in result.message
        assert "records[0].data" in result.message


class TestCloudflare:
    ZONES = {"success": True, "result": [{"id": "zone-1", "name": "example.com"}]}

    def test_create_record_not_proxied(self):
        session = _session(
            _response(self.ZONES),
            _response({"success": True, "result": [], "result_info": {"total_pages": 1}}),
            _response({"success": True, "result": {"id": "rec-9"}}),
        )
        provider = CloudflareProvider("token", session=session)

        result = provider.upsert_record("example.com", DnsRecord("example.com", "CNAME", TARGET))

        assert result.success
        assert result.id == "rec-9"
        method, url, body = _calls(session)[2]
        assert (method, url) == ("POST", "https://api.cloudflare.com/client/v4/zones/zone-1/dns_records")
        assert body["proxied"] is False
        assert session.request.call_args.kwargs["headers"]["Authorization"] == "Bearer token"

    def test_list_follows_pages(self):
        def page(n, total):
            rec = {"id": f"r{n}", "name": f"h{n}.example.com", "type": "CNAME", "content": TARGET, "ttl": 1}
            return _response({"success": True, "result": [rec], "result_info": {"page": n, "total_pages": total}})

        session = _session(_response(self.ZONES), page(1, 2), page(2, 2))
        provider = CloudflareProvider("token", session=session)

        records = provider.list_records("example.com")

        assert [r.id for r in records] == ["r1", "r2"]
        assert "page=2" in _calls(session)[2][1]

    def test_unsuccessful_response_is_error(self):
        session = _session(_response({"success": False, "errors": [{"code": 9109, "message": "Invalid access token"}]}))
        provider = CloudflareProvider("token", session=session)

        with pytest.raises(DnsProviderError, match="Invalid access token"):
            provider.list_records("example.com")

    def test_unknown_zone_cannot_be_managed(self):
        provider = CloudflareProvider("token", session=_session(_response({"success": True, "result": []})))

        assert not provider.can_manage_domain("example.com")


def test_transport_error_becomes_provider_error():
    session = mock.Mock()
    session.request.side_effect = requests.ConnectionError("connection refused")
    provider = CloudflareProvider("token", session=session)

    with pytest.raises(DnsProviderError, match="connection refused"):
        provider.list_records("example.com")
    assert not provider.can_manage_domain("example.com")


def test_backend_must_define_zone_check():
    class NoZoneCheck(HttpDnsProvider):
        name = "incomplete"

        def list_records(self, domain, record_type=None):
            return []

        def upsert_record(self, domain, record):
            raise DnsProviderError("read only")

        def delete_record(self, domain, record):
            raise DnsProviderError("read only")

    with pytest.raises(TypeError):
        NoZoneCheck()
