"""Tests for the ACM certificate lifecycle."""

from sitedeploy.certificates import (
    CHALLENGE_TTL,
    covers,
    delete_challenge_records,
    ensure_certificate,
    idempotency_token,
    required_sans,
)
from sitedeploy.models import CertificateStatus

from .fakes import FakeAcm, FakeDnsProvider


def test_required_sans():
    assert required_sans("example.com") == ["example.com", "www.example.com"]
    assert required_sans("docs.example.com") == ["docs.example.com"]
    assert required_sans("example.com", ["www.example.com", "cdn.example.com"]) == [
        "example.com",
        "www.example.com",
        "cdn.example.com",
    ]


def test_covers():
    assert covers(["example.com", "www.example.com"], "www.example.com")
    assert covers(["*.example.com"], "docs.example.com")
    assert not covers(["*.example.com"], "example.com")
    assert not covers(["*.example.com"], "a.b.example.com")


def test_idempotency_token_ignores_order():
    token = idempotency_token(["example.com", "www.example.com"])

    assert token == idempotency_token(["www.example.com", "example.com"])
    assert len(token) == 32


def test_issued_certificate_is_reused(acm, provider, sleep):
    arn = acm.add_certificate("example.com", ["example.com", "www.example.com"])

    state = ensure_certificate(acm, provider, "example.com", sleep=sleep)

    assert state.issued
    assert state.arn == arn
    assert not state.is_new
    assert acm.requests == []
    assert provider.upserts == []


def test_wildcard_certificate_covers_www(acm, provider, sleep):
    arn = acm.add_certificate("example.com", ["example.com", "*.example.com"])

    assert ensure_certificate(acm, provider, "example.com", sleep=sleep).arn == arn
    assert acm.requests == []


def test_certificate_missing_www_is_not_reused(acm, provider, sleep):
    old = acm.add_certificate("example.com", ["example.com"])

    state = ensure_certificate(acm, provider, "example.com", sleep=sleep)

    assert state.issued
    assert state.arn != old
    assert acm.requests[0]["SubjectAlternativeNames"] == ["example.com", "www.example.com"]


def test_new_certificate_is_validated_through_dns(provider, sleeps, sleep):
    acm = FakeAcm(options_delay=2, issue_after=3)

    state = ensure_certificate(acm, provider, "example.com", sleep=sleep)

    assert state.status is CertificateStatus.ISSUED
    assert state.is_new
    (request,) = acm.requests
    assert request["ValidationMethod"] == "DNS"
    assert request["IdempotencyToken"] == idempotency_token(["example.com", "www.example.com"])

    names = sorted(r.name for r in provider.upserts)
    assert names == ["_c0ffee.example.com", "_c0ffee.www.example.com"]
    assert all(r.type == "CNAME" and r.ttl == CHALLENGE_TTL for r in provider.upserts)
    assert all(not r.content.endswith(".") for r in provider.upserts)
    # options wait sleeps 2s twice, issuance wait 30s twice
    assert sleeps == [2, 2, 30, 30]


def test_shared_challenges_are_published_once(provider, sleep):
    acm = FakeAcm()

    state = ensure_certificate(acm, provider, "example.com", ["*.example.com"], sleep=sleep)

    assert state.issued
    assert len(state.challenge_records) == 2
    assert len(provider.upserts) == 2


def test_pending_certificate_is_resumed(acm, provider, sleep):
    arn = acm.add_certificate("docs.example.com", status="PENDING_VALIDATION")

    state = ensure_certificate(acm, provider, "docs.example.com", sleep=sleep)

    assert state.issued
    assert state.arn == arn
    assert not state.is_new
    assert acm.requests == []


def test_validation_options_timeout(provider, sleeps, sleep):
    acm = FakeAcm(options_delay=1000)

    state = ensure_certificate(acm, provider, "docs.example.com", sleep=sleep)

    assert state.status is CertificateStatus.TIMED_OUT
    assert state.message == "Timeout waiting for DNS validation options"
    assert provider.upserts == []
    assert len(sleeps) == 29


def test_issuance_timeout_names_last_status(provider, sleeps, sleep):
    acm = FakeAcm(issue_after=1000)

    state = ensure_certificate(acm, provider, "docs.example.com", max_wait_minutes=2, sleep=sleep)

    assert state.status is CertificateStatus.TIMED_OUT
    assert "timed out after 2 minutes" in state.message
    assert "PENDING_VALIDATION" in state.message
    assert sleeps == [30, 30, 30]


def test_validation_failure(provider, sleep):
    acm = FakeAcm(final_status="FAILED", failure_reason="CAA_ERROR")

    state = ensure_certificate(acm, provider, "docs.example.com", sleep=sleep)

    assert state.status is CertificateStatus.FAILED
    assert "FAILED" in state.message
    assert "CAA_ERROR" in state.message


def test_rejected_challenge_record_does_not_abort(sleep):
    acm = FakeAcm()
    provider = FakeDnsProvider(reject_names={"_c0ffee.www.example.com"})

    state = ensure_certificate(acm, provider, "example.com", sleep=sleep)

    assert state.issued
    assert len(provider.upserts) == 2
    assert list(provider.records) == [("_c0ffee.example.com", "CNAME")]


def test_delete_challenge_records(acm, provider, sleep):
    state = ensure_certificate(acm, provider, "example.com", sleep=sleep)
    provider.records.pop(("_c0ffee.www.example.com", "CNAME"))

    errors = delete_challenge_records(acm, provider, "example.com", state.arn)

    assert provider.records == {}
    assert len(errors) == 1
    assert "_c0ffee.www.example.com" in errors[0]
