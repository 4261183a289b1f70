"""Tests for the command line entry point."""

import json

import pytest

from sitedeploy import cli
from sitedeploy.models import DnsRecord, HostingConflict, ReconciliationResult
from sitedeploy.state import STATE_FILE


def _result(success=True, **kwargs):
    values = {
        "stack_name": "blog-static-site",
        "bucket": "example-com",
        "domain": "example.com",
        "message": "Static site infrastructure deployed successfully" if success else "boom",
        "certificate_arn": "arn:cert",
    }
    values.update(kwargs)
    return ReconciliationResult(success=success, **values)


class _Calls(list):
    result = None


@pytest.fixture
def deploy(monkeypatch):
    calls = _Calls()

    def fake_deploy(spec, source_dir, *, confirm=None):
        calls.append((spec, source_dir, confirm))
        return calls.result

    calls.result = _result()
    monkeypatch.setattr(cli, "deploy_site_full", fake_deploy)
    return calls


@pytest.fixture
def destroy(monkeypatch):
    calls = _Calls()

    def fake_destroy(spec, *, certificate_arn=None):
        calls.append((spec, certificate_arn))
        return calls.result

    calls.result = _result(message="Stack blog-static-site destroyed")
    monkeypatch.setattr(cli, "destroy_site", fake_destroy)
    return calls


def test_no_upload_deploys_and_saves_state(tmp_path, deploy, capsys):
    code = cli.main(["--site", "blog", "--domain", "example.com", "--dir", str(tmp_path), "--no-upload"])

    assert code == 0
    ((spec, source_dir, confirm),) = deploy
    assert spec.domain == "example.com"
    assert spec.resolved_stack_name == "blog-static-site"
    assert source_dir is None
    assert confirm is cli.confirm_conflict
    state = json.loads((tmp_path / STATE_FILE).read_text())
    assert state["certificate_arn"] == "arn:cert"
    assert "Site URL: https://example.com" in capsys.readouterr().out


def test_output_dir_is_detected(tmp_path, deploy):
    (tmp_path / "dist").mkdir()

    cli.main(["--site", "blog", "--domain", "example.com", "--dir", str(tmp_path), "--yes", "--san", "cdn.example.com"])

    ((spec, source_dir, confirm),) = deploy
    assert source_dir == str(tmp_path / "dist")
    assert spec.extra_sans == ("cdn.example.com",)
    assert confirm(None) is True


def test_missing_output_dir_exits(tmp_path, deploy):
    with pytest.raises(SystemExit, match="--output"):
        cli.main(["--site", "blog", "--domain", "example.com", "--dir", str(tmp_path)])
    assert deploy == []


def test_failure_returns_one_without_state(tmp_path, deploy, capsys):
    deploy.result = _result(success=False, warnings=["www.example.com CNAME rejected"])

    code = cli.main(["--site", "blog", "--domain", "example.com", "--dir", str(tmp_path), "--no-upload"])

    assert code == 1
    assert not (tmp_path / STATE_FILE).exists()
    err = capsys.readouterr().err
    assert "Warning: www.example.com CNAME rejected" in err
    assert "Deployment failed: boom" in err


def test_missing_provider_credentials_exit(tmp_path, deploy, monkeypatch):
    monkeypatch.delenv("PORKBUN_API_KEY", raising=False)
    monkeypatch.delenv("PORKBUN_SECRET_KEY", raising=False)

    with pytest.raises(SystemExit, match="PORKBUN_API_KEY"):
        cli.main(["--site", "blog", "--domain", "example.com", "--dir", str(tmp_path), "--no-upload", "--dns-provider", "porkbun"])
    assert deploy == []


def test_invalid_domain_exits(tmp_path, deploy):
    with pytest.raises(SystemExit, match="Invalid domain"):
        cli.main(["--site", "blog", "--domain", "localhost", "--dir", str(tmp_path), "--no-upload"])


def test_destroy_uses_saved_state(tmp_path, destroy):
    (tmp_path / STATE_FILE).write_text(json.dumps({"stack_name": "blog-prod", "certificate_arn": "arn:saved"}))

    code = cli.main(["--site", "blog", "--domain", "example.com", "--dir", str(tmp_path), "--destroy", "--yes"])

    assert code == 0
    ((spec, certificate_arn),) = destroy
    assert spec.resolved_stack_name == "blog-prod"
    assert certificate_arn == "arn:saved"
    assert not (tmp_path / STATE_FILE).exists()


def test_destroy_can_be_aborted(tmp_path, destroy, monkeypatch):
    monkeypatch.setattr("builtins.input", lambda prompt: "n")

    with pytest.raises(SystemExit, match="Aborted"):
        cli.main(["--site", "blog", "--domain", "example.com", "--dir", str(tmp_path), "--destroy"])
    assert destroy == []


@pytest.mark.parametrize("answer, expected", [("y", True), ("YES", True), ("", False), ("no", False)])
def test_confirm_conflict(monkeypatch, capsys, answer, expected):
    monkeypatch.setattr("builtins.input", lambda prompt: answer)
    conflict = HostingConflict(DnsRecord("example.com", "CNAME", "blog.netlify.app"), "Netlify")

    assert cli.confirm_conflict(conflict) is expected
    assert "points to Netlify" in capsys.readouterr().out
