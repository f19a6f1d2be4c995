"""Tests for the cluster-license command line."""

from __future__ import annotations

import json
import stat
from datetime import UTC, datetime

import httpx
import pytest
from click.testing import CliRunner

from cluster_license import cli as cli_module
from cluster_license.cli import cli
from cluster_license.config import get_settings, reset_settings
from cluster_license.hub import HubClient
from cluster_license.licensing import decoder
from cluster_license.licensing.keygen import authority_for, generate_signing_key, issue_license


@pytest.fixture(autouse=True)
def _reset(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(scope="module")
def signing_key():
    return generate_signing_key("ec")


@pytest.fixture
def trusted(signing_key, monkeypatch):
    """Make the test key the license authority."""
    monkeypatch.setattr(decoder, "get_authority_key", lambda: authority_for(signing_key))


@pytest.fixture
def license_file(tmp_path, signing_key):
    path = tmp_path / "license.lic"
    path.write_bytes(issue_license(
        signing_key, expiration=datetime(2040, 1, 1, tzinfo=UTC), max_engines=7,
    ))
    return path


@pytest.fixture
def runner():
    return CliRunner()


# ---------------------------------------------------------------------------
# verify / load
# ---------------------------------------------------------------------------


class TestVerify:
    def test_prints_entitlement(self, runner, trusted, license_file):
        result = runner.invoke(cli, ["verify", str(license_file)], obj={})
        assert result.exit_code == 0, result.output
        assert "max_engines:" in result.output
        assert "7" in result.output
        assert "2040-01-01T00:00:00Z" in result.output

    def test_untrusted_license(self, runner, license_file):
        result = runner.invoke(cli, ["verify", str(license_file)], obj={})
        assert result.exit_code == 1
        assert "license rejected" in result.output
        assert "signature" in result.output

    def test_garbage_file(self, runner, tmp_path):
        path = tmp_path / "junk.lic"
        path.write_bytes(b"junk")
        result = runner.invoke(cli, ["verify", str(path)], obj={})
        assert result.exit_code == 1
        assert "container" in result.output


class TestLoad:
    def test_writes_host_file(self, runner, trusted, license_file, tmp_path):
        root = tmp_path / "engine"
        root.mkdir()
        result = runner.invoke(
            cli, ["load", str(license_file), "--no-cluster", "--root-dir", str(root)], obj={},
        )
        assert result.exit_code == 0, result.output
        stored = root / "docker.lic"
        assert stored.read_bytes() == license_file.read_bytes()
        assert stat.S_IMODE(stored.stat().st_mode) == 0o644
        assert "License stored (host)" in result.output

    def test_root_dir_from_config(self, runner, trusted, license_file, tmp_path):
        root = tmp_path / "engine"
        root.mkdir()
        config = tmp_path / "custom.yaml"
        config.write_text(f"distribution:\n  root_dir: {root}\n")
        result = runner.invoke(
            cli, ["--config", str(config), "load", str(license_file), "--no-cluster"], obj={},
        )
        assert result.exit_code == 0, result.output
        assert (root / "docker.lic").exists()

    def test_untrusted_license_not_stored(self, runner, license_file, tmp_path):
        result = runner.invoke(
            cli, ["load", str(license_file), "--no-cluster", "--root-dir", str(tmp_path)], obj={},
        )
        assert result.exit_code == 1
        assert not (tmp_path / "docker.lic").exists()

    def test_storage_failure(self, runner, trusted, license_file, tmp_path):
        result = runner.invoke(
            cli,
            ["load", str(license_file), "--no-cluster", "--root-dir", str(tmp_path / "missing")],
            obj={},
        )
        assert result.exit_code == 1
        assert "distribution" in result.output


# ---------------------------------------------------------------------------
# Hub commands
# ---------------------------------------------------------------------------


def _fake_store(license_bytes: bytes):
    def handler(request):
        path = request.url.path
        if path.endswith("/users/login"):
            return httpx.Response(200, json={"token": "tok"})
        if "/users/" in path:
            return httpx.Response(200, json={"id": "uid-1", "username": "alice"})
        if path.endswith("/license-file/"):
            return httpx.Response(200, content=license_bytes)
        if path.endswith("/subscriptions/") and request.method == "POST":
            return httpx.Response(201, json={
                "name": "trial", "subscription_id": "sub-9",
                "state": "active", "product_id": "docker-ee-trial",
            })
        if path.endswith("/subscriptions/"):
            return httpx.Response(200, json=[
                {"name": "prod", "subscription_id": "sub-1", "state": "active",
                 "product_id": "docker-ee-server"},
                {"name": "gone", "subscription_id": "sub-2", "state": "expired",
                 "product_id": "docker-ee-server"},
            ])
        return httpx.Response(200, json={
            "name": "prod", "subscription_id": path.rsplit("/", 1)[-1],
            "state": "active", "product_id": "docker-ee-server",
        })

    return handler


@pytest.fixture
def store(monkeypatch, license_file):
    handler = _fake_store(license_file.read_bytes())
    monkeypatch.setattr(
        cli_module, "HubClient",
        lambda config: HubClient(config, transport=httpx.MockTransport(handler)),
    )


class TestHubCommands:
    def test_subscriptions(self, runner, store):
        result = runner.invoke(
            cli, ["subscriptions", "--username", "alice", "--password", "pw"], obj={},
        )
        assert result.exit_code == 0, result.output
        assert "sub-1" in result.output
        assert "sub-2" not in result.output

    def test_fetch_and_save(self, runner, store, trusted, license_file, tmp_path):
        output = tmp_path / "out.lic"
        result = runner.invoke(cli, [
            "fetch", "--username", "alice", "--password", "pw",
            "--subscription", "sub-1", "--output", str(output),
        ], obj={})
        assert result.exit_code == 0, result.output
        assert output.read_bytes() == license_file.read_bytes()
        assert json.loads(output.read_bytes())["authorization"]

    def test_fetch_trial(self, runner, store, trusted):
        result = runner.invoke(cli, [
            "fetch", "--username", "alice", "--password", "pw", "--trial", "trial",
        ], obj={})
        assert result.exit_code == 0, result.output
        assert "max_engines:" in result.output

    def test_fetch_requires_one_source(self, runner, store):
        result = runner.invoke(cli, [
            "fetch", "--username", "alice", "--password", "pw",
        ], obj={})
        assert result.exit_code == 2
        assert "exactly one" in result.output

    def test_fetch_untrusted(self, runner, store, tmp_path):
        output = tmp_path / "out.lic"
        result = runner.invoke(cli, [
            "fetch", "--username", "alice", "--password", "pw",
            "--subscription", "sub-1", "--output", str(output),
        ], obj={})
        assert result.exit_code == 1
        assert not output.exists()

    def test_fetch_output_not_writable(self, runner, store, trusted, tmp_path):
        output = tmp_path / "missing" / "out.lic"
        result = runner.invoke(cli, [
            "fetch", "--username", "alice", "--password", "pw",
            "--subscription", "sub-1", "--output", str(output),
        ], obj={})
        assert result.exit_code == 1
        assert "failed to save license" in result.output
        assert not isinstance(result.exception, OSError)

    def test_hub_unreachable(self, runner, monkeypatch):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        monkeypatch.setattr(
            cli_module, "HubClient",
            lambda config: HubClient(config, transport=httpx.MockTransport(handler)),
        )
        result = runner.invoke(
            cli, ["subscriptions", "--username", "alice", "--password", "pw"], obj={},
        )
        assert result.exit_code == 1
        assert "connection refused" in result.output


class TestDebugFlag:
    def test_does_not_change_shared_settings(self, runner, trusted, license_file):
        result = runner.invoke(cli, ["--debug", "verify", str(license_file)], obj={})
        assert result.exit_code == 0, result.output
        assert get_settings().debug is False
