"""Tests for the REST API server (api_server.py).

Uses FastAPI's TestClient which drives the ASGI app in-process.
The engine is built over a mocked resolver.
"""

from unittest.mock import patch

import pytest

from dmarc_engine.config import EngineConfig
from dmarc_engine.engine import DmarcEngine
from dmarc_engine.exceptions import SuffixListError

from .helpers import matcher, mock_fetcher

TEST_API_KEY = "test-key-that-is-long-enough-to-pass-validation"
AUTH_HEADER = {"Authorization": f"Bearer {TEST_API_KEY}"}

REJECT = "v=DMARC1; p=reject; rua=mailto:agg@example.com"


def _engine(txt=None, ns=None):
    return DmarcEngine(mock_fetcher(txt=txt, ns=ns), matcher(), EngineConfig())


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setenv("DMARC_API_KEY", TEST_API_KEY)
    from fastapi.testclient import TestClient  # noqa: PLC0415

    from dmarc_engine import api_server  # noqa: PLC0415

    monkeypatch.setattr(api_server, "_engine", None)
    return TestClient(api_server.app, raise_server_exceptions=False)


def _with_engine(engine):
    return patch("dmarc_engine.api_server._get_engine", return_value=engine)


# ── Health ────────────────────────────────────────────────────────────────────


class TestHealth:
    def test_health_ok(self, client):
        r = client.get("/api/v1/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert "timestamp" in data
        assert "version" in data


# ── Auth ──────────────────────────────────────────────────────────────────────


class TestAuth:
    def test_missing_auth_header_returns_401(self, client):
        r = client.post("/api/v1/discover", json={"domain": "example.com"})
        assert r.status_code == 401

    def test_wrong_token_returns_401(self, client):
        r = client.post(
            "/api/v1/discover",
            json={"domain": "example.com"},
            headers={"Authorization": "Bearer wrong-key"},
        )
        assert r.status_code == 401
        assert r.json()["error"]["code"] == "AUTH_FAILED"

    def test_correct_token_accepted(self, client):
        with _with_engine(_engine()):
            r = client.post("/api/v1/discover", json={"domain": "example.com"}, headers=AUTH_HEADER)
        assert r.status_code == 200


# ── POST /api/v1/org-domain ───────────────────────────────────────────────────


class TestOrgDomain:
    def test_returns_org_domain(self, client):
        with _with_engine(_engine()):
            r = client.post("/api/v1/org-domain", json={"domain": "a.b.example.co.uk"}, headers=AUTH_HEADER)
        assert r.status_code == 200
        assert r.json()["organizational_domain"] == "example.co.uk"

    def test_invalid_domain_returns_400(self, client):
        with _with_engine(_engine()):
            r = client.post("/api/v1/org-domain", json={"domain": "bad domain"}, headers=AUTH_HEADER)
        assert r.status_code == 400
        assert r.json()["error"]["code"] == "INVALID_DOMAIN"

    def test_empty_domain_rejected(self, client):
        r = client.post("/api/v1/org-domain", json={"domain": "  "}, headers=AUTH_HEADER)
        assert r.status_code == 422


# ── POST /api/v1/discover ─────────────────────────────────────────────────────


class TestDiscover:
    def test_policy_returned(self, client):
        with _with_engine(_engine(txt={"_dmarc.example.com": [REJECT]})):
            r = client.post("/api/v1/discover", json={"domain": "mail.example.com"}, headers=AUTH_HEADER)
        data = r.json()
        assert data["found"]
        assert data["org_domain_used"]
        assert data["policy"]["p"] == "reject"
        assert "request_id" in data

    def test_no_policy(self, client):
        with _with_engine(_engine()):
            r = client.post("/api/v1/discover", json={"domain": "example.com"}, headers=AUTH_HEADER)
        assert r.status_code == 200
        assert r.json()["policy"] is None

    def test_unconfigured_engine_returns_500(self, client):
        with patch("dmarc_engine.api_server._get_engine", side_effect=SuffixListError("no list")):
            r = client.post("/api/v1/discover", json={"domain": "example.com"}, headers=AUTH_HEADER)
        assert r.status_code == 500
        assert r.json()["error"]["code"] == "NOT_CONFIGURED"


# ── POST /api/v1/evaluate ─────────────────────────────────────────────────────


class TestEvaluate:
    def test_unaligned_message_gets_disposition(self, client):
        engine = _engine(txt={"_dmarc.example.com": [REJECT]}, ns={"example.com": ["ns1.example.com."]})
        with _with_engine(engine):
            r = client.post("/api/v1/evaluate", json={
                "from_host": "mail.example.com",
                "dkim_pass_domains": ["example.com"],
            }, headers=AUTH_HEADER)
        assert r.status_code == 200
        data = r.json()
        assert data["aligned"] is False
        assert data["disposition"] == "reject"
        assert data["policy"]["domain"] == "example.com"

    def test_from_header_aligned(self, client):
        engine = _engine(txt={"_dmarc.example.com": [REJECT]}, ns={"example.com": ["ns1.example.com."]})
        with _with_engine(engine):
            r = client.post("/api/v1/evaluate", json={
                "from_header": "Alice <alice@example.com>",
                "spf_pass_domain": "example.com",
            }, headers=AUTH_HEADER)
        data = r.json()
        assert data["aligned"] is True
        assert data["reason"] == "spf_aligned"

    def test_missing_from_declines(self, client):
        with _with_engine(_engine()):
            r = client.post("/api/v1/evaluate", json={}, headers=AUTH_HEADER)
        assert r.json()["reason"] == "no_from_host"

    def test_host_and_header_together_rejected(self, client):
        r = client.post("/api/v1/evaluate", json={
            "from_host": "example.com",
            "from_header": "a@example.com",
        }, headers=AUTH_HEADER)
        assert r.status_code == 422

    def test_too_many_dkim_domains_rejected(self, client):
        r = client.post("/api/v1/evaluate", json={
            "from_host": "example.com",
            "dkim_pass_domains": [f"d{i}.example.com" for i in range(51)],
        }, headers=AUTH_HEADER)
        assert r.status_code == 422


class TestEngineConstruction:
    def test_engine_built_once_from_env(self, client, monkeypatch, suffix_file):
        monkeypatch.setenv("DMARC_SUFFIX_LIST", suffix_file)
        from dmarc_engine import api_server  # noqa: PLC0415

        with patch("dmarc_engine.cli.create_fetcher", return_value=mock_fetcher()) as factory:
            first = api_server._get_engine()
            second = api_server._get_engine()
        assert first is second
        assert factory.call_count == 1
