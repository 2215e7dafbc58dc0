from __future__ import annotations

from fastapi.testclient import TestClient

from ptb_services.adapters.signer import Ed25519Signer
from ptb_services.errors import RpcError
from ptb_services.version import __version__
from tests.conftest import FakeLedger


def test_healthz(client: TestClient):
    r = client.get("/healthz")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["service"] == "ptb-services"
    assert body["version"].startswith(__version__)
    assert body["uptime_seconds"] >= 0
    assert r.headers["X-Request-Id"]


def test_request_id_is_propagated(client: TestClient):
    r = client.get("/healthz", headers={"X-Request-Id": "req-123"})
    assert r.headers["X-Request-Id"] == "req-123"
    assert r.headers["traceparent"].startswith("00-")


def test_version_reports_network_and_signer(client: TestClient, signer: Ed25519Signer):
    body = client.get("/version").json()
    assert body["defaultNetwork"] == "testnet"
    assert body["signer"] == signer.address


def test_readyz_ok(client: TestClient):
    r = client.get("/readyz")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["checks"]["rpc"]["chainId"] == "4c78adac"
    assert body["checks"]["signer"]["configured"] is True


def test_readyz_degraded_when_node_is_down(client: TestClient, ledger: FakeLedger, monkeypatch):
    async def down():
        raise RpcError("connection refused")

    monkeypatch.setattr(ledger, "chain_identifier", down)
    r = client.get("/readyz")
    assert r.status_code == 503
    body = r.json()
    assert body["status"] == "degraded"
    assert body["checks"]["rpc"]["ok"] is False
    assert "connection refused" in body["checks"]["rpc"]["error"]


def test_metrics_exposed(client: TestClient):
    client.post("/ptb/execute", json={"commands": [], "mode": "simulate"})
    text = client.get("/metrics").text
    assert "http_requests_total" in text
    assert "ptb_executions_total" in text
