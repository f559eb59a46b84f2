import json

import httpx
import pytest
from fastapi.testclient import TestClient

from partnerships.config import WebhookConfig
from partnerships.main import app
from partnerships.relay.routes import get_relay_transport, get_webhook_config


class Upstream:
    """Fake external target recording what the relay forwarded."""

    def __init__(self, status_code=200, text="ok", error=None):
        self.status_code = status_code
        self.text = text
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.text)


CONFIGURED = WebhookConfig(
    delivery_target_public="https://hooks.example.com/public",
    delivery_target_server="https://n8n.example.com/webhook/partners",
    big_purchase_status_target="https://n8n.example.com/webhook/big-purchase",
    brevo_target="https://n8n.example.com/webhook/sendtobrevo",
)


@pytest.fixture()
def relay_client():
    def _make(config: WebhookConfig, upstream: Upstream) -> TestClient:
        app.dependency_overrides[get_webhook_config] = lambda: config
        app.dependency_overrides[get_relay_transport] = lambda: httpx.MockTransport(upstream)
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def test_success_returns_success_true(relay_client):
    upstream = Upstream(200)
    client = relay_client(CONFIGURED, upstream)

    r = client.post("/api/webhook", json={"partner": {"partner_name": "Harrods"}, "event": "signed"})

    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert len(upstream.requests) == 1
    forwarded = upstream.requests[0]
    assert str(forwarded.url) == "https://n8n.example.com/webhook/partners"
    assert forwarded.headers["content-type"] == "application/json"
    assert json.loads(forwarded.content) == {"partner": {"partner_name": "Harrods"}, "event": "signed"}


def test_upstream_error_is_embedded_not_propagated(relay_client):
    client = relay_client(CONFIGURED, Upstream(500, "bad gateway"))

    r = client.post("/api/webhook", json={"id": "p1"})

    assert r.status_code >= 500
    assert r.json() == {"success": False, "error": "Webhook returned 500: bad gateway"}


def test_upstream_4xx_still_maps_to_server_error(relay_client):
    client = relay_client(CONFIGURED, Upstream(404, "no such hook"))

    r = client.post("/api/webhook", json={"id": "p1"})

    assert r.status_code == 500
    assert r.json()["error"] == "Webhook returned 404: no such hook"


def test_missing_server_target_fails_without_delivery(relay_client):
    upstream = Upstream(200)
    client = relay_client(WebhookConfig(delivery_target_public="https://hooks.example.com/public"), upstream)

    r = client.post("/api/webhook", json={"id": "p1"})

    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "WEBHOOK_URL is not configured."}
    assert upstream.requests == []


def test_unreachable_target_is_caught(relay_client):
    upstream = Upstream(error=httpx.ConnectError("connection refused"))
    client = relay_client(CONFIGURED, upstream)

    r = client.post("/api/webhook", json={"id": "p1"})

    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "connection refused"}


def test_unparsable_payload_is_caught(relay_client):
    upstream = Upstream(200)
    client = relay_client(CONFIGURED, upstream)

    r = client.post("/api/webhook", content=b"{not json", headers={"Content-Type": "application/json"})

    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert body["error"]
    assert upstream.requests == []


def test_non_object_json_is_passed_through(relay_client):
    upstream = Upstream(200)
    client = relay_client(CONFIGURED, upstream)

    r = client.post("/api/webhook", json=[1, 2, 3])

    assert r.json() == {"success": True}
    assert json.loads(upstream.requests[0].content) == [1, 2, 3]


@pytest.mark.parametrize(
    "path,config_key,target",
    [
        ("/api/big-purchase-status-webhook", "BIG_PURCHASE_STATUS_WEBHOOK_URL", "https://n8n.example.com/webhook/big-purchase"),
        ("/api/brevo", "BREVO_WEBHOOK_URL", "https://n8n.example.com/webhook/sendtobrevo"),
    ],
)
def test_other_relay_targets(relay_client, path, config_key, target):
    upstream = Upstream(200)
    client = relay_client(CONFIGURED, upstream)
    r = client.post(path, json={"id": "bp1", "status": "Booked"})
    assert r.json() == {"success": True}
    assert str(upstream.requests[0].url) == target

    app.dependency_overrides[get_webhook_config] = lambda: WebhookConfig()
    r = client.post(path, json={"id": "bp1"})
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": f"{config_key} is not configured."}
