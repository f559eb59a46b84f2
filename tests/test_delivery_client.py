import asyncio
import json

import httpx

from conftest import make_partner
from partnerships.adapters.webhook.delivery import DeliveryResult, WebhookDeliveryClient
from partnerships.config import WebhookConfig

CONFIG = WebhookConfig(
    delivery_target_public="https://hooks.example.com/partners",
    relay_base_url="http://portal.test",
    timeout_seconds=2.0,
)


class Recorder:
    def __init__(self, handler):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


def _send(config, handler, partner=None):
    recorder = Recorder(handler)
    client = WebhookDeliveryClient(config, transport=httpx.MockTransport(recorder))
    result = asyncio.run(client.send_to_core(partner or make_partner()))
    return result, recorder


def test_not_configured_makes_no_network_call():
    result, recorder = _send(WebhookConfig(), lambda r: httpx.Response(200, json={"success": True}))
    assert result == DeliveryResult(success=False, error="Webhook URL not configured")
    assert result.to_dict() == {"success": False, "error": "Webhook URL not configured"}
    assert recorder.requests == []


def test_posts_partner_json_to_same_origin_relay():
    partner = make_partner("rec42", use_for_tags=["Gifting"])
    result, recorder = _send(CONFIG, lambda r: httpx.Response(200, json={"success": True}), partner)

    assert result == DeliveryResult(success=True)
    assert result.to_dict() == {"success": True}
    assert len(recorder.requests) == 1
    req = recorder.requests[0]
    assert req.method == "POST"
    assert str(req.url) == "http://portal.test/api/webhook"
    assert req.headers["content-type"] == "application/json"
    body = json.loads(req.content)
    assert body["id"] == "rec42"
    assert body["use_for_tags"] == ["Gifting"]


def test_rejection_uses_error_field_from_body():
    result, _ = _send(
        CONFIG,
        lambda r: httpx.Response(500, json={"success": False, "error": "Webhook returned 502: upstream down"}),
    )
    assert result == DeliveryResult(success=False, error="Webhook returned 502: upstream down")


def test_rejection_with_unparsable_body_uses_generic_message():
    result, _ = _send(CONFIG, lambda r: httpx.Response(502, text="<html>Bad Gateway</html>"))
    assert result == DeliveryResult(success=False, error="Failed to send to webhook")


def test_rejection_without_error_field_uses_generic_message():
    result, _ = _send(CONFIG, lambda r: httpx.Response(400, json={"detail": "nope"}))
    assert result.error == "Failed to send to webhook"


def test_transport_failure_is_reported_not_raised():
    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    result, _ = _send(CONFIG, refuse)
    assert result == DeliveryResult(success=False, error="Connection refused")


def test_timeout_is_a_transport_failure():
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    result, _ = _send(CONFIG, slow)
    assert result == DeliveryResult(success=False, error="timed out")


def test_failure_without_message_is_unknown_error():
    def broken(request):
        raise RuntimeError()

    result, _ = _send(CONFIG, broken)
    assert result == DeliveryResult(success=False, error="Unknown error")
