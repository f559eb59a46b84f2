"""
Webhook relay: forward an inbound JSON payload verbatim to a server-only
target and normalize the outcome into a {success, error} envelope.

The upstream status code is never passed back as-is; failures are always
reported with HTTP 500 and the upstream status embedded in the message.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error"


def _payload_label(payload: Any) -> str:
    if isinstance(payload, dict):
        for key in ("partner", "purchase"):
            nested = payload.get(key)
            if isinstance(nested, dict) and nested.get("partner_name"):
                return str(nested["partner_name"])
        if payload.get("partner_name"):
            return str(payload["partner_name"])
    return "unknown"


class WebhookRelay:
    def __init__(
        self,
        config_key: str,
        target_url: Optional[str],
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config_key = config_key
        self.target_url = target_url
        self._timeout = timeout
        self._transport = transport

    def _not_configured(self) -> tuple[int, dict[str, Any]]:
        logger.error("%s environment variable not set", self.config_key)
        return 500, {"success": False, "error": f"{self.config_key} is not configured."}

    async def forward(self, raw_body: bytes) -> tuple[int, dict[str, Any]]:
        """Return (http_status, envelope). Never raises."""
        if not self.target_url:
            return self._not_configured()
        try:
            payload = json.loads(raw_body)
        except Exception as e:
            logger.error("relay to %s: unreadable body: %r", self.config_key, e)
            return 500, {"success": False, "error": str(e) or UNKNOWN_ERROR}
        return await self.deliver(payload)

    async def deliver(self, payload: Any) -> tuple[int, dict[str, Any]]:
        """POST payload as JSON to the target. Same envelope as forward(); never raises."""
        if not self.target_url:
            return self._not_configured()

        try:
            logger.info(json.dumps({
                "event": "relay_request",
                "target": self.config_key,
                "partner": _payload_label(payload),
            }))

            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.target_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )

            logger.info(json.dumps({
                "event": "relay_response",
                "target": self.config_key,
                "status": resp.status_code,
            }))

            if not resp.is_success:
                error_text = resp.text
                logger.error(json.dumps({
                    "event": "relay_rejected",
                    "target": self.config_key,
                    "status": resp.status_code,
                    "body": error_text[:500],
                }))
                return 500, {
                    "success": False,
                    "error": f"Webhook returned {resp.status_code}: {error_text}",
                }

        except Exception as e:
            logger.error("relay to %s failed: %r", self.config_key, e)
            return 500, {"success": False, "error": str(e) or UNKNOWN_ERROR}

        return 200, {"success": True}
