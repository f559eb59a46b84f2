"""
Core webhook delivery client.

Sends a partner to the same-origin relay (POST {relay_base_url}/api/webhook),
which forwards it to the server-only target. The public delivery target only
gates whether delivery is attempted at all; it is never called directly.

send_to_core() never raises: every failure comes back as a DeliveryResult.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from partnerships.config import WebhookConfig
from partnerships.engine.partners import Partner, partner_to_dict

logger = logging.getLogger(__name__)

RELAY_PATH = "/api/webhook"
NOT_CONFIGURED_ERROR = "Webhook URL not configured"
GENERIC_FAILURE_ERROR = "Failed to send to webhook"
UNKNOWN_ERROR = "Unknown error"


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True}
        return {"success": False, "error": self.error}


def _error_from_response(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return GENERIC_FAILURE_ERROR
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, str) and error:
            return error
    return GENERIC_FAILURE_ERROR


class WebhookDeliveryClient:
    def __init__(
        self,
        config: WebhookConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport

    @property
    def relay_url(self) -> str:
        return f"{self._config.relay_base_url.rstrip('/')}{RELAY_PATH}"

    async def send_to_core(self, partner: Partner) -> DeliveryResult:
        if not self._config.delivery_target_public:
            logger.warning("Webhook URL not configured")
            return DeliveryResult(success=False, error=NOT_CONFIGURED_ERROR)

        body = partner_to_dict(partner)

        logger.info(json.dumps({
            "event": "send_to_core_request",
            "partner_id": partner.id,
            "status": partner.status,
            "relay_url": self.relay_url,
        }))

        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            ) as client:
                resp = await client.post(
                    self.relay_url,
                    json=body,
                    headers={"Content-Type": "application/json"},
                )

            if not resp.is_success:
                error = _error_from_response(resp)
                logger.error(json.dumps({
                    "event": "send_to_core_rejected",
                    "partner_id": partner.id,
                    "status": resp.status_code,
                    "error": error,
                }))
                return DeliveryResult(success=False, error=error)

        except Exception as e:
            logger.error("Webhook error: partner_id=%s error=%r", partner.id, e)
            return DeliveryResult(success=False, error=str(e) or UNKNOWN_ERROR)

        logger.info(json.dumps({
            "event": "send_to_core_delivered",
            "partner_id": partner.id,
        }))
        return DeliveryResult(success=True)
