"""
Same-origin relay routes.

  POST /api/webhook                      -> WEBHOOK_URL
  POST /api/big-purchase-status-webhook  -> BIG_PURCHASE_STATUS_WEBHOOK_URL
  POST /api/brevo                        -> BREVO_WEBHOOK_URL

Bodies are passed through untouched. Every path answers with a JSON envelope
and an explicit status: 200 {"success": true} or 500 {"success": false, "error": ...}.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from partnerships.config import WebhookConfig, settings
from partnerships.relay.forwarder import WebhookRelay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["relay"])


def get_webhook_config() -> WebhookConfig:
    return WebhookConfig.from_settings(settings)


def get_relay_transport() -> Optional[httpx.AsyncBaseTransport]:
    return None


async def _relay(
    request: Request,
    config_key: str,
    target_url: Optional[str],
    config: WebhookConfig,
    transport: Optional[httpx.AsyncBaseTransport],
) -> JSONResponse:
    relay = WebhookRelay(
        config_key,
        target_url,
        timeout=config.timeout_seconds,
        transport=transport,
    )
    try:
        raw_body = await request.body()
    except Exception as e:
        logger.error("relay %s: could not read request body: %r", config_key, e)
        return JSONResponse({"success": False, "error": str(e) or "Unknown error"}, status_code=500)
    status_code, envelope = await relay.forward(raw_body)
    return JSONResponse(envelope, status_code=status_code)


@router.post("/webhook")
async def core_webhook(
    request: Request,
    config: WebhookConfig = Depends(get_webhook_config),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_relay_transport),
) -> JSONResponse:
    return await _relay(request, "WEBHOOK_URL", config.delivery_target_server, config, transport)


@router.post("/big-purchase-status-webhook")
async def big_purchase_status_webhook(
    request: Request,
    config: WebhookConfig = Depends(get_webhook_config),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_relay_transport),
) -> JSONResponse:
    return await _relay(
        request,
        "BIG_PURCHASE_STATUS_WEBHOOK_URL",
        config.big_purchase_status_target,
        config,
        transport,
    )


@router.post("/brevo")
async def brevo_webhook(
    request: Request,
    config: WebhookConfig = Depends(get_webhook_config),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_relay_transport),
) -> JSONResponse:
    return await _relay(request, "BREVO_WEBHOOK_URL", config.brevo_target, config, transport)
