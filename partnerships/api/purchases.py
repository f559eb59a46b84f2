"""
Big purchase confirmation links.

  GET  /api/confirm/{id}   state of the link (ready, already_purchased, expired)
  POST /api/confirm/{id}   confirm details, mark purchased, notify the team

Every response is a {state, message} body, plus the record where there is one.
"""
from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from partnerships.config import WebhookConfig
from partnerships.db import get_pool
from partnerships.engine.purchases import (
    ALREADY_PURCHASED,
    ALREADY_PURCHASED_MESSAGE,
    EXPIRED,
    EXPIRED_MESSAGE,
    READY,
    ConfirmationError,
    purchase_to_dict,
)
from partnerships.relay.forwarder import UNKNOWN_ERROR, WebhookRelay
from partnerships.relay.routes import get_relay_transport, get_webhook_config
from partnerships.services.purchases import BigPurchaseService, PgBigPurchaseRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/confirm", tags=["big-purchases"])

CONFIRMED_MESSAGE = "Purchase confirmed, the partnerships team has been notified."

_STATE_MESSAGES = {
    ALREADY_PURCHASED: ALREADY_PURCHASED_MESSAGE,
    EXPIRED: EXPIRED_MESSAGE,
}


async def get_purchase_service(
    config: WebhookConfig = Depends(get_webhook_config),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_relay_transport),
) -> AsyncGenerator[BigPurchaseService, None]:
    pool = await get_pool()
    notifier = WebhookRelay(
        "BIG_PURCHASE_CONFIRM_WEBHOOK_URL",
        config.big_purchase_confirm_target,
        timeout=config.timeout_seconds,
        transport=transport,
    )
    yield BigPurchaseService(PgBigPurchaseRepository(pool), notifier)


def _unexpected(purchase_id: str, e: Exception) -> JSONResponse:
    logger.error("confirm %s failed: %r", purchase_id, e)
    return JSONResponse({"state": "error", "message": str(e) or UNKNOWN_ERROR}, status_code=500)


@router.get("/{purchase_id}")
async def confirmation_link(
    purchase_id: str,
    service: BigPurchaseService = Depends(get_purchase_service),
) -> JSONResponse:
    try:
        state, purchase = await service.lookup(purchase_id)
    except ConfirmationError as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code)
    except Exception as e:
        return _unexpected(purchase_id, e)

    if state == READY:
        return JSONResponse({"state": READY, "record": purchase_to_dict(purchase)})
    return JSONResponse({"state": state, "message": _STATE_MESSAGES[state]})


@router.post("/{purchase_id}")
async def confirm_purchase(
    purchase_id: str,
    request: Request,
    service: BigPurchaseService = Depends(get_purchase_service),
) -> JSONResponse:
    try:
        body = await request.json()
        purchase = await service.confirm(purchase_id, body)
    except ConfirmationError as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code)
    except Exception as e:
        return _unexpected(purchase_id, e)

    return JSONResponse({
        "state": "success",
        "message": CONFIRMED_MESSAGE,
        "record": purchase_to_dict(purchase),
    })
