from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, AsyncGenerator, Optional

from fastapi import APIRouter, Body, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from partnerships.adapters.webhook.delivery import WebhookDeliveryClient
from partnerships.config import WebhookConfig
from partnerships.db import get_pool
from partnerships.engine.partners import InvalidFieldError, partner_to_dict
from partnerships.relay.routes import get_webhook_config
from partnerships.services.partners import AuthUser, PartnerNotFoundError, PartnerService
from partnerships.services.repository import PgPartnerRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/partners", tags=["partners"])


class StatusChangeRequest(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

async def get_partner_service(
    config: WebhookConfig = Depends(get_webhook_config),
) -> AsyncGenerator[PartnerService, None]:
    pool = await get_pool()
    yield PartnerService(PgPartnerRepository(pool), WebhookDeliveryClient(config))


def get_auth_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
) -> Optional[AuthUser]:
    """Identity is established upstream; it is only passed through here."""
    if not x_user_id and not x_user_email:
        return None
    return AuthUser(id=x_user_id, email=x_user_email)


def _failure(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"success": False, "error": error, **extra}, status_code=status_code)


def _invalid(e: InvalidFieldError) -> JSONResponse:
    return _failure(400, str(e), field=e.field)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("")
async def list_partners(
    status: Optional[str] = None,
    service: PartnerService = Depends(get_partner_service),
) -> dict[str, Any]:
    partners = await service.list_partners(status=status)
    return {"success": True, "partners": [partner_to_dict(p) for p in partners]}


@router.get("/stats/pipeline")
async def pipeline_stats(service: PartnerService = Depends(get_partner_service)) -> dict[str, Any]:
    stats = await service.pipeline_stats()
    return {"success": True, "stats": stats.to_dict()}


@router.get("/stats/weekly")
async def weekly_stats(
    now: Optional[datetime] = None,
    service: PartnerService = Depends(get_partner_service),
) -> dict[str, Any]:
    stats = await service.weekly_stats(now=now)
    return {"success": True, "stats": stats.to_dict()}


@router.get("/{partner_id}")
async def get_partner(partner_id: str, service: PartnerService = Depends(get_partner_service)):
    try:
        partner = await service.get(partner_id)
    except PartnerNotFoundError as e:
        return _failure(404, str(e))
    return {"success": True, "partner": partner_to_dict(partner)}


@router.put("/{partner_id}")
async def replace_partner(
    partner_id: str,
    body: dict[str, Any] = Body(...),
    service: PartnerService = Depends(get_partner_service),
    user: Optional[AuthUser] = Depends(get_auth_user),
):
    try:
        partner = await service.replace(partner_id, body, actor=user)
    except PartnerNotFoundError as e:
        return _failure(404, str(e))
    except InvalidFieldError as e:
        return _invalid(e)
    return {"success": True, "partner": partner_to_dict(partner)}


@router.post("/{partner_id}/status")
async def move_partner(
    partner_id: str,
    body: StatusChangeRequest,
    service: PartnerService = Depends(get_partner_service),
    user: Optional[AuthUser] = Depends(get_auth_user),
):
    try:
        partner = await service.move(partner_id, body.status, actor=user)
    except PartnerNotFoundError as e:
        return _failure(404, str(e))
    except InvalidFieldError as e:
        return _invalid(e)
    return {"success": True, "partner": partner_to_dict(partner)}


@router.post("/{partner_id}/send-to-core")
async def send_partner_to_core(
    partner_id: str,
    service: PartnerService = Depends(get_partner_service),
    user: Optional[AuthUser] = Depends(get_auth_user),
):
    try:
        result = await service.send_to_core(partner_id, actor=user)
    except PartnerNotFoundError as e:
        return _failure(404, str(e))
    return result.to_dict()
