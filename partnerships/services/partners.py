"""
Partner service: replace-by-id updates, status moves, core delivery and stats.

Storage is whatever PartnerRepository it is given; the acting AuthUser is
opaque here and only recorded in logs.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from partnerships.adapters.webhook.delivery import DeliveryResult, WebhookDeliveryClient
from partnerships.engine.legacy import normalize_partner
from partnerships.engine.partners import InvalidFieldError, Partner
from partnerships.engine.stats import (
    PipelineStats,
    WeeklyStats,
    compute_pipeline_stats,
    compute_weekly_stats,
    weekly_window,
)
from partnerships.engine.transitions import apply_status_change
from partnerships.services.repository import PartnerRepository

logger = logging.getLogger(__name__)


class PartnerNotFoundError(LookupError):
    def __init__(self, partner_id: str) -> None:
        self.partner_id = partner_id
        super().__init__(f"Partner not found: {partner_id}")


@dataclass(frozen=True)
class AuthUser:
    id: Optional[str] = None
    email: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _actor(user: Optional[AuthUser]) -> Optional[str]:
    if user is None:
        return None
    return user.email or user.id


class PartnerService:
    def __init__(
        self,
        repository: PartnerRepository,
        delivery_client: WebhookDeliveryClient,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repo = repository
        self._delivery = delivery_client
        self._clock = clock or _utcnow

    async def get(self, partner_id: str) -> Partner:
        partner = await self._repo.get(partner_id)
        if partner is None:
            raise PartnerNotFoundError(partner_id)
        return partner

    async def list_partners(self, status: Optional[str] = None) -> list[Partner]:
        partners = await self._repo.list_all()
        if status is None:
            return partners
        return [p for p in partners if p.status == status]

    async def replace(
        self,
        partner_id: str,
        candidate: Mapping[str, Any],
        actor: Optional[AuthUser] = None,
    ) -> Partner:
        """
        Replace the whole record stored under partner_id.

        The candidate is normalized (legacy shapes accepted) and validated
        before anything is written. id must match; created is kept from the
        stored record and updated is stamped now. lead_date and signed_at
        follow move(): they are stamped when the status enters lead / signed,
        and a stored value is never cleared by the candidate.
        """
        existing = await self.get(partner_id)

        data = dict(candidate)
        if data.get("id", partner_id) != partner_id:
            raise InvalidFieldError("id", data.get("id"))
        data["id"] = partner_id
        data["created"] = existing.created
        data["updated"] = self._clock()

        incoming = normalize_partner(data)
        kept = replace(
            incoming,
            status=existing.status,
            lead_date=existing.lead_date or incoming.lead_date,
            signed_at=existing.signed_at or incoming.signed_at,
        )
        partner = apply_status_change(kept, incoming.status, incoming.updated)
        stored = await self._store(partner)
        logger.info(json.dumps({
            "event": "partner_replaced",
            "partner_id": partner_id,
            "status": stored.status,
            "actor": _actor(actor),
        }))
        return stored

    async def move(
        self,
        partner_id: str,
        new_status: str,
        actor: Optional[AuthUser] = None,
    ) -> Partner:
        existing = await self.get(partner_id)
        moved = apply_status_change(existing, new_status, self._clock())
        stored = await self._store(moved)
        logger.info(json.dumps({
            "event": "partner_status_changed",
            "partner_id": partner_id,
            "from_status": existing.status,
            "to_status": stored.status,
            "actor": _actor(actor),
        }))
        return stored

    async def send_to_core(
        self,
        partner_id: str,
        actor: Optional[AuthUser] = None,
    ) -> DeliveryResult:
        partner = await self.get(partner_id)
        result = await self._delivery.send_to_core(partner)
        logger.info(json.dumps({
            "event": "partner_sent_to_core",
            "partner_id": partner_id,
            "success": result.success,
            "error": result.error,
            "actor": _actor(actor),
        }))
        return result

    async def pipeline_stats(self) -> PipelineStats:
        return compute_pipeline_stats(await self._repo.list_all())

    async def weekly_stats(self, now: Optional[datetime] = None) -> WeeklyStats:
        start, end = weekly_window(now or self._clock())
        return compute_weekly_stats(await self._repo.list_all(), start, end)

    async def _store(self, partner: Partner) -> Partner:
        stored = await self._repo.replace(partner)
        if stored is None:
            raise PartnerNotFoundError(partner.id)
        return stored
