"""
Big purchase confirmation: look up a flagged purchase, record the details the
partner confirms, mark it purchased and notify the partnerships team.

Storage is a BigPurchaseRepository; the notification goes out through a
WebhookRelay pointed at BIG_PURCHASE_CONFIRM_WEBHOOK_URL.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, Protocol

import asyncpg

from partnerships.engine.purchases import (
    ALREADY_PURCHASED,
    ALREADY_PURCHASED_MESSAGE,
    EXPIRED,
    EXPIRED_MESSAGE,
    NOT_FLAGGED,
    NOT_FOUND_MESSAGE,
    PURCHASED,
    BigPurchase,
    ConfirmationError,
    PurchaseConfirmation,
    confirmation_payload,
    confirmation_state,
    not_flagged_message,
    purchase_from_record,
    validate_confirmation,
)
from partnerships.relay.forwarder import WebhookRelay

logger = logging.getLogger(__name__)

NOTIFICATION_SOURCE = "partnerships-portal"


class BigPurchaseRepository(Protocol):
    async def get(self, purchase_id: str) -> Optional[BigPurchase]: ...

    async def mark_purchased(
        self, purchase_id: str, confirmation: PurchaseConfirmation
    ) -> Optional[BigPurchase]:
        """Store the confirmed details with status purchased; None if the id is unknown."""
        ...


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

PURCHASE_COLUMNS = "id, created, status, partner_name, poc, estimated_amount, purchase_date, category"

LOAD_PURCHASE_SQL = f"""
SELECT {PURCHASE_COLUMNS}
FROM partnerships.big_purchases
WHERE id = $1
LIMIT 1;
"""

MARK_PURCHASED_SQL = f"""
UPDATE partnerships.big_purchases
SET partner_name = $2,
    poc = $3,
    estimated_amount = $4,
    purchase_date = $5,
    category = $6,
    status = '{PURCHASED}'
WHERE id = $1
RETURNING {PURCHASE_COLUMNS};
"""


class PgBigPurchaseRepository:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get(self, purchase_id: str) -> Optional[BigPurchase]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(LOAD_PURCHASE_SQL, purchase_id)
        if not row:
            return None
        return purchase_from_record(dict(row))

    async def mark_purchased(
        self, purchase_id: str, confirmation: PurchaseConfirmation
    ) -> Optional[BigPurchase]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                MARK_PURCHASED_SQL,
                purchase_id,
                confirmation.partner_name,
                confirmation.poc,
                Decimal(str(confirmation.estimated_amount)),
                confirmation.purchase_date,
                confirmation.category,
            )
        if not row:
            return None
        return purchase_from_record(dict(row))


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BigPurchaseService:
    def __init__(
        self,
        repository: BigPurchaseRepository,
        notifier: WebhookRelay,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repo = repository
        self._notifier = notifier
        self._clock = clock or _utcnow

    async def _load(self, purchase_id: str) -> BigPurchase:
        purchase = await self._repo.get(purchase_id)
        if purchase is None:
            raise ConfirmationError("not_found", NOT_FOUND_MESSAGE, 404)
        return purchase

    async def lookup(self, purchase_id: str) -> tuple[str, BigPurchase]:
        """
        State of the confirmation link for purchase_id.

        Returns (state, purchase) for ready / already_purchased / expired.
        A purchase in any other status cannot be confirmed and raises (400).
        """
        purchase = await self._load(purchase_id)
        state = confirmation_state(purchase, self._clock())
        if state == NOT_FLAGGED:
            raise ConfirmationError("error", not_flagged_message(purchase), 400)
        return state, purchase

    async def confirm(self, purchase_id: str, body: Any) -> BigPurchase:
        """
        Validate the submitted details, mark the purchase purchased and send
        the big_purchase_confirmed notification.

        Nothing is written unless the details are valid, the purchase is
        still confirmable and a notification target is configured. A failed
        notification is reported after the write has happened.
        """
        confirmation = validate_confirmation(body)
        purchase = await self._load(purchase_id)

        now = self._clock()
        state = confirmation_state(purchase, now)
        if state == ALREADY_PURCHASED:
            raise ConfirmationError(ALREADY_PURCHASED, ALREADY_PURCHASED_MESSAGE, 409)
        if state == EXPIRED:
            raise ConfirmationError(EXPIRED, EXPIRED_MESSAGE, 410)
        if state == NOT_FLAGGED:
            raise ConfirmationError("error", not_flagged_message(purchase), 409)

        if not self._notifier.target_url:
            logger.error("%s environment variable not set", self._notifier.config_key)
            raise ConfirmationError("error", f"{self._notifier.config_key} is not configured.", 500)

        updated = await self._repo.mark_purchased(purchase_id, confirmation)
        if updated is None:
            raise ConfirmationError("not_found", NOT_FOUND_MESSAGE, 404)

        status_code, envelope = await self._notifier.deliver(
            confirmation_payload(updated, now, NOTIFICATION_SOURCE)
        )
        logger.info(json.dumps({
            "event": "big_purchase_confirmed",
            "purchase_id": purchase_id,
            "notified": status_code == 200,
        }))
        if status_code != 200:
            raise ConfirmationError(
                "error",
                f"Purchase updated, but webhook failed: {envelope.get('error')}",
                500,
            )
        return updated
