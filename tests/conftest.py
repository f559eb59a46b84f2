from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from partnerships.engine.partners import Partner, validate_partner
from partnerships.engine.purchases import (
    PURCHASED,
    BigPurchase,
    PurchaseConfirmation,
    purchase_from_record,
)

NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


def make_partner(partner_id: str = "p1", **overrides: Any) -> Partner:
    data: dict[str, Any] = {
        "id": partner_id,
        "partner_name": "Soho House",
        "contact_name": "James Wilson",
        "contact_email": "james@sohohouse.com",
        "lifestyle_category": "Experiences",
        "status": "lead",
        "created": NOW - timedelta(days=5),
        "updated": NOW - timedelta(days=1),
    }
    data.update(overrides)
    return validate_partner(data)


class InMemoryPartnerRepository:
    def __init__(self, partners: Optional[list[Partner]] = None) -> None:
        self.rows: dict[str, Partner] = {p.id: p for p in partners or []}
        self.replaced: list[Partner] = []

    async def get(self, partner_id: str) -> Optional[Partner]:
        return self.rows.get(partner_id)

    async def list_all(self) -> list[Partner]:
        return sorted(self.rows.values(), key=lambda p: p.created, reverse=True)

    async def replace(self, partner: Partner) -> Optional[Partner]:
        if partner.id not in self.rows:
            return None
        self.rows[partner.id] = partner
        self.replaced.append(partner)
        return partner


def make_purchase(purchase_id: str = "bp1", **overrides: Any) -> BigPurchase:
    record: dict[str, Any] = {
        "id": purchase_id,
        "created": NOW - timedelta(days=3),
        "status": "flagged",
        "partner_name": "Harrods",
        "poc": "Emma Thompson",
        "estimated_amount": 12500,
        "purchase_date": "2026-10-10",
        "category": "Retail",
    }
    record.update(overrides)
    return purchase_from_record(record)


class InMemoryBigPurchaseRepository:
    def __init__(self, purchases: Optional[list[BigPurchase]] = None) -> None:
        self.rows: dict[str, BigPurchase] = {p.id: p for p in purchases or []}
        self.writes: list[str] = []

    async def get(self, purchase_id: str) -> Optional[BigPurchase]:
        return self.rows.get(purchase_id)

    async def mark_purchased(
        self, purchase_id: str, confirmation: PurchaseConfirmation
    ) -> Optional[BigPurchase]:
        existing = self.rows.get(purchase_id)
        if existing is None:
            return None
        updated = replace(
            existing,
            status=PURCHASED,
            partner_name=confirmation.partner_name,
            poc=confirmation.poc,
            estimated_amount=confirmation.estimated_amount,
            purchase_date=confirmation.purchase_date.isoformat(),
            category=confirmation.category,
        )
        self.rows[purchase_id] = updated
        self.writes.append(purchase_id)
        return updated


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def partner() -> Partner:
    return make_partner()


@pytest.fixture()
def repo() -> InMemoryPartnerRepository:
    return InMemoryPartnerRepository([
        make_partner("p1"),
        make_partner("p2", status="negotiation", contacted=True, call_booked=True),
        make_partner(
            "p3",
            status="signed",
            created=NOW - timedelta(days=6),
            signed_at=NOW - timedelta(days=2),
        ),
    ])
