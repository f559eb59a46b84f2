"""
Big purchases: a partner-facing confirmation link moves a flagged purchase to
purchased and notifies the partnerships team.

A flagged purchase can be confirmed for 21 days after it was created. Stored
records may use older column names for the same fields; purchase_from_record()
reads whichever one is present.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional

from partnerships.engine.partners import parse_timestamp

FLAGGED = "flagged"
PURCHASED = "purchased"

PURCHASE_CATEGORIES: frozenset[str] = frozenset([
    "Hotel",
    "Restaurant",
    "Wellness",
    "Retail",
    "Travel",
    "Gifting",
    "Other",
])

CONFIRM_LINK_TTL = timedelta(days=21)

# field -> record keys it may be stored under, preferred first
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "partner_name": ("partner_name", "partnerName", "partner"),
    "poc": ("poc", "POC", "point_of_contact"),
    "estimated_amount": ("estimated_amount", "estimated_amount_gbp", "estimatedAmount"),
    "purchase_date": ("purchase_date", "purchaseDate", "date"),
    "category": ("category",),
    "status": ("status",),
}

# Confirmation states
READY = "ready"
ALREADY_PURCHASED = "already_purchased"
EXPIRED = "expired"
NOT_FLAGGED = "not_flagged"

NOT_FOUND_MESSAGE = "This purchase doesn't exist"
ALREADY_PURCHASED_MESSAGE = "This purchase has already been confirmed."
EXPIRED_MESSAGE = "This link has expired, please contact the partnerships team."
INCOMPLETE_MESSAGE = "Please complete all fields with valid values."
INVALID_CATEGORY_MESSAGE = "Invalid category selected."


class ConfirmationError(Exception):
    """A confirmation that cannot go ahead, with the state and HTTP status to report."""

    def __init__(self, state: str, message: str, status_code: int) -> None:
        self.state = state
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"state": self.state, "message": self.message}


@dataclass(frozen=True)
class BigPurchase:
    id: str
    status: str
    created: Optional[datetime] = None
    partner_name: str = ""
    poc: str = ""
    estimated_amount: float = 0.0
    purchase_date: str = ""
    category: str = ""


@dataclass(frozen=True)
class PurchaseConfirmation:
    partner_name: str
    poc: str
    estimated_amount: float
    purchase_date: date
    category: str


def _resolve(record: Mapping[str, Any], field: str) -> Any:
    for key in FIELD_ALIASES[field]:
        if key in record:
            return record[key]
    return None


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _to_float(value: Any) -> Optional[float]:
    """Finite float for numbers and numeric strings, else None."""
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, Decimal, str)):
        return None
    try:
        amount = float(value)
    except ValueError:
        return None
    return amount if math.isfinite(amount) else None


def _iso_date(value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        dt = parse_timestamp(value) if isinstance(value, str) else None
    except ValueError:
        return ""
    return dt.date().isoformat() if dt else ""


def purchase_from_record(record: Mapping[str, Any]) -> BigPurchase:
    """Build a BigPurchase from a stored record, tolerating alias keys and bad values."""
    try:
        created = parse_timestamp(record.get("created"))
    except (TypeError, ValueError, OverflowError, OSError):
        created = None
    return BigPurchase(
        id=str(record.get("id") or ""),
        status=_str(_resolve(record, "status")),
        created=created,
        partner_name=_str(_resolve(record, "partner_name")),
        poc=_str(_resolve(record, "poc")),
        estimated_amount=_to_float(_resolve(record, "estimated_amount")) or 0.0,
        purchase_date=_iso_date(_resolve(record, "purchase_date")),
        category=_str(_resolve(record, "category")),
    )


def purchase_to_dict(purchase: BigPurchase) -> dict[str, Any]:
    return {
        "id": purchase.id,
        "created": purchase.created.isoformat() if purchase.created else "",
        "status": purchase.status,
        "partner_name": purchase.partner_name,
        "poc": purchase.poc,
        "estimated_amount": purchase.estimated_amount,
        "purchase_date": purchase.purchase_date,
        "category": purchase.category,
    }


def confirmation_state(purchase: BigPurchase, now: datetime) -> str:
    if purchase.status == PURCHASED:
        return ALREADY_PURCHASED
    if purchase.status != FLAGGED:
        return NOT_FLAGGED
    if purchase.created is not None and now - purchase.created > CONFIRM_LINK_TTL:
        return EXPIRED
    return READY


def not_flagged_message(purchase: BigPurchase) -> str:
    return f'This purchase is in "{purchase.status}" status and cannot be confirmed here.'


def validate_confirmation(body: Any) -> PurchaseConfirmation:
    """
    Check the details a partner submits with a confirmation.

    Names are trimmed and must be non-empty, the amount must be a finite
    non-negative number, the purchase date an ISO date and the category one
    of PURCHASE_CATEGORIES. Raises ConfirmationError (400) otherwise.
    """
    if not isinstance(body, Mapping):
        raise ConfirmationError("error", INCOMPLETE_MESSAGE, 400)

    partner_name = _str(body.get("partner_name")).strip()
    poc = _str(body.get("poc")).strip()
    purchase_date = _str(body.get("purchase_date")).strip()
    category = _str(body.get("category")).strip()

    amount = _to_float(body.get("estimated_amount"))

    try:
        day = date.fromisoformat(purchase_date[:10]) if purchase_date else None
    except ValueError:
        day = None

    if not partner_name or not poc or day is None or amount is None or amount < 0:
        raise ConfirmationError("error", INCOMPLETE_MESSAGE, 400)
    if category not in PURCHASE_CATEGORIES:
        raise ConfirmationError("error", INVALID_CATEGORY_MESSAGE, 400)

    return PurchaseConfirmation(
        partner_name=partner_name,
        poc=poc,
        estimated_amount=amount,
        purchase_date=day,
        category=category,
    )


def confirmation_payload(purchase: BigPurchase, now: datetime, source: str) -> dict[str, Any]:
    """The notification body sent once a purchase is confirmed."""
    return {
        "source": source,
        "action": "big_purchase_confirmed",
        "timestamp": now.isoformat(),
        "purchase": {
            "id": purchase.id,
            "partner_name": purchase.partner_name,
            "poc": purchase.poc,
            "estimated_amount": purchase.estimated_amount,
            "purchase_date": purchase.purchase_date,
            "category": purchase.category,
            "status": PURCHASED,
        },
    }
