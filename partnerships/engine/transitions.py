"""
Status lifecycle.

lead_date and signed_at are stamped when a partner moves *into* lead / signed
and are never cleared afterwards, so signed_at stays set if a signed partner
later regresses or is closed. Moving into signed again re-stamps signed_at.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from partnerships.engine import stages
from partnerships.engine.partners import InvalidFieldError, Partner

SECONDS_PER_DAY = 24 * 60 * 60


def apply_status_change(partner: Partner, new_status: str, now: datetime) -> Partner:
    """Return a copy of partner moved to new_status at time now."""
    if new_status not in stages.ALL_STATUSES:
        raise InvalidFieldError("status", new_status)

    changes: dict = {"status": new_status, "updated": now}
    if new_status != partner.status:
        if new_status == stages.LEAD:
            changes["lead_date"] = now
        elif new_status == stages.SIGNED:
            changes["signed_at"] = now
    return replace(partner, **changes)


def days_to_sign(partner: Partner) -> Optional[float]:
    """Fractional days between creation and signing, None if never signed."""
    if partner.signed_at is None:
        return None
    return (partner.signed_at - partner.created).total_seconds() / SECONDS_PER_DAY
