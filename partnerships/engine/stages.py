"""
Partner statuses, pipeline ordering and the fixed field enumerations.

Statuses are string constants, not a Postgres ENUM.
Adding a new status requires only a code change, not a migration.
"""
from __future__ import annotations

from typing import Optional

# Statuses in pipeline order
POTENTIAL = "potential"
CONTACTED = "contacted"
LEAD = "lead"
NEGOTIATION = "negotiation"
SIGNED = "signed"

# Terminal (from any stage)
CLOSED = "closed"

# Ordered pipeline. closed is a terminal exit from any stage and sits outside it
PIPELINE_ORDER: list[str] = [
    POTENTIAL,
    CONTACTED,
    LEAD,
    NEGOTIATION,
    SIGNED,
]

# status -> position (1-indexed)
STAGE_INDEX: dict[str, int] = {s: i + 1 for i, s in enumerate(PIPELINE_ORDER)}
STAGE_INDEX[CLOSED] = 99

ALL_STATUSES: frozenset[str] = frozenset(PIPELINE_ORDER) | {CLOSED}

OPPORTUNITY_TYPES: frozenset[str] = frozenset(["Big Ticket", "Everyday", "Low Hanging"])

DIRECT = "Direct"
AFFILIATE = "Affiliate"
PARTNERSHIP_TYPES: frozenset[str] = frozenset([DIRECT, AFFILIATE])

PARTNER_TIERS: frozenset[str] = frozenset(["Preferred", "Standard", "Test"])

LIFECYCLE_STAGES: frozenset[str] = frozenset(["New", "Growing", "Mature", "At Risk"])

USE_FOR_TAGS: frozenset[str] = frozenset([
    "Last-minute",
    "VIP/HNW",
    "Best value",
    "International",
    "Gifting",
])

LIFESTYLE_CATEGORIES: frozenset[str] = frozenset([
    "Airline",
    "Travel",
    "Hotels",
    "Supermarkets",
    "Restaurants",
    "Trades",
    "Misc",
    "Childcare",
    "Kids + Family",
    "Services",
    "Eldercare",
    "Taxis",
    "Flowers",
    "Department Store",
    "Affiliates",
    "Beauty",
    "Retail",
    "Jewellery",
    "Cars",
    "Electronics",
    "Home",
    "Health + Fitness",
    "Children's Parties and Events",
    "Wellness",
    "Ski",
    "Experiences",
])

# Direct-partnership negotiation checkpoints, in the order they are reached
CHECKPOINTS: list[str] = [
    "contacted",
    "call_booked",
    "call_had",
    "contract_sent",
    "contract_signed",
]


def next_status(status: str) -> Optional[str]:
    """Next stage in the pipeline, or None at the end (signed) or for closed."""
    if status not in STAGE_INDEX or status == CLOSED:
        return None
    idx = STAGE_INDEX[status]
    if idx >= len(PIPELINE_ORDER):
        return None
    return PIPELINE_ORDER[idx]
