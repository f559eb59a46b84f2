"""
Derived pipeline statistics.

Both snapshots are recomputed from a collection of partners on every call;
nothing is cached or persisted and the input is never mutated.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

from partnerships.engine import stages
from partnerships.engine.partners import Partner
from partnerships.engine.transitions import days_to_sign


@dataclass(frozen=True)
class PipelineStats:
    closed: int = 0
    potential: int = 0
    contacted: int = 0
    leads: int = 0
    negotiation: int = 0
    signed: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "closed": self.closed,
            "potential": self.potential,
            "contacted": self.contacted,
            "leads": self.leads,
            "negotiation": self.negotiation,
            "signed": self.signed,
            "total": self.total,
        }


@dataclass(frozen=True)
class WeeklyStats:
    new_leads: int = 0
    in_negotiation: int = 0
    signed: int = 0
    contacted: int = 0
    potential: int = 0
    calls_booked: int = 0
    calls_had: int = 0
    contracts_sent: int = 0
    contracts_signed: int = 0
    avg_days_to_sign: float = 0

    def to_dict(self) -> dict[str, float]:
        return {
            "newLeads": self.new_leads,
            "inNegotiation": self.in_negotiation,
            "signed": self.signed,
            "contacted": self.contacted,
            "potential": self.potential,
            "callsBooked": self.calls_booked,
            "callsHad": self.calls_had,
            "contractsSent": self.contracts_sent,
            "contractsSigned": self.contracts_signed,
            "avgDaysToSign": self.avg_days_to_sign,
        }


# status -> PipelineStats field
_PIPELINE_BUCKETS: dict[str, str] = {
    stages.CLOSED: "closed",
    stages.POTENTIAL: "potential",
    stages.CONTACTED: "contacted",
    stages.LEAD: "leads",
    stages.NEGOTIATION: "negotiation",
    stages.SIGNED: "signed",
}

# checkpoint flag -> WeeklyStats field
_CHECKPOINT_COUNTS: dict[str, str] = {
    "contacted": "contacted",
    "call_booked": "calls_booked",
    "call_had": "calls_had",
    "contract_sent": "contracts_sent",
    "contract_signed": "contracts_signed",
}


def compute_pipeline_stats(partners: Iterable[Partner]) -> PipelineStats:
    counts = {bucket: 0 for bucket in _PIPELINE_BUCKETS.values()}
    total = 0
    for p in partners:
        total += 1
        counts[_PIPELINE_BUCKETS[p.status]] += 1
    return PipelineStats(total=total, **counts)


def compute_weekly_stats(
    partners: Iterable[Partner],
    window_start: datetime,
    window_end: datetime,
) -> WeeklyStats:
    """
    Stats for partners created in [window_start, window_end).

    Checkpoint counts only consider Direct partnerships, the only kind that
    goes through the negotiation checkpoints. avg_days_to_sign is 0 when no
    partner in the window has signed.
    """
    status_counts = {
        stages.LEAD: 0,
        stages.NEGOTIATION: 0,
        stages.SIGNED: 0,
        stages.POTENTIAL: 0,
    }
    checkpoint_counts = {name: 0 for name in _CHECKPOINT_COUNTS.values()}
    sign_days: list[float] = []

    for p in partners:
        if not (window_start <= p.created < window_end):
            continue
        if p.status in status_counts:
            status_counts[p.status] += 1
        if p.is_direct:
            for flag, name in _CHECKPOINT_COUNTS.items():
                if getattr(p, flag):
                    checkpoint_counts[name] += 1
        days = days_to_sign(p)
        if days is not None:
            sign_days.append(days)

    avg = sum(sign_days) / len(sign_days) if sign_days else 0

    return WeeklyStats(
        new_leads=status_counts[stages.LEAD],
        in_negotiation=status_counts[stages.NEGOTIATION],
        signed=status_counts[stages.SIGNED],
        potential=status_counts[stages.POTENTIAL],
        avg_days_to_sign=avg,
        **checkpoint_counts,
    )


def weekly_window(now: datetime, days: int = 7) -> tuple[datetime, datetime]:
    """The reporting window ending now. A naive now is read as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - timedelta(days=days), now
