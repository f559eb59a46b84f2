"""
Canonical partner record and validation.

validate_partner() is the only way a Partner is built from untrusted data:
enumeration fields are checked against engine.stages, free-text fields are
taken as opaque strings, and the first violation rejects the whole record.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from partnerships.engine import stages

SCHEMA_VERSION = 2

TEXT_FIELDS: tuple[str, ...] = (
    "partner_name",
    "description",
    "contact_name",
    "contact_position",
    "contact_phone",
    "contact_email",
    "price_category",
    "partnership_link",
    "website",
    "login_notes",
    "partner_brief",
    "when_not_to_use",
    "sla_notes",
    "commission",
)

# field -> (allowed values, default)
ENUM_FIELDS: dict[str, tuple[frozenset[str], str]] = {
    "status": (stages.ALL_STATUSES, stages.POTENTIAL),
    "opportunity_type": (stages.OPPORTUNITY_TYPES, "Everyday"),
    "partnership_type": (stages.PARTNERSHIP_TYPES, stages.DIRECT),
    "partner_tier": (stages.PARTNER_TIERS, "Standard"),
    "lifecycle_stage": (stages.LIFECYCLE_STAGES, "New"),
    "lifestyle_category": (stages.LIFESTYLE_CATEGORIES, "Misc"),
}

BOOL_FIELDS: tuple[str, ...] = ("is_default", *stages.CHECKPOINTS)

TEXT_DEFAULTS: dict[str, str] = {"price_category": "£"}


class InvalidFieldError(ValueError):
    """A partner field holds a value outside its fixed set (or is unusable)."""

    def __init__(self, field: str, value: Any) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Invalid value for {field}: {value!r}")


@dataclass(frozen=True)
class Partner:
    id: str
    created: datetime
    updated: datetime
    partner_name: str = ""
    description: str = ""
    lifestyle_category: str = "Misc"
    contact_name: str = ""
    contact_position: str = ""
    contact_phone: str = ""
    contact_email: str = ""
    opportunity_type: str = "Everyday"
    price_category: str = "£"
    partnership_type: str = stages.DIRECT
    partnership_link: str = ""
    website: str = ""
    login_notes: str = ""
    status: str = stages.POTENTIAL
    partner_tier: str = "Standard"
    use_for_tags: frozenset[str] = frozenset()
    lifecycle_stage: str = "New"
    is_default: bool = False
    partner_brief: str = ""
    when_not_to_use: str = ""
    sla_notes: str = ""
    commission: str = ""

    # Negotiation checkpoints (Direct partnerships only)
    contacted: bool = False
    call_booked: bool = False
    call_had: bool = False
    contract_sent: bool = False
    contract_signed: bool = False

    stripe_aliases: frozenset[str] = frozenset()
    lead_date: Optional[datetime] = None
    signed_at: Optional[datetime] = None

    # Original values a legacy migration had to rewrite, keyed by field
    legacy_values: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_direct(self) -> bool:
        return self.partnership_type == stages.DIRECT


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse datetime / ISO-8601 string / epoch seconds into an aware datetime.

    Returns None for None and empty strings; raises ValueError for anything
    else it cannot read. Naive values are treated as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    elif isinstance(value, str):
        txt = value.strip()
        if not txt:
            return None
        if txt.endswith("Z"):
            txt = txt[:-1] + "+00:00"
        dt = datetime.fromisoformat(txt)
    else:
        raise ValueError(f"not a timestamp: {value!r}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _timestamp(candidate: Mapping[str, Any], name: str, *, required: bool) -> Optional[datetime]:
    raw = candidate.get(name)
    try:
        dt = parse_timestamp(raw)
    except (TypeError, ValueError, OverflowError, OSError):
        # out-of-range epochs raise OverflowError / OSError depending on platform
        raise InvalidFieldError(name, raw)
    if dt is None and required:
        raise InvalidFieldError(name, raw)
    return dt


def _string_set(candidate: Mapping[str, Any], name: str) -> frozenset[str]:
    raw = candidate.get(name)
    if raw is None or raw == "":
        return frozenset()
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple, set, frozenset)):
        raise InvalidFieldError(name, raw)
    items = []
    for item in raw:
        if not isinstance(item, str):
            raise InvalidFieldError(name, item)
        items.append(item)
    return frozenset(items)


def validate_partner(candidate: Mapping[str, Any]) -> Partner:
    """
    Validate a canonical-shape candidate and build a Partner.

    Raises InvalidFieldError naming the first offending field and value.
    Absent optional fields take their defaults.
    """
    partner_id = candidate.get("id")
    if not isinstance(partner_id, str) or not partner_id.strip():
        raise InvalidFieldError("id", partner_id)

    values: dict[str, Any] = {"id": partner_id}

    for name, (allowed, default) in ENUM_FIELDS.items():
        raw = candidate.get(name)
        if raw is None or raw == "":
            values[name] = default
            continue
        if not isinstance(raw, str) or raw not in allowed:
            raise InvalidFieldError(name, raw)
        values[name] = raw

    tags = _string_set(candidate, "use_for_tags")
    for tag in sorted(tags):
        if tag not in stages.USE_FOR_TAGS:
            raise InvalidFieldError("use_for_tags", tag)
    values["use_for_tags"] = tags
    values["stripe_aliases"] = _string_set(candidate, "stripe_aliases")

    for name in TEXT_FIELDS:
        raw = candidate.get(name)
        if raw is None:
            values[name] = TEXT_DEFAULTS.get(name, "")
        elif isinstance(raw, str):
            values[name] = raw
        else:
            values[name] = str(raw)

    for name in BOOL_FIELDS:
        raw = candidate.get(name)
        if raw is None:
            values[name] = False
        elif isinstance(raw, bool):
            values[name] = raw
        else:
            raise InvalidFieldError(name, raw)

    values["created"] = _timestamp(candidate, "created", required=True)
    values["updated"] = _timestamp(candidate, "updated", required=True)
    values["lead_date"] = _timestamp(candidate, "lead_date", required=False)
    values["signed_at"] = _timestamp(candidate, "signed_at", required=False)

    legacy = candidate.get("legacy_values") or {}
    if not isinstance(legacy, Mapping):
        raise InvalidFieldError("legacy_values", legacy)
    values["legacy_values"] = dict(legacy)

    return Partner(**values)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


def partner_to_dict(partner: Partner) -> dict[str, Any]:
    """JSON-ready canonical dict; sets become sorted lists."""
    data: dict[str, Any] = {
        "id": partner.id,
        "schema_version": SCHEMA_VERSION,
    }
    for name in TEXT_FIELDS:
        data[name] = getattr(partner, name)
    for name in ENUM_FIELDS:
        data[name] = getattr(partner, name)
    for name in BOOL_FIELDS:
        data[name] = getattr(partner, name)
    data["use_for_tags"] = sorted(partner.use_for_tags)
    data["stripe_aliases"] = sorted(partner.stripe_aliases)
    data["created"] = _iso(partner.created)
    data["updated"] = _iso(partner.updated)
    data["lead_date"] = _iso(partner.lead_date)
    data["signed_at"] = _iso(partner.signed_at)
    data["legacy_values"] = dict(partner.legacy_values)
    return data


def checkpoints_monotonic(partner: Partner) -> bool:
    """True when no later checkpoint is set while an earlier one is not."""
    seen_unset = False
    for name in stages.CHECKPOINTS:
        if getattr(partner, name):
            if seen_unset:
                return False
        else:
            seen_unset = True
    return True
