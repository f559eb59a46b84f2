"""
Legacy (schema v1) partner rows -> canonical (schema v2) shape.

The v1 table stored contact_number / email / position / created_at /
updated_at, a three-value status and an eleven-value lifestyle category.
migrate_legacy_partner() rewrites those into the canonical field names and
enumerations. Nothing is dropped silently: any value that had to change, and
any key the canonical schema does not know, lands in legacy_values.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from partnerships.engine import stages
from partnerships.engine.partners import (
    BOOL_FIELDS,
    ENUM_FIELDS,
    SCHEMA_VERSION,
    TEXT_FIELDS,
    Partner,
    validate_partner,
)

logger = logging.getLogger(__name__)

# legacy key -> canonical key
RENAMED_FIELDS: dict[str, str] = {
    "contact_number": "contact_phone",
    "email": "contact_email",
    "position": "contact_position",
    "created_at": "created",
    "updated_at": "updated",
}

# v1 lifestyle_category -> v2 lifestyle_category
LEGACY_LIFESTYLE_CATEGORIES: dict[str, str] = {
    "Travel": "Travel",
    "Dining": "Restaurants",
    "Entertainment": "Experiences",
    "Wellness": "Wellness",
    "Retail": "Retail",
    "Automotive": "Cars",
    "Property": "Home",
    "Finance": "Services",
    "Technology": "Electronics",
    "Fashion": "Retail",
    "Other": "Misc",
}

# Categories that only exist in v1; seeing one marks the row as legacy
V1_ONLY_CATEGORIES: frozenset[str] = frozenset(
    name for name in LEGACY_LIFESTYLE_CATEGORIES if name not in stages.LIFESTYLE_CATEGORIES
)

# Derived in v1, recomputed from signed_at - created now
DERIVED_LEGACY_FIELDS: frozenset[str] = frozenset(["days_to_sign"])

CANONICAL_FIELDS: frozenset[str] = frozenset(
    [
        "id",
        "schema_version",
        "use_for_tags",
        "stripe_aliases",
        "created",
        "updated",
        "lead_date",
        "signed_at",
        "legacy_values",
        *TEXT_FIELDS,
        *ENUM_FIELDS,
        *BOOL_FIELDS,
    ]
)

# PocketBase record metadata, not partner data
RECORD_METADATA_FIELDS: frozenset[str] = frozenset(["collectionId", "collectionName", "expand"])


def is_legacy_shape(data: Mapping[str, Any]) -> bool:
    if data.get("schema_version") == SCHEMA_VERSION:
        return False
    if any(key in data for key in RENAMED_FIELDS):
        return True
    category = data.get("lifestyle_category")
    return isinstance(category, str) and category in V1_ONLY_CATEGORIES


def migrate_legacy_partner(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Return a canonical-shape dict for a v1 or v2 partner dict.

    Canonical input comes back unchanged (as a copy), so migrating twice is
    the same as migrating once.
    """
    if not is_legacy_shape(data):
        return dict(data)

    out: dict[str, Any] = {}
    legacy_values: dict[str, Any] = dict(data.get("legacy_values") or {})

    for key, value in data.items():
        if key in RENAMED_FIELDS or key == "legacy_values":
            continue
        if key in DERIVED_LEGACY_FIELDS or key in RECORD_METADATA_FIELDS:
            continue
        if key in CANONICAL_FIELDS:
            out[key] = value
        else:
            legacy_values[key] = value

    for old_key, new_key in RENAMED_FIELDS.items():
        if old_key not in data:
            continue
        old_value = data[old_key]
        if new_key not in out or out[new_key] in (None, ""):
            out[new_key] = old_value
        elif out[new_key] != old_value:
            # canonical value wins, keep the legacy one
            legacy_values[old_key] = old_value

    category = out.get("lifestyle_category")
    if isinstance(category, str) and category in LEGACY_LIFESTYLE_CATEGORIES:
        mapped = LEGACY_LIFESTYLE_CATEGORIES[category]
        if mapped != category:
            legacy_values["lifestyle_category"] = category
        out["lifestyle_category"] = mapped

    for name in ("contact_phone", "contact_email", "contact_position"):
        if out.get(name) is None:
            out[name] = ""

    out["schema_version"] = SCHEMA_VERSION
    out["legacy_values"] = legacy_values

    logger.debug(
        "migrated legacy partner id=%s rewritten=%s",
        out.get("id"),
        sorted(legacy_values),
    )
    return out


def normalize_partner(data: Mapping[str, Any]) -> Partner:
    """Migrate if needed, then validate."""
    return validate_partner(migrate_legacy_partner(data))
