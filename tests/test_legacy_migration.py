from datetime import datetime, timezone

import pytest

from partnerships.engine.legacy import (
    is_legacy_shape,
    migrate_legacy_partner,
    normalize_partner,
)
from partnerships.engine.partners import InvalidFieldError, partner_to_dict

LEGACY_ROW = {
    "id": "6f1c",
    "partner_name": "Harrods",
    "lifestyle_category": "Fashion",
    "contact_name": "Emma Thompson",
    "position": "Partnerships Lead",
    "contact_number": "555-1234",
    "email": "emma@harrods.com",
    "opportunity_type": "Big Ticket",
    "partnership_link": "https://harrods.com",
    "status": "negotiation",
    "contacted": True,
    "call_booked": True,
    "call_had": False,
    "contract_sent": False,
    "created_at": "2026-09-01T10:00:00+00:00",
    "signed_at": None,
    "updated_at": "2026-09-10T10:00:00+00:00",
    "days_to_sign": None,
}


def test_contact_number_becomes_contact_phone():
    p = normalize_partner({**LEGACY_ROW, "lifestyle_category": "Travel"})
    assert p.contact_phone == "555-1234"
    assert p.contact_email == "emma@harrods.com"
    assert p.contact_position == "Partnerships Lead"
    assert p.created == datetime(2026, 9, 1, 10, tzinfo=timezone.utc)
    assert p.updated == datetime(2026, 9, 10, 10, tzinfo=timezone.utc)
    assert p.legacy_values == {}


def test_lossy_category_mapping_keeps_original():
    p = normalize_partner(LEGACY_ROW)
    assert p.lifestyle_category == "Retail"
    assert p.legacy_values["lifestyle_category"] == "Fashion"


@pytest.mark.parametrize(
    "legacy,canonical",
    [
        ("Dining", "Restaurants"),
        ("Entertainment", "Experiences"),
        ("Automotive", "Cars"),
        ("Property", "Home"),
        ("Finance", "Services"),
        ("Technology", "Electronics"),
        ("Other", "Misc"),
    ],
)
def test_legacy_categories_map_into_canonical_set(legacy, canonical):
    p = normalize_partner({**LEGACY_ROW, "lifestyle_category": legacy})
    assert p.lifestyle_category == canonical


def test_missing_canonical_fields_get_defaults():
    p = normalize_partner(LEGACY_ROW)
    assert p.partnership_type == "Direct"
    assert p.contract_signed is False
    assert p.partner_tier == "Standard"
    assert p.use_for_tags == frozenset()


def test_conflicting_legacy_and_canonical_keys_keep_both():
    row = {**LEGACY_ROW, "contact_phone": "+44 7700 900111"}
    p = normalize_partner(row)
    assert p.contact_phone == "+44 7700 900111"
    assert p.legacy_values["contact_number"] == "555-1234"


def test_unknown_legacy_keys_are_preserved():
    p = normalize_partner({**LEGACY_ROW, "referral_source": "trade show"})
    assert p.legacy_values["referral_source"] == "trade show"


def test_migration_is_idempotent():
    once = migrate_legacy_partner(LEGACY_ROW)
    twice = migrate_legacy_partner(once)
    assert twice == once
    assert not is_legacy_shape(once)


def test_canonical_record_passes_through_unchanged():
    p = normalize_partner(LEGACY_ROW)
    data = partner_to_dict(p)
    assert migrate_legacy_partner(data) == data
    assert normalize_partner(data) == p


def test_invalid_legacy_status_still_rejected():
    with pytest.raises(InvalidFieldError) as exc:
        normalize_partner({**LEGACY_ROW, "status": "archived"})
    assert exc.value.field == "status"


def test_v1_only_category_marks_row_as_legacy():
    row = {
        "id": "6f1d",
        "partner_name": "The Ivy",
        "lifestyle_category": "Dining",
        "status": "lead",
        "created": "2026-09-01T10:00:00+00:00",
        "updated": "2026-09-01T10:00:00+00:00",
    }
    assert is_legacy_shape(row)
    p = normalize_partner(row)
    assert p.lifestyle_category == "Restaurants"
    assert p.legacy_values["lifestyle_category"] == "Dining"


def test_shared_category_alone_is_not_legacy():
    assert not is_legacy_shape({"id": "x", "lifestyle_category": "Travel"})
