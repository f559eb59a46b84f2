import asyncio
import json
from contextlib import asynccontextmanager

from conftest import NOW, make_partner
from partnerships.services.repository import (
    ALL_COLUMNS,
    REPLACE_PARTNER_SQL,
    PgPartnerRepository,
    partner_to_args,
    row_to_partner,
)


def _row(partner):
    """What asyncpg hands back for a stored partner (JSONB as text)."""
    return dict(zip(ALL_COLUMNS, partner_to_args(partner)))


class FakeConn:
    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    async def fetchrow(self, sql, *args):
        self.calls.append((sql, args))
        return _row(self.rows[0]) if self.rows else None

    async def fetch(self, sql, *args):
        self.calls.append((sql, args))
        return [_row(p) for p in self.rows]


class FakePool:
    def __init__(self, rows):
        self.conn = FakeConn(rows)

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


def test_row_round_trip():
    p = make_partner(use_for_tags=["Gifting", "VIP/HNW"], stripe_aliases=["SOHO"], signed_at=NOW)
    row = _row(p)
    assert json.loads(row["use_for_tags"]) == ["Gifting", "VIP/HNW"]
    assert row["signed_at"] == NOW
    assert row_to_partner(row) == p


def test_args_follow_column_order():
    p = make_partner("abc")
    args = partner_to_args(p)
    assert len(args) == len(ALL_COLUMNS)
    assert args[0] == "abc"
    assert "WHERE id = $1" in REPLACE_PARTNER_SQL


def test_get_and_list():
    p = make_partner("abc")
    repo = PgPartnerRepository(FakePool([p]))
    assert asyncio.run(repo.get("abc")) == p
    assert asyncio.run(repo.list_all()) == [p]


def test_get_missing_returns_none():
    repo = PgPartnerRepository(FakePool([]))
    assert asyncio.run(repo.get("nope")) is None
    assert asyncio.run(repo.replace(make_partner("nope"))) is None
