"""
Partner storage.

The core only needs PartnerRepository (get / list_all / replace-by-id).
PgPartnerRepository is the asyncpg implementation over partnerships.partners;
sets and legacy values are stored as JSONB.
"""
from __future__ import annotations

import json
from typing import Any, Optional, Protocol

import asyncpg

from partnerships.engine.partners import (
    BOOL_FIELDS,
    ENUM_FIELDS,
    TEXT_FIELDS,
    Partner,
    partner_to_dict,
    validate_partner,
)


class PartnerRepository(Protocol):
    async def get(self, partner_id: str) -> Optional[Partner]: ...

    async def list_all(self) -> list[Partner]: ...

    async def replace(self, partner: Partner) -> Optional[Partner]:
        """Replace the stored record with the same id; None if it does not exist."""
        ...


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

SCALAR_COLUMNS: list[str] = [*TEXT_FIELDS, *ENUM_FIELDS, *BOOL_FIELDS]
JSON_COLUMNS: list[str] = ["use_for_tags", "stripe_aliases", "legacy_values"]
TIME_COLUMNS: list[str] = ["created", "updated", "lead_date", "signed_at"]
ALL_COLUMNS: list[str] = ["id", *SCALAR_COLUMNS, *JSON_COLUMNS, *TIME_COLUMNS]

_COLUMN_LIST = ", ".join(ALL_COLUMNS)


def _placeholder(idx: int, column: str) -> str:
    if column in JSON_COLUMNS:
        return f"${idx}::jsonb"
    if column in TIME_COLUMNS:
        return f"${idx}::timestamptz"
    return f"${idx}"


_PLACEHOLDERS = ", ".join(_placeholder(i + 1, c) for i, c in enumerate(ALL_COLUMNS))

LOAD_PARTNER_SQL = f"""
SELECT {_COLUMN_LIST}
FROM partnerships.partners
WHERE id = $1
LIMIT 1;
"""

LIST_PARTNERS_SQL = f"""
SELECT {_COLUMN_LIST}
FROM partnerships.partners
ORDER BY created DESC;
"""

REPLACE_PARTNER_SQL = f"""
UPDATE partnerships.partners
SET ({", ".join(ALL_COLUMNS[1:])}) = ({", ".join(_placeholder(i + 2, c) for i, c in enumerate(ALL_COLUMNS[1:]))})
WHERE id = $1
RETURNING {_COLUMN_LIST};
"""

UPSERT_PARTNER_SQL = f"""
INSERT INTO partnerships.partners ({_COLUMN_LIST})
VALUES ({_PLACEHOLDERS})
ON CONFLICT (id) DO UPDATE SET
    ({", ".join(ALL_COLUMNS[1:])}) = ({", ".join(f"EXCLUDED.{c}" for c in ALL_COLUMNS[1:])})
RETURNING {_COLUMN_LIST};
"""


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def _as_json(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def row_to_partner(row: Any) -> Partner:
    data = {key: row[key] for key in ALL_COLUMNS}
    for key in JSON_COLUMNS:
        data[key] = _as_json(data[key])
    return validate_partner(data)


def partner_to_args(partner: Partner) -> list[Any]:
    data = partner_to_dict(partner)
    args: list[Any] = []
    for column in ALL_COLUMNS:
        if column in JSON_COLUMNS:
            args.append(json.dumps(data[column], default=str))
        elif column in TIME_COLUMNS:
            args.append(getattr(partner, column))
        else:
            args.append(data[column])
    return args


# ---------------------------------------------------------------------------
# asyncpg implementation
# ---------------------------------------------------------------------------


class PgPartnerRepository:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get(self, partner_id: str) -> Optional[Partner]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(LOAD_PARTNER_SQL, partner_id)
        if not row:
            return None
        return row_to_partner(row)

    async def list_all(self) -> list[Partner]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(LIST_PARTNERS_SQL)
        return [row_to_partner(r) for r in rows]

    async def replace(self, partner: Partner) -> Optional[Partner]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(REPLACE_PARTNER_SQL, *partner_to_args(partner))
        if not row:
            return None
        return row_to_partner(row)

    async def upsert(self, partner: Partner) -> Partner:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(UPSERT_PARTNER_SQL, *partner_to_args(partner))
        return row_to_partner(row)
