"""
Legacy partners migration. Run locally with an admin DATABASE_URL.

Usage:
  python scripts/migrate_legacy_partners.py [--source public.partners] [--dry-run]

Creates partnerships.partners and partnerships.big_purchases if needed, then
copies every row of the v1 source table into partnerships.partners in the
canonical shape (contact_number -> contact_phone, v1 lifestyle categories
remapped, rewritten values kept in legacy_values).
Rows that fail validation are reported and skipped.
"""
import argparse
import asyncio
import os
import re
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parents[1] / ".env")

import asyncpg

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    print("ERROR: DATABASE_URL not set")
    sys.exit(1)

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
from partnerships.engine.legacy import normalize_partner
from partnerships.engine.partners import InvalidFieldError
from partnerships.services.repository import PgPartnerRepository

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS partnerships.partners (
    id                 TEXT PRIMARY KEY,
    partner_name       TEXT NOT NULL DEFAULT '',
    description        TEXT NOT NULL DEFAULT '',
    contact_name       TEXT NOT NULL DEFAULT '',
    contact_position   TEXT NOT NULL DEFAULT '',
    contact_phone      TEXT NOT NULL DEFAULT '',
    contact_email      TEXT NOT NULL DEFAULT '',
    price_category     TEXT NOT NULL DEFAULT '£',
    partnership_link   TEXT NOT NULL DEFAULT '',
    website            TEXT NOT NULL DEFAULT '',
    login_notes        TEXT NOT NULL DEFAULT '',
    partner_brief      TEXT NOT NULL DEFAULT '',
    when_not_to_use    TEXT NOT NULL DEFAULT '',
    sla_notes          TEXT NOT NULL DEFAULT '',
    commission         TEXT NOT NULL DEFAULT '',
    status             TEXT NOT NULL DEFAULT 'potential',
    opportunity_type   TEXT NOT NULL DEFAULT 'Everyday',
    partnership_type   TEXT NOT NULL DEFAULT 'Direct',
    partner_tier       TEXT NOT NULL DEFAULT 'Standard',
    lifecycle_stage    TEXT NOT NULL DEFAULT 'New',
    lifestyle_category TEXT NOT NULL DEFAULT 'Misc',
    is_default         BOOLEAN NOT NULL DEFAULT false,
    contacted          BOOLEAN NOT NULL DEFAULT false,
    call_booked        BOOLEAN NOT NULL DEFAULT false,
    call_had           BOOLEAN NOT NULL DEFAULT false,
    contract_sent      BOOLEAN NOT NULL DEFAULT false,
    contract_signed    BOOLEAN NOT NULL DEFAULT false,
    use_for_tags       JSONB NOT NULL DEFAULT '[]'::jsonb,
    stripe_aliases     JSONB NOT NULL DEFAULT '[]'::jsonb,
    legacy_values      JSONB NOT NULL DEFAULT '{}'::jsonb,
    created            TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated            TIMESTAMPTZ NOT NULL DEFAULT now(),
    lead_date          TIMESTAMPTZ,
    signed_at          TIMESTAMPTZ
)
"""

CREATE_BIG_PURCHASES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS partnerships.big_purchases (
    id               TEXT PRIMARY KEY,
    created          TIMESTAMPTZ NOT NULL DEFAULT now(),
    status           TEXT NOT NULL DEFAULT 'flagged',
    partner_name     TEXT NOT NULL DEFAULT '',
    poc              TEXT NOT NULL DEFAULT '',
    estimated_amount NUMERIC(12, 2) NOT NULL DEFAULT 0,
    purchase_date    DATE,
    category         TEXT NOT NULL DEFAULT ''
)
"""

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


async def migrate(source: str, dry_run: bool):
    if not _TABLE_NAME.match(source):
        print(f"ERROR: invalid source table name: {source}")
        sys.exit(1)

    pool = await asyncpg.create_pool(DATABASE_URL, min_size=1, max_size=2)
    try:
        async with pool.acquire() as conn:
            if not dry_run:
                await conn.execute("CREATE SCHEMA IF NOT EXISTS partnerships")
                await conn.execute(CREATE_TABLE_SQL)
                print("OK partnerships.partners")
                await conn.execute(CREATE_BIG_PURCHASES_TABLE_SQL)
                print("OK partnerships.big_purchases")
            rows = await conn.fetch(f"SELECT * FROM {source}")

        print(f"Found {len(rows)} rows in {source}")
        repo = PgPartnerRepository(pool)
        migrated = 0
        skipped = 0

        for row in rows:
            data = dict(row)
            if data.get("id") is not None:
                data["id"] = str(data["id"])
            try:
                partner = normalize_partner(data)
            except InvalidFieldError as e:
                skipped += 1
                print(f"SKIP {data.get('id')}: {e}")
                continue

            if not dry_run:
                await repo.upsert(partner)
            migrated += 1
            if partner.legacy_values:
                print(f"OK {partner.id} (kept legacy values: {', '.join(sorted(partner.legacy_values))})")

        verb = "Would migrate" if dry_run else "Migrated"
        print(f"\n{verb} {migrated} partners, skipped {skipped}.")

    finally:
        await pool.close()


def main():
    parser = argparse.ArgumentParser(description="Copy v1 partner rows into partnerships.partners")
    parser.add_argument("--source", default="public.partners", help="Legacy table (schema.table)")
    parser.add_argument("--dry-run", action="store_true", help="Validate only, write nothing")
    args = parser.parse_args()
    asyncio.run(migrate(args.source, args.dry_run))


if __name__ == "__main__":
    main()
