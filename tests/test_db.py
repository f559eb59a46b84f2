import asyncio
from dataclasses import replace

import pytest

from partnerships import db

DSN = "postgresql://localhost/partners"


class FakePool:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


@pytest.fixture()
def created(monkeypatch):
    pools = []

    async def fake_create_pool(**kwargs):
        await asyncio.sleep(0)
        pool = FakePool()
        pools.append((pool, kwargs))
        return pool

    monkeypatch.setattr(db.asyncpg, "create_pool", fake_create_pool)
    monkeypatch.setattr(db, "settings", replace(db.settings, database_url=DSN))
    monkeypatch.setattr(db, "_pool", None)
    monkeypatch.setattr(db, "_pool_lock", asyncio.Lock())
    return pools


def test_concurrent_first_requests_share_one_pool(created):
    async def scenario():
        return await asyncio.gather(*(db.get_pool() for _ in range(5)))

    pools = asyncio.run(scenario())

    assert len(created) == 1
    assert all(p is created[0][0] for p in pools)
    assert created[0][1]["dsn"] == DSN
    assert db.pool_ready()


def test_close_resets_pool(created):
    pool = asyncio.run(db.init_db_pool())
    asyncio.run(db.close_db_pool())
    assert pool.closed
    assert not db.pool_ready()


def test_missing_dsn_is_an_error(created, monkeypatch):
    monkeypatch.setattr(db, "settings", replace(db.settings, database_url=""))
    with pytest.raises(RuntimeError):
        asyncio.run(db.init_db_pool())
    assert created == []
