# tests/integration/conftest.py
import os
from pathlib import Path

import pytest
import pytest_asyncio
from psycopg_pool import AsyncConnectionPool
from redis.asyncio import Redis

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


@pytest_asyncio.fixture
async def pg_pool():
    database_url = os.getenv("TEST_DATABASE_URL")
    if not database_url:
        pytest.skip("TEST_DATABASE_URL environment variable is not set")

    pool = AsyncConnectionPool(database_url, min_size=1, max_size=10, open=False)
    await pool.open()
    async with pool.connection() as conn:
        for migration in sorted(MIGRATIONS_DIR.glob("*.sql")):
            await conn.execute(migration.read_text(encoding="utf-8"))
        await conn.execute("TRUNCATE TABLE activations RESTART IDENTITY")
    try:
        yield pool
    finally:
        async with pool.connection() as conn:
            await conn.execute("TRUNCATE TABLE activations RESTART IDENTITY")
        await pool.close()


@pytest_asyncio.fixture
async def redis_client():
    redis_url = os.getenv("TEST_REDIS_URL")
    if not redis_url:
        pytest.skip("TEST_REDIS_URL environment variable is not set")

    r = Redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
    try:
        yield r
    finally:
        await r.aclose()
