from __future__ import annotations

from typing import Optional

from psycopg_pool import AsyncConnectionPool

from activations.settings import Settings, get_settings

_pool: Optional[AsyncConnectionPool] = None


def _add_connect_timeout(dsn: str, seconds: int = 3) -> str:
    if "connect_timeout=" in dsn:
        return dsn
    sep = "&" if "?" in dsn else "?"
    return f"{dsn}{sep}connect_timeout={seconds}"


def _connection_kwargs(settings: Settings) -> dict:
    return {"options": f"-c statement_timeout={settings.db_statement_timeout_ms}"}


def get_pool() -> AsyncConnectionPool:
    """
    Lazily build the process-wide pool, closed. Connections get the
    configured connect and statement deadlines.
    """
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = AsyncConnectionPool(
            _add_connect_timeout(
                settings.database_url, settings.db_connect_timeout_seconds
            ),
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            timeout=settings.db_connect_timeout_seconds,
            kwargs=_connection_kwargs(settings),
            open=False,
        )
    return _pool


async def open_pool() -> AsyncConnectionPool:
    pool = get_pool()
    if pool.closed:
        await pool.open()
    return pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
