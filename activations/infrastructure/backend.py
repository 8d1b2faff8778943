"""Selects and manages the configured activation store backend."""

from __future__ import annotations

from activations.application.activation_service import ActivationService
from activations.domain.clock import Clock
from activations.domain.entities import ActivationKind
from activations.domain.ports.activation_store import ActivationStorePort
from activations.infrastructure.db.activation_store import PgActivationStore
from activations.infrastructure.db.pool import close_pool, get_pool, open_pool
from activations.infrastructure.redis_cache.activation_store import (
    RedisActivationStore,
)
from activations.infrastructure.redis_cache.pool import close_redis, get_redis
from activations.settings import Settings


def build_store(kind: ActivationKind, settings: Settings) -> ActivationStorePort:
    if settings.store_backend == "redis":
        return RedisActivationStore(
            get_redis(), kind, key_prefix=settings.redis_key_prefix
        )
    return PgActivationStore(get_pool(), kind)


def build_activation_service(
    kind: ActivationKind,
    settings: Settings,
    *,
    clock: Clock | None = None,
    with_lottery: bool = True,
) -> ActivationService:
    return ActivationService(
        build_store(kind, settings),
        expiry_seconds=settings.expiry_for(kind),
        clock=clock,
        sweep_lottery=settings.sweep_lottery if with_lottery else None,
    )


async def open_backend(settings: Settings) -> None:
    if settings.store_backend == "redis":
        await get_redis().ping()
        return
    await open_pool()


async def close_backend(settings: Settings) -> None:
    if settings.store_backend == "redis":
        await close_redis()
    else:
        await close_pool()
