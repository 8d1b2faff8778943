from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Optional

from activations.domain.clock import Clock, SystemClock
from activations.domain.entities import Activation, ActivationKind, RemovalResult
from activations.domain.errors import PersistenceError
from activations.domain.ports.activation_store import ActivationStorePort
from activations.domain.services import validity_cutoff

logger = logging.getLogger(__name__)


class ActivationService:
    """
    Issues, validates, completes and retires activation codes of one kind.

    The only state held across calls is configuration (expiry window and
    sweep lottery). "Wrong code", "expired" and "already used" all come back
    as False so callers cannot tell them apart; store faults propagate.
    """

    def __init__(
        self,
        store: ActivationStorePort,
        *,
        expiry_seconds: int,
        clock: Clock | None = None,
        sweep_lottery: tuple[int, int] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._expiry_seconds = 0
        self.configure_expiry(expiry_seconds)
        if sweep_lottery is not None:
            chance, out_of = sweep_lottery
            if out_of <= 0 or not 0 <= chance <= out_of:
                raise ValueError(f"invalid sweep lottery: {sweep_lottery!r}")
        self._sweep_lottery = sweep_lottery
        self._rng = rng or random.Random()

    @property
    def expiry_seconds(self) -> int:
        return self._expiry_seconds

    @property
    def kind(self) -> ActivationKind:
        return self._store.kind

    def configure_expiry(self, seconds: int) -> None:
        if seconds < 0:
            raise ValueError("expiry window cannot be negative")
        self._expiry_seconds = int(seconds)

    def _not_before(self) -> datetime:
        return validity_cutoff(self._clock.now(), self._expiry_seconds)

    async def issue(self, owner: str) -> str:
        activation = await self._store.create(owner, created_at=self._clock.now())
        logger.info(
            "activation issued",
            extra={
                "kind": self.kind.value,
                "owner": owner,
                "activation_id": activation.id,
            },
        )
        if self._hits_lottery():
            # the record is already stored; a failed sweep must not hide its code
            try:
                await self.remove_expired()
            except PersistenceError as e:
                logger.warning(
                    "issue-time sweep failed",
                    extra={"kind": self.kind.value, "error": str(e)},
                )
        return activation.code

    async def _find_valid(
        self, owner: str, code: Optional[str], now: datetime
    ) -> Optional[Activation]:
        activation = await self._store.find_valid(
            owner, code, not_before=validity_cutoff(now, self._expiry_seconds)
        )
        # the cutoff narrows the query; the entity rule has the final say
        if activation is None or not activation.is_valid(now, self._expiry_seconds):
            return None
        return activation

    async def exists(self, owner: str, code: Optional[str] = None) -> bool:
        return await self._find_valid(owner, code, self._clock.now()) is not None

    async def complete(self, owner: str, code: str) -> bool:
        now = self._clock.now()
        activation = await self._find_valid(owner, code, now)
        if activation is None:
            logger.info(
                "activation not completed",
                extra={"kind": self.kind.value, "owner": owner},
            )
            return False

        activation.complete(now)
        # compare-and-swap: loses if a concurrent caller (or sweep) got there first
        won = await self._store.save(activation)
        logger.info(
            "activation completed" if won else "activation completion lost race",
            extra={
                "kind": self.kind.value,
                "owner": owner,
                "activation_id": activation.id,
            },
        )
        return won

    async def completed(self, owner: str) -> bool:
        return await self._store.find_completed(owner) is not None

    async def remove(self, owner: str) -> RemovalResult:
        # a lost delete means that record is gone; look again
        while (activation := await self._store.find_completed(owner)) is not None:
            if await self._store.delete(activation):
                logger.info(
                    "activation removed",
                    extra={
                        "kind": self.kind.value,
                        "owner": owner,
                        "activation_id": activation.id,
                    },
                )
                return RemovalResult.REMOVED

        if await self._store.has_any(owner):
            return RemovalResult.NEVER_ACTIVATED
        return RemovalResult.NOTHING_TO_REMOVE

    async def remove_expired(self) -> bool:
        removed = await self._store.delete_expired(self._not_before())
        logger.info(
            "expired activations swept",
            extra={"kind": self.kind.value, "removed": removed},
        )
        return removed > 0

    def _hits_lottery(self) -> bool:
        if self._sweep_lottery is None:
            return False
        chance, out_of = self._sweep_lottery
        return self._rng.randint(1, out_of) <= chance
