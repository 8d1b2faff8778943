from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from activations.application.activation_service import ActivationService
from activations.domain.errors import PersistenceError

logger = logging.getLogger("activations.infrastructure.sweeper")


class ActivationSweeper:
    """
    Periodically purges expired, incomplete activations of every kind.

    A failed sweep is logged and retried on the next tick; the loop only
    stops when its task is cancelled.
    """

    def __init__(
        self,
        *,
        services: Sequence[ActivationService],
        interval: float = 300.0,
    ) -> None:
        self.services = list(services)
        self.interval = interval

    async def run_forever(self) -> None:
        logger.info(
            "activation sweeper started",
            extra={
                "interval": self.interval,
                "kinds": [s.kind.value for s in self.services],
            },
        )
        while True:
            await self.sweep_once()
            await asyncio.sleep(self.interval)

    async def sweep_once(self) -> int:
        """
        Single iteration over all kinds.
        Returns how many kinds had at least one record removed.
        """
        swept = 0
        for service in self.services:
            try:
                if await service.remove_expired():
                    swept += 1
            except PersistenceError as e:
                logger.warning(
                    "sweep failed; retrying next tick",
                    extra={"kind": service.kind.value, "error": str(e)},
                )
        return swept
