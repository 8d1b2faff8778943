from __future__ import annotations

import asyncio
import signal
from contextlib import suppress
import logging

from activations.logging import setup_logging
from activations.settings import get_settings
from activations.domain.entities import ActivationKind
from activations.infrastructure.sweeper.sweeper import ActivationSweeper
from activations.infrastructure.backend import (
    build_activation_service,
    close_backend,
    open_backend,
)

logger = logging.getLogger(__name__)


async def _run() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, settings.app_env)

    await open_backend(settings)
    logger.info("sweeper: backend opened", extra={"backend": settings.store_backend})

    # the worker is the scheduled trigger; no issue-time lottery here
    sweeper = ActivationSweeper(
        services=[
            build_activation_service(kind, settings, with_lottery=False)
            for kind in ActivationKind
        ],
        interval=settings.sweep_interval_seconds,
    )

    stop = asyncio.Event()

    def _on_signal(*_: object) -> None:
        logger.info("sweeper: stop signal received")
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, _on_signal)

    sweeper_task = asyncio.create_task(sweeper.run_forever())
    logger.info("sweeper: started run_forever loop")

    await stop.wait()

    sweeper_task.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper_task

    await close_backend(settings)
    logger.info("sweeper: stopped cleanly")


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
