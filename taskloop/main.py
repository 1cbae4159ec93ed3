"""taskloop entry point."""

import asyncio
import contextlib
import logging
import signal

from taskloop.config import settings
from taskloop.tasks import TaskDriver, TaskRegistry, register_builtin_tasks

logger = logging.getLogger(__name__)

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
    )


async def serve(registry: TaskRegistry | None = None) -> None:
    """Run every registered task until SIGINT/SIGTERM."""
    if registry is None:
        registry = register_builtin_tasks(TaskRegistry())
    driver = TaskDriver(registry)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    installed = []
    for sig in _STOP_SIGNALS:
        # Not available on Windows event loops
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)

    try:
        driver.start()
        logger.info("taskloop running with %d task(s)", len(driver.tasks))
        await stop_event.wait()
        logger.info("Shutdown requested")
    finally:
        await driver.stop()
        for sig in installed:
            loop.remove_signal_handler(sig)


def main() -> None:
    """Configure logging and serve until interrupted."""
    setup_logging()
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve())


if __name__ == "__main__":
    main()
