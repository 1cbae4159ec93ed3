"""TaskDriver — builds registered tasks and runs them on their own cadence."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from taskloop.tasks.base import TaskPhase, event_fields
from taskloop.tasks.errors import TaskConstructionError
from taskloop.tasks.registry import factory_name

if TYPE_CHECKING:
    from taskloop.tasks.base import BaseTask, TaskFactory
    from taskloop.tasks.registry import TaskRegistry

logger = logging.getLogger(__name__)


class TaskDriver:
    """Turns registered task factories into fault-isolated invocations.

    Each task gets its own asyncio task: an optional startup run, then a
    periodic loop if ``loop_interval`` is positive. Invocations of one task
    are awaited in sequence and never overlap; different tasks run
    concurrently. A failing ``run()`` is logged and the loop moves on to the
    next tick.

    Args:
        registry: Registry to consume. Frozen when the driver starts.
        log: Logger receiving task events (defaults to this module's logger).
    """

    def __init__(self, registry: TaskRegistry, log: logging.Logger | None = None) -> None:
        self._registry = registry
        self._log = log or logger
        self._tasks: list[BaseTask] = []
        self._units: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not unit.done() for unit in self._units)

    @property
    def tasks(self) -> list[BaseTask]:
        """Task instances built at startup, in registration order."""
        return list(self._tasks)

    # -- Lifecycle -------------------------------------------------------------

    def build_tasks(self) -> list[BaseTask]:
        """Freeze the registry and construct one instance per factory.

        Factories that raise are logged and skipped; the rest still run.
        """
        self._registry.freeze()
        tasks: list[BaseTask] = []
        for factory in self._registry.all():
            try:
                tasks.append(_construct(factory))
            except TaskConstructionError as err:
                self._log.error(
                    "Task construction failed, skipping: %s",
                    err,
                    exc_info=err,
                    extra={"factory": factory_name(factory), "outcome": "failed"},
                )
        return tasks

    def start(self) -> list[asyncio.Task]:
        """Build tasks and spawn their loops. Must be called inside a running loop."""
        if self._units:
            msg = "TaskDriver already started"
            raise RuntimeError(msg)
        self._tasks = self.build_tasks()
        self._units = [
            asyncio.create_task(self._drive(task), name=f"taskloop:{task.name}")
            for task in self._tasks
        ]
        self._log.info(
            "Task driver started with %d task(s) (%d registered)",
            len(self._tasks),
            len(self._registry),
        )
        return list(self._units)

    async def run(self) -> None:
        """Start all tasks and wait until they finish or this coroutine is cancelled."""
        units = self.start()
        try:
            await asyncio.gather(*units)
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Cancel every task loop and wait for them to unwind."""
        units, self._units = self._units, []
        if not units:
            return
        for unit in units:
            unit.cancel()
        await asyncio.gather(*units, return_exceptions=True)
        self._log.info("Task driver stopped")

    # -- Internal --------------------------------------------------------------

    async def _drive(self, task: BaseTask) -> None:
        """Startup run (if declared), then the periodic loop (if declared)."""
        if not task.startup_run and not task.is_periodic:
            self._log.info("Task %s has no startup run and no interval; idle", task.name)
            return

        if task.startup_run:
            await self._invoke(task, TaskPhase.STARTUP_RUN)

        if not task.is_periodic:
            return

        loop = asyncio.get_running_loop()
        interval = task.loop_interval.total_seconds()
        next_tick = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            await self._invoke(task, TaskPhase.LOOP_RUN)
            next_tick += interval
            # Overran the interval: tick again right away and resync from here.
            next_tick = max(next_tick, loop.time())

    async def _invoke(self, task: BaseTask, phase: TaskPhase) -> None:
        """Run the task once and log the outcome. Only cancellation escapes."""
        try:
            await task.run()
        except Exception as exc:
            self._log.error(
                "task log task=%s phase=%s outcome=failed error=%s",
                task.name,
                phase,
                exc,
                exc_info=exc,
                extra=event_fields(task.name, phase, "failed", error=str(exc)),
            )
            return
        self._log.info(
            "task log task=%s phase=%s outcome=success",
            task.name,
            phase,
            extra=event_fields(task.name, phase, "success"),
        )


def _construct(factory: TaskFactory) -> BaseTask:
    """Call a factory, wrapping any failure in ``TaskConstructionError``."""
    try:
        return factory()
    except Exception as exc:
        msg = f"Task factory {factory_name(factory)} failed: {exc}"
        raise TaskConstructionError(msg) from exc
