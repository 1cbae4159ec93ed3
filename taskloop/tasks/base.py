"""Base types for periodic tasks."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import timedelta
from enum import StrEnum
from typing import Any

NO_LOOP = timedelta(0)


class TaskPhase(StrEnum):
    """Which kind of invocation a log event belongs to."""

    STARTUP_RUN = "startupRun"
    LOOP_RUN = "loopRun"
    RUN = "run"


def event_fields(task: str, phase: TaskPhase, outcome: str, **fields: Any) -> dict[str, Any]:
    """Structured fields for a task log event, passed to the logger as ``extra``.

    Keys avoid ``LogRecord`` attribute names (``msg``, ``name``...), which
    ``logging`` refuses to overwrite.
    """
    return {"task": task, "phase": str(phase), "outcome": outcome, **fields}


class BaseTask(ABC):
    """Abstract base for schedulable units of background work.

    The driver owns one long-lived instance per registered task, so any
    state kept on ``self`` survives between invocations.

    Example::

        class HeartbeatTask(BaseTask):
            name = "Heartbeat"
            loop_interval = timedelta(minutes=5)
            startup_run = False

            async def run(self) -> None:
                ...

    ``loop_interval`` of zero disables periodic execution. Ticks are spaced
    start-to-start.
    """

    name: str = ""
    loop_interval: timedelta = NO_LOOP
    startup_run: bool = False

    @abstractmethod
    async def run(self) -> None:
        """Do one unit of work.

        Raise to report failure. ``asyncio.CancelledError`` must be allowed
        to propagate.
        """

    @property
    def is_periodic(self) -> bool:
        return self.loop_interval > NO_LOOP


TaskFactory = Callable[[], BaseTask]
