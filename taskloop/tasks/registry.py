"""Task registry — ordered catalog of task factories."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from taskloop.tasks.errors import RegistryFrozenError

if TYPE_CHECKING:
    from taskloop.tasks.base import TaskFactory

logger = logging.getLogger(__name__)


def factory_name(factory: TaskFactory) -> str:
    """Best-effort readable identity of a factory, for logs."""
    return getattr(factory, "__qualname__", None) or repr(factory)


class TaskRegistry:
    """Append-only list of task factories, read once by the driver.

    Usage::

        registry = TaskRegistry()

        @registry.register
        class HeartbeatTask(BaseTask):
            ...

        registry.register(lambda: CleanupTask("/tmp/app"))

    The driver freezes the registry when it starts; registering afterwards
    raises ``RegistryFrozenError``.
    """

    def __init__(self) -> None:
        self._factories: list[TaskFactory] = []
        self._frozen = False

    def register(self, factory: TaskFactory) -> TaskFactory:
        """Append a factory. Returns it unchanged so this works as a decorator."""
        if self._frozen:
            msg = f"Cannot register {factory_name(factory)}: registry is frozen"
            raise RegistryFrozenError(msg)
        self._factories.append(factory)
        logger.debug("Registered task factory: %s", factory_name(factory))
        return factory

    def all(self) -> list[TaskFactory]:
        """All registered factories, in registration order."""
        return list(self._factories)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._factories)
