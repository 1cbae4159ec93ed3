"""Periodic task framework — contract, registry, driver and built-in tasks."""

from taskloop.tasks import temp_cleanup
from taskloop.tasks.base import BaseTask, TaskFactory, TaskPhase
from taskloop.tasks.driver import TaskDriver
from taskloop.tasks.registry import TaskRegistry


def register_builtin_tasks(registry: TaskRegistry) -> TaskRegistry:
    """Registration pass for the tasks shipped with taskloop.

    Call from the entry point before the driver starts.
    """
    temp_cleanup.register(registry)
    return registry


__all__ = [
    "BaseTask",
    "TaskDriver",
    "TaskFactory",
    "TaskPhase",
    "TaskRegistry",
    "register_builtin_tasks",
]
