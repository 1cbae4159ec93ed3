"""Exceptions raised by tasks, the registry and the driver."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class TaskError(Exception):
    """Base class for task failures. ``path`` is the resource involved, if any."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class TaskConstructionError(TaskError):
    """A task factory raised while building its task."""


class DirectoryMissingError(TaskError):
    """The target directory does not exist."""


class WipeError(TaskError):
    """Removing or recreating the directory on the first run failed."""


class TraversalError(TaskError):
    """The directory walk could not proceed at all."""


class RegistryFrozenError(TaskError):
    """A factory was registered after the driver started."""
