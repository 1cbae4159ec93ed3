"""TempFileCleanupTask — garbage collection for the temp directory.

The first successful run wipes the directory and recreates it empty. Every
later run sweeps the tree and deletes files that have not been modified for
longer than the grace window. The grace window is larger than the loop
interval, so a file always survives at least one full tick before it can be
removed.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

from taskloop.config import settings, temp_dir_or_default
from taskloop.tasks.base import BaseTask, TaskPhase, event_fields
from taskloop.tasks.errors import DirectoryMissingError, TraversalError, WipeError

if TYPE_CHECKING:
    from collections.abc import Callable

    from taskloop.tasks.registry import TaskRegistry

logger = logging.getLogger(__name__)

LOOP_INTERVAL = timedelta(hours=1)
GRACE_WINDOW = timedelta(hours=2)
DIR_MODE = 0o754

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _to_ns(moment: datetime) -> int:
    """Exact nanoseconds since the epoch for an aware datetime."""
    return (moment - _EPOCH) // timedelta(microseconds=1) * 1000


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one sweep: files removed and files that could not be removed."""

    deleted_count: int = 0
    error_count: int = 0


class TempFileCleanupTask(BaseTask):
    """Wipes the temp directory once, then evicts stale files every hour.

    Args:
        temp_path: Directory to manage. Empty means ``storage/temp``.
        clock: Returns the current aware datetime (for tests).
        create_missing: On the first run, create a missing directory instead
            of failing with ``DirectoryMissingError``.
        log: Logger receiving task events.
    """

    name = "FileSessionTempClean"
    loop_interval = LOOP_INTERVAL
    startup_run = True

    def __init__(
        self,
        temp_path: str | Path = "",
        *,
        clock: Callable[[], datetime] | None = None,
        create_missing: bool = False,
        log: logging.Logger | None = None,
    ) -> None:
        self._dir = temp_dir_or_default(str(temp_path))
        self._clock = clock or _utcnow
        self._create_missing = create_missing
        self._log = log or logger
        self.first_run = True

    @property
    def directory(self) -> Path:
        return self._dir

    async def run(self) -> None:
        if self.first_run:
            self.wipe()
            return
        await self.sweep()

    # -- First run -------------------------------------------------------------

    def wipe(self) -> None:
        """Delete the directory tree and recreate it empty.

        ``first_run`` is only cleared once both steps succeed, so a failure
        is retried on the next invocation.
        """
        if self._dir.exists():
            self._remove_tree()
        elif not self._create_missing:
            self._fail_missing()

        self._recreate()
        self.first_run = False
        self._log.info(
            "task log task=%s phase=%s path=%s outcome=success",
            self.name,
            TaskPhase.STARTUP_RUN,
            self._dir,
            extra=event_fields(self.name, TaskPhase.STARTUP_RUN, "success", path=str(self._dir)),
        )

    def _remove_tree(self) -> None:
        try:
            if self._dir.is_dir() and not self._dir.is_symlink():
                shutil.rmtree(self._dir)
            else:
                self._dir.unlink()
        except OSError as exc:
            self._log_wipe_failure(exc)
            msg = f"Failed to remove temp directory {self._dir}: {exc}"
            raise WipeError(msg, path=self._dir) from exc

    def _recreate(self) -> None:
        try:
            self._dir.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            # mkdir's mode is filtered by the umask
            os.chmod(self._dir, DIR_MODE)
        except OSError as exc:
            self._log_wipe_failure(exc)
            msg = f"Failed to create temp directory {self._dir}: {exc}"
            raise WipeError(msg, path=self._dir) from exc

    def _log_wipe_failure(self, exc: OSError) -> None:
        self._log.error(
            "task log task=%s phase=%s path=%s outcome=failed error=%s",
            self.name,
            TaskPhase.STARTUP_RUN,
            self._dir,
            exc,
            extra=event_fields(
                self.name, TaskPhase.STARTUP_RUN, "failed", path=str(self._dir), error=str(exc)
            ),
        )

    # -- Steady state ----------------------------------------------------------

    async def sweep(self) -> SweepResult:
        """Delete files last modified strictly before ``now - GRACE_WINDOW``.

        Directories are only descended into, never removed, and symlinks are
        not followed. Per-entry errors are logged and skipped; removal
        failures are also counted. Yields to the event loop between entries
        so a cancel stops the walk early.

        Raises ``TraversalError`` if the root cannot be listed or disappears
        during the walk.
        """
        if not self._dir.exists():
            self._fail_missing()

        threshold = self._clock() - GRACE_WINDOW
        cutoff_ns = _to_ns(threshold)
        deleted_count = 0
        error_count = 0

        pending = [self._dir]
        while pending:
            current = pending.pop()
            try:
                with os.scandir(current) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as exc:
                if current == self._dir or not self._dir.is_dir():
                    self._fail_traversal(exc)
                self._warn(current, "error accessing path", exc)
                continue

            for entry in entries:
                await asyncio.sleep(0)
                try:
                    if entry.is_dir(follow_symlinks=False):
                        pending.append(Path(entry.path))
                        continue
                    mtime_ns = entry.stat(follow_symlinks=False).st_mtime_ns
                except OSError as exc:
                    if isinstance(exc, FileNotFoundError) and not self._dir.is_dir():
                        self._fail_traversal(exc)
                    self._warn(entry.path, "error accessing path", exc)
                    continue

                if mtime_ns >= cutoff_ns:
                    continue
                try:
                    os.unlink(entry.path)
                except OSError as exc:
                    if isinstance(exc, FileNotFoundError) and not self._dir.is_dir():
                        self._fail_traversal(exc)
                    self._warn(entry.path, "failed to remove old file", exc)
                    error_count += 1
                else:
                    deleted_count += 1

        self._log.info(
            "task log task=%s phase=%s path=%s outcome=success deleted=%d errors=%d",
            self.name,
            TaskPhase.LOOP_RUN,
            self._dir,
            deleted_count,
            error_count,
            extra=event_fields(
                self.name,
                TaskPhase.LOOP_RUN,
                "success",
                path=str(self._dir),
                deleted_count=deleted_count,
                error_count=error_count,
            ),
        )
        return SweepResult(deleted_count=deleted_count, error_count=error_count)

    # -- Helpers ---------------------------------------------------------------

    def _fail_missing(self) -> NoReturn:
        reason = "temp directory does not exist"
        self._log.error(
            "task log task=%s phase=%s path=%s outcome=failed reason=%s",
            self.name,
            TaskPhase.RUN,
            self._dir,
            reason,
            extra=event_fields(self.name, TaskPhase.RUN, "failed", path=str(self._dir), reason=reason),
        )
        msg = f"Temp directory does not exist: {self._dir}"
        raise DirectoryMissingError(msg, path=self._dir)

    def _fail_traversal(self, exc: OSError) -> NoReturn:
        self._log.error(
            "task log task=%s phase=%s path=%s outcome=failed error=%s",
            self.name,
            TaskPhase.LOOP_RUN,
            self._dir,
            exc,
            extra=event_fields(
                self.name, TaskPhase.LOOP_RUN, "failed", path=str(self._dir), error=str(exc)
            ),
        )
        msg = f"Cannot walk temp directory {self._dir}: {exc}"
        raise TraversalError(msg, path=self._dir) from exc

    def _warn(self, path: str | Path, reason: str, exc: OSError) -> None:
        self._log.warning(
            "task log task=%s phase=%s path=%s reason=%s error=%s",
            self.name,
            TaskPhase.LOOP_RUN,
            path,
            reason,
            exc,
            extra=event_fields(
                self.name, TaskPhase.LOOP_RUN, "failed", path=str(path), reason=reason, error=str(exc)
            ),
        )


def _from_settings() -> TempFileCleanupTask:
    return TempFileCleanupTask(
        settings.resolve_temp_dir(), create_missing=settings.temp_create_missing
    )


def register(registry: TaskRegistry) -> None:
    """Contribute the cleanup task, configured from ``settings``."""
    registry.register(_from_settings)
