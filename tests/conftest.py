"""Shared test fixtures."""

import os
from datetime import UTC, datetime, timedelta

import pytest

from taskloop.tasks.registry import TaskRegistry
from taskloop.tasks.temp_cleanup import TempFileCleanupTask

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    """Fixed wall clock used by cleanup tasks under test."""
    return datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def age_file(now):
    """Return a helper that sets a file's mtime to ``now - age`` exactly."""

    def _age(path, age: timedelta) -> None:
        ns = (now - age - _EPOCH) // timedelta(microseconds=1) * 1000
        os.utime(path, ns=(ns, ns))

    return _age


@pytest.fixture
def registry() -> TaskRegistry:
    return TaskRegistry()


@pytest.fixture
def temp_dir(tmp_path):
    """An existing, empty temp directory."""
    d = tmp_path / "temp"
    d.mkdir()
    return d


@pytest.fixture
def cleanup(temp_dir, now) -> TempFileCleanupTask:
    """A cleanup task already past its first run, with a fixed clock."""
    task = TempFileCleanupTask(temp_dir, clock=lambda: now)
    task.first_run = False
    return task


@pytest.fixture(autouse=True)
def _default_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests from picking up a real storage/temp configuration."""
    monkeypatch.setattr("taskloop.config.settings.temp_path", "")
    monkeypatch.setattr("taskloop.config.settings.temp_create_missing", False)
