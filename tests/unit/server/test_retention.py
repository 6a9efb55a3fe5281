"""Tests for the retention sweep background task."""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fakes import write_artifact

from hlsconv.conversion.artifacts import ArtifactStore
from hlsconv.conversion.models import new_job
from hlsconv.conversion.reducer import job_failed
from hlsconv.server.retention import RetentionSweepTask


def _age(path: Path, seconds: float) -> None:
    past = time.time() - seconds
    os.utime(path, (past, past))


class TestRetentionSweepTask:
    """Tests for RetentionSweepTask initialization and properties."""

    def test_default_initialization(self, store: ArtifactStore) -> None:
        task = RetentionSweepTask(store=store, interval_seconds=3600)
        assert task.interval_seconds == 3600
        assert task.is_running is False
        assert task.last_run is None
        assert task.is_healthy is True

    def test_stop_sets_event(self, store: ArtifactStore) -> None:
        task = RetentionSweepTask(store=store, interval_seconds=3600)
        task.stop()
        assert task._stop_event.is_set()


@pytest.mark.asyncio
class TestRetentionSweepRuns:
    """Tests for sweep execution."""

    async def test_run_once_removes_old_artifacts(
        self, store: ArtifactStore, downloads_dir: Path
    ) -> None:
        old = downloads_dir / "old_job1.mp4"
        fresh = downloads_dir / "fresh_job2.mp4"
        write_artifact(old, 10)
        write_artifact(fresh, 10)
        _age(old, 7200)

        task = RetentionSweepTask(store=store, interval_seconds=3600)
        removed = await task.run_once()

        assert removed == 1
        assert not old.exists()
        assert fresh.exists()
        assert task.last_removed == 1
        assert task.last_run is not None

    async def test_run_once_purges_expired_records(self, store, registry, clock) -> None:
        registry.create("job1", new_job("job1"))
        registry.replace("job1", job_failed(new_job("job1"), "boom"))
        clock.advance(601)

        task = RetentionSweepTask(store=store, interval_seconds=3600, registry=registry)
        await task.run_once()

        assert len(registry) == 0
        assert registry.get("job1").status.value == "not_found"

    async def test_repeated_failures_mark_unhealthy(self) -> None:
        store = MagicMock()
        store.sweep.side_effect = OSError("disk gone")
        task = RetentionSweepTask(store=store, interval_seconds=3600)

        for _ in range(3):
            assert await task.run_once() == 0

        assert task.is_healthy is False

        store.sweep.side_effect = None
        store.sweep.return_value = 0
        await task.run_once()
        assert task.is_healthy is True

    async def test_run_sweeps_then_stops(self, store: ArtifactStore) -> None:
        task = RetentionSweepTask(store=store, interval_seconds=3600)
        handle = asyncio.create_task(task.run())
        for _ in range(100):
            await asyncio.sleep(0.01)
            if task.last_run is not None:
                break

        assert task.is_running
        task.stop()
        await asyncio.wait_for(handle, timeout=1)

        assert task.is_running is False
        assert task.last_run is not None
