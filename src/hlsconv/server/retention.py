"""Background retention sweep for produced artifacts.

Runs one sweep at startup, then one every interval. Each pass removes
artifacts older than the retention window and drops job records whose
expiry deadline has passed but whose timer has not fired yet.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hlsconv.conversion.artifacts import ArtifactStore
    from hlsconv.conversion.registry import JobRegistry

logger = logging.getLogger(__name__)

# Number of consecutive failures before marking unhealthy
_UNHEALTHY_THRESHOLD = 3


class RetentionSweepTask:
    """Background task that periodically removes expired artifacts.

    Usage:
        task = RetentionSweepTask(store=store, interval_seconds=3600)
        asyncio.create_task(task.run())
        # ... later ...
        task.stop()
    """

    def __init__(
        self,
        *,
        store: ArtifactStore,
        interval_seconds: float,
        registry: JobRegistry | None = None,
    ) -> None:
        """Initialize the sweep task.

        Args:
            store: Artifact store to sweep.
            interval_seconds: Seconds between sweeps.
            registry: Optional job registry to purge alongside.
        """
        self.interval_seconds = interval_seconds
        self._store = store
        self._registry = registry
        self._stop_event = asyncio.Event()
        self._last_run: datetime | None = None
        self._last_removed = 0
        self._running = False
        self._consecutive_failures = 0
        self._is_healthy = True

    async def run(self) -> None:
        """Run the sweep loop until stop() is called."""
        if self._running:
            logger.warning("Retention sweep already running")
            return
        self._running = True

        logger.info(
            "Retention sweep started (interval %.0f seconds, max age %.0f seconds)",
            self.interval_seconds,
            self._store.max_age_seconds,
        )

        try:
            while not self._stop_event.is_set():
                await self.run_once()

                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=self.interval_seconds,
                    )
                    break
                except asyncio.TimeoutError:
                    pass  # Normal case - interval elapsed
        except asyncio.CancelledError:
            pass
        finally:
            self._running = False
            logger.info("Retention sweep stopped")

    def stop(self) -> None:
        """Signal the sweep task to stop."""
        self._stop_event.set()

    @property
    def is_running(self) -> bool:
        """Check if the sweep task is running."""
        return self._running

    @property
    def last_run(self) -> datetime | None:
        """Timestamp of the last completed sweep."""
        return self._last_run

    @property
    def last_removed(self) -> int:
        """Number of files removed by the last completed sweep."""
        return self._last_removed

    @property
    def is_healthy(self) -> bool:
        """False after repeated consecutive sweep failures."""
        return self._is_healthy

    async def run_once(self) -> int:
        """Execute a single sweep.

        Returns:
            Number of artifacts removed, 0 if the sweep failed.
        """
        start_time = datetime.now(timezone.utc)
        try:
            removed = await asyncio.to_thread(self._store.sweep)
        except Exception as e:
            self._consecutive_failures += 1
            if (
                self._consecutive_failures >= _UNHEALTHY_THRESHOLD
                and self._is_healthy
            ):
                self._is_healthy = False
                logger.error(
                    "Retention sweep marked unhealthy after %d consecutive failures",
                    self._consecutive_failures,
                )
            logger.exception("Retention sweep failed: %s", e)
            return 0

        purged = self._registry.purge_expired() if self._registry is not None else 0

        self._last_run = start_time
        self._last_removed = removed
        self._consecutive_failures = 0
        if not self._is_healthy:
            self._is_healthy = True
            logger.info("Retention sweep recovered, marking healthy")

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        if removed or purged:
            logger.info(
                "Retention sweep removed %d artifact(s) and %d job record(s) "
                "in %.2f seconds",
                removed,
                purged,
                duration,
            )
        else:
            logger.debug("Retention sweep found nothing to remove")
        return removed
