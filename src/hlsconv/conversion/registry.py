"""In-memory registry of conversion jobs.

The registry holds exactly one immutable Job record per job id. Writers
replace the whole record under a lock; readers get whichever record was
current, never a mix of two updates. Nothing survives a process restart.

Records that reach a terminal state are kept for a fixed period so clients
can poll the outcome, then dropped. Records that never reach a terminal
state are never dropped.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from hlsconv.conversion.models import Job, not_found_job

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_SECONDS = 600.0


class DuplicateJobError(ValueError):
    """Raised when creating a job id that is already registered."""


class JobRegistry:
    """Thread-safe map of job id to the current Job record.

    Expiry is tracked as a deadline on an injectable monotonic clock, so
    get() never returns a record past its deadline even if the timer that
    calls expire() has not fired yet.
    """

    def __init__(
        self,
        *,
        expiry_seconds: float = DEFAULT_EXPIRY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty registry.

        Args:
            expiry_seconds: How long terminal records are kept.
            clock: Monotonic time source, injectable for tests.
        """
        self.expiry_seconds = expiry_seconds
        self._clock = clock
        self._jobs: dict[str, Job] = {}
        self._deadlines: dict[str, float] = {}
        self._lock = threading.Lock()

    def create(self, job_id: str, job: Job) -> None:
        """Register the initial record for a new job.

        Raises:
            DuplicateJobError: If the id is already registered.
        """
        with self._lock:
            if job_id in self._jobs:
                raise DuplicateJobError(f"Job {job_id} already exists")
            self._jobs[job_id] = job

    def replace(self, job_id: str, job: Job) -> None:
        """Swap in a new record for a job.

        A terminal record starts the expiry countdown. Replacing a record
        that has already expired re-registers it.
        """
        with self._lock:
            self._jobs[job_id] = job
            if job.status.is_terminal:
                self._deadlines[job_id] = self._clock() + self.expiry_seconds
            else:
                self._deadlines.pop(job_id, None)

    def get(self, job_id: str) -> Job:
        """Return the current record, or the not_found placeholder.

        Polling an unknown or expired id is normal, so this never raises.
        """
        with self._lock:
            deadline = self._deadlines.get(job_id)
            if deadline is not None and self._clock() >= deadline:
                self._drop(job_id)
            job = self._jobs.get(job_id)
        if job is None:
            return not_found_job(job_id)
        return job

    def expire(self, job_id: str) -> bool:
        """Remove a job record.

        Returns:
            True if a record was removed.
        """
        with self._lock:
            removed = self._drop(job_id)
        if removed:
            logger.debug("Expired job record %s", job_id)
        return removed

    def purge_expired(self) -> int:
        """Remove every terminal record whose deadline has passed.

        Returns:
            Number of records removed.
        """
        with self._lock:
            now = self._clock()
            expired = [jid for jid, dl in self._deadlines.items() if now >= dl]
            for job_id in expired:
                self._drop(job_id)
        return len(expired)

    def count_active(self) -> int:
        """Number of jobs that have not reached a terminal state."""
        with self._lock:
            return sum(1 for job in self._jobs.values() if not job.status.is_terminal)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs

    def _drop(self, job_id: str) -> bool:
        # Caller holds the lock
        self._deadlines.pop(job_id, None)
        return self._jobs.pop(job_id, None) is not None
