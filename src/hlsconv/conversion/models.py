"""Conversion job data models.

Job records are frozen dataclasses. Every state change produces a new
record that replaces the previous one in the JobRegistry, so a reader never
observes fields from two different updates.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class JobStatus(Enum):
    """Status of a conversion job."""

    STARTING = "starting"  # Record created, engine not started yet
    PROCESSING = "processing"  # Engine running
    COMPLETED = "completed"  # Artifact produced and verified
    ERROR = "error"  # Engine failed or produced no output
    NOT_FOUND = "not_found"  # Read-only: unknown or expired job id

    @property
    def is_terminal(self) -> bool:
        """Returns True for states that end a job."""
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


@dataclass(frozen=True)
class DownloadDescriptor:
    """Where a completed job's artifact can be fetched."""

    filename: str
    """Artifact file name inside the downloads directory."""

    download_url: str
    """Absolute URL serving the artifact."""

    size: int
    """Artifact size in bytes."""


@dataclass(frozen=True)
class Job:
    """Snapshot of a conversion job.

    Never mutated in place; use the reducer functions to derive the next
    snapshot.
    """

    job_id: str
    status: JobStatus
    progress: int = 0
    message: str = ""
    download: DownloadDescriptor | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def evolve(self, **changes: Any) -> Job:
        """Return a copy with the given fields replaced and a fresh timestamp."""
        changes.setdefault("updated_at", datetime.now(timezone.utc))
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        The download descriptor is flattened into the top level so clients
        read ``download_url`` and ``size`` next to ``status``.
        """
        result: dict[str, Any] = {
            "job_id": self.job_id,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "updated_at": self.updated_at.isoformat(),
        }
        if self.download is not None:
            result["filename"] = self.download.filename
            result["download_url"] = self.download.download_url
            result["size"] = self.download.size
        return result


def new_job(job_id: str) -> Job:
    """Create the initial record for a freshly dispatched job."""
    return Job(
        job_id=job_id,
        status=JobStatus.STARTING,
        progress=0,
        message="Conversion queued, starting FFmpeg...",
    )


def not_found_job(job_id: str) -> Job:
    """Create the placeholder returned for unknown or expired job ids."""
    return Job(
        job_id=job_id,
        status=JobStatus.NOT_FOUND,
        progress=0,
        message="Job not found. It may have expired or never existed.",
    )
