"""Pure state transitions for conversion jobs.

Each engine event maps the current Job record to the next one. These
functions do no I/O; the orchestrator checks the artifact on disk and
passes the result in.
"""

from __future__ import annotations

from hlsconv.conversion.artifacts import ArtifactCheck
from hlsconv.conversion.exceptions import EmptyOutputError, EngineExecutionError
from hlsconv.conversion.models import DownloadDescriptor, Job, JobStatus
from hlsconv.conversion.progress import DEFAULT_CURVE, ProgressCurve, map_progress
from hlsconv.engine.types import (
    EngineEvent,
    EngineFailed,
    EngineProgress,
    EngineStarted,
    EngineSucceeded,
)

STARTED_PROGRESS = 5
STARTED_MESSAGE = "FFmpeg started, downloading segments..."
COMPLETED_MESSAGE = "Conversion completed successfully"
FAILURE_PREFIX = "Conversion failed"


def job_started(job: Job) -> Job:
    """The engine process is running."""
    return job.evolve(
        status=JobStatus.PROCESSING,
        progress=STARTED_PROGRESS,
        message=STARTED_MESSAGE,
    )


def job_progressed(
    job: Job,
    raw_percent: float | None,
    curve: ProgressCurve = DEFAULT_CURVE,
) -> Job:
    """The engine reported a raw completion percentage."""
    mapped, message = map_progress(raw_percent, curve)
    return job.evolve(
        status=JobStatus.PROCESSING,
        progress=round(mapped),
        message=message,
    )


def job_completed(job: Job, download: DownloadDescriptor) -> Job:
    """The artifact exists and is non-empty."""
    return job.evolve(
        status=JobStatus.COMPLETED,
        progress=100,
        message=COMPLETED_MESSAGE,
        download=download,
    )


def job_failed(job: Job, detail: str) -> Job:
    """The conversion ended without a usable artifact."""
    return job.evolve(
        status=JobStatus.ERROR,
        progress=0,
        message=f"{FAILURE_PREFIX}: {detail}",
        download=None,
    )


def reduce_event(
    job: Job,
    event: EngineEvent,
    *,
    artifact: ArtifactCheck | None = None,
    download: DownloadDescriptor | None = None,
    curve: ProgressCurve = DEFAULT_CURVE,
) -> Job:
    """Apply one engine event to a job record.

    Args:
        job: Current record.
        event: Event emitted by the engine.
        artifact: Result of checking the output file; required to resolve
            EngineSucceeded.
        download: Descriptor of the artifact; required when the artifact
            is usable.
        curve: Progress mapping parameters.

    Returns:
        The next record.
    """
    if isinstance(event, EngineStarted):
        return job_started(job)

    if isinstance(event, EngineProgress):
        return job_progressed(job, event.percent, curve)

    if isinstance(event, EngineFailed):
        return job_failed(job, str(EngineExecutionError(event.detail)))

    if isinstance(event, EngineSucceeded):
        if artifact is None or not artifact.is_usable or download is None:
            exists = artifact.exists if artifact is not None else False
            error = EmptyOutputError(str(event.output_path), exists=exists)
            return job_failed(job, str(error))
        return job_completed(job, download)

    raise TypeError(f"Unknown engine event: {event!r}")
