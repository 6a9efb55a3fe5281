"""Conversion orchestration.

ConversionOrchestrator validates a request, creates the job record, and
spawns a background asyncio task that drives the engine's event stream,
writing each resulting record into the JobRegistry. submit() returns as
soon as the task is scheduled; nothing waits on the conversion.

Known limitations:
- No bound on concurrently running conversions.
- No timeout and no way for a client to cancel a running conversion.
- Exactly one engine run per job; failures are final.
"""

from __future__ import annotations

import asyncio
import logging
import math
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from hlsconv.conversion.exceptions import EngineUnavailableError, ValidationError
from hlsconv.conversion.models import Job, new_job
from hlsconv.conversion.progress import DEFAULT_CURVE, ProgressCurve
from hlsconv.conversion.quality import resolve_quality
from hlsconv.conversion.reducer import job_failed, reduce_event
from hlsconv.engine.types import (
    EngineEvent,
    EngineFailed,
    EngineProgress,
    EngineRequest,
    EngineStarted,
    EngineSucceeded,
    NetworkOptions,
    TrimWindow,
)
from hlsconv.logging.context import job_context

if TYPE_CHECKING:
    from hlsconv.conversion.artifacts import ArtifactStore
    from hlsconv.conversion.registry import JobRegistry
    from hlsconv.engine.detection import EngineAvailability
    from hlsconv.engine.types import TranscodingEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionRequest:
    """A client's request to convert a playlist."""

    input_url: str | None
    filename: str | None
    start_time: float | None = None
    end_time: float | None = None
    quality: str | None = None


def _build_trim(request: ConversionRequest) -> TrimWindow | None:
    """Derive the trim window; only applies when both bounds are given."""
    if request.start_time is None or request.end_time is None:
        return None
    for name in ("start_time", "end_time"):
        if not math.isfinite(getattr(request, name)):
            raise ValidationError([name], f"{name} must be a finite number")
    if request.start_time < 0:
        raise ValidationError(["start_time"], "start_time must not be negative")
    if request.end_time <= request.start_time:
        raise ValidationError(
            ["start_time", "end_time"], "end_time must be greater than start_time"
        )
    return TrimWindow.from_bounds(request.start_time, request.end_time)


class ConversionOrchestrator:
    """Coordinates conversion jobs from submission to terminal state."""

    def __init__(
        self,
        *,
        registry: JobRegistry,
        store: ArtifactStore,
        engine: TranscodingEngine | None,
        availability: EngineAvailability,
        network: NetworkOptions = NetworkOptions(),
        curve: ProgressCurve = DEFAULT_CURVE,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        """Initialize the orchestrator.

        Args:
            registry: Where job records live.
            store: Artifact directory manager.
            engine: Transcoding engine; None when the preflight failed.
            availability: Startup preflight result.
            network: Fixed input options passed to every engine run.
            curve: Progress mapping parameters.
            id_factory: Job id generator.
        """
        self._registry = registry
        self._store = store
        self._engine = engine
        self._availability = availability
        self._network = network
        self._curve = curve
        self._id_factory = id_factory
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def availability(self) -> EngineAvailability:
        """Startup preflight result."""
        return self._availability

    @property
    def active_tasks(self) -> int:
        """Number of conversion tasks still running."""
        return len(self._tasks)

    def submit(self, request: ConversionRequest, *, base_url: str) -> str:
        """Accept a conversion request and start it in the background.

        Must be called from a running event loop.

        Args:
            request: Conversion parameters.
            base_url: Public origin used to build the download URL.

        Returns:
            The new job id.

        Raises:
            ValidationError: If input_url or filename is missing, or the
                trim bounds are inconsistent.
            EngineUnavailableError: If the startup preflight found no ffmpeg.
        """
        missing = [
            name
            for name, value in (
                ("m3u8_url", request.input_url),
                ("filename", request.filename),
            )
            if not value or not value.strip()
        ]
        if missing:
            raise ValidationError(missing)
        trim = _build_trim(request)

        if not self._availability.available or self._engine is None:
            raise EngineUnavailableError(self._availability.message)

        assert request.input_url is not None and request.filename is not None
        job_id = self._id_factory()
        output_name = self._store.output_name(request.filename, job_id)
        engine_request = EngineRequest(
            input_url=request.input_url.strip(),
            output_path=self._store.path_for(output_name),
            crf=resolve_quality(request.quality),
            trim=trim,
            network=self._network,
        )

        self._registry.create(job_id, new_job(job_id))

        with job_context(job_id):
            logger.info(
                "Conversion accepted: %s -> %s (crf=%d, trim=%s)",
                engine_request.input_url,
                output_name,
                engine_request.crf,
                f"{trim.seek}+{trim.duration}s" if trim else "none",
            )
            task = asyncio.create_task(
                self._run(job_id, engine_request, base_url),
                name=f"conversion-{job_id}",
            )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job_id

    async def _run(self, job_id: str, request: EngineRequest, base_url: str) -> None:
        """Drive one engine run to its terminal state."""
        assert self._engine is not None
        job = self._registry.get(job_id)

        with job_context(job_id):
            try:
                async for event in self._engine.run(request):
                    job = self._apply(job, event, base_url)
                if not job.status.is_terminal:
                    job = self._record(
                        job_failed(job, "engine stopped without reporting a result")
                    )
            except asyncio.CancelledError:
                logger.warning("Conversion interrupted by shutdown")
                raise
            except Exception as e:
                logger.exception("Conversion crashed: %s", e)
                job = self._record(job_failed(job, str(e) or type(e).__name__))

            if job.status.is_terminal:
                self._schedule_expiry(job_id)

    def _apply(
        self,
        job: Job,
        event: EngineEvent,
        base_url: str,
    ) -> Job:
        """Reduce one event into the next record and store it."""
        if isinstance(event, EngineStarted):
            logger.info("FFmpeg started")
            logger.debug("Command: %s", event.command_line)
            next_job = reduce_event(job, event, curve=self._curve)

        elif isinstance(event, EngineProgress):
            next_job = reduce_event(job, event, curve=self._curve)
            logger.debug(
                "Progress raw=%.1f%% mapped=%d%% at %s",
                event.percent,
                next_job.progress,
                event.timemark,
            )

        elif isinstance(event, EngineSucceeded):
            artifact = self._store.finalize(event.output_path)
            download = None
            if artifact.is_usable:
                download = self._store.build_download_descriptor(
                    event.output_path, base_url, artifact.size
                )
            next_job = reduce_event(
                job, event, artifact=artifact, download=download, curve=self._curve
            )
            if download is not None:
                logger.info(
                    "Conversion completed: %s (%d bytes)",
                    download.filename,
                    download.size,
                )
            else:
                logger.error(
                    "FFmpeg succeeded without usable output: %s", next_job.message
                )

        elif isinstance(event, EngineFailed):
            next_job = reduce_event(job, event, curve=self._curve)
            logger.error("Conversion failed: %s", event.detail)

        else:
            raise TypeError(f"Unknown engine event: {event!r}")

        return self._record(next_job)

    def _record(self, job: Job) -> Job:
        self._registry.replace(job.job_id, job)
        return job

    def _schedule_expiry(self, job_id: str) -> None:
        """Arm a timer that drops the finished record."""
        loop = asyncio.get_running_loop()
        loop.call_later(self._registry.expiry_seconds, self._registry.expire, job_id)
        logger.debug(
            "Job record expires in %.0f seconds", self._registry.expiry_seconds
        )

    async def wait_idle(self, timeout: float) -> bool:
        """Wait for running conversions to finish on their own.

        Args:
            timeout: Maximum seconds to wait.

        Returns:
            True if no conversion is still running.
        """
        tasks = list(self._tasks)
        if not tasks:
            return True
        logger.info(
            "Waiting up to %.0fs for %d running conversion(s)", timeout, len(tasks)
        )
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        return not pending

    async def shutdown(self) -> None:
        """Cancel conversions still running at server shutdown.

        Cancelling a task terminates its ffmpeg process.
        """
        tasks = list(self._tasks)
        if not tasks:
            return
        logger.warning("Cancelling %d running conversion(s) at shutdown", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
