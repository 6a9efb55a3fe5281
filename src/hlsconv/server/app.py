"""HTTP application for the converter server.

This module provides the aiohttp Application with the index and health
endpoints, the conversion API routes, and runtime state management.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from aiohttp import web

from hlsconv import __version__
from hlsconv.config.models import ConverterConfig
from hlsconv.conversion.artifacts import ArtifactStore
from hlsconv.conversion.orchestrator import ConversionOrchestrator
from hlsconv.conversion.registry import JobRegistry
from hlsconv.engine.runner import FFmpegEngine
from hlsconv.server.api import setup_api_routes
from hlsconv.server.lifecycle import ServerLifecycle
from hlsconv.server.middleware import cors_middleware, error_middleware
from hlsconv.server.retention import RetentionSweepTask

if TYPE_CHECKING:
    from hlsconv.engine.detection import EngineAvailability
    from hlsconv.engine.types import TranscodingEngine

logger = logging.getLogger(__name__)

SERVICE_NAME = "HLS Converter API"

# Request bodies are tiny JSON documents; the limit only guards the parser
CLIENT_MAX_SIZE = 50 * 1024 * 1024

# Seconds to wait for the sweep task to stop before cancelling it
TASK_STOP_TIMEOUT = 5.0


@dataclass
class HealthStatus:
    """Health check response payload."""

    status: str
    """Overall status: 'healthy' or 'degraded' (ffmpeg unavailable)."""

    message: str
    """Human-readable summary."""

    version: str
    """Service version string."""

    uptime_seconds: float
    """Seconds since server startup."""

    engine: dict[str, Any]
    """Result of the startup ffmpeg preflight."""

    active_jobs: int = 0
    """Number of conversions that have not reached a terminal state."""

    shutting_down: bool = False
    """True if graceful shutdown is in progress."""

    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    """UTC time the status was computed."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def create_app(
    config: ConverterConfig | None = None,
    *,
    availability: EngineAvailability,
    engine: TranscodingEngine | None = None,
    registry: JobRegistry | None = None,
) -> web.Application:
    """Create and configure the aiohttp Application.

    Args:
        config: Server configuration. None uses defaults.
        availability: Result of the ffmpeg preflight. Detection blocks, so
            callers run it before the event loop starts.
        engine: Transcoding engine. None builds an FFmpegEngine from the
            preflight result when ffmpeg is available.
        registry: Job registry. None creates one using the configured
            expiry.

    Returns:
        Configured aiohttp Application instance.
    """
    config = config or ConverterConfig()

    if engine is None and availability.available and availability.path is not None:
        engine = FFmpegEngine(availability.path)
    if not availability.available:
        logger.warning(
            "FFmpeg unavailable, conversions will be rejected: %s",
            availability.message,
        )

    registry = registry or JobRegistry(
        expiry_seconds=config.storage.job_expiry_seconds
    )
    store = ArtifactStore(
        config.storage.downloads_dir,
        max_age_seconds=config.storage.retention_seconds,
    )

    app = web.Application(
        middlewares=[cors_middleware, error_middleware],
        client_max_size=CLIENT_MAX_SIZE,
    )

    # Store runtime state in app dict
    app["config"] = config
    app["lifecycle"] = ServerLifecycle(
        shutdown_timeout=config.server.shutdown_timeout
    )
    app["engine_availability"] = availability
    app["registry"] = registry
    app["store"] = store
    app["orchestrator"] = ConversionOrchestrator(
        registry=registry,
        store=store,
        engine=engine,
        availability=availability,
    )

    # Initialized on server startup
    app["retention_task"] = None
    app["retention_task_handle"] = None

    app.router.add_get("/", index_handler)
    app.router.add_get("/health", health_handler)
    setup_api_routes(app)

    app.on_startup.append(_start_retention_task)
    app.on_cleanup.append(_stop_retention_task)
    app.on_cleanup.append(_stop_conversions)

    return app


async def _start_retention_task(app: web.Application) -> None:
    """Create the downloads directory and start the retention sweep."""
    config: ConverterConfig = app["config"]
    store: ArtifactStore = app["store"]
    store.ensure_directory()

    sweep = RetentionSweepTask(
        store=store,
        interval_seconds=config.storage.sweep_interval_seconds,
        registry=app["registry"],
    )
    app["retention_task"] = sweep
    app["retention_task_handle"] = asyncio.create_task(sweep.run())
    logger.debug("Started retention sweep task")


async def _stop_retention_task(app: web.Application) -> None:
    """Stop the retention sweep."""
    sweep: RetentionSweepTask | None = app.get("retention_task")
    task_handle: asyncio.Task[None] | None = app.get("retention_task_handle")

    if sweep:
        sweep.stop()

    if task_handle and not task_handle.done():
        try:
            await asyncio.wait_for(task_handle, timeout=TASK_STOP_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Retention sweep did not stop in time, cancelling")
            task_handle.cancel()
            try:
                await task_handle
            except asyncio.CancelledError:
                pass

    logger.debug("Stopped retention sweep task")


async def _stop_conversions(app: web.Application) -> None:
    """Cancel conversions still running when the server stops."""
    orchestrator: ConversionOrchestrator = app["orchestrator"]
    await orchestrator.shutdown()


async def index_handler(request: web.Request) -> web.Response:
    """Handle GET / with the service name and endpoint index."""
    return web.json_response(
        {
            "name": SERVICE_NAME,
            "status": "running",
            "version": __version__,
            "endpoints": {
                "health": "GET /health",
                "convert": "POST /convert",
                "progress": "GET /progress/{job_id}",
                "download": "GET /downloads/{filename}",
                "delete": "DELETE /downloads/{filename}",
            },
        }
    )


async def health_handler(request: web.Request) -> web.Response:
    """Handle GET /health requests.

    Always answers 200 so the endpoint works as a liveness probe; a
    missing ffmpeg shows up as status "degraded".

    Args:
        request: aiohttp Request object.

    Returns:
        JSON response with HealthStatus payload.
    """
    lifecycle: ServerLifecycle | None = request.app.get("lifecycle")
    availability: EngineAvailability = request.app["engine_availability"]
    registry: JobRegistry = request.app["registry"]

    shutting_down = lifecycle.is_shutting_down if lifecycle else False
    uptime = lifecycle.uptime_seconds if lifecycle else 0.0

    if availability.available:
        status = "healthy"
        message = "HLS Converter Server is running"
    else:
        status = "degraded"
        message = "HLS Converter Server is running without FFmpeg"

    health = HealthStatus(
        status=status,
        message=message,
        version=__version__,
        uptime_seconds=round(uptime, 1),
        engine=availability.to_dict(),
        active_jobs=registry.count_active(),
        shutting_down=shutting_down,
    )
    return web.json_response(health.to_dict())
