"""CLI serve command.

This module provides the `hlsconv serve` command that runs the converter
as a long-lived HTTP service.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import sys
from pathlib import Path

import click

from hlsconv.cli.exit_codes import ExitCode
from hlsconv.config.loader import apply_overrides
from hlsconv.config.models import ConverterConfig
from hlsconv.engine.detection import EngineAvailability, detect_engine
from hlsconv.logging import configure_logging

logger = logging.getLogger(__name__)


async def run_server(config: ConverterConfig, availability: EngineAvailability) -> int:
    """Run the HTTP server until SIGTERM or SIGINT.

    On shutdown, new conversions are refused, running ones get until the
    lifecycle deadline to finish, and the rest are cancelled.

    Args:
        config: Complete server configuration.
        availability: Result of the ffmpeg preflight, run before the loop.

    Returns:
        Exit code (0 for clean shutdown, non-zero for errors).
    """
    from aiohttp import web

    from hlsconv.server.app import create_app
    from hlsconv.server.signals import (
        remove_signal_handlers,
        setup_signal_handlers,
    )

    bind = config.server.bind
    port = config.server.port

    app = create_app(config, availability=availability)
    lifecycle = app["lifecycle"]

    # Create shutdown event for signal coordination
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    setup_signal_handlers(loop, lifecycle, shutdown_event)

    runner = web.AppRunner(app)
    await runner.setup()

    try:
        site = web.TCPSite(runner, bind, port)
        await site.start()

        logger.info(
            "HLS converter started on http://%s:%d (PID %d)",
            bind,
            port,
            os.getpid(),
        )
        logger.info("Health endpoint: http://%s:%d/health", bind, port)
        logger.info("Press Ctrl+C or send SIGTERM to stop")

        await shutdown_event.wait()

        # No-op when a signal handler already started the shutdown
        lifecycle.initiate_shutdown()
        remaining = lifecycle.shutdown_state.remaining_seconds or 0.0
        logger.info("Waiting up to %.1fs for conversions", remaining)
        orchestrator = app["orchestrator"]
        if not await orchestrator.wait_idle(remaining):
            logger.warning("Shutdown timeout reached, cancelling conversions")

    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            logger.error("Port %d is already in use", port)
            return ExitCode.GENERAL_ERROR
        if e.errno == errno.EADDRNOTAVAIL:
            logger.error("Cannot bind to address %s", bind)
            return ExitCode.GENERAL_ERROR
        logger.error("Server error: %s", e)
        return ExitCode.GENERAL_ERROR
    finally:
        remove_signal_handlers(loop)
        await runner.cleanup()
        logger.info("HLS converter stopped")

    return ExitCode.SUCCESS


@click.command("serve")
@click.option(
    "--bind",
    type=str,
    default=None,
    help="Address to bind to (default: 0.0.0.0).",
)
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to bind to (default: $PORT or 3000).",
)
@click.option(
    "--downloads-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for converted files (default: ./downloads).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default=None,
    help="Log format: text or json (default: text).",
)
@click.pass_context
def serve_command(
    ctx: click.Context,
    bind: str | None,
    port: int | None,
    downloads_dir: Path | None,
    log_level: str | None,
    log_format: str | None,
) -> None:
    """Run the HLS to MP4 conversion server.

    Handles graceful shutdown on SIGTERM or SIGINT (Ctrl+C).

    Configuration precedence (highest to lowest):
      1. CLI flags (--bind, --port, --log-level, etc.)
      2. Environment variables (PORT, HLSCONV_*)
      3. Default values

    \b
    Examples:
        hlsconv serve                        # Start with defaults
        hlsconv serve --port 9000            # Custom port
        hlsconv serve --log-format json      # JSON logging for containers
    """
    config: ConverterConfig = ctx.obj["config"]

    try:
        config = apply_overrides(config, "server", bind=bind, port=port)
        config = apply_overrides(config, "storage", downloads_dir=downloads_dir)
        config = apply_overrides(
            config,
            "logging",
            level=log_level.lower() if log_level else None,
            format=log_format.lower() if log_format else None,
        )
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(ExitCode.INVALID_ARGUMENTS)

    configure_logging(config.logging)

    if config.server.port < 1024:
        logger.warning("Port %d is privileged and may require root", config.server.port)

    logger.info(
        "Starting HLS converter (bind=%s, port=%d, downloads=%s)",
        config.server.bind,
        config.server.port,
        config.storage.downloads_dir,
    )

    # Probing ffmpeg blocks, so it runs before the event loop starts
    availability = detect_engine(config.engine.ffmpeg_path)

    try:
        exit_code = asyncio.run(run_server(config, availability))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted before server started")
        sys.exit(ExitCode.INTERRUPTED)
