"""FFmpeg engine: runs one conversion and streams its lifecycle events.

The ffmpeg process is driven from a worker thread, the same way the other
FFmpeg executors read stderr. Parsed events are handed back to the event
loop with call_soon_threadsafe and exposed as an async iterator, so the
orchestrator consumes a plain ordered stream and never touches threads.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import subprocess  # nosec B404 - subprocess is required for FFmpeg invocation
import threading
import time
from collections.abc import AsyncIterator, Callable
from pathlib import Path

from hlsconv.engine.command import build_ffmpeg_command
from hlsconv.engine.progress import (
    parse_duration_line,
    parse_stderr_progress,
    summarize_failure,
)
from hlsconv.engine.types import (
    EngineEvent,
    EngineFailed,
    EngineProgress,
    EngineRequest,
    EngineStarted,
    EngineSucceeded,
    is_terminal,
)

logger = logging.getLogger(__name__)

# Number of trailing stderr lines kept for failure messages
STDERR_TAIL_LINES = 50

# Seconds to wait for ffmpeg to exit after terminate() before kill()
TERMINATE_GRACE_SECONDS = 5.0

# Interval at which the worker rechecks cancellation while ffmpeg exits
REAP_POLL_SECONDS = 0.5

Emit = Callable[[EngineEvent], None]


class FFmpegEngine:
    """Transcoding engine backed by an ffmpeg executable.

    There is no timeout: a run lasts as long as ffmpeg does. The process is
    only terminated if the consuming task is cancelled, which happens at
    server shutdown.
    """

    def __init__(self, ffmpeg_path: Path) -> None:
        """Initialize the engine.

        Args:
            ffmpeg_path: ffmpeg executable found by the startup preflight.
        """
        self.ffmpeg_path = ffmpeg_path

    async def run(self, request: EngineRequest) -> AsyncIterator[EngineEvent]:
        """Run ffmpeg for a request and yield its events.

        Args:
            request: Conversion parameters.

        Yields:
            EngineStarted, EngineProgress events, then one terminal event.
        """
        loop = asyncio.get_running_loop()
        events: asyncio.Queue[EngineEvent] = asyncio.Queue()
        cancelled = threading.Event()
        process_holder: list[subprocess.Popen[str]] = []

        def emit(event: EngineEvent) -> None:
            if cancelled.is_set():
                return
            try:
                loop.call_soon_threadsafe(events.put_nowait, event)
            except RuntimeError:
                # Event loop closed during shutdown
                cancelled.set()

        cmd = build_ffmpeg_command(self.ffmpeg_path, request)
        worker = asyncio.ensure_future(
            asyncio.to_thread(
                self._run_guarded, cmd, request, emit, cancelled, process_holder
            )
        )

        try:
            while True:
                event = await events.get()
                yield event
                if is_terminal(event):
                    break
            await worker
        finally:
            if not worker.done():
                cancelled.set()
                self._request_stop(process_holder)

    def _run_guarded(
        self,
        cmd: list[str],
        request: EngineRequest,
        emit: Emit,
        cancelled: threading.Event,
        process_holder: list[subprocess.Popen[str]],
    ) -> None:
        """Run the process, reporting unexpected errors as a terminal event."""
        try:
            self._run_process(cmd, request, emit, cancelled, process_holder)
        except Exception as e:
            logger.exception("FFmpeg worker crashed: %s", e)
            self._terminate(process_holder)
            emit(EngineFailed(detail=str(e) or type(e).__name__))

    def _run_process(
        self,
        cmd: list[str],
        request: EngineRequest,
        emit: Emit,
        cancelled: threading.Event,
        process_holder: list[subprocess.Popen[str]],
    ) -> None:
        """Blocking ffmpeg run; always emits exactly one terminal event."""
        try:
            process = subprocess.Popen(  # nosec B603 - args built from fixed flags
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            logger.error("Could not start ffmpeg: %s", e)
            emit(EngineFailed(detail=f"Could not start ffmpeg: {e}"))
            return

        process_holder.append(process)
        if cancelled.is_set():
            self._terminate(process_holder)
            return

        command_line = shlex.join(cmd)
        logger.info("Spawned ffmpeg (pid %d): %s", process.pid, command_line)
        emit(EngineStarted(command_line=command_line))

        duration = request.trim.duration if request.trim else None
        tail: list[str] = []

        try:
            assert process.stderr is not None
            # Text mode translates ffmpeg's \r status updates into lines
            for line in process.stderr:
                if cancelled.is_set():
                    break
                tail.append(line)
                if len(tail) > STDERR_TAIL_LINES:
                    del tail[0]

                if duration is None:
                    duration = parse_duration_line(line)
                    if duration is not None:
                        logger.debug("Input duration: %.2fs", duration)
                        continue

                progress = parse_stderr_progress(line)
                if progress is not None:
                    emit(
                        EngineProgress(
                            percent=progress.get_percent(duration),
                            timemark=progress.timemark,
                        )
                    )
        except (ValueError, OSError) as e:
            # Pipe closed under us
            logger.debug("Stderr reader stopped: %s", e)

        returncode = self._reap(process, cancelled)

        if cancelled.is_set():
            logger.info("ffmpeg (pid %d) stopped before completion", process.pid)
            return

        if returncode == 0:
            logger.info("ffmpeg (pid %d) finished successfully", process.pid)
            emit(EngineSucceeded(output_path=request.output_path))
        else:
            detail = summarize_failure(tail, returncode)
            logger.warning(
                "ffmpeg (pid %d) exited with code %d: %s",
                process.pid,
                returncode,
                detail,
            )
            emit(EngineFailed(detail=detail, returncode=returncode))

    @staticmethod
    def _reap(process: subprocess.Popen[str], cancelled: threading.Event) -> int:
        """Wait for ffmpeg to exit, killing it if it outlives a stop request."""
        kill_at: float | None = None
        while True:
            try:
                return process.wait(timeout=REAP_POLL_SECONDS)
            except subprocess.TimeoutExpired:
                if not cancelled.is_set():
                    continue
                now = time.monotonic()
                if kill_at is None:
                    kill_at = now + TERMINATE_GRACE_SECONDS
                elif now >= kill_at:
                    logger.warning("Killing ffmpeg (pid %d)", process.pid)
                    process.kill()
                    return process.wait()

    @staticmethod
    def _request_stop(process_holder: list[subprocess.Popen[str]]) -> bool:
        """Send terminate() without waiting; the worker thread reaps the process.

        Runs on the event loop, so it must not block.

        Returns:
            True if a running process was signalled.
        """
        if not process_holder:
            return False
        process = process_holder[0]
        if process.poll() is not None:
            return False
        logger.warning("Terminating ffmpeg (pid %d)", process.pid)
        process.terminate()
        return True

    @classmethod
    def _terminate(cls, process_holder: list[subprocess.Popen[str]]) -> None:
        """Stop ffmpeg and wait for it to exit. Blocks; worker thread only."""
        if not cls._request_stop(process_holder):
            return
        process = process_holder[0]
        try:
            process.wait(timeout=TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
