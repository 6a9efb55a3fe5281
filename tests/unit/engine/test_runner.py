"""Tests for FFmpegEngine with a mocked ffmpeg process."""

from __future__ import annotations

import asyncio
import subprocess
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from hlsconv.engine.runner import FFmpegEngine
from hlsconv.engine.types import (
    EngineFailed,
    EngineProgress,
    EngineRequest,
    EngineStarted,
    EngineSucceeded,
    TrimWindow,
)

OUTPUT = Path("/tmp/downloads/clip_job1.mp4")
FFMPEG = Path("/usr/bin/ffmpeg")


def _request(**overrides) -> EngineRequest:
    values = {
        "input_url": "https://x/playlist.m3u8",
        "output_path": OUTPUT,
        "crf": 23,
    }
    values.update(overrides)
    return EngineRequest(**values)


def _fake_process(lines: list[str], returncode: int = 0) -> MagicMock:
    process = MagicMock()
    process.pid = 4321
    process.stderr = iter(lines)
    process.wait.return_value = returncode
    process.poll.return_value = returncode
    return process


async def _collect(engine: FFmpegEngine, request: EngineRequest) -> list:
    return [event async for event in engine.run(request)]


@pytest.mark.asyncio
class TestFFmpegEngine:
    """Tests for FFmpegEngine.run()."""

    async def test_successful_run(self) -> None:
        lines = [
            "Input #0, hls, from 'https://x/playlist.m3u8':\n",
            "  Duration: 00:00:10.00, start: 0.000000, bitrate: N/A\n",
            "frame=  100 fps= 25 q=28.0 size=  256kB time=00:00:05.00 speed=2x\n",
            "frame=  250 fps= 25 q=28.0 size=  640kB time=00:00:10.00 speed=2x\n",
        ]
        process = _fake_process(lines, returncode=0)

        with patch(
            "hlsconv.engine.runner.subprocess.Popen", return_value=process
        ) as popen:
            events = await _collect(FFmpegEngine(FFMPEG), _request())

        assert isinstance(events[0], EngineStarted)
        assert events[0].command_line.startswith("/usr/bin/ffmpeg ")
        assert events[1] == EngineProgress(percent=50.0, timemark="00:00:05.00")
        assert events[2] == EngineProgress(percent=100.0, timemark="00:00:10.00")
        assert events[3] == EngineSucceeded(output_path=OUTPUT)
        assert len(events) == 4
        assert popen.call_args.args[0][0] == str(FFMPEG)

    async def test_trim_duration_drives_percent(self) -> None:
        lines = [
            "  Duration: 00:10:00.00, start: 0.000000, bitrate: N/A\n",
            "frame=  100 fps= 25 q=28.0 size=  256kB time=00:00:05.00 speed=2x\n",
        ]
        process = _fake_process(lines, returncode=0)

        with patch("hlsconv.engine.runner.subprocess.Popen", return_value=process):
            events = await _collect(
                FFmpegEngine(FFMPEG), _request(trim=TrimWindow(seek=60, duration=20))
            )

        progress = [e for e in events if isinstance(e, EngineProgress)]
        assert progress[0].percent == pytest.approx(25.0)

    async def test_unknown_duration_reports_zero(self) -> None:
        lines = [
            "  Duration: N/A, start: 0.000000, bitrate: N/A\n",
            "frame=  100 fps= 25 q=28.0 size=  256kB time=00:00:05.00 speed=2x\n",
        ]
        with patch(
            "hlsconv.engine.runner.subprocess.Popen",
            return_value=_fake_process(lines),
        ):
            events = await _collect(FFmpegEngine(FFMPEG), _request())

        assert events[1] == EngineProgress(percent=0.0, timemark="00:00:05.00")

    async def test_non_zero_exit(self) -> None:
        lines = [
            "https://x/playlist.m3u8: Invalid data found when processing input\n",
        ]
        with patch(
            "hlsconv.engine.runner.subprocess.Popen",
            return_value=_fake_process(lines, returncode=1),
        ):
            events = await _collect(FFmpegEngine(FFMPEG), _request())

        assert isinstance(events[0], EngineStarted)
        assert events[-1] == EngineFailed(
            detail="https://x/playlist.m3u8: Invalid data found when processing input",
            returncode=1,
        )

    async def test_cannot_start_process(self) -> None:
        with patch(
            "hlsconv.engine.runner.subprocess.Popen",
            side_effect=FileNotFoundError("No such file or directory"),
        ):
            events = await _collect(FFmpegEngine(FFMPEG), _request())

        assert len(events) == 1
        assert isinstance(events[0], EngineFailed)
        assert events[0].detail.startswith("Could not start ffmpeg")

    async def test_worker_crash_becomes_failure(self) -> None:
        process = _fake_process([])
        process.wait.side_effect = RuntimeError("boom")

        with patch("hlsconv.engine.runner.subprocess.Popen", return_value=process):
            events = await _collect(FFmpegEngine(FFMPEG), _request())

        assert events[-1] == EngineFailed(detail="boom")

    async def test_closing_stream_early_terminates_process(self) -> None:
        released = threading.Event()

        def blocking_stderr():
            yield "frame=  1 fps= 25 q=28.0 size= 1kB time=00:00:01.00 speed=1x\n"
            released.wait(timeout=5)

        process = _fake_process([])
        process.stderr = blocking_stderr()
        process.poll.return_value = None
        process.terminate.side_effect = lambda: released.set()

        with patch("hlsconv.engine.runner.subprocess.Popen", return_value=process):
            stream = FFmpegEngine(FFMPEG).run(_request())
            first = await stream.__anext__()
            await stream.aclose()

        assert isinstance(first, EngineStarted)
        process.terminate.assert_called_once()

    async def test_closing_stream_does_not_block_event_loop(self) -> None:
        released = threading.Event()
        wait_threads: list[threading.Thread] = []

        def blocking_stderr():
            yield "frame=  1 fps= 25 q=28.0 size= 1kB time=00:00:01.00 speed=1x\n"
            released.wait(timeout=5)

        def slow_wait(timeout=None):
            wait_threads.append(threading.current_thread())
            time.sleep(0.6)
            return -15

        process = _fake_process([])
        process.stderr = blocking_stderr()
        process.poll.return_value = None
        process.terminate.side_effect = lambda: released.set()
        process.wait.side_effect = slow_wait

        with patch("hlsconv.engine.runner.subprocess.Popen", return_value=process):
            stream = FFmpegEngine(FFMPEG).run(_request())
            await stream.__anext__()
            started = time.monotonic()
            await stream.aclose()
            elapsed = time.monotonic() - started

        assert elapsed < 0.3
        process.terminate.assert_called_once()
        # Let the worker thread finish reaping
        await asyncio.sleep(0.8)
        assert wait_threads
        assert threading.main_thread() not in wait_threads


class TestReap:
    """Tests for reaping ffmpeg after a stop request."""

    def test_kills_process_that_ignores_terminate(self) -> None:
        process = MagicMock()
        process.pid = 4321

        def wait(timeout=None):
            if process.kill.called:
                return -9
            raise subprocess.TimeoutExpired("ffmpeg", timeout)

        process.wait.side_effect = wait
        cancelled = threading.Event()
        cancelled.set()

        with (
            patch("hlsconv.engine.runner.TERMINATE_GRACE_SECONDS", 0.0),
            patch("hlsconv.engine.runner.REAP_POLL_SECONDS", 0.0),
        ):
            assert FFmpegEngine._reap(process, cancelled) == -9

        process.kill.assert_called_once()

    def test_returns_exit_status(self) -> None:
        process = MagicMock()
        process.wait.return_value = 0

        assert FFmpegEngine._reap(process, threading.Event()) == 0
        process.kill.assert_not_called()
