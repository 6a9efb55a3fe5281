"""FFmpeg stderr parsing utilities.

FFmpeg reports the input duration once ("Duration: 00:10:00.00, ...") and
then periodic status lines:

    frame= 1234 fps= 30 q=28.0 size= 2048kB time=00:01:23.45 bitrate=... speed=2.0x

These helpers turn those lines into progress samples and a completion
percentage.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_DURATION_PATTERN = re.compile(r"Duration:\s*(\d+):(\d+):(\d+(?:\.\d+)?)")
_TIME_PATTERN = re.compile(r"time=\s*(-?\d+):(\d+):(\d+(?:\.\d+)?)")
_FRAME_PATTERN = re.compile(r"frame=\s*(\d+)")
_SPEED_PATTERN = re.compile(r"speed=\s*([^\s]+)")


@dataclass
class FFmpegProgress:
    """Parsed FFmpeg status line."""

    frame: int | None = None
    out_time_us: int | None = None  # Output time in microseconds
    speed: str | None = None

    @property
    def out_time_seconds(self) -> float | None:
        """Get output time in seconds."""
        if self.out_time_us is not None:
            return self.out_time_us / 1_000_000
        return None

    @property
    def timemark(self) -> str | None:
        """Output time formatted as HH:MM:SS.cc."""
        seconds = self.out_time_seconds
        if seconds is None:
            return None
        hours, rem = divmod(seconds, 3600)
        minutes, secs = divmod(rem, 60)
        return f"{int(hours):02d}:{int(minutes):02d}:{secs:05.2f}"

    def get_percent(self, duration_seconds: float | None) -> float:
        """Calculate progress percentage based on duration.

        Args:
            duration_seconds: Total duration being encoded, in seconds.

        Returns:
            Progress percentage (0.0 to 100.0), or 0.0 if unknown.
        """
        if duration_seconds is None or duration_seconds <= 0:
            return 0.0
        out_time = self.out_time_seconds
        if out_time is None or out_time <= 0:
            return 0.0
        return min(100.0, (out_time / duration_seconds) * 100)


def _to_seconds(hours: str, minutes: str, seconds: str) -> float:
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_duration_line(line: str) -> float | None:
    """Parse the input duration from an FFmpeg header line.

    Args:
        line: A line from FFmpeg stderr.

    Returns:
        Duration in seconds, or None if the line carries no duration
        (live playlists report "Duration: N/A").
    """
    match = _DURATION_PATTERN.search(line)
    if not match:
        return None
    duration = _to_seconds(*match.groups())
    return duration if duration > 0 else None


def parse_stderr_progress(line: str) -> FFmpegProgress | None:
    """Parse FFmpeg stderr progress line.

    Args:
        line: A line from FFmpeg stderr.

    Returns:
        Parsed FFmpegProgress or None if not a progress line.
    """
    if "frame=" not in line and "time=" not in line:
        return None

    time_match = _TIME_PATTERN.search(line)
    if not time_match and "frame=" not in line:
        return None

    result = FFmpegProgress()

    frame_match = _FRAME_PATTERN.search(line)
    if frame_match:
        result.frame = int(frame_match.group(1))

    speed_match = _SPEED_PATTERN.search(line)
    if speed_match and speed_match.group(1) != "N/A":
        result.speed = speed_match.group(1)

    if time_match:
        hours, minutes, secs = time_match.groups()
        # ffmpeg prints a small negative time before the first packet
        sign = -1 if hours.startswith("-") else 1
        seconds = sign * _to_seconds(hours.lstrip("-"), minutes, secs)
        result.out_time_us = max(0, int(round(seconds * 1_000_000)))

    return result


def summarize_failure(stderr_lines: list[str], returncode: int | None) -> str:
    """Pick the most useful failure detail from FFmpeg stderr.

    FFmpeg prints the actual cause near the end, before any generic
    "Conversion failed!" trailer.

    Args:
        stderr_lines: Collected stderr lines.
        returncode: Process exit status.

    Returns:
        Human-readable failure detail.
    """
    generic = ("conversion failed!", "exiting normally")
    for line in reversed(stderr_lines):
        text = line.strip()
        if not text or parse_stderr_progress(text) is not None:
            continue
        if text.casefold() in generic:
            continue
        return text
    if returncode is not None:
        return f"ffmpeg exited with code {returncode}"
    return "ffmpeg failed"
