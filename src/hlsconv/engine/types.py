"""Engine request and event types.

An engine run is a finite, ordered stream of events: one EngineStarted,
zero or more EngineProgress, and exactly one terminal event
(EngineSucceeded or EngineFailed).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Union

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 13) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Mobile Safari/537.36"
)
DEFAULT_PROTOCOL_WHITELIST = ("file", "http", "https", "tcp", "tls", "crypto")


@dataclass(frozen=True)
class TrimWindow:
    """Sub-range of the input timeline, in seconds."""

    seek: float
    duration: float

    @classmethod
    def from_bounds(cls, start_time: float, end_time: float) -> TrimWindow:
        """Build a window from absolute start and end times."""
        return cls(seek=start_time, duration=end_time - start_time)


@dataclass(frozen=True)
class NetworkOptions:
    """Input-side options that make remote HLS fetching resilient.

    Always passed to ffmpeg; not configurable per request.
    """

    protocol_whitelist: tuple[str, ...] = DEFAULT_PROTOCOL_WHITELIST
    user_agent: str = DEFAULT_USER_AGENT
    reconnect: bool = True
    reconnect_streamed: bool = True
    reconnect_delay_max: int = 5


@dataclass(frozen=True)
class EngineRequest:
    """Everything the engine needs for one conversion."""

    input_url: str
    output_path: Path
    crf: int
    trim: TrimWindow | None = None
    network: NetworkOptions = NetworkOptions()


@dataclass(frozen=True)
class EngineStarted:
    """ffmpeg process was spawned."""

    command_line: str


@dataclass(frozen=True)
class EngineProgress:
    """ffmpeg reported encoding progress."""

    percent: float
    """Raw completion percentage (0-100), unreliable for HLS inputs."""

    timemark: str | None = None
    """Output timestamp reported by ffmpeg, e.g. "00:01:23.45"."""


@dataclass(frozen=True)
class EngineSucceeded:
    """ffmpeg exited with status 0."""

    output_path: Path


@dataclass(frozen=True)
class EngineFailed:
    """ffmpeg could not be started, exited non-zero, or hit a stream error."""

    detail: str
    returncode: int | None = None


EngineEvent = Union[EngineStarted, EngineProgress, EngineSucceeded, EngineFailed]

TERMINAL_EVENTS = (EngineSucceeded, EngineFailed)


def is_terminal(event: EngineEvent) -> bool:
    """Return True for the event that ends a run."""
    return isinstance(event, TERMINAL_EVENTS)


class TranscodingEngine(Protocol):
    """Protocol for engines driven by the orchestrator."""

    def run(self, request: EngineRequest) -> AsyncIterator[EngineEvent]:
        """Start a conversion and stream its events.

        The iterator must end after yielding exactly one terminal event.
        """
        ...
