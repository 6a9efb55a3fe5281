"""Transcoding engine package.

Module organization:
- types.py: EngineRequest, TrimWindow, NetworkOptions and engine events
- command.py: FFmpeg command construction
- progress.py: FFmpeg stderr parsing
- runner.py: FFmpegEngine, runs ffmpeg and streams events
- detection.py: Startup preflight producing EngineAvailability
"""

from .command import build_ffmpeg_command
from .detection import EngineAvailability, detect_engine
from .runner import FFmpegEngine
from .types import (
    EngineEvent,
    EngineFailed,
    EngineProgress,
    EngineRequest,
    EngineStarted,
    EngineSucceeded,
    NetworkOptions,
    TranscodingEngine,
    TrimWindow,
    is_terminal,
)

__all__ = [
    "EngineAvailability",
    "EngineEvent",
    "EngineFailed",
    "EngineProgress",
    "EngineRequest",
    "EngineStarted",
    "EngineSucceeded",
    "FFmpegEngine",
    "NetworkOptions",
    "TranscodingEngine",
    "TrimWindow",
    "build_ffmpeg_command",
    "detect_engine",
    "is_terminal",
]
