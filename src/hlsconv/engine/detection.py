"""Startup preflight for the ffmpeg executable.

Detection runs once when the server starts. Its result, an immutable
EngineAvailability, is stored on the application and handed to the
orchestrator; it is never re-evaluated during the process lifetime.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess  # nosec B404 - subprocess is required for tool detection
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Timeout for the version command (seconds)
DETECTION_TIMEOUT = 10

# Searched when ffmpeg is neither configured nor on PATH
FALLBACK_PATHS: tuple[Path, ...] = (
    Path("/usr/bin/ffmpeg"),
    Path("/usr/local/bin/ffmpeg"),
    Path("/opt/homebrew/bin/ffmpeg"),
    Path("/opt/local/bin/ffmpeg"),
    Path("/snap/bin/ffmpeg"),
)

_VERSION_PATTERN = re.compile(r"ffmpeg version (\S+)")


@dataclass(frozen=True)
class EngineAvailability:
    """Outcome of the ffmpeg preflight."""

    available: bool
    path: Path | None = None
    version: str | None = None
    message: str | None = None
    detected_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "available": self.available,
            "path": str(self.path) if self.path else None,
            "version": self.version,
            "message": self.message,
            "detected_at": (
                self.detected_at.isoformat() if self.detected_at else None
            ),
        }


def _candidate_paths(
    configured_path: Path | None,
    fallback_paths: tuple[Path, ...],
) -> list[Path]:
    """List executables to try, in order of preference."""
    candidates: list[Path] = []
    if configured_path:
        if configured_path.is_file():
            candidates.append(configured_path)
        else:
            logger.warning("Configured ffmpeg path is not a file: %s", configured_path)

    which_result = shutil.which("ffmpeg")
    if which_result:
        candidates.append(Path(which_result))

    for path in fallback_paths:
        if path.is_file() and path not in candidates:
            candidates.append(path)
    return candidates


def _probe_version(path: Path) -> tuple[bool, str | None, str | None]:
    """Run ``ffmpeg -version``.

    Returns:
        Tuple of (ok, version, error_message).
    """
    try:
        result = subprocess.run(  # nosec B603 - path is a located executable
            [str(path), "-version"],
            capture_output=True,
            text=True,
            errors="replace",
            timeout=DETECTION_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        return False, None, f"{path} -version timed out"
    except OSError as e:
        return False, None, f"{path} could not be executed: {e}"

    if result.returncode != 0:
        return False, None, f"{path} -version exited with code {result.returncode}"

    match = _VERSION_PATTERN.search(result.stdout)
    return True, match.group(1) if match else None, None


def detect_engine(
    configured_path: Path | None = None,
    fallback_paths: tuple[Path, ...] = FALLBACK_PATHS,
) -> EngineAvailability:
    """Locate a working ffmpeg executable.

    Tries the configured path, then PATH, then well-known install
    locations, and keeps the first one whose ``-version`` succeeds.

    Args:
        configured_path: Optional explicit ffmpeg path.
        fallback_paths: Locations searched after PATH.

    Returns:
        EngineAvailability describing the result.
    """
    detected_at = datetime.now(timezone.utc)
    candidates = _candidate_paths(configured_path, fallback_paths)
    if not candidates:
        logger.error("ffmpeg not found in PATH or fallback locations")
        return EngineAvailability(
            available=False,
            message="ffmpeg not found in PATH or fallback locations",
            detected_at=detected_at,
        )

    errors: list[str] = []
    for path in candidates:
        ok, version, error = _probe_version(path)
        if ok:
            logger.info("Using ffmpeg %s at %s", version or "(unknown version)", path)
            return EngineAvailability(
                available=True,
                path=path,
                version=version,
                detected_at=detected_at,
            )
        logger.warning("ffmpeg candidate unusable: %s", error)
        errors.append(error or str(path))

    return EngineAvailability(
        available=False,
        message="; ".join(errors),
        detected_at=detected_at,
    )
