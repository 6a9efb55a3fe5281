"""Artifact directory management.

The ArtifactStore owns the downloads directory: it names output files,
verifies what ffmpeg produced, serves and deletes files by name, and
removes files older than the retention window.

Artifact lifetime is independent of job records. The sweep removes old
files whether or not a job still references them, and a sweep racing an
explicit delete on the same file treats "already gone" as success.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import quote

from hlsconv.conversion.models import DownloadDescriptor

logger = logging.getLogger(__name__)

OUTPUT_EXTENSION = ".mp4"
MAX_NAME_LENGTH = 50
DEFAULT_MAX_AGE_SECONDS = 3600
FALLBACK_NAME = "video"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


class DeleteOutcome(Enum):
    """Result of an explicit artifact deletion."""

    OK = "ok"
    NOT_FOUND = "not_found"
    INVALID_NAME = "invalid_name"


@dataclass(frozen=True)
class ArtifactCheck:
    """Existence and size of an output file."""

    exists: bool
    size: int = 0

    @property
    def is_usable(self) -> bool:
        """True if the file exists and is non-empty."""
        return self.exists and self.size > 0


def sanitize_filename(raw: str) -> str:
    """Reduce a client-supplied name to a safe file stem.

    Drops a trailing .mp4 extension, strips every character outside
    letters, digits, underscore and hyphen, and truncates to 50 characters.

    Args:
        raw: Name supplied by the client.

    Returns:
        Safe stem, or "video" if nothing survives.
    """
    stem = raw.strip()
    if stem.casefold().endswith(OUTPUT_EXTENSION):
        stem = stem[: -len(OUTPUT_EXTENSION)]
    stem = _UNSAFE_CHARS.sub("", stem)[:MAX_NAME_LENGTH]
    return stem or FALLBACK_NAME


def is_safe_name(filename: str) -> bool:
    """Reject names that could escape the artifact directory."""
    if not filename:
        return False
    return "/" not in filename and "\\" not in filename and ".." not in filename


class ArtifactStore:
    """Manages produced MP4 files in a single directory."""

    def __init__(
        self,
        directory: Path,
        *,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
    ) -> None:
        """Initialize the store.

        Args:
            directory: Directory holding artifacts.
            max_age_seconds: Default retention window for sweep().
        """
        self.directory = directory
        self.max_age_seconds = max_age_seconds

    def ensure_directory(self) -> None:
        """Create the artifact directory if needed."""
        self.directory.mkdir(parents=True, exist_ok=True)

    def output_name(self, raw_filename: str, job_id: str) -> str:
        """Build the unique artifact name for a job.

        The job id suffix keeps two jobs submitted with the same raw
        filename from colliding.
        """
        return f"{sanitize_filename(raw_filename)}_{job_id}{OUTPUT_EXTENSION}"

    def path_for(self, filename: str) -> Path:
        """Return the absolute path of an artifact name."""
        return (self.directory / filename).absolute()

    def finalize(self, path: Path) -> ArtifactCheck:
        """Check what the engine left at the output path.

        Args:
            path: Output path given to the engine.

        Returns:
            ArtifactCheck with existence and size. A missing or unreadable
            file reports exists=False.
        """
        try:
            stat = path.stat()
        except FileNotFoundError:
            return ArtifactCheck(exists=False)
        except OSError as e:
            logger.warning("Could not stat artifact %s: %s", path, e)
            return ArtifactCheck(exists=False)
        return ArtifactCheck(exists=True, size=stat.st_size)

    def build_download_descriptor(
        self, path: Path, base_url: str, size: int
    ) -> DownloadDescriptor:
        """Describe where a finished artifact can be downloaded.

        Args:
            path: Artifact path.
            base_url: Public origin of the service, e.g. "https://host:3000".
            size: Size recorded by finalize(); the file is not stat()ed again.

        Returns:
            DownloadDescriptor with name, URL and size.
        """
        url = f"{base_url.rstrip('/')}/downloads/{quote(path.name)}"
        return DownloadDescriptor(filename=path.name, download_url=url, size=size)

    def resolve_download(self, filename: str) -> Path | None:
        """Return the path of an existing artifact, or None.

        Raises:
            ValueError: If the name is not a safe artifact name.
        """
        if not is_safe_name(filename):
            raise ValueError(f"Invalid filename: {filename!r}")
        path = self.directory / filename
        if not path.is_file():
            return None
        return path

    def delete(self, filename: str) -> DeleteOutcome:
        """Delete an artifact by name.

        Args:
            filename: Bare artifact name.

        Returns:
            DeleteOutcome.INVALID_NAME for names containing a path separator
            or "..", NOT_FOUND if no such file, OK otherwise.
        """
        if not is_safe_name(filename):
            logger.warning("Rejected artifact delete with unsafe name: %r", filename)
            return DeleteOutcome.INVALID_NAME

        path = self.directory / filename
        try:
            path.unlink()
        except FileNotFoundError:
            return DeleteOutcome.NOT_FOUND
        except IsADirectoryError:
            return DeleteOutcome.NOT_FOUND
        logger.info("Deleted artifact: %s", filename)
        return DeleteOutcome.OK

    def sweep(
        self,
        max_age_seconds: float | None = None,
        now: float | None = None,
    ) -> int:
        """Remove artifacts older than the retention window.

        Files are judged by modification time only. Job records are not
        consulted.

        Args:
            max_age_seconds: Retention window. None uses the store default.
            now: Current epoch time, for tests. None uses time.time().

        Returns:
            Number of files removed.
        """
        max_age = self.max_age_seconds if max_age_seconds is None else max_age_seconds
        cutoff = (time.time() if now is None else now) - max_age

        if not self.directory.exists():
            return 0

        removed = 0
        for path in self.directory.iterdir():
            try:
                if not path.is_file():
                    continue
                if path.stat().st_mtime >= cutoff:
                    continue
                path.unlink()
            except FileNotFoundError:
                # Already removed by a concurrent DELETE
                continue
            except OSError as e:
                logger.warning("Could not remove expired artifact %s: %s", path, e)
                continue
            logger.info("Removed expired artifact: %s", path.name)
            removed += 1

        return removed
