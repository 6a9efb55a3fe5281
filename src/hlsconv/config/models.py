"""Configuration data models.

Each section validates itself in __post_init__; invalid values raise
ValueError at load time rather than surfacing later.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ServerConfig:
    """HTTP server settings for `hlsconv serve`."""

    bind: str = "0.0.0.0"  # nosec B104 - service is meant to be reachable
    """Network address to bind to."""

    port: int = 3000
    """Port number for the HTTP server."""

    shutdown_timeout: float = 30.0
    """Seconds to wait for graceful shutdown before cancelling tasks."""

    public_base_url: str | None = None
    """Origin used in download URLs. None derives it from each request."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be 1-65535, got {self.port}")
        if self.shutdown_timeout <= 0:
            raise ValueError(
                f"shutdown_timeout must be positive, got {self.shutdown_timeout}"
            )


@dataclass(frozen=True)
class StorageConfig:
    """Artifact directory and retention settings."""

    downloads_dir: Path = Path("downloads")
    """Directory where converted MP4 files are written and served from."""

    retention_seconds: float = 3600.0
    """Artifacts older than this are removed by the sweep."""

    sweep_interval_seconds: float = 3600.0
    """Seconds between retention sweeps."""

    job_expiry_seconds: float = 600.0
    """Seconds a finished job stays pollable."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        for name in ("retention_seconds", "sweep_interval_seconds", "job_expiry_seconds"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")


@dataclass(frozen=True)
class EngineConfig:
    """ffmpeg location override."""

    ffmpeg_path: Path | None = None
    """Explicit ffmpeg executable. None searches PATH and fallback locations."""


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = True

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass(frozen=True)
class ConverterConfig:
    """Main configuration container.

    Aggregates all configuration sections.
    """

    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
