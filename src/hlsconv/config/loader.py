"""Configuration loading.

Precedence (highest to lowest):
1. CLI flags (applied by the caller with apply_overrides)
2. Environment variables (PORT, HLSCONV_*)
3. Default values
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from typing import Any

from hlsconv.config.env import EnvReader
from hlsconv.config.models import (
    ConverterConfig,
    EngineConfig,
    LoggingConfig,
    ServerConfig,
    StorageConfig,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "HLSCONV_"


def load_config(env: Mapping[str, str] | None = None) -> ConverterConfig:
    """Build configuration from environment variables.

    Args:
        env: Optional mapping to read instead of os.environ.

    Returns:
        Complete ConverterConfig with defaults for unset values.

    Raises:
        ValueError: If a value is well-formed but out of range.
    """
    reader = EnvReader(env)
    server_defaults = ServerConfig()
    storage_defaults = StorageConfig()
    logging_defaults = LoggingConfig()

    server = ServerConfig(
        bind=reader.get_str(f"{ENV_PREFIX}BIND", server_defaults.bind),
        port=reader.get_int("PORT", server_defaults.port),
        shutdown_timeout=reader.get_float(
            f"{ENV_PREFIX}SHUTDOWN_TIMEOUT", server_defaults.shutdown_timeout
        ),
        public_base_url=reader.get_str(f"{ENV_PREFIX}PUBLIC_BASE_URL") or None,
    )

    storage = StorageConfig(
        downloads_dir=reader.get_path(
            f"{ENV_PREFIX}DOWNLOADS_DIR", storage_defaults.downloads_dir
        ),
        retention_seconds=reader.get_float(
            f"{ENV_PREFIX}RETENTION_SECONDS", storage_defaults.retention_seconds
        ),
        sweep_interval_seconds=reader.get_float(
            f"{ENV_PREFIX}SWEEP_INTERVAL", storage_defaults.sweep_interval_seconds
        ),
        job_expiry_seconds=reader.get_float(
            f"{ENV_PREFIX}JOB_EXPIRY_SECONDS", storage_defaults.job_expiry_seconds
        ),
    )

    engine = EngineConfig(ffmpeg_path=reader.get_path(f"{ENV_PREFIX}FFMPEG_PATH"))

    logging_config = LoggingConfig(
        level=reader.get_str(f"{ENV_PREFIX}LOG_LEVEL", logging_defaults.level),
        format=reader.get_str(f"{ENV_PREFIX}LOG_FORMAT", logging_defaults.format),
        file=reader.get_path(f"{ENV_PREFIX}LOG_FILE"),
    )

    return ConverterConfig(
        server=server,
        storage=storage,
        engine=engine,
        logging=logging_config,
    )


def apply_overrides(config: ConverterConfig, section: str, **values: Any) -> ConverterConfig:
    """Return a copy of config with non-None values replaced in one section.

    Args:
        config: Base configuration.
        section: Section attribute name, e.g. "server".
        **values: Field overrides; None values are ignored.

    Returns:
        New ConverterConfig.
    """
    changes = {key: value for key, value in values.items() if value is not None}
    if not changes:
        return config
    updated = dataclasses.replace(getattr(config, section), **changes)
    return dataclasses.replace(config, **{section: updated})
