"""Configuration management.

Configuration is read from environment variables (PORT plus HLSCONV_*)
through an injectable EnvReader, and CLI flags override it.
"""

from hlsconv.config.env import EnvReader
from hlsconv.config.loader import apply_overrides, load_config
from hlsconv.config.models import (
    ConverterConfig,
    EngineConfig,
    LoggingConfig,
    ServerConfig,
    StorageConfig,
)

__all__ = [
    "ConverterConfig",
    "EngineConfig",
    "EnvReader",
    "LoggingConfig",
    "ServerConfig",
    "StorageConfig",
    "apply_overrides",
    "load_config",
]
