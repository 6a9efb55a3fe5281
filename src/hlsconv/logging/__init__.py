"""Structured logging module.

Provides configurable logging with JSON format support and file rotation.
Includes job context support for conversion tasks.
"""

from hlsconv.logging.config import configure_logging
from hlsconv.logging.context import (
    JobContextFilter,
    get_job_context,
    job_context,
)
from hlsconv.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "JobContextFilter",
    "configure_logging",
    "get_job_context",
    "job_context",
]
