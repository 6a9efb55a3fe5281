"""Job context for structured logging.

Provides context propagation for conversion tasks using contextvars,
enabling automatic injection of job_id into log records. asyncio tasks and
asyncio.to_thread() copy the current context, so records emitted by the
ffmpeg worker thread carry the id of the job that started it.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)


def get_job_context() -> str | None:
    """Get the current job id, or None outside a job."""
    return _job_id.get()


@contextmanager
def job_context(job_id: str) -> Generator[None, None, None]:
    """Context manager for job processing context.

    Sets the job id on entry and restores the previous value on exit.

    Example:
        with job_context(job_id):
            logger.info("Spawning ffmpeg")  # Includes job_id
    """
    token = _job_id.set(job_id)
    try:
        yield
    finally:
        _job_id.reset(token)


class JobContextFilter(logging.Filter):
    """Logging filter that injects job context into log records.

    Adds a job_id attribute for JSON output and a job_tag such as
    "[job:1b2c...] " for text output (empty outside a job).
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject job context into log record.

        Returns:
            Always True (does not filter, only enriches).
        """
        job_id = get_job_context()
        record.job_id = job_id
        record.job_tag = f"[job:{job_id}] " if job_id else ""
        return True  # Never filter out records
