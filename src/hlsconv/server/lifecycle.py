"""Server lifecycle management.

This module provides classes for tracking server startup, running state,
and graceful shutdown coordination.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)


@dataclass
class ShutdownState:
    """Tracks shutdown progress for graceful termination."""

    initiated: datetime | None = None
    """UTC timestamp when shutdown was initiated, None if not shutting down."""

    timeout_deadline: datetime | None = None
    """UTC timestamp after which remaining conversions are cancelled."""

    @property
    def is_shutting_down(self) -> bool:
        """Returns True if shutdown has been initiated."""
        return self.initiated is not None

    @property
    def remaining_seconds(self) -> float | None:
        """Seconds left before the deadline, 0 once passed, None if not set."""
        if self.timeout_deadline is None:
            return None
        remaining = self.timeout_deadline - datetime.now(timezone.utc)
        return max(0.0, remaining.total_seconds())


@dataclass
class ServerLifecycle:
    """Manages server startup and shutdown state.

    New conversions are refused once shutdown begins; polling and downloads
    keep working until the listener closes.
    """

    shutdown_timeout: float = 30.0
    """Seconds to wait for graceful shutdown before cancelling tasks."""

    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    """UTC timestamp when the server started."""

    shutdown_state: ShutdownState = field(default_factory=ShutdownState)
    """Current shutdown state."""

    @property
    def uptime_seconds(self) -> float:
        """Returns seconds since server startup."""
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

    @property
    def is_shutting_down(self) -> bool:
        """Returns True if shutdown has been initiated."""
        return self.shutdown_state.is_shutting_down

    def initiate_shutdown(self) -> None:
        """Begin graceful shutdown process.

        Sets shutdown timestamps and deadline. Idempotent - calling multiple
        times has no additional effect after first call.
        """
        if self.shutdown_state.initiated is not None:
            return

        now = datetime.now(timezone.utc)
        self.shutdown_state.initiated = now
        self.shutdown_state.timeout_deadline = now + timedelta(
            seconds=self.shutdown_timeout
        )
        logger.info("Shutdown initiated (timeout %.0fs)", self.shutdown_timeout)
