"""JSON log formatting for container deployments."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord carries, plus the ones Formatter and
# JobContextFilter add; anything else came in through ``extra=``.
_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", (), None))
) | {"message", "asctime", "taskName", "job_id", "job_tag"}


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Keys: ``timestamp`` (ISO-8601 UTC), ``level``, ``logger``, ``message``,
    then ``job_id`` while a conversion is running, ``thread`` for records
    emitted off the main thread (the ffmpeg reader), ``context`` for values
    passed through ``extra=`` and ``exception`` when there is a traceback.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        job_id = getattr(record, "job_id", None)
        if job_id:
            entry["job_id"] = job_id

        if record.thread != threading.main_thread().ident:
            entry["thread"] = record.threadName

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if extra:
            entry["context"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)
