"""
Logging utilities for API runtime.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord carries; anything else came in via ``extra=``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class ContextFormatter(logging.Formatter):
    """Appends ``extra=`` fields (claim_id, actor_id, ...) as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{line} | {pairs}"


class ProbeAccessFilter(logging.Filter):
    """Throttle health probe access log entries to reduce log noise."""

    def __init__(
        self,
        min_interval_seconds: float = 120.0,
        paths: Iterable[str] = ("/health/live", "/health/ready"),
    ) -> None:
        super().__init__()
        self._min_interval_seconds = min_interval_seconds
        self._paths = tuple(paths)
        self._last_logged: dict[str, float] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        path = next((p for p in self._paths if p in message), None)
        if path is None:
            return True

        now = time.monotonic()
        last = self._last_logged.get(path)
        if last is None or (now - last) >= self._min_interval_seconds:
            self._last_logged[path] = now
            return True

        return False


def configure_logging(level: str = "INFO") -> None:
    """Root handler with context formatting plus probe throttling on the uvicorn access log."""
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logging.basicConfig(level=getattr(logging, level), handlers=[handler], force=True)

    access_logger = logging.getLogger("uvicorn.access")
    if not any(isinstance(f, ProbeAccessFilter) for f in access_logger.filters):
        access_logger.addFilter(ProbeAccessFilter(min_interval_seconds=120.0))
