"""
Diagnostics sink for named runtime events.

Core components (retrier, circuit breaker, orchestrator, turn handler) never reach for a global
logger to report operational events.  They receive a :class:`Diagnostics` object at construction
and emit *named* events with key-value payloads, e.g.::

    diagnostics.emit(logging.WARNING, "provider", "retrying", attempt=1, delay_ms=1000)

The default implementation renders events through the standard :mod:`logging` module.
"""

import logging
from typing import (
    Any,
    Protocol,
)


class Diagnostics(Protocol):
    """Anything that accepts named events with key-value payloads."""

    def emit(self, level: int, subsystem: str, event: str, **fields: Any) -> None:
        """Record *event* from *subsystem* at *level*."""


def _format_fields(fields: dict[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items() if value is not None)


class LoggingDiagnostics:
    """
    Diagnostics sink backed by :mod:`logging`.

    Console output reads ``provider: retrying attempt=1 delay_ms=1000``; the raw event name,
    subsystem and payload are attached to the log record (``record.event``, ``record.subsystem``,
    ``record.fields``) for structured handlers.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger("stanchion.events")

    def emit(self, level: int, subsystem: str, event: str, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(
            level,
            "%s: %s %s",
            subsystem,
            event,
            _format_fields(fields),
            extra={"event": event, "subsystem": subsystem, "fields": fields},
        )
