"""Log emitter: append-only agent log.

Timestamps never go backwards: if the clock reports an earlier time
than the last entry (clock adjustments, sub-second ties), the previous
timestamp is reused.  Append order is the order of record.
"""
from __future__ import annotations

import itertools
from collections.abc import Callable
from datetime import datetime

from .models import AgentId, LogEntry, LogType

Clock = Callable[[], datetime]


class LogEmitter:
    """Builds LogEntry values and appends them to a log sequence."""

    def __init__(
        self,
        clock: Clock | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._clock = clock or datetime.now
        if id_factory is None:
            counter = itertools.count(1)
            id_factory = lambda: f"log-{next(counter)}"  # noqa: E731
        self._id_factory = id_factory

    def append(
        self,
        logs: tuple[LogEntry, ...],
        agent: AgentId,
        message: str,
        log_type: LogType = LogType.INFO,
    ) -> tuple[LogEntry, ...]:
        """Return *logs* with one new entry at the end."""
        timestamp = self._clock()
        if logs and timestamp < logs[-1].timestamp:
            timestamp = logs[-1].timestamp
        entry = LogEntry(
            agent=agent,
            message=message,
            type=log_type,
            timestamp=timestamp,
            id=self._id_factory(),
        )
        return logs + (entry,)
