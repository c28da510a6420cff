"""Event log: bounded, most-recent-first record of pipeline activity.

Entries live for the lifetime of the process only. Each entry is also
mirrored to the process logger so console output carries the same trail.
"""

from __future__ import annotations

import json
import logging
from collections import deque

from autoreply.models import LogEntry, LogEventType

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100


class EventLog:
    """Bounded in-memory log of pipeline events."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("Event log capacity must be positive")
        self._capacity = capacity
        self._entries: deque[LogEntry] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    def log(
        self, event_type: LogEventType, data: dict[str, object] | None = None,
    ) -> LogEntry:
        entry = LogEntry(type=event_type, data=data)
        self._entries.appendleft(entry)
        while len(self._entries) > self._capacity:
            self._entries.pop()
        logger.info(
            "[%s] %s", event_type.value, json.dumps(data, default=str),
        )
        return entry

    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
