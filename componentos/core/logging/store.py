"""
In-memory buffer of captured log entries.

Bounded deque (oldest entries evicted first) guarded by an RLock so the
capture handler can write from any thread.
"""

import threading
from collections import deque
from typing import Deque, List, Optional

from componentos.core.logging.models import LogEntry


class LogStore:
    """Bounded, thread-safe log buffer with filtered newest-first queries."""

    def __init__(self, max_size: int = 5000):
        """
        Args:
            max_size: Maximum entries kept; the oldest are dropped beyond it
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._entries: Deque[LogEntry] = deque(maxlen=max_size)
        self._lock = threading.RLock()

    def add(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def snapshot(self) -> List[LogEntry]:
        """All entries, oldest first."""
        with self._lock:
            return list(self._entries)

    def query(
        self,
        component_id: Optional[str] = None,
        request_id: Optional[str] = None,
        level: Optional[str] = None,
        since: Optional[str] = None,
        logger_name: Optional[str] = None,
        limit: int = 100,
    ) -> List[LogEntry]:
        """
        Filter captured entries.

        Args:
            component_id: Only entries captured for this component
            request_id: Only entries of this code-change request
            level: Only this level (case-insensitive: debug/info/warn/error)
            since: Only entries at or after this ISO 8601 timestamp
            logger_name: Only entries from this logger
            limit: Maximum results

        Returns:
            Matching entries, newest first
        """
        wanted_level = level.lower() if level else None

        def matches(entry: LogEntry) -> bool:
            return (
                (component_id is None or entry.component_id == component_id)
                and (request_id is None or entry.request_id == request_id)
                and (wanted_level is None or entry.level == wanted_level)
                and (since is None or entry.timestamp >= since)
                and (logger_name is None or entry.metadata.get("logger") == logger_name)
            )

        matched = [entry for entry in reversed(self.snapshot()) if matches(entry)]
        return matched[:limit]

    def recent_errors(self, component_id: Optional[str] = None, limit: int = 20) -> List[LogEntry]:
        """Latest error entries, optionally for one component."""
        return self.query(component_id=component_id, level="error", limit=limit)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
