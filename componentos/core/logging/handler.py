"""
Logging handler that copies componentos records into a LogStore.

Each entry carries the component and request ids of the code-change
request being processed (see context.py). A record may name them itself
via `extra={"component_id": ..., "request_id": ...}`; explicit values win
over the context.

emit() never raises: a broken entry goes to logging's handleError.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict

from ulid import ULID

from componentos.core.logging.context import get_current_component_id, get_current_request_id
from componentos.core.logging.models import LogEntry, LogLevel
from componentos.core.logging.store import LogStore
from componentos.core.time import to_iso_z


def level_name(levelno: int) -> LogLevel:
    """Map a stdlib level number onto the four captured level names."""
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warn"
    if levelno >= logging.INFO:
        return "info"
    return "debug"


class LogCaptureHandler(logging.Handler):
    """Captures records at or above `level` into a LogStore."""

    def __init__(self, log_store: LogStore, level: int = logging.ERROR):
        super().__init__(level=level)
        self.log_store = log_store

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.log_store.add(self.to_entry(record))
        except Exception:
            self.handleError(record)

    def to_entry(self, record: logging.LogRecord) -> LogEntry:
        metadata: Dict[str, Any] = {
            "logger": record.name,
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            metadata["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
            }

        return LogEntry(
            id=str(ULID()),
            level=level_name(record.levelno),
            timestamp=to_iso_z(datetime.fromtimestamp(record.created, tz=timezone.utc)),
            component_id=getattr(record, "component_id", None) or get_current_component_id(),
            request_id=getattr(record, "request_id", None) or get_current_request_id(),
            message=self.format(record) if self.formatter else record.getMessage(),
            metadata=metadata,
        )
