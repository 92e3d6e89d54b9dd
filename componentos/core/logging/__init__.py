"""
Logging components for componentos.

Components:
- context: request-scoped component and request ids (ContextVars)
- store: bounded in-memory log storage
- handler: log capture handler integrating with Python logging system
"""

import logging
from typing import Optional

from componentos.core.config import ComponentOSConfig
from componentos.core.logging.context import (
    set_log_context,
    get_current_component_id,
    get_current_request_id,
    clear_log_context,
    log_context,
)
from componentos.core.logging.handler import LogCaptureHandler
from componentos.core.logging.models import LogEntry
from componentos.core.logging.store import LogStore

__all__ = [
    "set_log_context",
    "get_current_component_id",
    "get_current_request_id",
    "clear_log_context",
    "log_context",
    "LogCaptureHandler",
    "LogEntry",
    "LogStore",
    "configure_logging",
]


def configure_logging(
    config: ComponentOSConfig,
    store: Optional[LogStore] = None,
) -> LogStore:
    """
    Set the componentos logger level and attach a capture handler.

    Calling this twice does not stack handlers: an existing capture handler
    on the package logger is replaced.

    Args:
        config: Configuration providing log levels and store size
        store: Existing store to capture into (a new one is created if None)

    Returns:
        The LogStore receiving captured records
    """
    package_logger = logging.getLogger("componentos")
    package_logger.setLevel(getattr(logging, config.log_level, logging.INFO))

    if store is None:
        store = LogStore(max_size=config.log_store_max_size)

    for existing in list(package_logger.handlers):
        if isinstance(existing, LogCaptureHandler):
            package_logger.removeHandler(existing)

    capture_level = getattr(logging, config.log_capture_level, logging.ERROR)
    package_logger.addHandler(LogCaptureHandler(store, level=capture_level))

    package_logger.info(
        f"Log capture initialized (level={config.log_level}, "
        f"capture={config.log_capture_level}, max_size={store.max_size})"
    )
    return store
