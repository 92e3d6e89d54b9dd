"""
Request-scoped ids attached to every captured log record.

ContextVars keep concurrent code-change requests (separate asyncio tasks)
from seeing each other's ids.

Usage:
    with log_context(component_id="header", request_id="req_01H..."):
        logger.error("executor failed")   # captured with both ids

    set_log_context(component_id="header")   # manual form
    clear_log_context()
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional


_component_id: ContextVar[Optional[str]] = ContextVar("componentos_component_id", default=None)
_request_id: ContextVar[Optional[str]] = ContextVar("componentos_request_id", default=None)


def set_log_context(
    component_id: Optional[str] = None, request_id: Optional[str] = None
) -> None:
    """Set the ids for the current context. None leaves a value unchanged."""
    if component_id is not None:
        _component_id.set(component_id)
    if request_id is not None:
        _request_id.set(request_id)


def get_current_component_id() -> Optional[str]:
    return _component_id.get()


def get_current_request_id() -> Optional[str]:
    return _request_id.get()


def clear_log_context() -> None:
    _component_id.set(None)
    _request_id.set(None)


@contextmanager
def log_context(
    component_id: Optional[str] = None, request_id: Optional[str] = None
) -> Iterator[None]:
    """
    Scope ids to a block and restore the previous values on exit.

    Nested blocks (a batch request wrapping single changes) restore the
    outer ids instead of clearing them.
    """
    tokens = []
    if component_id is not None:
        tokens.append((_component_id, _component_id.set(component_id)))
    if request_id is not None:
        tokens.append((_request_id, _request_id.set(request_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
