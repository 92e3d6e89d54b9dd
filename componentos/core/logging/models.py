"""Captured log entry, as read by debug panels and diagnostics."""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

LogLevel = Literal["debug", "info", "warn", "error"]


class LogEntry(BaseModel):
    """One captured log record"""
    id: str
    level: LogLevel
    timestamp: str = Field(description="ISO 8601 UTC with Z suffix")
    component_id: Optional[str] = None
    request_id: Optional[str] = None
    message: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
