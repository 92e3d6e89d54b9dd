"""Event envelope and bus shared by the registry, version control and plugins."""

from componentos.core.events.bus import EventBus
from componentos.core.events.types import Event, EventEntity, EventType

__all__ = [
    "EventBus",
    "Event",
    "EventEntity",
    "EventType",
]
