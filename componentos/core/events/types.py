"""
Event Types - closed set of notifications emitted by the component core

Protocol:
{
  "type": "code_change_applied",
  "ts": "2026-01-27T10:21:33.123Z",
  "source": "registry",
  "entity": {
    "kind": "component",
    "id": "header"
  },
  "payload": {
    "description": "Make the title bold",
    "version_id": "01HQ..."
  }
}

Type values are the names external layers (debug panel, chat UI) subscribe to.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from componentos.core.time import utc_now_iso


class EventType(str, Enum):
    """Event type enum"""

    # Registry lifecycle events
    COMPONENT_REGISTERED = "component_registered"
    COMPONENT_UNREGISTERED = "component_unregistered"
    COMPONENT_UPDATED = "component_updated"
    COMPONENT_VERSION_CREATED = "component_version_created"
    COMPONENT_VERSION_REVERTED = "component_version_reverted"

    # Code change events
    CODE_CHANGE_APPLIED = "code_change_applied"
    CODE_CHANGE_FAILED = "code_change_failed"

    # Version control events
    VERSION_CREATED = "version_created"
    VERSION_REVERTED = "version_reverted"
    BRANCH_CREATED = "branch_created"
    MERGE_COMPLETED = "merge_completed"

    # Plugin events
    PLUGIN_REGISTERED = "plugin_registered"
    PLUGIN_INITIALIZED = "plugin_initialized"
    PLUGIN_FAILED = "plugin_failed"

    ERROR = "error"


EntityKind = Literal["component", "version", "branch", "plugin"]
EventSource = Literal["registry", "version_control", "plugin_manager"]


@dataclass
class EventEntity:
    """Event entity (what the event is about)"""

    kind: EntityKind
    id: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to dict"""
        return {"kind": self.kind, "id": self.id}


@dataclass
class Event:
    """
    Event envelope

    All events use this structure so subscribers can dispatch on `type`
    and read `entity.id` without knowing the payload shape.
    """

    type: EventType
    source: EventSource = "registry"
    entity: Optional[EventEntity] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    ts: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization"""
        return {
            "type": self.type.value,
            "ts": self.ts,
            "source": self.source,
            "entity": self.entity.to_dict() if self.entity else None,
            "payload": self.payload,
        }

    @property
    def entity_id(self) -> Optional[str]:
        return self.entity.id if self.entity else None

    # Registry lifecycle

    @classmethod
    def component_registered(cls, component_id: str) -> "Event":
        """Create component_registered event"""
        return cls(
            type=EventType.COMPONENT_REGISTERED,
            entity=EventEntity(kind="component", id=component_id),
            payload={"component_id": component_id},
        )

    @classmethod
    def component_unregistered(cls, component_id: str) -> "Event":
        """Create component_unregistered event"""
        return cls(
            type=EventType.COMPONENT_UNREGISTERED,
            entity=EventEntity(kind="component", id=component_id),
            payload={"component_id": component_id},
        )

    @classmethod
    def component_updated(cls, component_id: str, updated_fields: List[str]) -> "Event":
        """Create component_updated event"""
        return cls(
            type=EventType.COMPONENT_UPDATED,
            entity=EventEntity(kind="component", id=component_id),
            payload={"component_id": component_id, "updated_fields": updated_fields},
        )

    @classmethod
    def component_version_created(cls, component_id: str, version_id: str) -> "Event":
        """Create component_version_created event"""
        return cls(
            type=EventType.COMPONENT_VERSION_CREATED,
            entity=EventEntity(kind="component", id=component_id),
            payload={"component_id": component_id, "version_id": version_id},
        )

    @classmethod
    def component_version_reverted(
        cls, component_id: str, version_id: str, new_version_id: str
    ) -> "Event":
        """Create component_version_reverted event"""
        return cls(
            type=EventType.COMPONENT_VERSION_REVERTED,
            entity=EventEntity(kind="component", id=component_id),
            payload={
                "component_id": component_id,
                "version_id": version_id,
                "new_version_id": new_version_id,
            },
        )

    # Code changes

    @classmethod
    def code_change_applied(
        cls, component_id: str, description: str, version_id: str
    ) -> "Event":
        """Create code_change_applied event"""
        return cls(
            type=EventType.CODE_CHANGE_APPLIED,
            entity=EventEntity(kind="component", id=component_id),
            payload={
                "component_id": component_id,
                "description": description,
                "version_id": version_id,
            },
        )

    @classmethod
    def code_change_failed(
        cls, component_id: str, error: str, error_code: Optional[str] = None
    ) -> "Event":
        """Create code_change_failed event"""
        return cls(
            type=EventType.CODE_CHANGE_FAILED,
            entity=EventEntity(kind="component", id=component_id),
            payload={
                "component_id": component_id,
                "error": error,
                "error_code": error_code,
            },
        )

    @classmethod
    def error(
        cls,
        error: str,
        component_id: Optional[str] = None,
        source: EventSource = "registry",
        details: Optional[Dict[str, Any]] = None,
    ) -> "Event":
        """Create error event"""
        return cls(
            type=EventType.ERROR,
            source=source,
            entity=EventEntity(kind="component", id=component_id) if component_id else None,
            payload={"error": error, **(details or {})},
        )

    # Version control

    @classmethod
    def version_created(
        cls, component_id: str, version_id: str, branch_id: Optional[str] = None
    ) -> "Event":
        """Create version_created event"""
        return cls(
            type=EventType.VERSION_CREATED,
            source="version_control",
            entity=EventEntity(kind="version", id=version_id),
            payload={
                "component_id": component_id,
                "version_id": version_id,
                "branch_id": branch_id,
            },
        )

    @classmethod
    def version_reverted(
        cls, component_id: str, version_id: str, new_version_id: str
    ) -> "Event":
        """Create version_reverted event"""
        return cls(
            type=EventType.VERSION_REVERTED,
            source="version_control",
            entity=EventEntity(kind="version", id=new_version_id),
            payload={
                "component_id": component_id,
                "version_id": version_id,
                "new_version_id": new_version_id,
            },
        )

    @classmethod
    def branch_created(
        cls, component_id: str, branch_id: str, branch_name: str, version_id: str
    ) -> "Event":
        """Create branch_created event"""
        return cls(
            type=EventType.BRANCH_CREATED,
            source="version_control",
            entity=EventEntity(kind="branch", id=branch_id),
            payload={
                "component_id": component_id,
                "branch_id": branch_id,
                "branch_name": branch_name,
                "version_id": version_id,
            },
        )

    @classmethod
    def merge_completed(
        cls,
        component_id: str,
        source_branch_id: str,
        target_branch_id: str,
        merged_version_id: str,
    ) -> "Event":
        """Create merge_completed event"""
        return cls(
            type=EventType.MERGE_COMPLETED,
            source="version_control",
            entity=EventEntity(kind="branch", id=target_branch_id),
            payload={
                "component_id": component_id,
                "source_branch_id": source_branch_id,
                "target_branch_id": target_branch_id,
                "merged_version_id": merged_version_id,
            },
        )

    # Plugins

    @classmethod
    def plugin_registered(cls, plugin_id: str, name: str) -> "Event":
        """Create plugin_registered event"""
        return cls(
            type=EventType.PLUGIN_REGISTERED,
            source="plugin_manager",
            entity=EventEntity(kind="plugin", id=plugin_id),
            payload={"name": name},
        )

    @classmethod
    def plugin_initialized(cls, plugin_id: str) -> "Event":
        """Create plugin_initialized event"""
        return cls(
            type=EventType.PLUGIN_INITIALIZED,
            source="plugin_manager",
            entity=EventEntity(kind="plugin", id=plugin_id),
        )

    @classmethod
    def plugin_failed(cls, plugin_id: str, stage: str, error: str) -> "Event":
        """Create plugin_failed event"""
        return cls(
            type=EventType.PLUGIN_FAILED,
            source="plugin_manager",
            entity=EventEntity(kind="plugin", id=plugin_id),
            payload={"stage": stage, "error": error},
        )
