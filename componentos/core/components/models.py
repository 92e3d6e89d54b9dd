"""Data models for the component core"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================
# Versions
# ============================================

class ComponentVersion(BaseModel):
    """Immutable snapshot of a component's source code"""
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: int = Field(description="Epoch milliseconds, non-decreasing within a component")
    source_code: str
    description: str
    author: Optional[str] = None
    parent_version_id: Optional[str] = None


class VersionBranch(BaseModel):
    """Named, append-only sequence of version ids of one component"""
    id: str
    name: str
    component_id: str
    root_version_id: str
    version_ids: List[str] = Field(default_factory=list)
    created_at: int

    @property
    def head_version_id(self) -> Optional[str]:
        return self.version_ids[-1] if self.version_ids else None


class VersionDiff(BaseModel):
    """Result of comparing two versions of a component"""
    component_id: str
    from_version_id: str
    to_version_id: str
    diff: str
    added_lines: int
    removed_lines: int
    changed_lines: int


class VersionSummary(BaseModel):
    """Aggregate view of a component's history"""
    total_versions: int
    branches: int
    latest_version: Optional[ComponentVersion] = None
    first_version: Optional[ComponentVersion] = None


# ============================================
# Components and relationships
# ============================================

class ComponentRelationship(BaseModel):
    """Snapshot of one component's edges in the relationship graph"""
    parent_id: Optional[str] = None
    children_ids: List[str] = Field(default_factory=list)
    sibling_ids: List[str] = Field(default_factory=list)
    depends_on: List[str] = Field(default_factory=list)
    depended_on_by: List[str] = Field(default_factory=list)
    shared_state_keys: List[str] = Field(default_factory=list)


class Component(BaseModel):
    """A registered, independently versionable unit of UI source code"""
    id: str
    name: str
    source_code: Optional[str] = None
    props: Dict[str, Any] = Field(default_factory=dict)
    path: List[str] = Field(default_factory=list, description="Structural path from the app root")
    dependencies: List[str] = Field(default_factory=list, description="Component ids or names")
    parent_id: Optional[str] = None
    state_keys: List[str] = Field(default_factory=list, description="Shared state keys read or written")
    versions: List[ComponentVersion] = Field(default_factory=list)
    relationships: Optional[ComponentRelationship] = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Component ID cannot be empty")
        return v


# Fields a caller may not overwrite through update_component
PROTECTED_COMPONENT_FIELDS = frozenset({"id", "versions", "relationships"})


# ============================================
# Permissions
# ============================================

@dataclass
class ValidationRule:
    """Caller-supplied check run against new source before it is applied

    `validate(code, component)` returns a bool or an awaitable bool.
    """
    id: str
    description: str
    validate: Callable[[str, Component], Union[bool, Awaitable[bool]]]
    error_message: str


class Permissions(BaseModel):
    """Capability record consulted before any code change proceeds"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    allow_component_creation: bool = True
    allow_component_deletion: bool = False
    allow_style_changes: bool = True
    allow_logic_changes: bool = True
    allow_data_access: bool = True
    allow_network_requests: bool = False
    roles_allowed: Optional[List[str]] = None
    custom_validation_rules: List[ValidationRule] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """Outcome of a code validator"""
    is_valid: bool
    error: Optional[str] = None


# ============================================
# Code changes
# ============================================

class ChangeErrorCode(str, Enum):
    """Standardized error codes for failed code changes"""
    COMPONENT_NOT_FOUND = "COMPONENT_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    MISSING_CHANGE = "MISSING_CHANGE"
    ABORTED = "ABORTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CodeChangeRequest(BaseModel):
    """Instruction to replace one component's source code"""
    component_id: str
    source_code: str
    description: str = "Code updated"
    author: Optional[str] = None
    role: Optional[str] = None


class CrossComponentChangeRequest(BaseModel):
    """Instruction to replace the source of several components"""
    component_ids: List[str]
    changes: Dict[str, str] = Field(description="component_id -> new source code")
    description: str = "Code updated"
    author: Optional[str] = None
    role: Optional[str] = None

    def request_for(self, component_id: str) -> CodeChangeRequest:
        return CodeChangeRequest(
            component_id=component_id,
            source_code=self.changes[component_id],
            description=self.description,
            author=self.author,
            role=self.role,
        )


class CodeChangeResult(BaseModel):
    """Result of a code change request"""
    success: bool
    component_id: str
    new_source_code: Optional[str] = None
    diff: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[ChangeErrorCode] = None
    version_id: Optional[str] = None

    @classmethod
    def failure(
        cls,
        component_id: str,
        error: str,
        error_code: ChangeErrorCode,
    ) -> "CodeChangeResult":
        return cls(success=False, component_id=component_id, error=error, error_code=error_code)


# ============================================
# Graph visualization
# ============================================

NodeType = Literal["component", "state", "external"]
EdgeType = Literal["parent-child", "depends-on", "uses-state", "sibling"]


class GraphNode(BaseModel):
    id: str
    name: str
    type: NodeType
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GraphEdge(BaseModel):
    source: str
    target: str
    type: EdgeType
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GraphVisualization(BaseModel):
    """Node/edge lists ready for an external renderer"""
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
