"""Component core

Registry, relationship graph and version control for modifiable UI
components, plus the default code validator and executor.

Components:
- registry: ComponentRegistry, the single writer of components, graph and versions
- relationship_graph: parent/child, sibling, dependency and shared-state edges
- version_control: append-only, branchable source history with diffs and merges
- validation: default permission and security checks for code changes
- executor: CodeExecutor interface and a passthrough implementation
- models: Pydantic data models
- exceptions: Custom exceptions
"""

from componentos.core.components.exceptions import (
    ComponentOSError,
    ComponentNotFoundError,
    VersionControlError,
    VersionNotFoundError,
    BranchNotFoundError,
    BranchExistsError,
    EmptyBranchError,
    PluginError,
    PluginNotFoundError,
    PluginInitializationError,
)
from componentos.core.components.models import (
    ChangeErrorCode,
    CodeChangeRequest,
    CodeChangeResult,
    Component,
    ComponentRelationship,
    ComponentVersion,
    CrossComponentChangeRequest,
    GraphEdge,
    GraphNode,
    GraphVisualization,
    Permissions,
    ValidationResult,
    ValidationRule,
    VersionBranch,
    VersionDiff,
    VersionSummary,
)
from componentos.core.components.executor import CodeExecutor, PassthroughExecutor
from componentos.core.components.validation import validate_code
from componentos.core.components.relationship_graph import RelationshipGraph
from componentos.core.components.version_control import VersionControl, diff_source
from componentos.core.components.registry import ComponentRegistry

__all__ = [
    # Exceptions
    "ComponentOSError",
    "ComponentNotFoundError",
    "VersionControlError",
    "VersionNotFoundError",
    "BranchNotFoundError",
    "BranchExistsError",
    "EmptyBranchError",
    "PluginError",
    "PluginNotFoundError",
    "PluginInitializationError",
    # Models
    "ChangeErrorCode",
    "CodeChangeRequest",
    "CodeChangeResult",
    "Component",
    "ComponentRelationship",
    "ComponentVersion",
    "CrossComponentChangeRequest",
    "GraphEdge",
    "GraphNode",
    "GraphVisualization",
    "Permissions",
    "ValidationResult",
    "ValidationRule",
    "VersionBranch",
    "VersionDiff",
    "VersionSummary",
    # Services
    "CodeExecutor",
    "PassthroughExecutor",
    "validate_code",
    "diff_source",
    "RelationshipGraph",
    "VersionControl",
    "ComponentRegistry",
]
