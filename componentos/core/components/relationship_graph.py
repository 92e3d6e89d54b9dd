"""Relationship Graph - structural edges between registered components.

Tracks parent/child, sibling, dependency and shared-state edges and answers
impact questions ("what might break if I change X") over them.

Key Design Principles:
- Arena of ids: records reference other components by id only, so a
  dangling reference is just an id with no record
- Permissive: unknown ids make operations no-ops, never errors, because
  components register asynchronously and in no particular order
- Symmetric dependency edges: depends_on and depended_on_by are updated
  together for every registered pair
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from componentos.core.components.models import (
    Component,
    ComponentRelationship,
    GraphEdge,
    GraphNode,
    GraphVisualization,
)

logger = logging.getLogger(__name__)

STATE_NODE_PREFIX = "state:"


@dataclass
class _RelationshipRecord:
    name: str
    parent_id: Optional[str] = None
    children_ids: Set[str] = field(default_factory=set)
    sibling_ids: Set[str] = field(default_factory=set)
    depends_on: Set[str] = field(default_factory=set)
    depended_on_by: Set[str] = field(default_factory=set)
    shared_state_keys: Set[str] = field(default_factory=set)

    def to_model(self) -> ComponentRelationship:
        return ComponentRelationship(
            parent_id=self.parent_id,
            children_ids=sorted(self.children_ids),
            sibling_ids=sorted(self.sibling_ids),
            depends_on=sorted(self.depends_on),
            depended_on_by=sorted(self.depended_on_by),
            shared_state_keys=sorted(self.shared_state_keys),
        )


class RelationshipGraph:
    """In-memory graph of component relationships, keyed by component id."""

    def __init__(self):
        self._records: Dict[str, _RelationshipRecord] = {}
        self._state_usage: Dict[str, Set[str]] = {}  # state key -> component ids

    # ============================================
    # Mutation
    # ============================================

    def add_component(self, component: Component) -> None:
        """Add or update a component in the graph.

        Wires the component's declared parent, dependencies (already
        resolved to ids) and state keys. Re-adding an id is idempotent.
        Children or dependents that registered earlier and point at this id
        are adopted so both sides of their edges become consistent.

        Args:
            component: The component to add or update
        """
        record = self._records.get(component.id)
        is_new = record is None
        if is_new:
            record = _RelationshipRecord(name=component.name)
            self._records[component.id] = record
        else:
            record.name = component.name

        if is_new:
            self._adopt_dangling_references(component.id, record)

        if component.parent_id:
            self.set_parent_child(component.parent_id, component.id)

        for dependency_id in component.dependencies:
            self.add_dependency(component.id, dependency_id)

        for state_key in component.state_keys:
            self.track_state_usage(component.id, state_key)

        logger.debug(f"Added component to relationship graph: {component.id}")

    def _adopt_dangling_references(self, component_id: str, record: _RelationshipRecord) -> None:
        adopted_children = False
        for other_id, other in self._records.items():
            if other_id == component_id:
                continue
            if other.parent_id == component_id:
                record.children_ids.add(other_id)
                adopted_children = True
            if component_id in other.depends_on:
                record.depended_on_by.add(other_id)
        if adopted_children:
            self._update_siblings(component_id)

    def remove_component(self, component_id: str) -> None:
        """Remove a component and every edge referencing it.

        Children of the removed component are orphaned: their parent pointer
        is cleared and, having no parent, they have no siblings.

        Args:
            component_id: The ID of the component to remove
        """
        record = self._records.pop(component_id, None)
        if record is None:
            return

        orphans: List[str] = []
        for other_id, other in self._records.items():
            if other.parent_id == component_id:
                other.parent_id = None
                orphans.append(other_id)
            other.children_ids.discard(component_id)
            other.sibling_ids.discard(component_id)
            other.depends_on.discard(component_id)
            other.depended_on_by.discard(component_id)

        for orphan_id in orphans:
            self._records[orphan_id].sibling_ids.clear()

        for state_key in list(record.shared_state_keys):
            users = self._state_usage.get(state_key)
            if users is None:
                continue
            users.discard(component_id)
            if not users:
                del self._state_usage[state_key]

        if record.parent_id is not None:
            self._update_siblings(record.parent_id)

        logger.debug(
            f"Removed component from relationship graph: {component_id} "
            f"(orphaned {len(orphans)} children)"
        )

    def set_parent_child(self, parent_id: str, child_id: str) -> None:
        """Set (or move) the parent of a component.

        The parent does not have to be registered yet; the child keeps a
        dangling pointer that is completed when the parent registers.

        Args:
            parent_id: The ID of the parent component
            child_id: The ID of the child component
        """
        if parent_id == child_id:
            logger.warning(f"Ignoring self-parenting of component {child_id}")
            return

        child = self._records.get(child_id)
        if child is None:
            return

        previous_parent_id = child.parent_id
        child.parent_id = parent_id

        if previous_parent_id is not None and previous_parent_id != parent_id:
            previous_parent = self._records.get(previous_parent_id)
            if previous_parent is not None:
                previous_parent.children_ids.discard(child_id)
            self._update_siblings(previous_parent_id)

        parent = self._records.get(parent_id)
        if parent is not None:
            parent.children_ids.add(child_id)
        else:
            logger.debug(f"Parent {parent_id} of {child_id} is not registered yet")

        self._update_siblings(parent_id)

    def detach_from_parent(self, child_id: str) -> None:
        """Clear a component's parent pointer (the component becomes a root)."""
        child = self._records.get(child_id)
        if child is None or child.parent_id is None:
            return

        parent_id = child.parent_id
        child.parent_id = None
        child.sibling_ids.clear()

        parent = self._records.get(parent_id)
        if parent is not None:
            parent.children_ids.discard(child_id)
        self._update_siblings(parent_id)

    def _update_siblings(self, parent_id: str) -> None:
        """Recompute sibling sets for every current child of a parent."""
        children = {
            record_id
            for record_id, record in self._records.items()
            if record.parent_id == parent_id
        }
        for child_id in children:
            self._records[child_id].sibling_ids = children - {child_id}

    def add_dependency(self, dependent_id: str, dependency_id: str) -> None:
        """Record that one component depends on another.

        Args:
            dependent_id: The ID of the component that depends on another
            dependency_id: The ID of the component being depended on
        """
        if dependent_id == dependency_id:
            logger.warning(f"Ignoring self-dependency of component {dependent_id}")
            return

        dependent = self._records.get(dependent_id)
        if dependent is None:
            return

        dependent.depends_on.add(dependency_id)
        dependency = self._records.get(dependency_id)
        if dependency is not None:
            dependency.depended_on_by.add(dependent_id)

    def remove_dependency(self, dependent_id: str, dependency_id: str) -> None:
        """Remove both sides of a dependency edge."""
        dependent = self._records.get(dependent_id)
        if dependent is not None:
            dependent.depends_on.discard(dependency_id)
        dependency = self._records.get(dependency_id)
        if dependency is not None:
            dependency.depended_on_by.discard(dependent_id)

    def clear_dependencies(self, dependent_id: str) -> None:
        """Drop every outgoing dependency edge of a component."""
        dependent = self._records.get(dependent_id)
        if dependent is None:
            return
        for dependency_id in list(dependent.depends_on):
            self.remove_dependency(dependent_id, dependency_id)

    def track_state_usage(self, component_id: str, state_key: str) -> None:
        """Record that a component reads or writes a shared state key.

        Args:
            component_id: The ID of the component using state
            state_key: The state key being used
        """
        record = self._records.get(component_id)
        if record is None:
            return
        record.shared_state_keys.add(state_key)
        self._state_usage.setdefault(state_key, set()).add(component_id)

    def remove_state_usage(self, component_id: str, state_key: str) -> None:
        """Forget that a component uses a shared state key."""
        record = self._records.get(component_id)
        if record is not None:
            record.shared_state_keys.discard(state_key)
        users = self._state_usage.get(state_key)
        if users is not None:
            users.discard(component_id)
            if not users:
                del self._state_usage[state_key]

    # ============================================
    # Queries (never raise)
    # ============================================

    def has_component(self, component_id: str) -> bool:
        return component_id in self._records

    def component_ids(self) -> List[str]:
        return list(self._records)

    def get_relationships(self, component_id: str) -> Optional[ComponentRelationship]:
        """Get a snapshot of a component's relationships, or None if unknown."""
        record = self._records.get(component_id)
        return record.to_model() if record is not None else None

    def get_components_using_state(self, state_key: str) -> List[str]:
        return sorted(self._state_usage.get(state_key, ()))

    def get_affected_components(self, component_ids: Iterable[str]) -> List[str]:
        """Get every component that may be affected by changes to the given ones.

        Breadth-first closure over children, dependents and components
        sharing a state key. The starting ids themselves are not reported,
        and cycles terminate because each id is visited once.

        Args:
            component_ids: The IDs of the components that are changing

        Returns:
            Affected component IDs in breadth-first discovery order
        """
        if isinstance(component_ids, str):
            component_ids = [component_ids]

        seeds = [cid for cid in component_ids if cid in self._records]
        visited: Set[str] = set(seeds)
        queue = deque(seeds)
        affected: List[str] = []

        while queue:
            current_id = queue.popleft()
            record = self._records.get(current_id)
            if record is None:
                continue

            neighbors: Set[str] = set(record.children_ids) | set(record.depended_on_by)
            for state_key in record.shared_state_keys:
                neighbors |= self._state_usage.get(state_key, set())

            for neighbor_id in sorted(neighbors):
                if neighbor_id in visited or neighbor_id not in self._records:
                    continue
                visited.add(neighbor_id)
                affected.append(neighbor_id)
                queue.append(neighbor_id)

        return affected

    def get_related_state_keys(self, component_id: str) -> List[str]:
        """Get the state keys used by a component or by anything it affects."""
        record = self._records.get(component_id)
        if record is None:
            return []

        keys = set(record.shared_state_keys)
        for affected_id in self.get_affected_components([component_id]):
            keys |= self._records[affected_id].shared_state_keys
        return sorted(keys)

    def visualize_graph(self) -> GraphVisualization:
        """Build node and edge lists for an external renderer (pure read)."""
        nodes: List[GraphNode] = []
        edges: List[GraphEdge] = []
        external_ids: Set[str] = set()

        for component_id, record in self._records.items():
            nodes.append(GraphNode(
                id=component_id,
                name=record.name,
                type="component",
                metadata={
                    "children": len(record.children_ids),
                    "dependencies": len(record.depends_on),
                    "state_keys": len(record.shared_state_keys),
                },
            ))

            if record.parent_id is not None:
                edges.append(GraphEdge(source=record.parent_id, target=component_id, type="parent-child"))
                if record.parent_id not in self._records:
                    external_ids.add(record.parent_id)

            for sibling_id in sorted(record.sibling_ids):
                if component_id < sibling_id:
                    edges.append(GraphEdge(source=component_id, target=sibling_id, type="sibling"))

            for dependency_id in sorted(record.depends_on):
                edges.append(GraphEdge(source=component_id, target=dependency_id, type="depends-on"))
                if dependency_id not in self._records:
                    external_ids.add(dependency_id)

            for state_key in sorted(record.shared_state_keys):
                edges.append(GraphEdge(
                    source=component_id,
                    target=f"{STATE_NODE_PREFIX}{state_key}",
                    type="uses-state",
                ))

        for state_key in sorted(self._state_usage):
            nodes.append(GraphNode(
                id=f"{STATE_NODE_PREFIX}{state_key}",
                name=state_key,
                type="state",
                metadata={"users": len(self._state_usage[state_key])},
            ))

        for external_id in sorted(external_ids):
            nodes.append(GraphNode(id=external_id, name=external_id, type="external"))

        return GraphVisualization(nodes=nodes, edges=edges)
