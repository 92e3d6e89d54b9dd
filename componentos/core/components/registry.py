"""Component Registry - aggregate root of the component core.

Owns the map of live components and is the only writer of the relationship
graph and the version log. Code-change requests flow through here:

    lookup -> role check -> validator -> custom rules -> plugin transforms
           -> executor -> record version -> update live source -> events

Every rejected request leaves the component at its last good version.
Events are emitted only after the corresponding state change is committed,
so synchronous subscribers always observe consistent state.
"""

import inspect
import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
    Union,
)

from ulid import ULID

from componentos.core.components.exceptions import (
    ComponentNotFoundError,
    VersionNotFoundError,
)
from componentos.core.components.executor import CodeExecutor, PassthroughExecutor
from componentos.core.components.models import (
    PROTECTED_COMPONENT_FIELDS,
    ChangeErrorCode,
    CodeChangeRequest,
    CodeChangeResult,
    Component,
    ComponentRelationship,
    ComponentVersion,
    CrossComponentChangeRequest,
    GraphVisualization,
    Permissions,
    ValidationResult,
    VersionDiff,
    VersionSummary,
)
from componentos.core.components.relationship_graph import RelationshipGraph
from componentos.core.components.validation import validate_code
from componentos.core.components.version_control import VersionControl, diff_source
from componentos.core.events import Event, EventBus
from componentos.core.logging.context import log_context

if TYPE_CHECKING:
    from componentos.core.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

Validator = Callable[[str, str, Permissions], Any]


class ComponentRegistry:
    """Registry of live components with versioned, validated code changes"""

    def __init__(
        self,
        permissions: Optional[Permissions] = None,
        event_bus: Optional[EventBus] = None,
        relationship_graph: Optional[RelationshipGraph] = None,
        version_control: Optional[VersionControl] = None,
        validator: Optional[Validator] = None,
        executor: Optional[CodeExecutor] = None,
        plugin_manager: Optional["PluginManager"] = None,
        create_initial_version: bool = True,
    ):
        """Initialize the registry.

        Args:
            permissions: Initial permission record (defaults apply when None)
            event_bus: Bus receiving registry events; shared with a
                VersionControl created here
            relationship_graph: Graph to maintain (a new one when None)
            version_control: Version store to record into (a new one when None)
            validator: validate(new_code, old_code, permissions) returning a
                ValidationResult or an awaitable of one
            executor: Executor that turns validated source into applied source
            plugin_manager: Optional hook pipeline
            create_initial_version: Record an 'Initial version' on registration
        """
        if event_bus is None:
            event_bus = version_control.event_bus if version_control is not None else EventBus()
        self.event_bus = event_bus
        self.relationship_graph = relationship_graph or RelationshipGraph()
        self.version_control = version_control or VersionControl(event_bus=event_bus)
        self.validator = validator or validate_code
        self.executor = executor or PassthroughExecutor()
        self.plugin_manager = plugin_manager
        self.create_initial_version = create_initial_version

        self._permissions = permissions.model_copy() if permissions is not None else Permissions()
        self._components: Dict[str, Component] = {}

    def __len__(self) -> int:
        return len(self._components)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._components

    # ============================================
    # Permissions
    # ============================================

    def set_permissions(self, permissions: Union[Permissions, Dict[str, Any]]) -> None:
        """Merge permission updates into the current record.

        A dict updates only the keys it names; a Permissions instance
        updates only the fields that were explicitly set on it.
        """
        if isinstance(permissions, Permissions):
            updates = {name: getattr(permissions, name) for name in permissions.model_fields_set}
        else:
            updates = dict(permissions)

        current = {name: getattr(self._permissions, name) for name in Permissions.model_fields}
        self._permissions = Permissions.model_validate({**current, **updates})
        logger.info(f"Permissions updated: {sorted(updates)}")

    def get_permissions(self) -> Permissions:
        return self._permissions.model_copy()

    # ============================================
    # Registration
    # ============================================

    def register_component(self, component: Union[Component, Dict[str, Any]]) -> Component:
        """Register a component (re-registering an id updates it in place).

        Args:
            component: The component, or a dict of its fields

        Returns:
            Snapshot of the registered component
        """
        if isinstance(component, dict):
            component = Component.model_validate(component)

        if self.plugin_manager is not None:
            component = self.plugin_manager.apply_hooks_to_component_registration(component)

        if component.id in self._components:
            logger.info(f"Component {component.id} already registered, updating in place")
            self.update_component(
                component.id,
                component.model_dump(exclude=set(PROTECTED_COMPONENT_FIELDS), exclude_unset=True),
            )
            return self.get_component(component.id)

        stored = component.model_copy(deep=True, update={"versions": [], "relationships": None})
        self._components[stored.id] = stored
        self._sync_graph(stored)

        if stored.source_code and self.create_initial_version:
            self._record_version(stored.id, stored.source_code, "Initial version")

        logger.info(f"Registered component: {stored.name} ({stored.id})")
        self.event_bus.emit(Event.component_registered(stored.id))

        snapshot = self.get_component(stored.id)
        if self.plugin_manager is not None:
            self.plugin_manager.notify_component_registered(snapshot)
        return snapshot

    def unregister_component(self, component_id: str) -> bool:
        """Remove a component from the registry and the graph.

        Version history is kept; use purge_version_history() to drop it.

        Returns:
            False if the component was not registered
        """
        component = self._components.pop(component_id, None)
        if component is None:
            return False

        self.relationship_graph.remove_component(component_id)

        for child_id, child in list(self._components.items()):
            if child.parent_id == component_id:
                self._components[child_id] = child.model_copy(update={"parent_id": None})
                logger.debug(f"Orphaned {child_id} after unregistering its parent {component_id}")

        logger.info(f"Unregistered component: {component.name} ({component_id})")
        self.event_bus.emit(Event.component_unregistered(component_id))
        return True

    def update_component(
        self,
        component_id: str,
        updates: Union[Component, Dict[str, Any]],
    ) -> bool:
        """Shallow-merge updates into a registered component.

        `id`, `versions` and `relationships` cannot be overwritten. A changed
        `source_code` is recorded as a new version; structural fields are
        re-fed to the relationship graph.

        Returns:
            False (and an error event) if the component is not registered
        """
        current = self._components.get(component_id)
        if current is None:
            error = ComponentNotFoundError(component_id)
            logger.warning(f"Cannot update: {error}")
            self.event_bus.emit(Event.error(str(error), component_id=component_id))
            return False

        if isinstance(updates, Component):
            updates = updates.model_dump(exclude=set(PROTECTED_COMPONENT_FIELDS), exclude_unset=True)
        else:
            updates = dict(updates)

        ignored = PROTECTED_COMPONENT_FIELDS & updates.keys()
        if ignored:
            logger.debug(f"Ignoring protected fields in update of {component_id}: {sorted(ignored)}")
            for name in ignored:
                del updates[name]

        merged = Component.model_validate({**current.model_dump(), **updates})
        source_changed = "source_code" in updates and merged.source_code != current.source_code

        self._components[component_id] = merged
        self._sync_graph(merged)

        if source_changed and merged.source_code:
            self._record_version(component_id, merged.source_code, "Updated via update_component")

        logger.debug(f"Updated component {component_id}: {sorted(updates)}")
        self.event_bus.emit(Event.component_updated(component_id, sorted(updates)))
        return True

    # ============================================
    # Graph bookkeeping
    # ============================================

    def _resolve_dependency(self, reference: str) -> str:
        """Map a dependency given by id or by name to a component id."""
        if reference in self._components:
            return reference
        for component in self._components.values():
            if component.name == reference:
                return component.id
        return reference

    def _infer_parent_id(self, component: Component) -> Optional[str]:
        """Find the registered component whose path is this one's path prefix."""
        if len(component.path) < 2:
            return None
        parent_path = component.path[:-1]
        for other_id, other in self._components.items():
            if other_id != component.id and other.path == parent_path:
                return other_id
        return None

    def _graph_view(self, component: Component) -> Component:
        return component.model_copy(update={
            "parent_id": component.parent_id or self._infer_parent_id(component),
            "dependencies": [self._resolve_dependency(dep) for dep in component.dependencies],
        })

    def _sync_graph(self, component: Component) -> None:
        graph = self.relationship_graph
        relationships = graph.get_relationships(component.id)
        if relationships is not None:
            graph.detach_from_parent(component.id)
            graph.clear_dependencies(component.id)
            for state_key in relationships.shared_state_keys:
                graph.remove_state_usage(component.id, state_key)

        graph.add_component(self._graph_view(component))
        self._link_late_arrivals(component)

    def _link_late_arrivals(self, component: Component) -> None:
        """Complete edges of components registered before this one.

        Earlier components may name this one as a dependency, or sit under
        its path without an explicit parent.
        """
        graph = self.relationship_graph
        for other_id, other in self._components.items():
            if other_id == component.id:
                continue

            if component.name in other.dependencies and component.id not in other.dependencies:
                graph.remove_dependency(other_id, component.name)
                graph.add_dependency(other_id, component.id)

            if other.parent_id is None and self._infer_parent_id(other) == component.id:
                relationships = graph.get_relationships(other_id)
                if relationships is not None and relationships.parent_id is None:
                    graph.set_parent_child(component.id, other_id)

    # ============================================
    # Lookups
    # ============================================

    def get_component(self, component_id: str) -> Optional[Component]:
        """Get a snapshot of a component with refreshed versions and relationships."""
        component = self._components.get(component_id)
        if component is None:
            return None

        snapshot = component.model_copy(deep=True)
        snapshot.versions = self.version_control.get_version_history(component_id)
        snapshot.relationships = self.relationship_graph.get_relationships(component_id)
        return snapshot

    def get_all_components(self) -> Dict[str, Component]:
        return {component_id: self.get_component(component_id) for component_id in self._components}

    # ============================================
    # Versions
    # ============================================

    def _record_version(
        self,
        component_id: str,
        source_code: str,
        description: str,
        author: Optional[str] = None,
    ) -> ComponentVersion:
        version = self.version_control.create_version(
            component_id, source_code, description, author=author
        )
        self.event_bus.emit(Event.component_version_created(component_id, version.id))
        return version

    def create_version(
        self,
        component_id: str,
        source_code: str,
        description: str,
        author: Optional[str] = None,
    ) -> ComponentVersion:
        """Record a version of a registered component without changing its live source.

        Raises:
            ComponentNotFoundError: If the component is not registered
        """
        if component_id not in self._components:
            raise ComponentNotFoundError(component_id)
        return self._record_version(component_id, source_code, description, author)

    def get_version_history(self, component_id: str) -> List[ComponentVersion]:
        return self.version_control.get_version_history(component_id)

    def get_version(self, component_id: str, version_id: str) -> Optional[ComponentVersion]:
        return self.version_control.get_version(component_id, version_id)

    def get_latest_version(self, component_id: str) -> Optional[ComponentVersion]:
        return self.version_control.get_latest_version(component_id)

    def compare_versions(
        self,
        component_id: str,
        from_version_id: str,
        to_version_id: str,
    ) -> Optional[VersionDiff]:
        return self.version_control.compare_versions(component_id, from_version_id, to_version_id)

    def get_version_summary(self, component_id: str) -> VersionSummary:
        return self.version_control.get_version_summary(component_id)

    def purge_version_history(self, component_id: str) -> int:
        """Drop a component's versions and branches. Returns the number of versions removed."""
        return self.version_control.purge_history(component_id)

    def revert_to_version(
        self,
        component_id: str,
        version_id: str,
        author: Optional[str] = None,
    ) -> bool:
        """Restore a component's live source from an earlier version.

        A new version recording the revert is appended; nothing is removed.

        Returns:
            False if the component or the version is unknown
        """
        component = self._components.get(component_id)
        if component is None:
            logger.warning(f"Cannot revert unknown component {component_id}")
            return False

        target = self.version_control.get_version(component_id, version_id)
        if target is None:
            logger.warning(f"Cannot revert: {VersionNotFoundError(component_id, version_id)}")
            return False

        # live source first: version events are delivered synchronously
        component.source_code = target.source_code
        version = self.version_control.record_revert(component_id, version_id, author=author)

        logger.info(f"Reverted {component_id} to version {version_id} (new version {version.id})")
        self.event_bus.emit(Event.component_version_created(component_id, version.id))
        self.event_bus.emit(Event.component_version_reverted(component_id, version_id, version.id))
        return True

    # ============================================
    # Code changes
    # ============================================

    async def _validate_and_execute(
        self,
        component: Component,
        request: CodeChangeRequest,
    ) -> CodeChangeResult:
        """Run every check and the executor without mutating anything."""
        component_id = component.id
        permissions = self._permissions

        if permissions.roles_allowed is not None and request.role not in permissions.roles_allowed:
            return CodeChangeResult.failure(
                component_id,
                f"Role {request.role!r} is not allowed to change components",
                ChangeErrorCode.PERMISSION_DENIED,
            )

        validation = self.validator(request.source_code, component.source_code or "", permissions)
        if inspect.isawaitable(validation):
            validation = await validation
        if isinstance(validation, dict):
            validation = ValidationResult.model_validate(validation)
        if not validation.is_valid:
            return CodeChangeResult.failure(
                component_id,
                validation.error or "Code validation failed",
                ChangeErrorCode.VALIDATION_FAILED,
            )

        for rule in permissions.custom_validation_rules:
            passed = rule.validate(request.source_code, component.model_copy(deep=True))
            if inspect.isawaitable(passed):
                passed = await passed
            if not passed:
                logger.debug(f"Custom rule {rule.id} rejected change to {component_id}")
                return CodeChangeResult.failure(
                    component_id, rule.error_message, ChangeErrorCode.VALIDATION_FAILED
                )

        source_code = request.source_code
        if self.plugin_manager is not None:
            source_code = self.plugin_manager.apply_hooks_before_code_execution(source_code)

        try:
            result = await self.executor.execute(request.model_copy(update={"source_code": source_code}))
        except Exception as e:
            logger.error(f"Executor failed for {component_id}: {e}", exc_info=True)
            return CodeChangeResult.failure(
                component_id, f"Code execution failed: {e}", ChangeErrorCode.EXECUTION_FAILED
            )

        if not result.success:
            return result.model_copy(update={
                "component_id": component_id,
                "error": result.error or "Code execution failed",
                "error_code": result.error_code or ChangeErrorCode.EXECUTION_FAILED,
            })

        return result.model_copy(update={
            "component_id": component_id,
            "new_source_code": result.new_source_code if result.new_source_code is not None else source_code,
        })

    def _apply_change(self, request: CodeChangeRequest, outcome: CodeChangeResult) -> CodeChangeResult:
        """Commit an executed change: live source, new version, events."""
        component_id = request.component_id
        component = self._components[component_id]
        old_source = component.source_code or ""
        new_source = outcome.new_source_code

        component.source_code = new_source
        version = self.version_control.create_version(
            component_id, new_source, request.description, author=request.author
        )

        diff_text, _, _, _ = diff_source(
            old_source,
            new_source,
            context_lines=self.version_control.diff_context_lines,
        )

        logger.info(f"Code change applied to {component_id}: {request.description} (version {version.id})")
        self.event_bus.emit(Event.component_version_created(component_id, version.id))
        self.event_bus.emit(Event.code_change_applied(component_id, request.description, version.id))

        return CodeChangeResult(
            success=True,
            component_id=component_id,
            new_source_code=new_source,
            diff=diff_text,
            version_id=version.id,
        )

    def _reject(self, result: CodeChangeResult) -> CodeChangeResult:
        logger.warning(f"Code change rejected for {result.component_id}: {result.error}")
        self.event_bus.emit(Event.code_change_failed(
            result.component_id,
            result.error or "",
            result.error_code.value if result.error_code else None,
        ))
        return result

    def _notify_code_executed(self, result: CodeChangeResult) -> None:
        if self.plugin_manager is not None:
            self.plugin_manager.notify_code_executed(result)

    async def execute_code_change(
        self,
        request: Union[CodeChangeRequest, Dict[str, Any]],
    ) -> CodeChangeResult:
        """Validate, execute and commit a change to one component.

        Never raises: every failure comes back as a result with
        success=False, an error message and an error code.

        Args:
            request: The change request, or a dict of its fields

        Returns:
            Result of the change; on success carries the new source, the
            diff against the previous source and the recorded version id
        """
        if isinstance(request, dict):
            request = CodeChangeRequest.model_validate(request)

        component_id = request.component_id
        request_id = f"req_{ULID()}"

        with log_context(component_id=component_id, request_id=request_id):
            return await self._execute_code_change(request, request_id)

    async def _execute_code_change(
        self, request: CodeChangeRequest, request_id: str
    ) -> CodeChangeResult:
        component_id = request.component_id
        try:
            component = self._components.get(component_id)
            if component is None:
                return self._reject(CodeChangeResult.failure(
                    component_id,
                    str(ComponentNotFoundError(component_id)),
                    ChangeErrorCode.COMPONENT_NOT_FOUND,
                ))

            outcome = await self._validate_and_execute(component, request)

            if not outcome.success:
                result = self._reject(outcome)
            elif component_id not in self._components:
                result = self._reject(CodeChangeResult.failure(
                    component_id,
                    f"Component {component_id} was unregistered during the change",
                    ChangeErrorCode.COMPONENT_NOT_FOUND,
                ))
            else:
                result = self._apply_change(request, outcome)

            self._notify_code_executed(result)
            return result

        except Exception as e:
            logger.error(f"Error executing code change for {component_id}: {e}", exc_info=True)
            self.event_bus.emit(Event.error(
                str(e), component_id=component_id, details={"request_id": request_id}
            ))
            return CodeChangeResult.failure(component_id, str(e), ChangeErrorCode.INTERNAL_ERROR)

    async def execute_multi_component_change(
        self,
        request: Union[CrossComponentChangeRequest, Dict[str, Any]],
    ) -> Dict[str, CodeChangeResult]:
        """Apply a change to each listed component independently, in order.

        There is no rollback: components that succeed keep their new
        version even when others fail. Inspect each result.

        Returns:
            Result per component id
        """
        if isinstance(request, dict):
            request = CrossComponentChangeRequest.model_validate(request)

        results: Dict[str, CodeChangeResult] = {}
        for component_id in dict.fromkeys(request.component_ids):
            if component_id not in request.changes:
                results[component_id] = self._reject(CodeChangeResult.failure(
                    component_id,
                    f"No change provided for component {component_id}",
                    ChangeErrorCode.MISSING_CHANGE,
                ))
                continue
            results[component_id] = await self.execute_code_change(request.request_for(component_id))

        applied = sum(1 for result in results.values() if result.success)
        logger.info(f"Multi-component change '{request.description}': {applied}/{len(results)} applied")
        return results

    async def execute_atomic_multi_component_change(
        self,
        request: Union[CrossComponentChangeRequest, Dict[str, Any]],
    ) -> Dict[str, CodeChangeResult]:
        """Apply a change to every listed component, or to none of them.

        Phase 1 validates and executes every change without mutating
        anything. Only if all of them succeed does phase 2 record the new
        versions and live sources. When one change fails, the others get an
        ABORTED result.

        Returns:
            Result per component id
        """
        if isinstance(request, dict):
            request = CrossComponentChangeRequest.model_validate(request)

        component_ids = list(dict.fromkeys(request.component_ids))
        request_id = f"req_{ULID()}"

        with log_context(request_id=request_id):
            return await self._execute_atomic_change(request, component_ids, request_id)

    async def _execute_atomic_change(
        self,
        request: CrossComponentChangeRequest,
        component_ids: List[str],
        request_id: str,
    ) -> Dict[str, CodeChangeResult]:
        try:
            results: Dict[str, CodeChangeResult] = {}
            for component_id in component_ids:
                if component_id not in self._components:
                    results[component_id] = CodeChangeResult.failure(
                        component_id,
                        str(ComponentNotFoundError(component_id)),
                        ChangeErrorCode.COMPONENT_NOT_FOUND,
                    )
                elif component_id not in request.changes:
                    results[component_id] = CodeChangeResult.failure(
                        component_id,
                        f"No change provided for component {component_id}",
                        ChangeErrorCode.MISSING_CHANGE,
                    )
            if results:
                return self._abort(component_ids, results)

            prepared: List[Tuple[CodeChangeRequest, CodeChangeResult]] = []
            for component_id in component_ids:
                change = request.request_for(component_id)
                outcome = await self._validate_and_execute(self._components[component_id], change)
                if not outcome.success:
                    return self._abort(component_ids, {component_id: outcome})
                prepared.append((change, outcome))

            vanished = {
                component_id: CodeChangeResult.failure(
                    component_id,
                    f"Component {component_id} was unregistered during the change",
                    ChangeErrorCode.COMPONENT_NOT_FOUND,
                )
                for component_id in component_ids
                if component_id not in self._components
            }
            if vanished:
                return self._abort(component_ids, vanished)

            for change, outcome in prepared:
                results[change.component_id] = self._apply_change(change, outcome)

            for result in results.values():
                self._notify_code_executed(result)

            logger.info(f"Atomic change '{request.description}' applied to {len(results)} components")
            return results

        except Exception as e:
            logger.error(f"Error executing atomic multi-component change: {e}", exc_info=True)
            self.event_bus.emit(Event.error(
                str(e), details={"component_ids": component_ids, "request_id": request_id}
            ))
            return {
                component_id: CodeChangeResult.failure(component_id, str(e), ChangeErrorCode.INTERNAL_ERROR)
                for component_id in component_ids
            }

    def _abort(
        self,
        component_ids: List[str],
        failures: Dict[str, CodeChangeResult],
    ) -> Dict[str, CodeChangeResult]:
        culprit = next(iter(failures))
        results: Dict[str, CodeChangeResult] = {}
        for component_id in component_ids:
            if component_id in failures:
                results[component_id] = self._reject(failures[component_id])
            else:
                results[component_id] = CodeChangeResult.failure(
                    component_id,
                    f"Aborted: change to {culprit} failed",
                    ChangeErrorCode.ABORTED,
                )
        logger.warning(f"Atomic change aborted, nothing applied ({len(failures)} failed)")
        return results

    # ============================================
    # Relationships
    # ============================================

    def get_component_relationships(self, component_id: str) -> Optional[ComponentRelationship]:
        return self.relationship_graph.get_relationships(component_id)

    def get_affected_components(self, component_ids: Union[str, Iterable[str]]) -> List[str]:
        """Components that may break if the given ones change (the given ids excluded)."""
        if isinstance(component_ids, str):
            component_ids = [component_ids]
        return self.relationship_graph.get_affected_components(component_ids)

    def get_related_state_keys(self, component_id: str) -> List[str]:
        return self.relationship_graph.get_related_state_keys(component_id)

    def visualize_component_graph(self) -> GraphVisualization:
        return self.relationship_graph.visualize_graph()

    def track_state_usage(self, component_id: str, state_key: str) -> bool:
        """Record that a registered component uses a shared state key.

        Returns:
            False if the component is not registered
        """
        component = self._components.get(component_id)
        if component is None:
            return False
        if state_key not in component.state_keys:
            component.state_keys.append(state_key)
        self.relationship_graph.track_state_usage(component_id, state_key)
        return True
