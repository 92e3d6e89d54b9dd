"""Explicit wiring of the component core.

There is no process-wide default instance: callers that want a shared
system build one here and pass it around.

Usage:
    from componentos.core import build_component_system

    system = build_component_system()
    system.registry.register_component({"id": "header", "name": "Header"})
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from componentos.core.components.executor import CodeExecutor
from componentos.core.components.models import Permissions
from componentos.core.components.registry import ComponentRegistry, Validator
from componentos.core.components.relationship_graph import RelationshipGraph
from componentos.core.components.version_control import VersionControl
from componentos.core.config import ComponentOSConfig
from componentos.core.events import EventBus
from componentos.core.logging import LogStore, configure_logging
from componentos.core.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


@dataclass
class ComponentSystem:
    """One fully wired service graph sharing a single event bus"""
    config: ComponentOSConfig
    event_bus: EventBus
    relationship_graph: RelationshipGraph
    version_control: VersionControl
    registry: ComponentRegistry
    plugin_manager: PluginManager
    log_store: Optional[LogStore] = None


def build_component_system(
    config: Optional[ComponentOSConfig] = None,
    permissions: Optional[Permissions] = None,
    validator: Optional[Validator] = None,
    executor: Optional[CodeExecutor] = None,
    llm_manager: Any = None,
    get_state: Optional[Callable[[], Any]] = None,
    capture_logs: bool = False,
) -> ComponentSystem:
    """Build a registry with its graph, version store, plugin manager and bus.

    Args:
        config: Settings to use (a fresh ComponentOSConfig from the environment when None)
        permissions: Initial permissions (the config's defaults when None)
        validator: Code validator (the built-in rules when None)
        executor: Code executor (PassthroughExecutor when None)
        llm_manager: Exposed to plugins through their context
        get_state: Application state accessor exposed to plugins
        capture_logs: Attach a LogCaptureHandler and return its store on the system

    Returns:
        ComponentSystem
    """
    config = config or ComponentOSConfig()

    log_store = configure_logging(config) if capture_logs else None

    event_bus = EventBus()
    relationship_graph = RelationshipGraph()
    version_control = VersionControl(
        event_bus=event_bus,
        main_branch_name=config.main_branch_name,
        diff_context_lines=config.diff_context_lines,
    )
    plugin_manager = PluginManager(
        llm_manager=llm_manager,
        get_state=get_state,
        event_bus=event_bus,
    )
    registry = ComponentRegistry(
        permissions=permissions or config.default_permissions(),
        event_bus=event_bus,
        relationship_graph=relationship_graph,
        version_control=version_control,
        validator=validator,
        executor=executor,
        plugin_manager=plugin_manager,
        create_initial_version=config.create_initial_version,
    )
    plugin_manager.attach_registry(registry)

    logger.debug("Component system built")
    return ComponentSystem(
        config=config,
        event_bus=event_bus,
        relationship_graph=relationship_graph,
        version_control=version_control,
        registry=registry,
        plugin_manager=plugin_manager,
        log_store=log_store,
    )
