"""Plugin Manager - ordered hook pipeline around registration and code execution.

Hooks run in plugin registration order:
- Transform hooks (before_component_registration, before_code_execution,
  before_llm_request, after_llm_response) feed each plugin the previous
  plugin's output. An exception propagates to the caller of that stage.
- Observer hooks (after_component_registration, after_code_execution) see
  the same value; a failing observer is logged and the rest still run.

Lifecycle failures are isolated per plugin: one plugin whose initialize()
or destroy() raises never blocks the others.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set, TypeVar

from componentos.core.components.exceptions import (
    PluginInitializationError,
    PluginNotFoundError,
)
from componentos.core.components.models import CodeChangeResult, Component
from componentos.core.events import Event, EventBus
from componentos.core.plugins.models import Plugin, PluginContext

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PluginManager:
    """Manager for plugin registration, initialization, hooks and teardown"""

    def __init__(
        self,
        component_registry: Any = None,
        llm_manager: Any = None,
        get_state: Optional[Callable[[], Any]] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """Initialize the plugin manager.

        Args:
            component_registry: Registry exposed to plugins through their context
            llm_manager: LLM manager exposed to plugins (opaque to this package)
            get_state: Accessor for application state
            event_bus: Bus receiving plugin lifecycle events
        """
        self.context = PluginContext(
            component_registry=component_registry,
            llm_manager=llm_manager,
            get_state=get_state or (lambda: {}),
        )
        self.event_bus = event_bus or EventBus()
        self._plugins: Dict[str, Plugin] = {}
        self._initialized: Set[str] = set()

    # ============================================
    # Registration
    # ============================================

    def register_plugin(self, plugin: Plugin) -> None:
        """Register a plugin (an existing plugin with the same id is replaced)."""
        if not plugin.id:
            raise ValueError(f"Plugin {plugin!r} has no id")

        if plugin.id in self._plugins:
            logger.warning(f"Plugin with ID {plugin.id} is already registered. Overwriting.")
            self._initialized.discard(plugin.id)

        self._plugins[plugin.id] = plugin
        logger.info(f"Registered plugin: {plugin.name} ({plugin.id})")
        self.event_bus.emit(Event.plugin_registered(plugin.id, plugin.name))

    def unregister_plugin(self, plugin_id: str) -> bool:
        """Remove a plugin without calling destroy(). Returns False if unknown."""
        plugin = self._plugins.pop(plugin_id, None)
        self._initialized.discard(plugin_id)
        if plugin is not None:
            logger.info(f"Unregistered plugin: {plugin.name} ({plugin_id})")
        return plugin is not None

    def get_plugin(self, plugin_id: str) -> Optional[Plugin]:
        return self._plugins.get(plugin_id)

    def get_all_plugins(self) -> List[Plugin]:
        return list(self._plugins.values())

    def is_initialized(self, plugin_id: str) -> bool:
        return plugin_id in self._initialized

    def attach_registry(self, component_registry: Any) -> None:
        """Expose a registry to plugins through their context"""
        self.context.component_registry = component_registry

    def set_state_accessor(self, get_state: Callable[[], Any]) -> None:
        """Replace the application state accessor seen by plugins"""
        self.context.get_state = get_state

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize_plugin(self, plugin_id: str) -> None:
        """Initialize one plugin.

        Raises:
            PluginNotFoundError: If the plugin is not registered
            PluginInitializationError: If the plugin's initialize() raises
        """
        plugin = self._plugins.get(plugin_id)
        if plugin is None:
            raise PluginNotFoundError(plugin_id)

        try:
            await plugin.initialize(self.context)
        except Exception as e:
            logger.error(f"Error initializing plugin {plugin.name}: {e}", exc_info=True)
            self.event_bus.emit(Event.plugin_failed(plugin_id, "initialize", str(e)))
            raise PluginInitializationError(
                f"Plugin {plugin.name} ({plugin_id}) failed to initialize: {e}"
            ) from e

        self._initialized.add(plugin_id)
        logger.info(f"Initialized plugin: {plugin.name}")
        self.event_bus.emit(Event.plugin_initialized(plugin_id))

    async def initialize_all_plugins(self) -> List[str]:
        """Initialize every registered plugin concurrently.

        Returns:
            IDs of the plugins that failed to initialize
        """
        plugin_ids = list(self._plugins)
        outcomes = await asyncio.gather(
            *(self.initialize_plugin(plugin_id) for plugin_id in plugin_ids),
            return_exceptions=True,
        )

        failed = [
            plugin_id
            for plugin_id, outcome in zip(plugin_ids, outcomes)
            if isinstance(outcome, Exception)
        ]
        logger.info(
            f"Plugins initialized: {len(plugin_ids) - len(failed)} ok, {len(failed)} failed"
        )
        return failed

    async def destroy_all_plugins(self) -> None:
        """Destroy every plugin, isolating failures, then forget them all."""
        plugins = list(self._plugins.values())
        outcomes = await asyncio.gather(
            *(plugin.destroy() for plugin in plugins),
            return_exceptions=True,
        )

        for plugin, outcome in zip(plugins, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Error destroying plugin {plugin.name}: {outcome}")
                self.event_bus.emit(Event.plugin_failed(plugin.id, "destroy", str(outcome)))

        self._plugins.clear()
        self._initialized.clear()
        logger.info("All plugins destroyed")

    # ============================================
    # Hook pipeline
    # ============================================

    def _run_transform(self, hook_name: str, value: T) -> T:
        for plugin in list(self._plugins.values()):
            hook = getattr(plugin.hooks, hook_name, None)
            if hook is None:
                continue
            transformed = hook(value)
            if transformed is None:
                logger.warning(f"Plugin {plugin.id} {hook_name} returned None; keeping previous value")
                continue
            value = transformed
        return value

    def _run_observers(self, hook_name: str, value: Any) -> None:
        for plugin in list(self._plugins.values()):
            hook = getattr(plugin.hooks, hook_name, None)
            if hook is None:
                continue
            try:
                hook(value)
            except Exception as e:
                logger.error(f"Plugin {plugin.id} {hook_name} hook failed: {e}", exc_info=True)
                self.event_bus.emit(Event.plugin_failed(plugin.id, hook_name, str(e)))

    def apply_hooks_to_component_registration(self, component: Component) -> Component:
        """Run before_component_registration hooks over a copy of the component"""
        return self._run_transform("before_component_registration", component.model_copy(deep=True))

    def notify_component_registered(self, component: Component) -> None:
        self._run_observers("after_component_registration", component)

    def apply_hooks_before_code_execution(self, code: str) -> str:
        return self._run_transform("before_code_execution", code)

    def notify_code_executed(self, result: CodeChangeResult) -> None:
        self._run_observers("after_code_execution", result)

    def apply_hooks_before_llm_request(self, prompt: str) -> str:
        return self._run_transform("before_llm_request", prompt)

    def apply_hooks_after_llm_response(self, response: str) -> str:
        return self._run_transform("after_llm_response", response)
