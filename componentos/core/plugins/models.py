"""Plugin contracts: hooks, lifecycle, and the context plugins receive"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from componentos.core.components.models import CodeChangeResult, Component
    from componentos.core.components.registry import ComponentRegistry


@dataclass
class PluginHooks:
    """Optional interception points.

    before_* hooks (and after_llm_response) transform a value and must
    return it; the other after_* hooks only observe.
    """
    before_component_registration: Optional[Callable[["Component"], "Component"]] = None
    after_component_registration: Optional[Callable[["Component"], None]] = None
    before_code_execution: Optional[Callable[[str], str]] = None
    after_code_execution: Optional[Callable[["CodeChangeResult"], None]] = None
    before_llm_request: Optional[Callable[[str], str]] = None
    after_llm_response: Optional[Callable[[str], str]] = None


@dataclass
class PluginContext:
    """Services handed to every plugin on initialize()"""
    component_registry: Optional["ComponentRegistry"] = None
    llm_manager: Any = None
    get_state: Callable[[], Any] = field(default=lambda: {})


class Plugin:
    """Base class for plugins.

    Subclasses set `id`, `name` and `version`, fill `hooks`, and override
    initialize()/destroy() when they hold resources.
    """

    id: str = ""
    name: str = ""
    version: str = "0.1.0"

    def __init__(self, hooks: Optional[PluginHooks] = None):
        self.hooks = hooks or PluginHooks()
        self.context: Optional[PluginContext] = None

    async def initialize(self, context: PluginContext) -> None:
        self.context = context

    async def destroy(self) -> None:
        self.context = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}@{self.version}>"
