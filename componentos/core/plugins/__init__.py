"""Plugin system: hook pipeline around component registration and code execution."""

from componentos.core.plugins.manager import PluginManager
from componentos.core.plugins.models import Plugin, PluginContext, PluginHooks

__all__ = [
    "PluginManager",
    "Plugin",
    "PluginContext",
    "PluginHooks",
]
