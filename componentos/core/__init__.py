"""componentos core: components, versions, events, plugins, logging and config."""

from componentos.core.system import ComponentSystem, build_component_system

__all__ = [
    "ComponentSystem",
    "build_component_system",
]
