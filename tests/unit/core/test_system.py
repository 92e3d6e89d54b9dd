"""Tests for configuration and explicit system wiring."""

import pytest
from pydantic import ValidationError

from componentos.core import build_component_system
from componentos.core.components.models import Component, Permissions
from componentos.core.config import ComponentOSConfig, get_config, reset_config
from componentos.core.events import EventType


class TestConfig:
    """ComponentOSConfig and get_config."""

    def teardown_method(self):
        reset_config()

    def test_defaults(self):
        config = ComponentOSConfig()

        assert config.log_level == "INFO"
        assert config.main_branch_name == "main"
        assert config.diff_context_lines == 3
        assert config.create_initial_version is True

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("COMPONENTOS_MAIN_BRANCH_NAME", "trunk")
        monkeypatch.setenv("COMPONENTOS_ALLOW_NETWORK_REQUESTS", "true")

        config = ComponentOSConfig()

        assert config.main_branch_name == "trunk"
        assert config.default_permissions().allow_network_requests is True

    def test_log_level_is_normalized(self):
        assert ComponentOSConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            ComponentOSConfig(log_level="loud")

    def test_empty_branch_name_is_rejected(self):
        with pytest.raises(ValidationError):
            ComponentOSConfig(main_branch_name=" ")

    def test_get_config_is_cached(self):
        assert get_config() is get_config()
        first = get_config()
        reset_config()
        assert get_config() is not first


class TestBuildComponentSystem:
    """build_component_system wiring."""

    def test_components_share_one_bus(self):
        system = build_component_system(config=ComponentOSConfig(main_branch_name="trunk"))

        assert system.registry.event_bus is system.event_bus
        assert system.version_control.event_bus is system.event_bus
        assert system.plugin_manager.event_bus is system.event_bus
        assert system.plugin_manager.context.component_registry is system.registry
        assert system.log_store is None

        received = []
        system.event_bus.subscribe(received.append, event_types=[EventType.BRANCH_CREATED])
        system.registry.register_component(Component(id="a", name="A", source_code="x"))

        assert received[0].payload["branch_name"] == "trunk"

    def test_systems_are_independent(self):
        first = build_component_system(config=ComponentOSConfig())
        second = build_component_system(config=ComponentOSConfig())

        first.registry.register_component(Component(id="a", name="A"))

        assert "a" in first.registry
        assert "a" not in second.registry

    def test_permissions_from_config_or_argument(self):
        from_config = build_component_system(config=ComponentOSConfig(allow_logic_changes=False))
        explicit = build_component_system(
            config=ComponentOSConfig(), permissions=Permissions(allow_style_changes=False)
        )

        assert from_config.registry.get_permissions().allow_logic_changes is False
        assert explicit.registry.get_permissions().allow_style_changes is False

    def test_initial_version_disabled_by_config(self):
        system = build_component_system(config=ComponentOSConfig(create_initial_version=False))
        system.registry.register_component(Component(id="a", name="A", source_code="x"))

        assert system.registry.get_version_history("a") == []
