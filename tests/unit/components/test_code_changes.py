"""Tests for code-change execution through ComponentRegistry.

Covers the single-component path, partial-failure batches and the
all-or-nothing batch variant.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from componentos.core.components.executor import CodeExecutor
from componentos.core.components.models import (
    ChangeErrorCode,
    CodeChangeRequest,
    CodeChangeResult,
    Component,
    CrossComponentChangeRequest,
    Permissions,
    ValidationResult,
    ValidationRule,
)
from componentos.core.components.registry import ComponentRegistry
from componentos.core.events import EventBus, EventType
from componentos.core.logging.context import get_current_request_id


BUTTON_V1 = "function Button() {\n  return label;\n}"
BUTTON_V2 = "function Button() {\n  return label.toUpperCase();\n}"
CARD_V1 = "function Card() {\n  return body;\n}"
CARD_V2 = "function Card() {\n  return body.trim();\n}"


class FailingExecutor(CodeExecutor):
    """Executor that raises for every request."""

    async def execute(self, request):
        raise RuntimeError("compiler crashed")


def make_registry(**kwargs):
    bus = EventBus()
    events = []
    bus.subscribe(events.append)
    registry = ComponentRegistry(event_bus=bus, **kwargs)
    registry.register_component(Component(id="button", name="Button", source_code=BUTTON_V1))
    registry.register_component(Component(id="card", name="Card", source_code=CARD_V1))
    events.clear()
    return registry, events


class TestExecuteCodeChange:
    """Single-component code changes."""

    def setup_method(self):
        self.registry, self.events = make_registry()

    @pytest.mark.asyncio
    async def test_successful_change(self):
        result = await self.registry.execute_code_change(CodeChangeRequest(
            component_id="button",
            source_code=BUTTON_V2,
            description="Uppercase label",
            author="ana",
        ))

        assert result.success is True
        assert result.new_source_code == BUTTON_V2
        assert result.error is None
        assert "! " in result.diff

        component = self.registry.get_component("button")
        assert component.source_code == BUTTON_V2
        latest = component.versions[0]
        assert latest.id == result.version_id
        assert latest.description == "Uppercase label"
        assert latest.author == "ana"

        types = [event.type for event in self.events]
        assert types == [
            EventType.VERSION_CREATED,
            EventType.COMPONENT_VERSION_CREATED,
            EventType.CODE_CHANGE_APPLIED,
        ]

    @pytest.mark.asyncio
    async def test_change_from_dict(self):
        result = await self.registry.execute_code_change(
            {"component_id": "button", "source_code": BUTTON_V2}
        )

        assert result.success is True
        assert self.registry.get_latest_version("button").description == "Code updated"

    @pytest.mark.asyncio
    async def test_unknown_component(self):
        result = await self.registry.execute_code_change(
            CodeChangeRequest(component_id="ghost", source_code="x")
        )

        assert result.success is False
        assert result.error_code == ChangeErrorCode.COMPONENT_NOT_FOUND
        assert "ghost" in result.error
        assert [event.type for event in self.events] == [EventType.CODE_CHANGE_FAILED]

    @pytest.mark.asyncio
    async def test_validation_failure_mutates_nothing(self):
        before = self.registry.get_version_history("button")

        result = await self.registry.execute_code_change(CodeChangeRequest(
            component_id="button",
            source_code="function Button() {\n  fetch('/api');\n  return label;\n}",
        ))

        assert result.success is False
        assert result.error_code == ChangeErrorCode.VALIDATION_FAILED
        assert result.error == "Network requests are not allowed with current permissions"
        assert self.registry.get_component("button").source_code == BUTTON_V1
        assert self.registry.get_version_history("button") == before
        assert [event.type for event in self.events] == [EventType.CODE_CHANGE_FAILED]

    @pytest.mark.asyncio
    async def test_syntax_error_is_rejected(self):
        result = await self.registry.execute_code_change(CodeChangeRequest(
            component_id="button",
            source_code="function Button() {\n  return label;\n",
        ))

        assert result.success is False
        assert result.error.startswith("Code validation error:")

    @pytest.mark.asyncio
    async def test_role_gating(self):
        self.registry.set_permissions({"roles_allowed": ["designer"]})

        denied = await self.registry.execute_code_change(
            CodeChangeRequest(component_id="button", source_code=BUTTON_V2, role="guest")
        )
        allowed = await self.registry.execute_code_change(
            CodeChangeRequest(component_id="button", source_code=BUTTON_V2, role="designer")
        )

        assert denied.error_code == ChangeErrorCode.PERMISSION_DENIED
        assert allowed.success is True

    @pytest.mark.asyncio
    async def test_custom_validation_rule(self):
        rule = ValidationRule(
            id="no-todo",
            description="Reject TODO markers",
            validate=lambda code, component: "TODO" not in code,
            error_message="TODO markers are not allowed",
        )
        self.registry.set_permissions({"custom_validation_rules": [rule]})

        result = await self.registry.execute_code_change(CodeChangeRequest(
            component_id="button",
            source_code="function Button() {\n  // TODO\n  return label;\n}",
        ))

        assert result.success is False
        assert result.error == "TODO markers are not allowed"
        assert result.error_code == ChangeErrorCode.VALIDATION_FAILED

    @pytest.mark.asyncio
    async def test_async_custom_rule_receives_component(self):
        seen = []

        async def check(code, component):
            seen.append(component.id)
            return True

        self.registry.set_permissions({"custom_validation_rules": [
            ValidationRule(id="async", description="", validate=check, error_message="nope"),
        ]})

        result = await self.registry.execute_code_change(
            CodeChangeRequest(component_id="button", source_code=BUTTON_V2)
        )

        assert result.success is True
        assert seen == ["button"]

    @pytest.mark.asyncio
    async def test_injected_async_validator(self):
        validator = AsyncMock(return_value=ValidationResult(is_valid=False, error="blocked"))
        registry, _ = make_registry(validator=validator)

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="button", source_code=BUTTON_V2)
        )

        assert result.error == "blocked"
        validator.assert_awaited_once()
        args = validator.await_args.args
        assert args[0] == BUTTON_V2
        assert args[1] == BUTTON_V1

    @pytest.mark.asyncio
    async def test_executor_failure_result(self):
        executor = Mock(spec=CodeExecutor)
        executor.execute = AsyncMock(return_value=CodeChangeResult(
            success=False, component_id="button", error="Transpilation failed: boom"
        ))
        registry, _ = make_registry(executor=executor)

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="button", source_code=BUTTON_V2)
        )

        assert result.success is False
        assert result.error_code == ChangeErrorCode.EXECUTION_FAILED
        assert registry.get_component("button").source_code == BUTTON_V1

    @pytest.mark.asyncio
    async def test_executor_exception_is_contained(self):
        registry, events = make_registry(executor=FailingExecutor())

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="button", source_code=BUTTON_V2)
        )

        assert result.success is False
        assert result.error_code == ChangeErrorCode.EXECUTION_FAILED
        assert "compiler crashed" in result.error
        assert len(registry.get_version_history("button")) == 1

    @pytest.mark.asyncio
    async def test_executor_output_is_recorded(self):
        executor = Mock(spec=CodeExecutor)
        executor.execute = AsyncMock(return_value=CodeChangeResult(
            success=True, component_id="button", new_source_code=BUTTON_V2 + "\n"
        ))
        registry, _ = make_registry(executor=executor)

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="button", source_code=BUTTON_V2)
        )

        assert result.new_source_code == BUTTON_V2 + "\n"
        assert registry.get_latest_version("button").source_code == BUTTON_V2 + "\n"

    @pytest.mark.asyncio
    async def test_log_context_is_cleared(self):
        await self.registry.execute_code_change(
            CodeChangeRequest(component_id="button", source_code=BUTTON_V2)
        )

        assert get_current_request_id() is None

    @pytest.mark.asyncio
    async def test_version_events_see_committed_source(self):
        seen = []

        def on_version(event):
            live = self.registry.get_component("button").source_code
            head = self.registry.get_latest_version("button").source_code
            seen.append((event.type, live, head))

        self.registry.event_bus.subscribe(
            on_version,
            event_types=[EventType.VERSION_CREATED, EventType.COMPONENT_VERSION_CREATED],
        )

        await self.registry.execute_code_change(
            CodeChangeRequest(component_id="button", source_code=BUTTON_V2)
        )

        assert [event_type for event_type, _, _ in seen] == [
            EventType.VERSION_CREATED,
            EventType.COMPONENT_VERSION_CREATED,
        ]
        assert all(live == head == BUTTON_V2 for _, live, head in seen)


class TestMultiComponentChange:
    """Partial-failure batches."""

    def setup_method(self):
        self.registry, self.events = make_registry()

    @pytest.mark.asyncio
    async def test_all_succeed(self):
        results = await self.registry.execute_multi_component_change(CrossComponentChangeRequest(
            component_ids=["button", "card"],
            changes={"button": BUTTON_V2, "card": CARD_V2},
            description="Polish",
        ))

        assert list(results) == ["button", "card"]
        assert all(result.success for result in results.values())
        assert self.registry.get_component("card").source_code == CARD_V2

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_successes(self):
        results = await self.registry.execute_multi_component_change(CrossComponentChangeRequest(
            component_ids=["button", "card"],
            changes={"button": BUTTON_V2, "card": "function Card() {\n  eval(body);\n}"},
            description="Risky",
        ))

        failures = [cid for cid, result in results.items() if not result.success]
        assert failures == ["card"]
        assert results["card"].error == "Potentially dangerous code detected: eval"
        assert self.registry.get_component("button").source_code == BUTTON_V2
        assert self.registry.get_component("card").source_code == CARD_V1

    @pytest.mark.asyncio
    async def test_missing_change_and_unknown_component(self):
        results = await self.registry.execute_multi_component_change({
            "component_ids": ["button", "card", "ghost"],
            "changes": {"button": BUTTON_V2, "ghost": "x"},
        })

        assert results["button"].success is True
        assert results["card"].error_code == ChangeErrorCode.MISSING_CHANGE
        assert results["ghost"].error_code == ChangeErrorCode.COMPONENT_NOT_FOUND


class TestAtomicMultiComponentChange:
    """All-or-nothing batches."""

    def setup_method(self):
        self.registry, self.events = make_registry()

    @pytest.mark.asyncio
    async def test_all_applied(self):
        results = await self.registry.execute_atomic_multi_component_change(CrossComponentChangeRequest(
            component_ids=["button", "card"],
            changes={"button": BUTTON_V2, "card": CARD_V2},
            description="Polish",
        ))

        assert all(result.success for result in results.values())
        assert self.registry.get_component("button").source_code == BUTTON_V2
        assert self.registry.get_component("card").source_code == CARD_V2
        assert results["card"].version_id == self.registry.get_latest_version("card").id

    @pytest.mark.asyncio
    async def test_one_failure_applies_nothing(self):
        button_history = self.registry.get_version_history("button")

        results = await self.registry.execute_atomic_multi_component_change(CrossComponentChangeRequest(
            component_ids=["button", "card"],
            changes={"button": BUTTON_V2, "card": "function Card() {\n  eval(body);\n}"},
            description="Risky",
        ))

        assert results["card"].error_code == ChangeErrorCode.VALIDATION_FAILED
        assert results["button"].error_code == ChangeErrorCode.ABORTED
        assert results["button"].error == "Aborted: change to card failed"
        assert self.registry.get_component("button").source_code == BUTTON_V1
        assert self.registry.get_version_history("button") == button_history
        assert EventType.CODE_CHANGE_APPLIED not in [event.type for event in self.events]

    @pytest.mark.asyncio
    async def test_unknown_component_aborts_before_execution(self):
        executor = Mock(spec=CodeExecutor)
        executor.execute = AsyncMock()
        registry, _ = make_registry(executor=executor)

        results = await registry.execute_atomic_multi_component_change({
            "component_ids": ["button", "ghost"],
            "changes": {"button": BUTTON_V2, "ghost": "x"},
        })

        assert results["ghost"].error_code == ChangeErrorCode.COMPONENT_NOT_FOUND
        assert results["button"].error_code == ChangeErrorCode.ABORTED
        executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_permissions_are_enforced(self):
        self.registry.set_permissions(Permissions(allow_logic_changes=False))

        results = await self.registry.execute_atomic_multi_component_change({
            "component_ids": ["button"],
            "changes": {"button": "function Button() {\n  if (x) { return label; }\n  return label;\n}"},
        })

        assert results["button"].error == "Logic changes are not allowed with current permissions"
