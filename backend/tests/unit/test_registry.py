# backend/tests/unit/test_registry.py
import pytest
from unittest.mock import AsyncMock

from armelle.models.workflow import END, ConditionalNext, StepDefinition, WorkflowDefinition
from armelle.workflows.actions import ActionRegistry, ActionResult, coerce_action_result
from armelle.workflows.definitions import DEFAULT_WORKFLOWS, ONBOARDING
from armelle.workflows.registry import DefinitionError, WorkflowRegistry, check_definition, register_workflows


def _definition(**overrides):
    fields = {
        "id": "wf",
        "start_step_id": "first",
        "steps": [
            StepDefinition(id="first", kind="input", prompt_key="p1", next="second"),
            StepDefinition(id="second", kind="message", prompt_key="p2", next=END),
        ],
    }
    fields.update(overrides)
    return WorkflowDefinition(**fields)


def test_valid_definition_registers():
    registry = WorkflowRegistry()
    registry.register(_definition())
    assert registry.get("wf") is not None
    assert registry.ids() == ["wf"]
    assert "wf" in registry


def test_builtin_workflows_are_valid():
    assert check_definition(ONBOARDING) == []
    registry = register_workflows(WorkflowRegistry(), DEFAULT_WORKFLOWS)
    assert registry.require("onboarding") is ONBOARDING


def test_all_violations_are_reported_together():
    definition = _definition(
        start_step_id="nowhere",
        steps={
            "first": StepDefinition(id="first", kind="input", prompt_key="p", next="ghost"),
            "mislabeled": StepDefinition(id="other", kind="choice", prompt_key="p", next=END),
            "branch": StepDefinition(
                id="branch",
                kind="message",
                prompt_key="p",
                next=[ConditionalNext(condition="x == unquoted", target="first")],
            ),
            "svc": StepDefinition(id="svc", kind="service", prompt_key="p", on_error="ghost2"),
        },
    )
    registry = WorkflowRegistry()
    with pytest.raises(DefinitionError) as exc_info:
        registry.register(definition)

    violations = exc_info.value.violations
    assert any("start step 'nowhere'" in v for v in violations)
    assert any("'ghost'" in v for v in violations)
    assert any("does not match its id" in v for v in violations)
    assert any("needs choices" in v for v in violations)
    assert any("Invalid literal" in v for v in violations)
    assert any("needs an action" in v for v in violations)
    assert any("'ghost2'" in v for v in violations)
    # Nothing is registered on failure
    assert registry.get("wf") is None


def test_duplicate_workflow_id_is_rejected():
    registry = WorkflowRegistry()
    registry.register(_definition())
    with pytest.raises(DefinitionError, match="duplicate workflow id"):
        registry.register(_definition())


def test_require_unknown_workflow_raises():
    with pytest.raises(KeyError):
        WorkflowRegistry().require("nope")


# --- Action registry ---

def test_action_registry_lookup():
    actions = ActionRegistry()
    handler = AsyncMock()
    actions.register_many("wf", {"b": handler, "a": handler})

    assert actions.get("wf", "a") is handler
    assert actions.has("wf", "b")
    assert not actions.has("other", "a")
    assert actions.get("wf", "missing") is None
    assert actions.names("wf") == ["a", "b"]


def test_action_registry_rejects_duplicates():
    actions = ActionRegistry()
    actions.register("wf", "a", AsyncMock())
    with pytest.raises(ValueError):
        actions.register("wf", "a", AsyncMock())


def test_plain_dict_results_are_coerced():
    result = coerce_action_result({"success": False, "data": {"error": "down"}})
    assert result == ActionResult(success=False, data={"error": "down"})
    with pytest.raises(TypeError):
        coerce_action_result("ok")
