# /armelle/workflows/registry.py

import logging
from typing import Dict, Iterable, List, Optional

from armelle.models.workflow import END, StepDefinition, WorkflowDefinition
from armelle.workflows.transitions import validate_condition

# This file holds the registry of workflow definitions. Definitions are checked
# once at registration, so the executor can trust every target it resolves.

logger = logging.getLogger(__name__)


class DefinitionError(Exception):
    """Raised when a workflow definition violates the graph invariants."""

    def __init__(self, workflow_id: str, violations: List[str]):
        self.workflow_id = workflow_id
        self.violations = list(violations)
        super().__init__(f"Workflow '{workflow_id}' is invalid: " + "; ".join(self.violations))


def _check_target(definition: WorkflowDefinition, step_id: str, label: str, target: str) -> List[str]:
    if target == END or target in definition.steps:
        return []
    return [f"step '{step_id}': {label} target '{target}' does not exist"]


def _check_step(definition: WorkflowDefinition, key: str, step: StepDefinition) -> List[str]:
    violations = []

    if step.id != key:
        violations.append(f"step key '{key}' does not match its id '{step.id}'")
    if not step.kind:
        violations.append(f"step '{key}' has no kind")

    if isinstance(step.next, str):
        violations.extend(_check_target(definition, key, "next", step.next))
    else:
        if not step.next:
            violations.append(f"step '{key}': conditional next is empty")
        for entry in step.next:
            violations.extend(_check_target(definition, key, "conditional", entry.target))
            if entry.is_default:
                continue
            error = validate_condition(entry.condition)
            if error:
                violations.append(f"step '{key}': {error}")

    if step.on_error is not None:
        violations.extend(_check_target(definition, key, "on_error", step.on_error))

    if step.kind == "choice" and not step.choices and not step.choices_from:
        violations.append(f"choice step '{key}' needs choices or choices_from")
    if step.kind == "service" and not step.action:
        violations.append(f"service step '{key}' needs an action")
    if step.announce and step.kind != "service":
        violations.append(f"step '{key}': only service steps can be announced")
    if (step.save_as or step.on_error) and not step.action:
        violations.append(f"step '{key}': save_as/on_error require an action")

    return violations


def check_definition(definition: WorkflowDefinition) -> List[str]:
    """
    Collect every invariant violation of a definition.

    Returns:
        A list of human-readable violations (empty when the definition is valid)
    """
    violations = []

    if not definition.steps:
        violations.append("workflow has no steps")
    if definition.start_step_id not in definition.steps:
        violations.append(f"start step '{definition.start_step_id}' does not exist")

    for key, step in definition.steps.items():
        violations.extend(_check_step(definition, key, step))

    if definition.progress:
        for step_id in definition.progress.step_mapping:
            if step_id not in definition.steps:
                violations.append(f"progress mapping references unknown step '{step_id}'")

    return violations


class WorkflowRegistry:
    """Read-only after start-up; shared by every session."""

    def __init__(self):
        self._definitions: Dict[str, WorkflowDefinition] = {}

    def register(self, definition: WorkflowDefinition) -> None:
        violations = check_definition(definition)
        if definition.id in self._definitions:
            violations.insert(0, f"duplicate workflow id '{definition.id}'")

        if violations:
            logger.error(f"Rejected workflow '{definition.id}': {len(violations)} violation(s)")
            raise DefinitionError(definition.id, violations)

        self._definitions[definition.id] = definition
        logger.info(f"Registered workflow '{definition.id}' with {len(definition.steps)} steps.")

    def get(self, workflow_id: Optional[str]) -> Optional[WorkflowDefinition]:
        if workflow_id is None:
            return None
        return self._definitions.get(workflow_id)

    def require(self, workflow_id: str) -> WorkflowDefinition:
        definition = self.get(workflow_id)
        if definition is None:
            raise KeyError(f"Workflow '{workflow_id}' is not registered")
        return definition

    def ids(self) -> List[str]:
        return sorted(self._definitions)

    def __contains__(self, workflow_id: str) -> bool:
        return workflow_id in self._definitions


def register_workflows(registry: WorkflowRegistry, definitions: Iterable[WorkflowDefinition]) -> WorkflowRegistry:
    for definition in definitions:
        registry.register(definition)
    return registry
