# /armelle/models/workflow.py

from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

from armelle.workflows.templates import TemplateValue, parse_template_value

# This file contains the immutable models that describe a workflow graph.
# Definitions are pure data: the executor interprets them, nothing here runs.

END = "END"

StepKind = Literal["input", "choice", "message", "service"]

INTERACTIVE_KINDS = ("input", "choice")


class ValidationRule(BaseModel):
    """Constraints applied to free-text input before it is stored."""
    model_config = ConfigDict(frozen=True)

    required: bool = True
    kind: str = Field(default="text", description="text, number, email, phone, name or pattern")
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None


class Choice(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label_key: str
    value: Any = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if isinstance(v, int) else v

    @property
    def selected_value(self) -> Any:
        """The value stored when this choice is picked (defaults to the id)."""
        return self.id if self.value is None else self.value


class ConditionalNext(BaseModel):
    model_config = ConfigDict(frozen=True)

    condition: Optional[str] = None
    target: str

    @property
    def is_default(self) -> bool:
        return self.condition is None or self.condition.strip() == "default"


NextSpec = Union[str, List[ConditionalNext]]


class StepDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    kind: StepKind
    prompt_key: str
    validation: Optional[ValidationRule] = None
    choices: Optional[List[Choice]] = None
    choices_from: Optional[str] = Field(default=None, description="Dotted variable path to a list of choice dicts")
    action: Optional[str] = None
    params: Dict[str, TemplateValue] = Field(default_factory=dict)
    save_as: Optional[str] = None
    next: NextSpec = END
    on_error: Optional[str] = None
    announce: bool = False
    allow_back: bool = True
    allow_system_commands: bool = True

    @field_validator("params", mode="before")
    @classmethod
    def parse_params(cls, v):
        if isinstance(v, dict):
            return {name: parse_template_value(value) for name, value in v.items()}
        return v

    @property
    def is_interactive(self) -> bool:
        return self.kind in INTERACTIVE_KINDS

    @property
    def result_key(self) -> Optional[str]:
        """Variable under which the action's data is stored."""
        return self.save_as or self.action


class ProgressConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_steps: int
    prefix_key: str
    step_mapping: Dict[str, int] = Field(default_factory=dict)


class WorkflowDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    start_step_id: str
    steps: Dict[str, StepDefinition]
    name_key: Optional[str] = None
    progress: Optional[ProgressConfig] = None
    completion_action: Optional[str] = None

    @field_validator("steps", mode="before")
    @classmethod
    def index_steps(cls, v):
        # Steps may be given as a list; they are keyed by their id.
        if isinstance(v, list):
            indexed = {}
            for step in v:
                step_id = step.id if isinstance(step, StepDefinition) else step.get("id")
                indexed[step_id] = step
            return indexed
        return v

    def step(self, step_id: Optional[str]) -> Optional[StepDefinition]:
        if step_id is None:
            return None
        return self.steps.get(step_id)
