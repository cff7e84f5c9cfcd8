# /armelle/models/results.py

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field

# This file contains the outcome of one conversational turn (StepResult) and
# the presenter contract (RenderRequest). The executor only produces these
# models; turning them into text is the presenter's job.

# Configuration error codes
STEP_NOT_FOUND = "step_not_found"
UNRESOLVED_TRANSITION = "unresolved_transition"
WORKFLOW_STUCK = "workflow_stuck"
WORKFLOW_NOT_FOUND = "workflow_not_found"
ACTION_NOT_FOUND = "action_not_found"
NO_ACTIVE_WORKFLOW = "no_active_workflow"


class ChoiceView(BaseModel):
    index: int
    label_key: str


class ProgressView(BaseModel):
    current: int
    total: int
    prefix_key: str


class RenderRequest(BaseModel):
    """Everything the presenter needs to render one step prompt."""
    workflow_id: Optional[str] = None
    step_id: Optional[str] = None
    prompt_key: Optional[str] = None
    text: Optional[str] = None
    params: Dict[str, Any] = Field(default_factory=dict)
    choices: List[ChoiceView] = Field(default_factory=list)
    progress: Optional[ProgressView] = None
    allow_back: bool = False
    error_reason: Optional[str] = None
    error_params: Dict[str, Any] = Field(default_factory=dict)


class _TurnResult(BaseModel):
    # Prompts of message steps passed through during the turn, in order
    messages: List[RenderRequest] = Field(default_factory=list)


class AwaitingInputResult(_TurnResult):
    kind: Literal["awaiting_input"] = "awaiting_input"
    step_id: str
    prompt: RenderRequest


class AdvanceResult(_TurnResult):
    """Outcome of a single step. The executor chains on it; a turn never ends with it."""
    kind: Literal["advance"] = "advance"
    next_step_id: str


class CallServiceResult(_TurnResult):
    kind: Literal["call_service"] = "call_service"
    step_id: str
    action_name: str
    params: Dict[str, Any] = Field(default_factory=dict)
    prompt: RenderRequest


class ValidationErrorResult(_TurnResult):
    kind: Literal["validation_error"] = "validation_error"
    step_id: str
    reason: str
    message: Optional[str] = None
    prompt: RenderRequest


class ServiceErrorResult(_TurnResult):
    kind: Literal["service_error"] = "service_error"
    step_id: Optional[str] = None
    action_name: str
    reason: str


class CompletedResult(_TurnResult):
    kind: Literal["completed"] = "completed"
    workflow_id: Optional[str] = None
    final_data: Dict[str, Any] = Field(default_factory=dict)


class ConfigurationErrorResult(_TurnResult):
    kind: Literal["configuration_error"] = "configuration_error"
    code: str
    detail: str


class NotAllowedResult(_TurnResult):
    kind: Literal["not_allowed"] = "not_allowed"
    reason: str
    prompt: Optional[RenderRequest] = None


class VersionConflictResult(_TurnResult):
    kind: Literal["version_conflict"] = "version_conflict"


class NoticeResult(_TurnResult):
    """Reply to a system command (help, language switch, cancel)."""
    kind: Literal["notice"] = "notice"
    notice_key: str
    prompt: Optional[RenderRequest] = None


StepResult = Annotated[
    Union[
        AwaitingInputResult,
        AdvanceResult,
        CallServiceResult,
        ValidationErrorResult,
        ServiceErrorResult,
        CompletedResult,
        ConfigurationErrorResult,
        NotAllowedResult,
        VersionConflictResult,
        NoticeResult,
    ],
    Field(discriminator="kind"),
]


class TurnReply(BaseModel):
    """What the conversation port hands back to the channel adapter."""
    session_key: str
    language: str
    result: StepResult
    replies: List[str] = Field(default_factory=list)

    @property
    def result_kind(self) -> str:
        return self.result.kind

    @property
    def reply(self) -> str:
        return "\n\n".join(self.replies)
