# /armelle/workflows/actions.py

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union
from pydantic import BaseModel, Field

# This file maps the symbolic action names used by workflow definitions to
# async handler functions. Actions are the only place where workflow steps
# perform I/O (lookups, persistence, ...).

logger = logging.getLogger(__name__)


class ActionRequest(BaseModel):
    params: Dict[str, Any] = Field(default_factory=dict, description="Rendered step params")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Copy of the context variables")
    raw_input: str = ""
    session_key: Optional[str] = None
    language: str = "fr"
    workflow_id: str
    step_id: Optional[str] = None


class ActionResult(BaseModel):
    success: bool = True
    next_step_override: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


ActionHandler = Callable[[ActionRequest], Awaitable[Union[ActionResult, Dict[str, Any]]]]


def coerce_action_result(raw: Any) -> ActionResult:
    """Accept an ActionResult or a plain dict; anything else is a handler bug."""
    if isinstance(raw, ActionResult):
        return raw
    if isinstance(raw, dict):
        return ActionResult.model_validate(raw)
    raise TypeError(f"Action handlers must return ActionResult or dict, got {type(raw).__name__}")


class ActionRegistry:
    def __init__(self):
        self._handlers: Dict[Tuple[str, str], ActionHandler] = {}

    def register(self, workflow_id: str, action_name: str, handler: ActionHandler) -> None:
        key = (workflow_id, action_name)
        if key in self._handlers:
            raise ValueError(f"Action '{action_name}' is already registered for workflow '{workflow_id}'")
        self._handlers[key] = handler
        logger.debug(f"Registered action '{action_name}' for workflow '{workflow_id}'")

    def register_many(self, workflow_id: str, handlers: Dict[str, ActionHandler]) -> None:
        for action_name, handler in handlers.items():
            self.register(workflow_id, action_name, handler)

    def get(self, workflow_id: str, action_name: str) -> Optional[ActionHandler]:
        return self._handlers.get((workflow_id, action_name))

    def has(self, workflow_id: str, action_name: str) -> bool:
        return (workflow_id, action_name) in self._handlers

    def names(self, workflow_id: str) -> List[str]:
        return sorted(name for wf_id, name in self._handlers if wf_id == workflow_id)
