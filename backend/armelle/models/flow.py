# /armelle/models/flow.py

from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowContext(BaseModel):
    """
    Per-session conversation state for the workflow executor.

    This is a PURE DATA model with no workflow logic. It is persisted after
    every turn and must round-trip losslessly through JSON. `history` holds the
    interactive steps visited, the top entry being the current one.
    """
    workflow_id: Optional[str] = Field(default=None, description="Active workflow, None when idle")
    current_step_id: Optional[str] = Field(default=None, description="Step the session is positioned on")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Collected inputs and action results")
    history: List[str] = Field(default_factory=list, description="Stack of visited interactive step ids")
    started_at: Optional[datetime] = Field(default=None, description="When the active workflow started")
    step_started_at: Optional[datetime] = Field(default=None, description="When the current step was entered")
    retry_count: int = Field(default=0, description="Failed validation attempts on the current step")
    language: str = Field(default="fr", description="Conversation language")
    version: int = Field(default=0, description="Stored version, used for optimistic concurrency")
    last_updated: datetime = Field(default_factory=utcnow, description="Timestamp of last update")

    @property
    def is_active(self) -> bool:
        return self.workflow_id is not None
