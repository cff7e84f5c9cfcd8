# /armelle/models/api.py

from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime, timezone

# This file contains Pydantic models that define the structure of data for
# API requests and responses of the HTTP channel adapter.

class InboundMessage(BaseModel):
    session_key: str = Field(..., min_length=1, max_length=128)
    text: str = Field(default="", max_length=4096)

class BotReply(BaseModel):
    session_key: str
    result_kind: str
    reply: str
    replies: List[str] = Field(default_factory=list)
    language: str

class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str
