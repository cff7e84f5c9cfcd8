# /armelle/utils/dependencies.py

import secrets
import structlog
from fastapi import Request, HTTPException

from armelle.config.settings import settings
from armelle.services.conversation_service import ConversationService

log = structlog.get_logger(__name__)

def get_conversation_service(request: Request) -> ConversationService:
    service = getattr(request.app.state, "conversation_service", None)
    if service is None:
        log.error("Conversation service requested before startup completed.")
        raise HTTPException(status_code=503, detail="Service is starting up")
    return service

async def verify_metrics_access(request: Request):
    if settings.api_key:
        provided_key = request.headers.get("X-API-KEY")
        if not (provided_key and secrets.compare_digest(provided_key, settings.api_key)):
            log.warning("Rejected metrics request with a missing or invalid API key.")
            raise HTTPException(status_code=403, detail="Invalid or missing API key")
