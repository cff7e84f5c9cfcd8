# /armelle/routes/bot.py

import logging
from fastapi import APIRouter, Depends, HTTPException
from redis.exceptions import RedisError

from armelle.models.api import BotReply, InboundMessage
from armelle.models.results import TurnReply
from armelle.services.conversation_service import ConversationService
from armelle.utils.dependencies import get_conversation_service

# This file is the thin HTTP channel adapter: it forwards inbound text to the
# conversation port and returns the rendered reply. Delivery to WhatsApp or
# any other channel happens outside this service.

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bot", tags=["Bot"])


def _to_response(turn: TurnReply) -> BotReply:
    return BotReply(
        session_key=turn.session_key,
        result_kind=turn.result_kind,
        reply=turn.reply,
        replies=turn.replies,
        language=turn.language
    )


@router.post("/messages", response_model=BotReply)
async def post_message(message: InboundMessage, service: ConversationService = Depends(get_conversation_service)):
    """Process one inbound message for a session."""
    try:
        turn = await service.handle_input(message.session_key, message.text)
    except RedisError as e:
        logger.error(f"Session storage unavailable for {message.session_key}: {e}")
        raise HTTPException(status_code=503, detail="Session storage unavailable")
    return _to_response(turn)


@router.post("/sessions/{session_key}/start/{workflow_id}", response_model=BotReply)
async def start_workflow(session_key: str, workflow_id: str, service: ConversationService = Depends(get_conversation_service)):
    """Start (or restart) a workflow for a session."""
    try:
        turn = await service.start_workflow(session_key, workflow_id)
    except RedisError as e:
        logger.error(f"Session storage unavailable for {session_key}: {e}")
        raise HTTPException(status_code=503, detail="Session storage unavailable")
    if turn.result_kind == "configuration_error":
        raise HTTPException(status_code=404, detail=f"Unknown workflow '{workflow_id}'")
    return _to_response(turn)


@router.post("/sessions/{session_key}/back", response_model=BotReply)
async def go_back(session_key: str, service: ConversationService = Depends(get_conversation_service)):
    try:
        turn = await service.go_back(session_key)
    except RedisError as e:
        logger.error(f"Session storage unavailable for {session_key}: {e}")
        raise HTTPException(status_code=503, detail="Session storage unavailable")
    return _to_response(turn)


@router.delete("/sessions/{session_key}", response_model=BotReply)
async def cancel_session(session_key: str, service: ConversationService = Depends(get_conversation_service)):
    try:
        turn = await service.cancel(session_key)
    except RedisError as e:
        logger.error(f"Session storage unavailable for {session_key}: {e}")
        raise HTTPException(status_code=503, detail="Session storage unavailable")
    return _to_response(turn)
