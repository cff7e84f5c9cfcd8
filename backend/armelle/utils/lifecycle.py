# /armelle/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
from fastapi import FastAPI

from armelle.config.settings import Settings, settings
from armelle.services.conversation_service import ConversationService
from armelle.services.dgi_service import DGIService
from armelle.services.onboarding_actions import (
    InMemoryProfileRepository,
    OnboardingActions,
    RedisProfileRepository,
    register_onboarding_actions,
)
from armelle.services.presenter import MessagePresenter
from armelle.services.session_store import InMemorySessionStore, RedisSessionStore
from armelle.services.string_service import StringService
from armelle.utils.logging import setup_logging
from armelle.workflows.actions import ActionRegistry
from armelle.workflows.definitions import DEFAULT_WORKFLOWS
from armelle.workflows.engine import WorkflowExecutor
from armelle.workflows.registry import WorkflowRegistry, register_workflows

# This file manages the application's lifespan: it builds every service once
# at startup (the composition root), exposes them on app.state, and closes
# connections at shutdown.

logger = logging.getLogger(__name__)


def build_services(app: FastAPI, config: Settings, redis_client: Optional[redis.Redis] = None) -> None:
    """Wire registries, executor, stores and the conversation port onto app.state."""
    if redis_client is not None:
        session_store = RedisSessionStore(redis_client, config.session_key_prefix, config.session_ttl_seconds)
        profiles = RedisProfileRepository(redis_client, config.profile_key_prefix)
    else:
        session_store = InMemorySessionStore()
        profiles = InMemoryProfileRepository()

    workflows = register_workflows(WorkflowRegistry(), DEFAULT_WORKFLOWS)

    budget = config.dgi_budget_seconds
    dgi_service = DGIService(
        config.dgi_api_url,
        timeout=min(config.dgi_timeout_seconds, budget) if budget else config.dgi_timeout_seconds,
        budget_seconds=budget
    )
    onboarding = OnboardingActions(dgi_service, profiles, max_results=config.dgi_max_results)
    actions = register_onboarding_actions(ActionRegistry(), onboarding)

    executor = WorkflowExecutor(
        workflows,
        actions,
        max_auto_steps=config.workflow_max_auto_steps,
        history_limit=config.workflow_history_limit,
        action_timeout=config.action_timeout_seconds
    )
    strings = StringService(default_language=config.default_language)

    app.state.redis = redis_client
    app.state.dgi_service = dgi_service
    app.state.profiles = profiles
    app.state.session_store = session_store
    app.state.workflow_registry = workflows
    app.state.executor = executor
    app.state.conversation_service = ConversationService(
        executor,
        session_store,
        MessagePresenter(strings, workflows),
        strings,
        auto_start_workflow=config.auto_start_workflow
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging(settings)

    logger.info("Application starting up...")

    redis_client = None
    if not settings.use_in_memory_store:
        redis_client = redis.Redis.from_url(settings.redis_url)
    else:
        logger.warning("Using in-memory session store; sessions are lost on restart.")

    build_services(app, settings, redis_client)

    logger.info("Application startup complete. Ready to accept requests.")

    yield  # Application is now running

    logger.info("Application shutting down...")

    await app.state.dgi_service.close()
    if redis_client is not None:
        await redis_client.aclose()
