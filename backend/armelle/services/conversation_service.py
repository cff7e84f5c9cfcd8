# /armelle/services/conversation_service.py

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from armelle.models.flow import WorkflowContext
from armelle.models.results import (
    NO_ACTIVE_WORKFLOW,
    CallServiceResult,
    ConfigurationErrorResult,
    NoticeResult,
    NotAllowedResult,
    TurnReply,
    VersionConflictResult,
)
from armelle.services.presenter import MessagePresenter
from armelle.services.session_store import SessionStore
from armelle.services.string_service import StringService
from armelle.utils.logging import bind_turn
from armelle.utils.metrics import workflow_turns_counter
from armelle.workflows.engine import WorkflowExecutor

# This service is the port exposed to channel adapters (HTTP, WhatsApp, ...).
# It loads the session, runs one executor call, renders the result and saves
# the new context with an optimistic version check. Turns for the same session
# are serialized in-process; across processes the version check rejects stale
# writes.

logger = logging.getLogger(__name__)

BACK_COMMANDS = {"*", "retour", "back"}
CANCEL_COMMANDS = {"annuler", "cancel"}
HELP_COMMANDS = {"aide", "help", "?"}
LANGUAGE_COMMANDS = {
    "fr": "fr",
    "francais": "fr",
    "français": "fr",
    "en": "en",
    "english": "en",
    "anglais": "en",
}

# An operation maps the loaded context to (new context or None when nothing
# needs saving, result)
Operation = Callable[[WorkflowContext], Awaitable[Tuple[Optional[WorkflowContext], object]]]


class ConversationService:
    def __init__(
        self,
        executor: WorkflowExecutor,
        store: SessionStore,
        presenter: MessagePresenter,
        strings: StringService,
        auto_start_workflow: Optional[str] = "onboarding"
    ):
        self.executor = executor
        self.store = store
        self.presenter = presenter
        self.strings = strings
        self.auto_start_workflow = auto_start_workflow or None
        # Per-session locks, dropped once no turn holds or waits on them
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    # ---------------- Port ---------------- #

    async def start_workflow(self, session_key: str, workflow_id: str) -> TurnReply:
        async def operation(context: WorkflowContext):
            new_context, result = await self.executor.start(workflow_id, session_key, context.language)
            if isinstance(result, ConfigurationErrorResult):
                return None, result
            return new_context, result

        return await self._run_turn(session_key, operation)

    async def handle_input(self, session_key: str, raw_input: Optional[str]) -> TurnReply:
        async def operation(context: WorkflowContext):
            return await self._handle(session_key, context, raw_input or "")

        return await self._run_turn(session_key, operation)

    async def go_back(self, session_key: str) -> TurnReply:
        async def operation(context: WorkflowContext):
            return self._back(context)

        return await self._run_turn(session_key, operation)

    async def cancel(self, session_key: str) -> TurnReply:
        async def operation(context: WorkflowContext):
            return self._cancel(context)

        return await self._run_turn(session_key, operation)

    # ---------------- Commands ---------------- #

    async def _handle(self, session_key: str, context: WorkflowContext, raw_input: str):
        command = raw_input.strip().lower()
        step = self.executor.current_step(context) if context.is_active else None

        if step is None or step.allow_system_commands:
            if command in HELP_COMMANDS:
                return None, NoticeResult(notice_key="common.help_message", prompt=self.executor.current_prompt(context))
            if command in LANGUAGE_COMMANDS:
                return self._switch_language(context, LANGUAGE_COMMANDS[command])
            if command in BACK_COMMANDS and context.is_active:
                return self._back(context)
            if command in CANCEL_COMMANDS:
                return self._cancel(context)

        if not context.is_active:
            if not self.auto_start_workflow:
                return None, NotAllowedResult(reason=NO_ACTIVE_WORKFLOW)
            logger.info(f"Auto-starting '{self.auto_start_workflow}' for session {session_key}")
            return await self.executor.start(self.auto_start_workflow, session_key, context.language)

        return await self.executor.process_input(context, raw_input, session_key)

    def _back(self, context: WorkflowContext):
        new_context, result = self.executor.go_back(context)
        if isinstance(result, NotAllowedResult):
            return None, result
        return new_context, result

    def _cancel(self, context: WorkflowContext):
        if not context.is_active:
            return None, NotAllowedResult(reason=NO_ACTIVE_WORKFLOW)
        logger.info(f"Cancelling workflow '{context.workflow_id}'")
        return self.executor.cancel(context), NoticeResult(notice_key="common.cancelled")

    def _switch_language(self, context: WorkflowContext, language: str):
        new_context = context.model_copy(deep=True)
        new_context.language = self.strings.resolve_language(language)
        return new_context, NoticeResult(
            notice_key="common.language_changed",
            prompt=self.executor.current_prompt(new_context)
        )

    # ---------------- Turn mechanics ---------------- #

    @asynccontextmanager
    async def _session_lock(self, session_key: str):
        """Serialize turns of one session without keeping a lock per key forever."""
        lock = self._locks.setdefault(session_key, asyncio.Lock())
        self._lock_users[session_key] = self._lock_users.get(session_key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_key] -= 1
            if not self._lock_users[session_key]:
                del self._lock_users[session_key]
                del self._locks[session_key]

    async def _load(self, session_key: str) -> WorkflowContext:
        context = await self.store.load(session_key)
        if context is None:
            context = WorkflowContext(language=self.strings.default_language)
        return context

    async def _run_turn(self, session_key: str, operation: Operation) -> TurnReply:
        async with self._session_lock(session_key):
            with bind_turn(session_key):
                return await self._attempt_turn(session_key, operation)

    async def _attempt_turn(self, session_key: str, operation: Operation) -> TurnReply:
        """Load, operate and save, retrying once when the stored version moved on."""
        for attempt in (1, 2):
            context = await self._load(session_key)
            expected_version = context.version

            new_context, result = await operation(context)
            if new_context is None:
                return self._reply(session_key, context, [result])

            if not await self.store.save(session_key, new_context, expected_version):
                logger.warning(f"Version conflict on session {session_key} (attempt {attempt})")
                continue

            results = [result]
            version = expected_version + 1
            # Announced service steps: send the interim prompt, then run the action
            for _ in range(self.executor.max_auto_steps):
                if not isinstance(result, CallServiceResult):
                    break
                new_context, result = await self.executor.process_input(new_context, "", session_key)
                if not await self.store.save(session_key, new_context, version):
                    logger.warning(f"Session {session_key} changed while running '{results[-1].action_name}'")
                    result = VersionConflictResult()
                    results.append(result)
                    break
                version += 1
                results.append(result)

            return self._reply(session_key, new_context, results)

        return self._reply(session_key, context, [VersionConflictResult()])

    def _reply(self, session_key: str, context: WorkflowContext, results: List[object]) -> TurnReply:
        language = self.strings.resolve_language(context.language)
        final = results[-1]
        workflow = getattr(final, "workflow_id", None) or context.workflow_id or "none"
        workflow_turns_counter.labels(workflow=workflow, result=final.kind).inc()
        return TurnReply(
            session_key=session_key,
            language=language,
            result=final,
            replies=[self.presenter.render(result, language) for result in results]
        )
