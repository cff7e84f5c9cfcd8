# /armelle/workflows/engine.py

"""
Workflow execution engine.

The WorkflowExecutor interprets a declarative WorkflowDefinition one
conversational turn at a time:
- Validates the user's input for the current step (input/choice steps)
- Stores the sanitized value and runs the step's action, if any
- Resolves the next step (action override first, then the step's `next`)
- Chains through automatic steps (message, service) without new input,
  bounded by max_auto_steps
- Stops at the next interactive step, at an announced service step, at END
  or at the first error

The executor holds no per-session state and never mutates the context it is
given: every call works on a deep copy and returns the new context alongside
the StepResult. Errors are returned as results, never raised.

Failure semantics:
- An action that raises or times out yields ServiceErrorResult and the context
  as it was just before the failing step ran, so the turn can be retried.
- An action that reports success=False keeps going only through an explicit
  error branch (next_step_override, on_error, or a matching non-default
  condition such as "search_dgi.error exists"); otherwise its data is rolled
  back and ServiceErrorResult is returned.
"""

import asyncio
import copy
import logging
import time
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from armelle.models.flow import WorkflowContext, utcnow
from armelle.models.results import (
    ACTION_NOT_FOUND,
    NO_ACTIVE_WORKFLOW,
    STEP_NOT_FOUND,
    UNRESOLVED_TRANSITION,
    WORKFLOW_NOT_FOUND,
    WORKFLOW_STUCK,
    AdvanceResult,
    AwaitingInputResult,
    CallServiceResult,
    ChoiceView,
    CompletedResult,
    ConfigurationErrorResult,
    NotAllowedResult,
    ProgressView,
    RenderRequest,
    ServiceErrorResult,
    ValidationErrorResult,
)
from armelle.models.workflow import END, Choice, StepDefinition, WorkflowDefinition
from armelle.utils.metrics import workflow_action_seconds, workflow_actions_counter
from armelle.workflows.actions import ActionHandler, ActionRegistry, ActionRequest, ActionResult, coerce_action_result
from armelle.workflows.registry import WorkflowRegistry
from armelle.workflows.templates import MISSING, lookup_path, render_params
from armelle.workflows.transitions import resolve_next
from armelle.workflows.validator import validate_choice, validate_input

logger = logging.getLogger(__name__)

# go_back refusal reasons
BACK_DISABLED = "back_disabled"
NO_HISTORY = "no_history"

# Where a finished step leads: AdvanceResult (a step id or END) or the error
# result that stopped the turn. AdvanceResult never leaves the executor.
StepOutcome = Union[AdvanceResult, ServiceErrorResult, ConfigurationErrorResult]


class WorkflowExecutor:
    def __init__(
        self,
        registry: WorkflowRegistry,
        actions: ActionRegistry,
        max_auto_steps: int = 25,
        history_limit: int = 50,
        action_timeout: Optional[float] = None
    ):
        self.registry = registry
        self.actions = actions
        self.max_auto_steps = max_auto_steps
        self.history_limit = history_limit
        self.action_timeout = action_timeout

    # ---------------- Public API ---------------- #

    async def start(self, workflow_id: str, session_key: Optional[str] = None, language: str = "fr") -> Tuple[WorkflowContext, Any]:
        """Create a fresh context positioned at the workflow's start step and enter it."""
        context = WorkflowContext(language=language)
        definition = self.registry.get(workflow_id)
        if definition is None:
            logger.error(f"Cannot start unknown workflow '{workflow_id}'")
            return context, ConfigurationErrorResult(
                code=WORKFLOW_NOT_FOUND,
                detail=f"Workflow '{workflow_id}' is not registered"
            )

        context.workflow_id = definition.id
        context.started_at = utcnow()
        logger.info(f"Starting workflow '{definition.id}' for session {session_key}")
        return await self._run_from(
            definition, context, definition.start_step_id, session_key, [], context.model_copy(deep=True)
        )

    async def process_input(self, context: WorkflowContext, raw_input: Optional[str], session_key: Optional[str] = None) -> Tuple[WorkflowContext, Any]:
        """Run one turn: validate the input for the current step and advance."""
        ctx = context.model_copy(deep=True)

        if not ctx.is_active:
            return ctx, ConfigurationErrorResult(code=NO_ACTIVE_WORKFLOW, detail="No workflow is active for this session")

        definition = self.registry.get(ctx.workflow_id)
        if definition is None:
            logger.error(f"Session {session_key} references unknown workflow '{ctx.workflow_id}'")
            return ctx, ConfigurationErrorResult(
                code=WORKFLOW_NOT_FOUND,
                detail=f"Workflow '{ctx.workflow_id}' is not registered"
            )

        step = definition.step(ctx.current_step_id)
        if step is None:
            logger.error(f"Workflow '{definition.id}' has no step '{ctx.current_step_id}'")
            return ctx, ConfigurationErrorResult(
                code=STEP_NOT_FOUND,
                detail=f"Step '{ctx.current_step_id}' does not exist in workflow '{definition.id}'"
            )

        if not step.is_interactive:
            return await self._resume_automatic(definition, ctx, step, session_key)

        if step.kind == "input":
            check = validate_input(raw_input, step.validation)
        else:
            check = validate_choice(raw_input, self._choices_for(step, ctx.variables))

        if not check["is_valid"]:
            ctx.retry_count += 1
            logger.debug(f"Validation failed on step '{step.id}': {check['error_code']}")
            return ctx, ValidationErrorResult(
                step_id=step.id,
                reason=check["error_code"],
                message=check["message"],
                prompt=self._render(definition, step, ctx, error_reason=check["error_code"])
            )

        ctx.variables[step.id] = check["value"]
        outcome = await self._leave_step(definition, step, ctx, session_key, raw_input or "")
        if not isinstance(outcome, AdvanceResult):
            # The caller's context is kept so the same input can be retried
            return context.model_copy(deep=True), outcome

        return await self._run_from(definition, ctx, outcome.next_step_id, session_key, [], context.model_copy(deep=True))

    def go_back(self, context: WorkflowContext) -> Tuple[WorkflowContext, Any]:
        """Return to the previous interactive step. Variables are kept."""
        ctx = context.model_copy(deep=True)
        definition = self.registry.get(ctx.workflow_id)
        step = definition.step(ctx.current_step_id) if definition else None

        if step is None:
            reason = STEP_NOT_FOUND if ctx.is_active else NO_ACTIVE_WORKFLOW
            return ctx, NotAllowedResult(reason=reason)

        current_prompt = self._render(definition, step, ctx) if step.is_interactive else None
        if not step.allow_back:
            return ctx, NotAllowedResult(reason=BACK_DISABLED, prompt=current_prompt)

        if step.is_interactive:
            if len(ctx.history) < 2:
                return ctx, NotAllowedResult(reason=NO_HISTORY, prompt=current_prompt)
            ctx.history.pop()
        elif not ctx.history:
            # Paused on an automatic step before any input was collected
            return ctx, NotAllowedResult(reason=NO_HISTORY)

        previous = definition.step(ctx.history[-1])
        if previous is None:
            return context.model_copy(deep=True), NotAllowedResult(reason=STEP_NOT_FOUND)

        ctx.current_step_id = previous.id
        ctx.step_started_at = utcnow()
        ctx.retry_count = 0
        return ctx, AwaitingInputResult(step_id=previous.id, prompt=self._render(definition, previous, ctx))

    def cancel(self, context: WorkflowContext) -> WorkflowContext:
        """Clear the active workflow. Language and version are kept."""
        ctx = context.model_copy(deep=True)
        ctx.workflow_id = None
        ctx.current_step_id = None
        ctx.variables = {}
        ctx.history = []
        ctx.started_at = None
        ctx.step_started_at = None
        ctx.retry_count = 0
        return ctx

    def current_prompt(self, context: WorkflowContext) -> Optional[RenderRequest]:
        """Re-render the current interactive step (used after a language switch)."""
        definition = self.registry.get(context.workflow_id)
        step = definition.step(context.current_step_id) if definition else None
        if step is None or not step.is_interactive:
            return None
        return self._render(definition, step, context)

    def current_step(self, context: WorkflowContext) -> Optional[StepDefinition]:
        definition = self.registry.get(context.workflow_id)
        return definition.step(context.current_step_id) if definition else None

    # ---------------- Turn mechanics ---------------- #

    async def _resume_automatic(self, definition: WorkflowDefinition, ctx: WorkflowContext, step: StepDefinition, session_key: Optional[str]):
        """The session is paused on an automatic step: the input is ignored and the step runs."""
        snapshot = ctx.model_copy(deep=True)
        if step.kind == "message":
            outcome = self._checked_target(definition, step, resolve_next(step.next, ctx.variables))
        else:
            outcome = await self._leave_step(definition, step, ctx, session_key, "")

        if not isinstance(outcome, AdvanceResult):
            return snapshot, outcome
        return await self._run_from(definition, ctx, outcome.next_step_id, session_key, [], snapshot)

    async def _run_from(
        self,
        definition: WorkflowDefinition,
        ctx: WorkflowContext,
        target: str,
        session_key: Optional[str],
        messages: List[RenderRequest],
        resume: WorkflowContext
    ):
        """
        Enter `target` and keep going through automatic steps.

        `resume` is the context to hand back on failure: the state just before
        the failing step ran.
        """
        auto_steps = 0
        while True:
            if target == END:
                return await self._complete(definition, ctx, session_key, messages, resume)

            step = definition.step(target)
            if step is None:
                logger.error(f"Workflow '{definition.id}' transitioned to unknown step '{target}'")
                return resume, self._with_messages(ConfigurationErrorResult(
                    code=STEP_NOT_FOUND,
                    detail=f"Step '{target}' does not exist in workflow '{definition.id}'"
                ), messages)

            if not step.is_interactive:
                auto_steps += 1
                if auto_steps > self.max_auto_steps:
                    logger.error(f"Workflow '{definition.id}' exceeded {self.max_auto_steps} automatic steps at '{step.id}'")
                    return resume, self._with_messages(ConfigurationErrorResult(
                        code=WORKFLOW_STUCK,
                        detail=f"More than {self.max_auto_steps} automatic steps without user input"
                    ), messages)

            self._enter(ctx, step)

            if step.is_interactive:
                return ctx, AwaitingInputResult(
                    step_id=step.id,
                    prompt=self._render(definition, step, ctx),
                    messages=messages
                )

            resume = ctx.model_copy(deep=True)

            if step.kind == "message":
                messages.append(self._render(definition, step, ctx))
                outcome = self._checked_target(definition, step, resolve_next(step.next, ctx.variables))
            elif step.announce:
                return ctx, CallServiceResult(
                    step_id=step.id,
                    action_name=step.action,
                    params=render_params(step.params, ctx.variables),
                    prompt=self._render(definition, step, ctx),
                    messages=messages
                )
            else:
                outcome = await self._leave_step(definition, step, ctx, session_key, "")

            if not isinstance(outcome, AdvanceResult):
                return resume, self._with_messages(outcome, messages)
            target = outcome.next_step_id

    async def _leave_step(
        self,
        definition: WorkflowDefinition,
        step: StepDefinition,
        ctx: WorkflowContext,
        session_key: Optional[str],
        raw_input: str
    ) -> StepOutcome:
        """Run the step's action (if any) and decide where to go next."""
        if not step.action:
            return self._checked_target(definition, step, resolve_next(step.next, ctx.variables))

        result = await self._call_action(definition, step.action, ctx, session_key, raw_input, step)
        if not isinstance(result, ActionResult):
            return result

        key = step.result_key
        previous = ctx.variables.get(key, MISSING)
        ctx.variables[key] = result.data

        if result.success:
            target = result.next_step_override or resolve_next(step.next, ctx.variables)
            return self._checked_target(definition, step, target)

        target = (
            result.next_step_override
            or step.on_error
            or resolve_next(step.next, ctx.variables, include_default=False)
        )
        if target is None:
            if previous is MISSING:
                del ctx.variables[key]
            else:
                ctx.variables[key] = previous
            reason = str(result.data.get("error") or "action_failed")
            logger.warning(f"Action '{step.action}' failed on step '{step.id}' with no error branch: {reason}")
            return ServiceErrorResult(step_id=step.id, action_name=step.action, reason=reason)

        logger.info(f"Action '{step.action}' failed on step '{step.id}', taking error branch to '{target}'")
        return self._checked_target(definition, step, target)

    async def _complete(
        self,
        definition: WorkflowDefinition,
        ctx: WorkflowContext,
        session_key: Optional[str],
        messages: List[RenderRequest],
        resume: WorkflowContext
    ):
        final_data = copy.deepcopy(ctx.variables)

        if definition.completion_action:
            result = await self._call_action(definition, definition.completion_action, ctx, session_key, "")
            if not isinstance(result, ActionResult):
                return resume, self._with_messages(result, messages)
            if not result.success:
                reason = str(result.data.get("error") or "action_failed")
                logger.warning(f"Completion action '{definition.completion_action}' failed: {reason}")
                return resume, ServiceErrorResult(
                    step_id=ctx.current_step_id,
                    action_name=definition.completion_action,
                    reason=reason,
                    messages=messages
                )
            if result.data:
                final_data[definition.completion_action] = result.data

        logger.info(f"Workflow '{definition.id}' completed for session {session_key}")
        return self.cancel(ctx), CompletedResult(workflow_id=definition.id, final_data=final_data, messages=messages)

    async def _call_action(
        self,
        definition: WorkflowDefinition,
        action_name: str,
        ctx: WorkflowContext,
        session_key: Optional[str],
        raw_input: str,
        step: Optional[StepDefinition] = None
    ) -> Union[ActionResult, ServiceErrorResult, ConfigurationErrorResult]:
        step_id = step.id if step else None
        handler = self.actions.get(definition.id, action_name)
        if handler is None:
            logger.error(f"Action '{action_name}' is not registered for workflow '{definition.id}'")
            return ConfigurationErrorResult(
                code=ACTION_NOT_FOUND,
                detail=f"Action '{action_name}' is not registered for workflow '{definition.id}'"
            )

        request = ActionRequest(
            params=render_params(step.params, ctx.variables) if step else {},
            variables=copy.deepcopy(ctx.variables),
            raw_input=raw_input,
            session_key=session_key,
            language=ctx.language,
            workflow_id=definition.id,
            step_id=step_id
        )

        started = time.perf_counter()
        try:
            result = await self._invoke(handler, request)
        except asyncio.TimeoutError:
            workflow_actions_counter.labels(action=action_name, status="timeout").inc()
            logger.warning(f"Action '{action_name}' timed out after {self.action_timeout}s")
            return ServiceErrorResult(step_id=step_id, action_name=action_name, reason="timeout")
        except Exception as e:
            workflow_actions_counter.labels(action=action_name, status="error").inc()
            logger.warning(f"Action '{action_name}' raised an error: {e}", exc_info=True)
            return ServiceErrorResult(step_id=step_id, action_name=action_name, reason=str(e) or type(e).__name__)
        finally:
            workflow_action_seconds.labels(action=action_name).observe(time.perf_counter() - started)

        workflow_actions_counter.labels(action=action_name, status="success" if result.success else "failure").inc()
        return result

    async def _invoke(self, handler: ActionHandler, request: ActionRequest) -> ActionResult:
        if self.action_timeout:
            raw = await asyncio.wait_for(handler(request), timeout=self.action_timeout)
        else:
            raw = await handler(request)
        return coerce_action_result(raw)

    # ---------------- Helpers ---------------- #

    def _enter(self, ctx: WorkflowContext, step: StepDefinition) -> None:
        ctx.current_step_id = step.id
        ctx.step_started_at = utcnow()
        ctx.retry_count = 0
        if not step.is_interactive:
            return
        if not ctx.history or ctx.history[-1] != step.id:
            ctx.history.append(step.id)
        if len(ctx.history) > self.history_limit:
            del ctx.history[: len(ctx.history) - self.history_limit]

    def _checked_target(self, definition: WorkflowDefinition, step: StepDefinition, target: Optional[str]) -> StepOutcome:
        if target is None:
            logger.error(f"No transition matched on step '{step.id}' of workflow '{definition.id}'")
            return ConfigurationErrorResult(
                code=UNRESOLVED_TRANSITION,
                detail=f"No transition matched on step '{step.id}'"
            )
        if target != END and target not in definition.steps:
            logger.error(f"Step '{step.id}' points at unknown step '{target}'")
            return ConfigurationErrorResult(
                code=STEP_NOT_FOUND,
                detail=f"Step '{target}' does not exist in workflow '{definition.id}'"
            )
        return AdvanceResult(next_step_id=target)

    @staticmethod
    def _with_messages(result, messages: List[RenderRequest]):
        result.messages = list(messages)
        return result

    def _choices_for(self, step: StepDefinition, variables: Dict[str, Any]) -> List[Choice]:
        if step.choices:
            return list(step.choices)
        if not step.choices_from:
            return []

        raw = lookup_path(variables, step.choices_from)
        if not isinstance(raw, list):
            logger.warning(f"Step '{step.id}': '{step.choices_from}' is not a list of choices")
            return []

        choices = []
        for item in raw:
            try:
                choices.append(Choice.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Step '{step.id}': skipping malformed choice {item!r}: {e}")
        return choices

    def _render(
        self,
        definition: WorkflowDefinition,
        step: StepDefinition,
        ctx: WorkflowContext,
        error_reason: Optional[str] = None
    ) -> RenderRequest:
        choices = self._choices_for(step, ctx.variables)
        progress = None
        if definition.progress and step.id in definition.progress.step_mapping:
            progress = ProgressView(
                current=definition.progress.step_mapping[step.id],
                total=definition.progress.total_steps,
                prefix_key=definition.progress.prefix_key
            )

        return RenderRequest(
            workflow_id=definition.id,
            step_id=step.id,
            prompt_key=step.prompt_key,
            params=copy.deepcopy(ctx.variables),
            choices=[ChoiceView(index=i, label_key=c.label_key) for i, c in enumerate(choices, start=1)],
            progress=progress,
            allow_back=step.is_interactive and step.allow_back and len(ctx.history) > 1,
            error_reason=error_reason,
            error_params=_rule_params(step) if error_reason else {}
        )


def _rule_params(step: StepDefinition) -> Dict[str, Any]:
    """Bounds of the step's validation rule, for error message interpolation."""
    if step.validation is None:
        return {}
    params = {}
    for name in ("min_length", "max_length", "min", "max"):
        value = getattr(step.validation, name)
        if value is None:
            continue
        params[name] = int(value) if isinstance(value, float) and value.is_integer() else value
    return params
