# /armelle/services/presenter.py

import logging
from typing import List, Optional

from armelle.models.results import (
    AwaitingInputResult,
    CallServiceResult,
    CompletedResult,
    ConfigurationErrorResult,
    NoticeResult,
    NotAllowedResult,
    RenderRequest,
    ServiceErrorResult,
    ValidationErrorResult,
    VersionConflictResult,
)
from armelle.services.string_service import StringService
from armelle.workflows.registry import WorkflowRegistry

# This service turns StepResults into outbound text. Every message has the
# same frame: header, optional subheader (workflow name or progress, plus an
# error marker), content, and an optional footer below a separator line.

logger = logging.getLogger(__name__)

SEPARATOR = "-" * 45

# NotAllowedResult reasons -> localized explanation
_NOT_ALLOWED_KEYS = {
    "back_disabled": "common.back_not_allowed",
    "no_history": "common.back_not_allowed",
    "no_active_workflow": "common.no_active_workflow",
}


class MessagePresenter:
    def __init__(self, strings: StringService, registry: WorkflowRegistry):
        self.strings = strings
        self.registry = registry

    def render(self, result, language: str) -> str:
        """Render any StepResult as a single outbound message."""
        lang = self.strings.resolve_language(language)
        blocks = [self._content(message, lang) for message in result.messages]

        if isinstance(result, (AwaitingInputResult, CallServiceResult, ValidationErrorResult)):
            prompt = result.prompt
            blocks.append(self._content(prompt, lang))
            return self._frame(lang, self._subheader(prompt, lang), blocks, self._footer(prompt, lang))

        if isinstance(result, CompletedResult):
            if not blocks:
                blocks.append(self.strings.get_string("common.workflow_complete", lang))
            return self._frame(lang, self._workflow_name(result.workflow_id, lang), blocks,
                               self.strings.get_string("common.footer.workflow_complete", lang))

        if isinstance(result, ServiceErrorResult):
            blocks.append(self.strings.get_string("common.service_unavailable", lang))
            return self._frame(lang, self.strings.get_string("common.subheader.error", lang), blocks,
                               self.strings.get_string("common.footer.error_recovery", lang))

        if isinstance(result, ConfigurationErrorResult):
            # One shared apology; the detail is for the logs only
            logger.error(f"Rendering configuration error {result.code}: {result.detail}")
            blocks.append(self.strings.get_string("common.system_error", lang))
            return self._frame(lang, None, blocks, None)

        if isinstance(result, NotAllowedResult):
            key = _NOT_ALLOWED_KEYS.get(result.reason, "common.system_error")
            return self._with_optional_prompt(lang, blocks, self.strings.get_string(key, lang), result.prompt)

        if isinstance(result, NoticeResult):
            return self._with_optional_prompt(lang, blocks, self.strings.get_string(result.notice_key, lang), result.prompt)

        if isinstance(result, VersionConflictResult):
            blocks.append(self.strings.get_string("common.version_conflict", lang))
            return self._frame(lang, None, blocks, None)

        logger.warning(f"No presenter rule for result kind '{getattr(result, 'kind', None)}'")
        return self._frame(lang, None, blocks, None)

    def _with_optional_prompt(self, lang: str, blocks: List[str], text: str, prompt: Optional[RenderRequest]) -> str:
        blocks.append(text)
        if prompt is None:
            return self._frame(lang, None, blocks, None)
        blocks.append(self._content(prompt, lang))
        return self._frame(lang, self._subheader(prompt, lang), blocks, self._footer(prompt, lang))

    # ---------------- Message parts ---------------- #

    def _content(self, request: RenderRequest, lang: str) -> str:
        if request.text is not None:
            lines = [request.text]
        else:
            lines = [self.strings.format(request.prompt_key or "", lang, request.params)]

        if request.choices:
            lines.append("")
            for choice in request.choices:
                label = self.strings.format(choice.label_key, lang, request.params)
                lines.append(f"{choice.index}. {label}")

        if request.error_reason:
            reason = self.strings.format(f"validation.{request.error_reason}", lang, request.error_params)
            lines.append("")
            lines.append(f"❌ {reason}")

        return "\n".join(lines)

    def _workflow_name(self, workflow_id: Optional[str], lang: str) -> Optional[str]:
        definition = self.registry.get(workflow_id)
        if definition is None or not definition.name_key:
            return None
        return self.strings.get_string(definition.name_key, lang)

    def _subheader(self, request: RenderRequest, lang: str) -> Optional[str]:
        if request.progress:
            step_text = self.strings.format("common.subheader.step_progress", lang, {
                "current": request.progress.current,
                "total": request.progress.total,
            })
            base = f"{self.strings.get_string(request.progress.prefix_key, lang)} - {step_text}"
        else:
            base = self._workflow_name(request.workflow_id, lang)

        if request.error_reason:
            marker = f"⚠️ {self.strings.get_string('common.subheader.validation_error', lang)}"
            return f"{base} - {marker}" if base else marker
        return base

    def _footer(self, request: RenderRequest, lang: str) -> Optional[str]:
        if request.error_reason:
            return self.strings.get_string("common.footer.retry", lang)
        if request.allow_back:
            return self.strings.get_string("common.footer.back_hint", lang)
        return None

    def _frame(self, lang: str, subheader: Optional[str], blocks: List[str], footer: Optional[str]) -> str:
        message = self.strings.get_string("common.bot_header", lang)
        if subheader:
            message += f"\n\n_{subheader}_"
        content = "\n\n".join(block for block in blocks if block)
        if content:
            message += f"\n\n{content}"
        if footer:
            message += f"\n\n{SEPARATOR}\n{footer}"
        return message
