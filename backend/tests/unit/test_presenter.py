# backend/tests/unit/test_presenter.py
import pytest

from armelle.models.results import (
    AwaitingInputResult,
    ChoiceView,
    CompletedResult,
    ConfigurationErrorResult,
    NotAllowedResult,
    NoticeResult,
    ProgressView,
    RenderRequest,
    ServiceErrorResult,
    ValidationErrorResult,
    VersionConflictResult,
)
from armelle.services.presenter import SEPARATOR, MessagePresenter
from armelle.services.string_service import StringService
from armelle.workflows.definitions import ONBOARDING
from armelle.workflows.registry import WorkflowRegistry


@pytest.fixture
def presenter():
    registry = WorkflowRegistry()
    registry.register(ONBOARDING)
    return MessagePresenter(StringService(), registry)


def _prompt(**fields):
    defaults = {
        "workflow_id": "onboarding",
        "step_id": "confirm_single",
        "prompt_key": "workflows.onboarding.confirm_single",
        "params": {"collect_name": "Paul Mbarga"},
        "choices": [
            ChoiceView(index=1, label_key="MBARGA Paul - CIME Yaoundé"),
            ChoiceView(index=2, label_key="workflows.onboarding.choice_not_me"),
        ],
        "progress": ProgressView(current=2, total=3, prefix_key="workflows.onboarding.name"),
    }
    defaults.update(fields)
    return RenderRequest(**defaults)


def test_prompt_with_progress_and_choices(presenter):
    message = presenter.render(AwaitingInputResult(step_id="confirm_single", prompt=_prompt()), "en")

    assert message == (
        "🤖 *Armelle* - Tax assistant\n\n"
        "_Registration - Step 2/3_\n\n"
        "I found one taxpayer matching *Paul Mbarga*. Is this you?\n"
        "\n"
        "1. MBARGA Paul - CIME Yaoundé\n"
        "2. This is not me"
    )


def test_back_hint_footer(presenter):
    result = AwaitingInputResult(step_id="enter_niu", prompt=_prompt(choices=[], allow_back=True))
    message = presenter.render(result, "en")
    assert message.endswith(f"\n\n{SEPARATOR}\nType * to go back")


def test_validation_error_marks_subheader_and_explains(presenter):
    prompt = _prompt(
        step_id="collect_name",
        prompt_key="workflows.onboarding.collect_name",
        choices=[],
        progress=ProgressView(current=1, total=3, prefix_key="workflows.onboarding.name"),
        error_reason="too_short",
        error_params={"min_length": 2},
    )
    result = ValidationErrorResult(step_id="collect_name", reason="too_short", prompt=prompt)

    message = presenter.render(result, "en")

    assert "_Registration - Step 1/3 - ⚠️ Input error_" in message
    assert "❌ At least 2 characters are required." in message
    assert message.endswith("Please try again")


def test_unknown_language_falls_back_to_french(presenter):
    prompt = _prompt(step_id="collect_name", prompt_key="workflows.onboarding.collect_name", choices=[], progress=None)
    message = presenter.render(AwaitingInputResult(step_id="collect_name", prompt=prompt), "de")

    assert message.startswith("🤖 *Armelle* - Assistante fiscale")
    # Without a progress mapping the workflow name is used
    assert "\n\n_Inscription_\n\n" in message
    assert "quel est votre nom complet" in message


def test_completed_renders_messages(presenter):
    farewell = RenderRequest(
        workflow_id="onboarding",
        step_id="finish_linked",
        prompt_key="workflows.onboarding.complete_full",
        params={"collect_name": "Paul", "link_taxpayer": {"taxpayer": {"niu": "P012345678901A"}}},
    )
    result = CompletedResult(workflow_id="onboarding", messages=[farewell])

    message = presenter.render(result, "en")

    assert "Your profile is linked to NIU *P012345678901A*" in message
    assert message.endswith("Type *help* to see what I can do")


def test_completed_without_messages_uses_generic_text(presenter):
    message = presenter.render(CompletedResult(workflow_id="onboarding"), "en")
    assert "All done, thank you!" in message


def test_service_error(presenter):
    message = presenter.render(ServiceErrorResult(action_name="search_dgi", reason="timeout"), "en")
    assert "_Incident_" in message
    assert "temporarily unavailable" in message
    # The technical reason is never shown to the user
    assert "timeout" not in message


def test_configuration_error_hides_detail(presenter):
    result = ConfigurationErrorResult(code="step_not_found", detail="Step 'x' does not exist")
    message = presenter.render(result, "en")
    assert "something unexpected went wrong" in message
    assert "Step 'x'" not in message


def test_not_allowed_repeats_current_prompt(presenter):
    result = NotAllowedResult(reason="back_disabled", prompt=_prompt())
    message = presenter.render(result, "en")
    assert "You cannot go back from this step." in message
    assert "Is this you?" in message


def test_notice_and_version_conflict(presenter):
    assert "Cancelled." in presenter.render(NoticeResult(notice_key="common.cancelled"), "en")
    assert "still being processed" in presenter.render(VersionConflictResult(), "en")


def test_messages_precede_the_prompt(presenter):
    notice = RenderRequest(prompt_key="workflows.onboarding.too_many_results", params={"search_dgi": {"count": 40}})
    prompt = _prompt(step_id="collect_name", prompt_key="workflows.onboarding.collect_name", choices=[], progress=None)
    message = presenter.render(AwaitingInputResult(step_id="collect_name", prompt=prompt, messages=[notice]), "en")

    assert message.index("too many results (40)") < message.index("what is your full name?")
