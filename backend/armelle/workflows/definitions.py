# /armelle/workflows/definitions.py

"""
Built-in workflow definitions.

This module defines workflow structures as pure data (no logic). Each
workflow specifies:
- start_step_id: The starting step id
- steps: The step graph, keyed by step id
- progress: How steps map onto the "Step x/y" indicator
- completion_action: The action run once the workflow reaches END

Onboarding graph:

    collect_name -> search_dgi (announced lookup)
        -> confirm_single     (one match)
        -> select_from_list   (2..max matches)
        -> too_many_results   (more than max matches, back to collect_name)
        -> no_results         (no match)
        -> dgi_error          (lookup failed)
    no_results / dgi_error -> collect_name | enter_niu | finish_unlinked
    enter_niu -> verify_niu -> confirm_manual_taxpayer | niu_not_found
    any confirmed taxpayer -> link_taxpayer -> finish_linked -> END
"""

from typing import List

from armelle.models.workflow import (
    END,
    Choice,
    ConditionalNext,
    ProgressConfig,
    StepDefinition,
    ValidationRule,
    WorkflowDefinition,
)

ONBOARDING_WORKFLOW_ID = "onboarding"

_PREFIX = "workflows.onboarding"


def _recovery_step(step_id: str) -> StepDefinition:
    """Menu offered when the DGI lookup found nothing or failed."""
    return StepDefinition(
        id=step_id,
        kind="choice",
        prompt_key=f"{_PREFIX}.{step_id}",
        choices=[
            Choice(id="retry", label_key=f"{_PREFIX}.choice_retry_name"),
            Choice(id="manual", label_key=f"{_PREFIX}.choice_manual_niu"),
            Choice(id="skip", label_key=f"{_PREFIX}.choice_skip"),
        ],
        next=[
            ConditionalNext(condition=f'{step_id} == "retry"', target="collect_name"),
            ConditionalNext(condition=f'{step_id} == "manual"', target="enter_niu"),
            ConditionalNext(condition="default", target="finish_unlinked"),
        ],
    )


def _taxpayer_choice_step(step_id: str, prompt: str, choices_from: str) -> StepDefinition:
    """A pick-your-record menu; declining falls back to the recovery menu."""
    return StepDefinition(
        id=step_id,
        kind="choice",
        prompt_key=f"{_PREFIX}.{prompt}",
        choices_from=choices_from,
        allow_back=False,
        next=[
            ConditionalNext(condition=f"{step_id}.niu exists", target="link_taxpayer"),
            ConditionalNext(condition="default", target="no_results"),
        ],
    )


ONBOARDING = WorkflowDefinition(
    id=ONBOARDING_WORKFLOW_ID,
    name_key=f"{_PREFIX}.name",
    start_step_id="collect_name",
    completion_action="complete_onboarding",
    progress=ProgressConfig(
        total_steps=3,
        prefix_key=f"{_PREFIX}.name",
        step_mapping={
            "collect_name": 1,
            "confirm_single": 2,
            "select_from_list": 2,
            "no_results": 2,
            "dgi_error": 2,
            "enter_niu": 2,
            "confirm_manual_taxpayer": 3,
        },
    ),
    steps=[
        StepDefinition(
            id="collect_name",
            kind="input",
            prompt_key=f"{_PREFIX}.collect_name",
            validation=ValidationRule(kind="name", min_length=2, max_length=100),
            allow_back=False,
            next="search_dgi",
        ),
        StepDefinition(
            id="search_dgi",
            kind="service",
            prompt_key=f"{_PREFIX}.searching_dgi",
            action="search_dgi",
            params={"name": "{{collect_name}}"},
            announce=True,
            on_error="dgi_error",
            next="select_from_list",
        ),
        StepDefinition(
            id="too_many_results",
            kind="message",
            prompt_key=f"{_PREFIX}.too_many_results",
            next="collect_name",
        ),
        _taxpayer_choice_step("confirm_single", "confirm_single", "search_dgi.choices"),
        _taxpayer_choice_step("select_from_list", "select_multiple", "search_dgi.choices"),
        _recovery_step("no_results"),
        _recovery_step("dgi_error"),
        StepDefinition(
            id="enter_niu",
            kind="input",
            prompt_key=f"{_PREFIX}.enter_niu",
            validation=ValidationRule(kind="text", pattern=r"^[A-Za-z0-9]{10,15}$"),
            next="verify_niu",
        ),
        StepDefinition(
            id="verify_niu",
            kind="service",
            prompt_key=f"{_PREFIX}.verifying_niu",
            action="verify_niu",
            params={"niu": "{{enter_niu}}"},
            announce=True,
            on_error="dgi_error",
            next=[
                ConditionalNext(condition="verify_niu.found == true", target="confirm_manual_taxpayer"),
                ConditionalNext(condition="default", target="niu_not_found"),
            ],
        ),
        StepDefinition(
            id="niu_not_found",
            kind="message",
            prompt_key=f"{_PREFIX}.niu_not_found",
            next="enter_niu",
        ),
        _taxpayer_choice_step("confirm_manual_taxpayer", "confirm_manual_taxpayer", "verify_niu.choices"),
        StepDefinition(
            id="link_taxpayer",
            kind="service",
            prompt_key="link_taxpayer",
            action="link_taxpayer",
            params={
                "manual": "{{confirm_manual_taxpayer}}",
                "selected": "{{select_from_list}}",
                "confirmed": "{{confirm_single}}",
            },
            next="finish_linked",
        ),
        StepDefinition(
            id="finish_linked",
            kind="message",
            prompt_key=f"{_PREFIX}.complete_full",
            next=END,
        ),
        StepDefinition(
            id="finish_unlinked",
            kind="message",
            prompt_key=f"{_PREFIX}.complete_partial",
            next=END,
        ),
    ],
)

DEFAULT_WORKFLOWS: List[WorkflowDefinition] = [ONBOARDING]
