# /armelle/services/onboarding_actions.py

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

from armelle.models.taxpayer import Taxpayer, TaxpayerProfile
from armelle.services.dgi_service import DGIService, DGIServiceError
from armelle.workflows.actions import ActionHandler, ActionRegistry, ActionRequest, ActionResult
from armelle.workflows.definitions import ONBOARDING_WORKFLOW_ID

# This file contains the actions of the onboarding workflow: looking the user
# up in the DGI registry, verifying a NIU typed by hand, linking the chosen
# taxpayer record and persisting the resulting profile.

logger = logging.getLogger(__name__)

DGI_UNAVAILABLE = "dgi_unavailable"


class ProfileRepository(Protocol):
    async def save(self, profile: TaxpayerProfile) -> None: ...

    async def get(self, session_key: str) -> Optional[TaxpayerProfile]: ...


class InMemoryProfileRepository:
    def __init__(self):
        self._profiles: Dict[str, TaxpayerProfile] = {}

    async def save(self, profile: TaxpayerProfile) -> None:
        self._profiles[profile.session_key] = profile.model_copy(deep=True)

    async def get(self, session_key: str) -> Optional[TaxpayerProfile]:
        profile = self._profiles.get(session_key)
        return profile.model_copy(deep=True) if profile else None


class RedisProfileRepository:
    def __init__(self, redis_client: Any, key_prefix: str = "bot_profile:"):
        self.redis = redis_client
        self.key_prefix = key_prefix

    async def save(self, profile: TaxpayerProfile) -> None:
        await self.redis.set(f"{self.key_prefix}{profile.session_key}", profile.model_dump_json())

    async def get(self, session_key: str) -> Optional[TaxpayerProfile]:
        raw = await self.redis.get(f"{self.key_prefix}{session_key}")
        if raw is None:
            return None
        return TaxpayerProfile.model_validate(json.loads(raw))


def _taxpayer_choices(taxpayers: List[Taxpayer], decline_label_key: str) -> List[Dict[str, Any]]:
    """Numbered choices for a list of taxpayers, followed by a decline option."""
    choices = [
        {"id": str(position), "label_key": taxpayer.display_name, "value": taxpayer.model_dump(exclude_none=True)}
        for position, taxpayer in enumerate(taxpayers, start=1)
    ]
    choices.append({"id": str(len(taxpayers) + 1), "label_key": decline_label_key, "value": "none"})
    return choices


class OnboardingActions:
    def __init__(self, dgi_service: DGIService, profiles: ProfileRepository, max_results: int = 10):
        self.dgi_service = dgi_service
        self.profiles = profiles
        self.max_results = max_results

    async def search_dgi(self, request: ActionRequest) -> ActionResult:
        """Search the DGI registry by the collected name and branch on the result count."""
        name = str(request.params.get("name") or "").strip()
        try:
            taxpayers = await self.dgi_service.search(name)
        except DGIServiceError as e:
            logger.warning(f"search_dgi failed for session {request.session_key}: {e}")
            return ActionResult(success=False, data={"error": DGI_UNAVAILABLE})

        count = len(taxpayers)
        data = {"count": count, "taxpayers": [], "choices": []}

        if count == 0:
            return ActionResult(next_step_override="no_results", data=data)
        if count > self.max_results:
            return ActionResult(next_step_override="too_many_results", data=data)

        data["taxpayers"] = [t.model_dump(exclude_none=True) for t in taxpayers]
        if count == 1:
            data["choices"] = _taxpayer_choices(taxpayers, "workflows.onboarding.choice_not_me")
            return ActionResult(next_step_override="confirm_single", data=data)

        data["choices"] = _taxpayer_choices(taxpayers, "workflows.onboarding.choice_none")
        return ActionResult(next_step_override="select_from_list", data=data)

    async def verify_niu(self, request: ActionRequest) -> ActionResult:
        niu = str(request.params.get("niu") or "").strip().upper()
        try:
            taxpayer = await self.dgi_service.verify(niu)
        except DGIServiceError as e:
            logger.warning(f"verify_niu failed for session {request.session_key}: {e}")
            return ActionResult(success=False, data={"error": DGI_UNAVAILABLE, "niu": niu})

        if taxpayer is None:
            return ActionResult(data={"found": False, "niu": niu})

        return ActionResult(data={
            "found": True,
            "niu": niu,
            "taxpayer": taxpayer.model_dump(exclude_none=True),
            "choices": _taxpayer_choices([taxpayer], "workflows.onboarding.choice_not_me"),
        })

    async def link_taxpayer(self, request: ActionRequest) -> ActionResult:
        # Manual entry comes last in the flow, so it wins over earlier selections
        for name in ("manual", "selected", "confirmed"):
            candidate = request.params.get(name)
            if isinstance(candidate, dict) and candidate.get("niu"):
                return ActionResult(data={"linked": True, "taxpayer": candidate})
        return ActionResult(success=False, data={"error": "no_taxpayer_selected"})

    async def complete_onboarding(self, request: ActionRequest) -> ActionResult:
        """Completion hook: persist the profile built during onboarding."""
        variables = request.variables
        linked = variables.get("link_taxpayer") or {}
        taxpayer = linked.get("taxpayer") if isinstance(linked, dict) else None

        profile = TaxpayerProfile(
            session_key=request.session_key or "",
            full_name=str(variables.get("collect_name", "")),
            language=request.language,
            taxpayer=Taxpayer.model_validate(taxpayer) if taxpayer else None
        )
        await self.profiles.save(profile)
        logger.info(f"Saved onboarding profile for session {request.session_key} (linked={profile.is_linked})")
        return ActionResult(data={"linked": profile.is_linked})

    def handlers(self) -> Dict[str, ActionHandler]:
        return {
            "search_dgi": self.search_dgi,
            "verify_niu": self.verify_niu,
            "link_taxpayer": self.link_taxpayer,
            "complete_onboarding": self.complete_onboarding,
        }


def register_onboarding_actions(actions: ActionRegistry, onboarding: OnboardingActions) -> ActionRegistry:
    actions.register_many(ONBOARDING_WORKFLOW_ID, onboarding.handlers())
    return actions
