"""User profile and the four-step onboarding flow."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from services.auth_service import SessionStore
from services.database_service import DatabaseManager
from services.errors import ServiceError, ValidationError

LOGGER = logging.getLogger("studybuddy.profile")

TOTAL_STEPS = 4


@dataclass
class OnboardingDraft:
    display_name: str = ""
    avatar: str = ""
    education: str = ""
    goals: list[str] = field(default_factory=list)
    custom_goal: str = ""
    step: int = 1

    def step_is_valid(self, step: int | None = None) -> bool:
        step = self.step if step is None else step
        if step == 1:
            return bool(self.display_name.strip())
        if step == 2:
            return bool(self.avatar)
        if step == 3:
            return bool(self.education)
        if step == 4:
            return len(self.goals) > 0
        return True

    def next_step(self) -> int:
        if not self.step_is_valid():
            raise ValidationError("Please complete all required fields before continuing.")
        if self.step < TOTAL_STEPS:
            self.step += 1
        return self.step

    def previous_step(self) -> int:
        if self.step > 1:
            self.step -= 1
        return self.step

    def to_profile(self) -> dict[str, Any]:
        return {
            "display_name": self.display_name.strip(),
            "avatar": self.avatar,
            "education": self.education,
            "goals": list(self.goals),
            "custom_goal": self.custom_goal.strip(),
        }


class ProfileManager:
    def __init__(self, gateway: DatabaseManager, session: SessionStore) -> None:
        self.gateway = gateway
        self.session = session
        self.profile: dict[str, Any] | None = None

    def load_profile(self) -> dict[str, Any] | None:
        """Fetch the signed-in user's profile; None means onboarding is due."""
        user_id = self.session.user_id
        if not user_id:
            self.profile = None
            return None
        result = self.gateway.get_user_profile(user_id)
        if not result.success:
            raise ServiceError(result.error or "Failed to load profile")
        self.profile = result.data
        return self.profile

    def needs_onboarding(self) -> bool:
        return self.session.is_authenticated() and self.profile is None

    def complete_onboarding(self, draft: OnboardingDraft) -> dict[str, Any]:
        for step in range(1, TOTAL_STEPS + 1):
            if not draft.step_is_valid(step):
                raise ValidationError("Please complete all required fields.")
        user_id = self.session.user_id
        if not user_id:
            raise ValidationError("User session expired. Please log in again.")

        result = self.gateway.create_user_profile(user_id, draft.to_profile())
        if not result.success:
            raise ServiceError("Failed to save profile. Please try again.")
        self.profile = result.data
        LOGGER.info("Onboarding complete for %s", user_id)
        return self.profile
