from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from services.auth_service import SessionStore
from services.database_service import DatabaseManager

LOGGER = logging.getLogger("studybuddy.dashboard")

RECENT_ACTIVITY_LIMIT = 5
_ACTIVITY_ICONS = {"upload": "📁", "quiz": "🧠", "event": "📅", "todo": "✅", "project": "✨"}


@dataclass(frozen=True)
class Activity:
    type: str
    description: str
    timestamp: datetime

    @property
    def icon(self) -> str:
        return _ACTIVITY_ICONS.get(self.type, "📋")


def time_ago(timestamp: datetime, now: datetime) -> str:
    minutes = int((now - timestamp).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if minutes < 1440:
        return f"{minutes // 60}h ago"
    return f"{minutes // 1440}d ago"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DashboardManager:
    """Headline counts and the session's recent-activity feed."""

    def __init__(
        self,
        gateway: DatabaseManager,
        session: SessionStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.gateway = gateway
        self.session = session
        self._clock = clock
        self.stats = {"materials": 0, "summaries": 0, "quizzes": 0}
        self.recent_activities: list[Activity] = []

    def load_stats(self) -> dict[str, int]:
        user_id = self.session.user_id
        if not user_id:
            return self.stats

        materials = self.gateway.get_user_materials(user_id)
        projects = self.gateway.get_user_projects(user_id)
        quizzes = self.gateway.get_user_quizzes(user_id)
        for label, result in (("materials", materials), ("projects", projects), ("quizzes", quizzes)):
            if not result.success:
                LOGGER.error("Error loading dashboard %s: %s", label, result.error)

        self.stats = {
            "materials": len(materials.data or []) if materials.success else 0,
            "summaries": sum(1 for p in (projects.data or []) if p.get("summary_content")) if projects.success else 0,
            "quizzes": len(quizzes.data or []) if quizzes.success else 0,
        }
        return self.stats

    def add_recent_activity(self, activity_type: str, description: str) -> Activity:
        activity = Activity(type=activity_type, description=description, timestamp=self._clock())
        self.recent_activities.insert(0, activity)
        del self.recent_activities[RECENT_ACTIVITY_LIMIT:]
        return activity

    def activity_feed(self) -> list[tuple[Activity, str]]:
        now = self._clock()
        return [(a, time_ago(a.timestamp, now)) for a in self.recent_activities]

    def welcome_title(self, profile: dict[str, Any] | None) -> str:
        if profile and profile.get("display_name"):
            return f"Welcome back, {profile['display_name']}!"
        return "Welcome back!"
