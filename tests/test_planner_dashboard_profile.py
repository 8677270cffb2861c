"""Tests for the planner, dashboard and onboarding/profile services."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from services.dashboard_service import RECENT_ACTIVITY_LIMIT, DashboardManager, time_ago
from services.errors import ValidationError
from services.planner_service import PlannerManager, priority_label
from services.profile_service import OnboardingDraft, ProfileManager


# ─── Planner ──────────────────────────────────────────────────────────────────

class TestPlanner:
    def test_add_toggle_delete(self, gateway, session):
        planner = PlannerManager(gateway, session)
        todo = planner.add_todo("  Read chapter 3 ", "high")
        assert todo["task"] == "Read chapter 3"
        assert planner.pending == [todo]

        planner.toggle_todo(todo["id"], True)
        assert planner.completed[0]["id"] == todo["id"]
        assert planner.load_todos()[0]["completed"] is True

        planner.delete_todo(todo["id"])
        assert planner.todos == []

    def test_empty_task_rejected(self, gateway, session):
        with pytest.raises(ValidationError, match="task description"):
            PlannerManager(gateway, session).add_todo("   ")

    def test_unknown_priority_falls_back(self, gateway, session):
        todo = PlannerManager(gateway, session).add_todo("x", "urgent")
        assert todo["priority"] == "medium"
        assert priority_label("low") == "Low Priority"


# ─── Dashboard ────────────────────────────────────────────────────────────────

class TestDashboard:
    @pytest.mark.parametrize(
        "delta,label",
        [
            (timedelta(seconds=30), "Just now"),
            (timedelta(minutes=5), "5m ago"),
            (timedelta(hours=3), "3h ago"),
            (timedelta(days=2), "2d ago"),
        ],
    )
    def test_time_ago(self, delta, label):
        now = datetime(2024, 1, 10, tzinfo=timezone.utc)
        assert time_ago(now - delta, now) == label

    def test_stats(self, gateway, session):
        uid = session.user_id
        gateway.save_material(uid, {"name": "a"})
        p1 = gateway.save_project(uid, {"name": "p1"}).data["id"]
        gateway.save_project(uid, {"name": "p2"})
        gateway.update_project_summary(p1, "S")
        gateway.save_quiz(uid, {"title": "q", "questions": []})
        stats = DashboardManager(gateway, session).load_stats()
        assert stats == {"materials": 1, "summaries": 1, "quizzes": 1}

    def test_activity_feed_is_capped(self, gateway, session):
        now = datetime(2024, 1, 10, tzinfo=timezone.utc)
        dash = DashboardManager(gateway, session, clock=lambda: now)
        for i in range(RECENT_ACTIVITY_LIMIT + 2):
            dash.add_recent_activity("upload", f"Uploaded {i}")
        feed = dash.activity_feed()
        assert len(feed) == RECENT_ACTIVITY_LIMIT
        activity, ago = feed[0]
        assert activity.description == f"Uploaded {RECENT_ACTIVITY_LIMIT + 1}"
        assert activity.icon == "📁"
        assert ago == "Just now"

    def test_welcome_title(self, gateway, session):
        dash = DashboardManager(gateway, session)
        assert dash.welcome_title({"display_name": "Sam"}) == "Welcome back, Sam!"
        assert dash.welcome_title(None) == "Welcome back!"


# ─── Onboarding ───────────────────────────────────────────────────────────────

class TestOnboarding:
    def test_steps_require_input(self):
        draft = OnboardingDraft()
        with pytest.raises(ValidationError):
            draft.next_step()
        draft.display_name = "Sam"
        assert draft.next_step() == 2
        assert draft.previous_step() == 1
        assert draft.previous_step() == 1

    def test_complete_onboarding(self, gateway, session):
        profiles = ProfileManager(gateway, session)
        assert profiles.load_profile() is None
        assert profiles.needs_onboarding()

        draft = OnboardingDraft(display_name=" Sam ", avatar="🦊", education="undergraduate", goals=["exam-prep"])
        profile = profiles.complete_onboarding(draft)
        assert profile["display_name"] == "Sam"
        assert not profiles.needs_onboarding()
        assert profiles.load_profile()["goals"] == ["exam-prep"]

    def test_incomplete_draft_rejected(self, gateway, session):
        with pytest.raises(ValidationError):
            ProfileManager(gateway, session).complete_onboarding(OnboardingDraft(display_name="Sam"))
