from __future__ import annotations

import logging
from typing import Any

from config import SB_ERROR, SB_WARNING
from services.auth_service import SessionStore
from services.database_service import DatabaseManager
from services.errors import ServiceError, ValidationError

LOGGER = logging.getLogger("studybuddy.planner")

PRIORITIES = ("high", "medium", "low")
_PRIORITY_LABELS = {"high": "High Priority", "medium": "Medium Priority", "low": "Low Priority"}
_PRIORITY_COLORS = {"high": SB_ERROR, "medium": SB_WARNING, "low": "#8B5CF6"}


def priority_label(priority: str | None) -> str:
    return _PRIORITY_LABELS.get(priority or "", _PRIORITY_LABELS["medium"])


def priority_color(priority: str | None) -> str:
    return _PRIORITY_COLORS.get(priority or "", _PRIORITY_COLORS["medium"])


class PlannerManager:
    """To-do list for the signed-in user."""

    def __init__(self, gateway: DatabaseManager, session: SessionStore) -> None:
        self.gateway = gateway
        self.session = session
        self.todos: list[dict[str, Any]] = []

    def load_todos(self) -> list[dict[str, Any]]:
        user_id = self.session.user_id
        if not user_id:
            self.todos = []
            return self.todos
        result = self.gateway.get_user_todos(user_id)
        if not result.success:
            raise ServiceError(result.error or "Failed to load tasks")
        self.todos = result.data or []
        return self.todos

    def add_todo(self, task: str, priority: str = "medium") -> dict[str, Any]:
        task = (task or "").strip()
        if not task:
            raise ValidationError("Please enter a task description.")
        user_id = self.session.user_id
        if not user_id:
            raise ValidationError("User not authenticated")
        if priority not in PRIORITIES:
            priority = "medium"

        result = self.gateway.save_todo(user_id, {"task": task, "priority": priority, "completed": False})
        if not result.success:
            raise ServiceError("Failed to add task. Please try again.")
        self.todos.insert(0, result.data)
        return result.data

    def toggle_todo(self, todo_id: str, completed: bool) -> None:
        result = self.gateway.update_todo_status(todo_id, completed)
        if not result.success:
            raise ServiceError("Failed to update task status")
        for todo in self.todos:
            if todo.get("id") == todo_id:
                todo["completed"] = bool(completed)

    def delete_todo(self, todo_id: str) -> None:
        result = self.gateway.delete_todo(todo_id)
        if not result.success:
            raise ServiceError("Failed to delete task")
        self.todos = [t for t in self.todos if t.get("id") != todo_id]

    @property
    def pending(self) -> list[dict[str, Any]]:
        return [t for t in self.todos if not t.get("completed")]

    @property
    def completed(self) -> list[dict[str, Any]]:
        return [t for t in self.todos if t.get("completed")]
