"""
Workspace controller: material selection -> generation request -> persistence.

Also holds the project library (list, subject filter, labels).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from config import ACTIONS, DEFAULT_DIFFICULTY, DEFAULT_QUESTION_COUNT, UNTAGGED
from services.auth_service import SessionStore
from services.database_service import DatabaseManager
from services.errors import ServiceError, ValidationError
from services.generation_client import GenerationClient, GenerationResults
from services.materials_service import MaterialsManager, subject_label
from utils.metrics import log_metric
from utils.notices import Notice, NoticeBoard

LOGGER = logging.getLogger("studybuddy.workspace")


@dataclass
class QuizSettings:
    question_count: int | None = None
    difficulty: str | None = None


@dataclass
class GenerationOutcome:
    project: dict[str, Any]
    failed_attachments: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_attachments

    def report(self, notices: NoticeBoard) -> Notice:
        """Push the one banner that describes this outcome."""
        name = self.project.get("name", "")
        if self.failed_attachments:
            return notices.warning(
                f'Project "{name}" created, but could not save: {", ".join(self.failed_attachments)}'
            )
        return notices.success(f'Project "{name}" created successfully!')


# ---------- library helpers ----------


def workspace_subjects(materials: Iterable[dict[str, Any]]) -> list[str]:
    """Subjects a project can be built from, first-seen order, untagged excluded."""
    seen: list[str] = []
    for m in materials:
        s = m.get("subject")
        if s and s != UNTAGGED and s not in seen:
            seen.append(s)
    return seen


def library_subject_options(projects: Iterable[dict[str, Any]], current: str = "") -> tuple[list[str], str]:
    subjects = workspace_subjects(projects)
    selected = current if current and current in subjects else ""
    return subjects, selected


def filter_projects(projects: Iterable[dict[str, Any]], subject: str = "") -> list[dict[str, Any]]:
    if not subject:
        return list(projects)
    return [p for p in projects if p.get("subject") == subject]


def project_count_label(count: int) -> str:
    return f"{count} project{'' if count == 1 else 's'}"


def actions_label(actions: Sequence[str]) -> str:
    return ", ".join(a[:1].upper() + a[1:] for a in actions)


class WorkspaceController:
    """Builds projects from selected materials via the generation backend."""

    def __init__(
        self,
        gateway: DatabaseManager,
        session: SessionStore,
        client: GenerationClient,
        materials: MaterialsManager,
    ) -> None:
        self.gateway = gateway
        self.session = session
        self.client = client
        self.materials = materials
        self.projects: list[dict[str, Any]] = []

    def load_user_projects(self) -> list[dict[str, Any]]:
        user_id = self.session.user_id
        if not user_id:
            self.projects = []
            return self.projects
        result = self.gateway.get_user_projects(user_id)
        if not result.success:
            raise ServiceError(result.error or "Failed to load projects")
        self.projects = result.data or []
        return self.projects

    def get_cached_project(self, project_id: str) -> dict[str, Any] | None:
        return next((p for p in self.projects if p.get("id") == project_id), None)

    def materials_for_subject(self, subject: str) -> list[dict[str, Any]]:
        return [m for m in self.materials.materials if m.get("subject") == subject]

    def generate_project(
        self,
        project_name: str,
        selected_material_ids: Sequence[str],
        selected_actions: Sequence[str],
        quiz_settings: QuizSettings | None = None,
        subject: str = "",
    ) -> GenerationOutcome:
        """
        Generate a project and attach each requested artifact.

        Raises:
            ValidationError: missing name, materials, actions or user, or no
                selected material has a storage path. No network call is made.
            ServiceError: the generation request or the project insert failed.
        """
        project_name = (project_name or "").strip()
        if not project_name:
            raise ValidationError("Please enter a project name")
        if not selected_material_ids:
            raise ValidationError("Please select at least one material")
        actions = [a for a in ACTIONS if a in set(selected_actions or ())]
        if not actions:
            raise ValidationError("Please select at least one action")
        user_id = self.session.user_id
        if not user_id:
            raise ValidationError("User not authenticated")

        wanted = set(selected_material_ids)
        file_paths = [
            m["file_path"]
            for m in self.materials.materials
            if m.get("id") in wanted and m.get("file_path")
        ]
        if not file_paths:
            raise ValidationError("Selected materials do not have valid file paths")

        question_count, difficulty = DEFAULT_QUESTION_COUNT, DEFAULT_DIFFICULTY
        if "quiz" in actions and quiz_settings is not None:
            question_count = int(quiz_settings.question_count or DEFAULT_QUESTION_COUNT)
            difficulty = quiz_settings.difficulty or DEFAULT_DIFFICULTY

        t0 = time.time()
        results = self.client.generate(file_paths, actions, project_name, question_count, difficulty)

        saved = self.gateway.save_project(
            user_id,
            {
                "name": project_name,
                "subject": subject,
                "material_ids": list(selected_material_ids),
                "actions": actions,
                "quiz_question_count": question_count if "quiz" in actions else None,
                "quiz_difficulty": difficulty if "quiz" in actions else None,
            },
        )
        if not saved.success:
            raise ServiceError("Failed to save project to database")
        project = saved.data

        failed = self._attach_results(user_id, project, actions, results, question_count, difficulty)
        log_metric(
            "generate",
            time.time() - t0,
            user_id=user_id,
            files=len(file_paths),
            actions=",".join(actions),
            failed=",".join(failed),
        )

        try:
            self.load_user_projects()
        except ServiceError as e:
            LOGGER.warning("Project list refresh failed: %s", e)
        refreshed = self.get_cached_project(project["id"]) or project
        return GenerationOutcome(project=refreshed, failed_attachments=failed)

    def _attach_results(
        self,
        user_id: str,
        project: dict[str, Any],
        actions: Sequence[str],
        results: GenerationResults,
        question_count: int,
        difficulty: str,
    ) -> list[str]:
        """Attach each artifact independently. Returns the actions that failed."""
        failed: list[str] = []
        project_id = project["id"]

        for action in actions:
            if not getattr(results, action):
                LOGGER.warning("Backend returned no %s for project %s", action, project_id)
                failed.append(action)

        if "summary" in actions and results.summary:
            r = self.gateway.update_project_summary(project_id, results.summary)
            if not r.success:
                LOGGER.warning("Failed to save summary: %s", r.error)
                failed.append("summary")

        if "quiz" in actions and results.quiz:
            quiz = self.gateway.save_quiz(
                user_id,
                {
                    "title": project["name"],
                    "description": f"Quiz for {project['name']}",
                    "questions": results.quiz,
                    "question_count": question_count,
                    "difficulty": difficulty,
                },
            )
            if not quiz.success:
                LOGGER.warning("Failed to save quiz: %s", quiz.error)
                failed.append("quiz")
            else:
                link = self.gateway.update_project_quiz(project_id, quiz.data["id"])
                if not link.success:
                    LOGGER.warning("Failed to link quiz: %s", link.error)
                    failed.append("quiz")

        if "flashcards" in actions and results.flashcards:
            r = self.gateway.update_project_flashcards(project_id, results.flashcards)
            if not r.success:
                LOGGER.warning("Failed to save flashcards: %s", r.error)
                failed.append("flashcards")

        return failed

    # ---------- library ----------

    def library(self, subject_filter: str = "") -> list[dict[str, Any]]:
        return filter_projects(self.projects, subject_filter)

    def library_subject_options(self, current: str = "") -> tuple[list[str], str]:
        return library_subject_options(self.projects, current)

    def empty_library_message(self, subject_filter: str = "") -> str:
        if subject_filter:
            return f'No projects found for "{subject_label(subject_filter)}" subject'
        return "Your generated projects will appear here"
