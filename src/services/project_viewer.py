"""Project viewer: resolves a project, its materials and its artifact sections."""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from config import DEFAULT_DIFFICULTY, DEFAULT_QUESTION_COUNT
from services.database_service import DatabaseManager
from services.errors import ServiceError
from services.flashcard_player import FlashcardPlayer
from services.materials_service import MaterialsManager
from services.quiz_player import QuizPlayer
from services.workspace_service import WorkspaceController

LOGGER = logging.getLogger("studybuddy.viewer")

_HEADING_RE = re.compile(r"^(#+)\s*")
_BULLET_RE = re.compile(r"^[-*]\s*")
_NUMBERED_RE = re.compile(r"^\d+\.\s*")


@dataclass
class SummarySection:
    status: str  # "ready" | "empty" | "error"
    text: str = ""
    html: str = ""
    word_count: int = 0


@dataclass
class QuizLauncher:
    project_id: str
    question_count: int
    difficulty: str

    @property
    def description(self) -> str:
        return (
            f"Test your knowledge with {self.question_count} AI-generated questions "
            f"({self.difficulty} difficulty) based on your materials."
        )


@dataclass
class FlashcardsLauncher:
    project_id: str


@dataclass
class ProjectView:
    project: dict[str, Any]
    materials: list[dict[str, Any]] = field(default_factory=list)
    summary: SummarySection | None = None
    quiz: QuizLauncher | None = None
    flashcards: FlashcardsLauncher | None = None


def format_summary_text(text: str | None) -> str:
    """Blank-line separated paragraphs -> headings, lists or <p>; text is escaped."""
    if not text:
        return ""
    parts: list[str] = []
    for paragraph in text.split("\n\n"):
        trimmed = paragraph.strip()
        if not trimmed:
            continue
        heading = _HEADING_RE.match(trimmed)
        if heading:
            level = min(len(heading.group(1)), 6)
            body = html.escape(trimmed[heading.end():])
            parts.append(f"<h{level}>{body}</h{level}>")
        elif trimmed.startswith("- ") or trimmed.startswith("* "):
            parts.append("<ul>" + _list_items(trimmed, _BULLET_RE) + "</ul>")
        elif re.match(r"^\d+\.\s", trimmed):
            parts.append("<ol>" + _list_items(trimmed, _NUMBERED_RE) + "</ol>")
        else:
            parts.append(f"<p>{html.escape(trimmed)}</p>")
    return "".join(parts)


def _list_items(block: str, marker: re.Pattern[str]) -> str:
    items = []
    for line in block.split("\n"):
        cleaned = marker.sub("", line, count=1).strip()
        if cleaned:
            items.append(f"<li>{html.escape(cleaned)}</li>")
    return "".join(items)


def summary_word_count(text: str | None) -> int:
    return len(text.split()) if text else 0


def summary_export_name(project_name: str | None) -> str:
    return f"{project_name or 'Summary'}_Summary.txt"


class ProjectViewer:
    """Opens projects and hands the quiz / flashcard launchers to the players."""

    def __init__(
        self,
        gateway: DatabaseManager,
        workspace: WorkspaceController,
        materials: MaterialsManager,
        quiz_player: QuizPlayer,
        flashcard_player: FlashcardPlayer,
    ) -> None:
        self.gateway = gateway
        self.workspace = workspace
        self.materials = materials
        self.quiz_player = quiz_player
        self.flashcard_player = flashcard_player
        self.current: ProjectView | None = None

    def _resolve_project(self, project_id: str) -> dict[str, Any]:
        project = self.workspace.get_cached_project(project_id)
        if project is not None:
            return project
        result = self.gateway.get_project_by_id(project_id)
        if not result.success or not result.data:
            raise ServiceError("Project not found")
        return result.data

    def open(self, project_id: str) -> ProjectView:
        """
        Build the view for *project_id*.

        Raises:
            ServiceError: the project is neither cached nor fetchable.
        """
        project = self._resolve_project(project_id)
        material_ids = set(project.get("material_ids") or [])
        actions = project.get("actions") or []

        view = ProjectView(
            project=project,
            materials=[m for m in self.materials.materials if m.get("id") in material_ids],
        )
        if "summary" in actions:
            view.summary = self._load_summary(project)
        if "quiz" in actions:
            # Shown even when quiz_id is missing; start_quiz reports that.
            view.quiz = QuizLauncher(
                project_id=project["id"],
                question_count=project.get("quiz_question_count") or DEFAULT_QUESTION_COUNT,
                difficulty=project.get("quiz_difficulty") or DEFAULT_DIFFICULTY,
            )
        if "flashcards" in actions:
            view.flashcards = FlashcardsLauncher(project_id=project["id"])

        self.current = view
        return view

    def _load_summary(self, project: dict[str, Any]) -> SummarySection:
        text = project.get("summary_content")
        if not text:
            result = self.gateway.get_project_by_id(project["id"])
            if not result.success:
                LOGGER.error("Error loading summary: %s", result.error)
                return SummarySection(status="error")
            text = (result.data or {}).get("summary_content")
        if not text:
            return SummarySection(status="empty")
        return SummarySection(
            status="ready",
            text=text,
            html=format_summary_text(text),
            word_count=summary_word_count(text),
        )

    def start_quiz(self, project_id: str) -> dict[str, Any]:
        project = self.workspace.get_cached_project(project_id)
        if project is None and self.current and self.current.project.get("id") == project_id:
            project = self.current.project
        if project is None:
            raise ServiceError("Quiz not found for this project")
        return self.quiz_player.start(project.get("quiz_id"))

    def start_flashcards(self, project_id: str) -> list[dict[str, str]]:
        cached = self.workspace.get_cached_project(project_id)
        if cached is None and self.current and self.current.project.get("id") == project_id:
            cached = self.current.project
        return self.flashcard_player.start(project_id, cached_project=cached)

    def close(self) -> None:
        self.current = None
