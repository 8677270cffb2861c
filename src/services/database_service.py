"""Persistence gateway: typed CRUD over SQLite plus a directory-backed blob store."""

from __future__ import annotations

import functools
import json
import logging
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable
from uuid import uuid4

from config import DB_PATH, STORAGE_DIR, UNTAGGED
from utils.file_utils import ensure_directory_exists, resolve_inside, sanitize_file_name

LOGGER = logging.getLogger("studybuddy.gateway")

_JSON_COLUMNS = {
    "user_profiles": ("goals",),
    "projects": ("material_ids", "actions", "flashcards_content"),
    "quizzes": ("questions",),
    "progress": ("answers",),
}
_BOOL_COLUMNS = {"users": ("email_confirmed",), "todos": ("completed",)}


class RecordNotFound(LookupError):
    """The requested row does not exist."""


@dataclass(frozen=True)
class GatewayResult:
    """Uniform response shape: ``success`` plus either ``data`` or ``error``."""

    success: bool
    data: Any = None
    error: str | None = None


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False)


def _json_loads(raw: Any, default: Any) -> Any:
    if raw is None:
        return default
    if isinstance(raw, (dict, list)):
        return raw
    text = str(raw).strip()
    if not text:
        return default
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # Legacy rows may hold plain text instead of a JSON document.
        return text


def _row_to_dict(table: str, row: sqlite3.Row | None) -> dict[str, Any] | None:
    if row is None:
        return None
    item = {k: row[k] for k in row.keys()}
    for col in _JSON_COLUMNS.get(table, ()):
        if col in item:
            item[col] = _json_loads(item[col], None if col == "flashcards_content" else [])
    for col in _BOOL_COLUMNS.get(table, ()):
        if col in item:
            item[col] = bool(item[col])
    if table == "calendar_events":
        item["date"] = item.get("event_date")
        item["time"] = item.get("event_time")
    return item


def gateway_call(label: str) -> Callable[[Callable[..., Any]], Callable[..., GatewayResult]]:
    """Wrap a gateway method so failures become ``GatewayResult(success=False)``."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., GatewayResult]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> GatewayResult:
            try:
                return GatewayResult(success=True, data=fn(*args, **kwargs))
            except (sqlite3.Error, OSError, LookupError, ValueError) as e:
                LOGGER.error("%s: %s", label, e)
                return GatewayResult(success=False, error=str(e) or label)

        return wrapper

    return decorator


class DatabaseManager:
    """CRUD for user_profiles, materials, projects, quizzes, progress, calendar_events, todos."""

    def __init__(self, db_path: str | Path = DB_PATH, storage_dir: str | Path = STORAGE_DIR) -> None:
        self.db_path = Path(db_path)
        self.storage_dir = Path(storage_dir)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _fetch_one(self, table: str, record_id: str, missing: str) -> dict[str, Any]:
        with self._connect() as conn:
            row = conn.execute(f"SELECT * FROM {table} WHERE id=?", (record_id,)).fetchone()
        item = _row_to_dict(table, row)
        if item is None:
            raise RecordNotFound(missing)
        return item

    def _fetch_all(self, table: str, sql: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_dict(table, r) or {} for r in rows]

    def _update(self, table: str, record_id: str, values: dict[str, Any], missing: str) -> int:
        assignments = ", ".join(f"{col}=?" for col in values)
        with self._connect() as conn:
            cur = conn.execute(
                f"UPDATE {table} SET {assignments} WHERE id=?",
                (*values.values(), record_id),
            )
        if cur.rowcount == 0:
            raise RecordNotFound(missing)
        return cur.rowcount

    def _delete(self, table: str, record_id: str) -> int:
        with self._connect() as conn:
            cur = conn.execute(f"DELETE FROM {table} WHERE id=?", (record_id,))
        return cur.rowcount

    # ---------- Users ----------

    @gateway_call("Error creating user")
    def create_user(self, email: str, password_hash: str, email_confirmed: bool = True) -> dict[str, Any]:
        user_id = str(uuid4())
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO users(id, email, password_hash, email_confirmed, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (user_id, email, password_hash, int(email_confirmed), _now_iso()),
                )
        except sqlite3.IntegrityError as e:
            raise ValueError("User already registered") from e
        return self._fetch_one("users", user_id, "User not found")

    @gateway_call("Error fetching user")
    def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email=?", (email,)).fetchone()
        return _row_to_dict("users", row)

    @gateway_call("Error confirming email")
    def confirm_user_email(self, email: str) -> int:
        with self._connect() as conn:
            cur = conn.execute("UPDATE users SET email_confirmed=1 WHERE email=?", (email,))
        if cur.rowcount == 0:
            raise RecordNotFound("User not found")
        return cur.rowcount

    # ---------- User profiles ----------

    @gateway_call("Error creating user profile")
    def create_user_profile(self, user_id: str, profile: dict[str, Any]) -> dict[str, Any]:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_profiles(user_id, display_name, avatar, education, goals, custom_goal, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    profile.get("display_name"),
                    profile.get("avatar"),
                    profile.get("education"),
                    _json_dumps(list(profile.get("goals") or [])),
                    profile.get("custom_goal") or "",
                    _now_iso(),
                ),
            )
            row = conn.execute("SELECT * FROM user_profiles WHERE user_id=?", (user_id,)).fetchone()
        return _row_to_dict("user_profiles", row) or {}

    @gateway_call("Error fetching user profile")
    def get_user_profile(self, user_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM user_profiles WHERE user_id=?", (user_id,)).fetchone()
        return _row_to_dict("user_profiles", row)

    # ---------- Blob storage ----------

    @gateway_call("Error uploading file")
    def upload_file(self, user_id: str, file_bytes: bytes, file_name: str) -> str:
        rel_path = f"{user_id}/{int(time.time() * 1000)}-{uuid4().hex[:8]}-{sanitize_file_name(file_name)}"
        target = resolve_inside(self.storage_dir, rel_path)
        ensure_directory_exists(target.parent)
        with open(target, "xb") as fh:
            fh.write(file_bytes)
        return rel_path

    @gateway_call("Error downloading file")
    def download_file(self, file_path: str) -> bytes:
        return resolve_inside(self.storage_dir, file_path).read_bytes()

    @gateway_call("Error removing file")
    def remove_file(self, file_path: str) -> str:
        resolve_inside(self.storage_dir, file_path).unlink()
        return file_path

    # ---------- Materials ----------

    @gateway_call("Error saving material")
    def save_material(self, user_id: str, material: dict[str, Any], file_path: str | None = None) -> dict[str, Any]:
        material_id = str(uuid4())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO materials(id, user_id, name, type, size, subject, file_path, uploaded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    material_id,
                    user_id,
                    material["name"],
                    material.get("type") or "unknown",
                    int(material.get("size") or 0),
                    material.get("subject") or UNTAGGED,
                    file_path,
                    material.get("uploaded_at") or _now_iso(),
                ),
            )
        return self._fetch_one("materials", material_id, "Material not found")

    @gateway_call("Error fetching materials")
    def get_user_materials(self, user_id: str) -> list[dict[str, Any]]:
        return self._fetch_all(
            "materials",
            "SELECT * FROM materials WHERE user_id=? ORDER BY uploaded_at DESC, rowid DESC",
            (user_id,),
        )

    @gateway_call("Error updating material subject")
    def update_material_subject(self, material_id: str, subject: str) -> int:
        return self._update("materials", material_id, {"subject": subject}, "Material not found")

    @gateway_call("Error updating material name")
    def update_material_name(self, material_id: str, name: str) -> int:
        return self._update("materials", material_id, {"name": name}, "Material not found")

    @gateway_call("Error deleting material")
    def delete_material(self, material_id: str) -> int:
        material = self._fetch_one("materials", material_id, "Material not found")
        file_path = material.get("file_path")
        if file_path:
            removed = self.remove_file(file_path)
            if not removed.success:
                # The record is still deleted so the list does not show a dead entry.
                LOGGER.warning("Failed to delete file from storage: %s", removed.error)
        return self._delete("materials", material_id)

    # ---------- Projects ----------

    @gateway_call("Error saving project")
    def save_project(self, user_id: str, project: dict[str, Any]) -> dict[str, Any]:
        project_id = str(uuid4())
        now = _now_iso()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO projects(
                    id, user_id, name, subject, material_ids, actions,
                    quiz_question_count, quiz_difficulty, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    project_id,
                    user_id,
                    project["name"],
                    project.get("subject"),
                    _json_dumps(list(project.get("material_ids") or [])),
                    _json_dumps(list(project.get("actions") or [])),
                    project.get("quiz_question_count") or None,
                    project.get("quiz_difficulty") or None,
                    now,
                    now,
                ),
            )
        return self._fetch_one("projects", project_id, "Project not found")

    @gateway_call("Error fetching projects")
    def get_user_projects(self, user_id: str) -> list[dict[str, Any]]:
        return self._fetch_all(
            "projects",
            "SELECT * FROM projects WHERE user_id=? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        )

    @gateway_call("Error fetching project")
    def get_project_by_id(self, project_id: str) -> dict[str, Any]:
        return self._fetch_one("projects", project_id, "Project not found")

    @gateway_call("Error updating project summary")
    def update_project_summary(self, project_id: str, summary_content: str) -> int:
        values = {"summary_content": summary_content, "updated_at": _now_iso()}
        return self._update("projects", project_id, values, "Project not found")

    @gateway_call("Error updating project quiz")
    def update_project_quiz(self, project_id: str, quiz_id: str) -> int:
        values = {"quiz_id": quiz_id, "updated_at": _now_iso()}
        return self._update("projects", project_id, values, "Project not found")

    @gateway_call("Error updating project flashcards")
    def update_project_flashcards(self, project_id: str, flashcards_content: Any) -> int:
        values = {"flashcards_content": _json_dumps(flashcards_content), "updated_at": _now_iso()}
        return self._update("projects", project_id, values, "Project not found")

    @gateway_call("Error deleting project")
    def delete_project(self, project_id: str) -> int:
        return self._delete("projects", project_id)

    # ---------- Quizzes ----------

    @gateway_call("Error saving quiz")
    def save_quiz(self, user_id: str, quiz: dict[str, Any]) -> dict[str, Any]:
        quiz_id = str(uuid4())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO quizzes(id, user_id, title, description, questions, question_count, difficulty, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    quiz_id,
                    user_id,
                    quiz["title"],
                    quiz.get("description"),
                    _json_dumps(quiz.get("questions")),
                    quiz.get("question_count") or None,
                    quiz.get("difficulty") or None,
                    _now_iso(),
                ),
            )
        return self._fetch_one("quizzes", quiz_id, "Quiz not found")

    @gateway_call("Error fetching quizzes")
    def get_user_quizzes(self, user_id: str) -> list[dict[str, Any]]:
        return self._fetch_all(
            "quizzes",
            "SELECT * FROM quizzes WHERE user_id=? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        )

    @gateway_call("Error fetching quiz")
    def get_quiz_by_id(self, quiz_id: str) -> dict[str, Any]:
        return self._fetch_one("quizzes", quiz_id, "Quiz not found")

    # ---------- Progress (quiz attempts) ----------

    @gateway_call("Error saving quiz attempt")
    def save_quiz_attempt(
        self, user_id: str, project_id: str, quiz_id: str, attempt: dict[str, Any]
    ) -> dict[str, Any]:
        attempt_id = str(uuid4())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO progress(
                    id, user_id, project_id, quiz_id, answers, score, total_questions, started_at, completed_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    attempt_id,
                    user_id,
                    project_id,
                    quiz_id,
                    _json_dumps(attempt.get("answers") or []),
                    int(attempt.get("score") or 0),
                    int(attempt.get("total_questions") or 0),
                    attempt.get("started_at") or _now_iso(),
                    attempt.get("completed_at"),
                ),
            )
        return self._fetch_one("progress", attempt_id, "Quiz attempt not found")

    @gateway_call("Error updating quiz attempt")
    def update_quiz_attempt(self, attempt_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if "answers" in changes:
            values["answers"] = _json_dumps(changes["answers"])
        for key in ("score", "total_questions", "completed_at"):
            if key in changes:
                values[key] = changes[key]
        if values:
            self._update("progress", attempt_id, values, "Quiz attempt not found")
        return self._fetch_one("progress", attempt_id, "Quiz attempt not found")

    @gateway_call("Error fetching quiz attempts")
    def get_user_quiz_attempts(self, user_id: str, project_id: str, quiz_id: str) -> list[dict[str, Any]]:
        return self._fetch_all(
            "progress",
            """
            SELECT * FROM progress
            WHERE user_id=? AND project_id=? AND quiz_id=?
            ORDER BY started_at DESC, rowid DESC
            """,
            (user_id, project_id, quiz_id),
        )

    @gateway_call("Error fetching quiz attempt")
    def get_quiz_attempt_by_id(self, attempt_id: str) -> dict[str, Any]:
        return self._fetch_one("progress", attempt_id, "Quiz attempt not found")

    @gateway_call("Error fetching all quiz attempts")
    def get_user_all_quiz_attempts(self, user_id: str) -> list[dict[str, Any]]:
        return self._fetch_all(
            "progress",
            """
            SELECT p.*, pr.name AS project_name, pr.subject AS project_subject, q.title AS quiz_title
            FROM progress p
            LEFT JOIN projects pr ON pr.id = p.project_id
            LEFT JOIN quizzes q ON q.id = p.quiz_id
            WHERE p.user_id=?
            ORDER BY p.started_at DESC, p.rowid DESC
            """,
            (user_id,),
        )

    # ---------- Calendar events ----------

    @gateway_call("Error saving event")
    def save_event(self, user_id: str, event: dict[str, Any]) -> dict[str, Any]:
        event_id = str(uuid4())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO calendar_events(id, user_id, title, description, event_date, event_time, duration, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event_id,
                    user_id,
                    event["title"],
                    event.get("description") or "",
                    event["date"],
                    event["time"],
                    int(event.get("duration") or 60),
                    _now_iso(),
                ),
            )
        return self._fetch_one("calendar_events", event_id, "Event not found")

    @gateway_call("Error fetching events")
    def get_user_events(self, user_id: str) -> list[dict[str, Any]]:
        return self._fetch_all(
            "calendar_events",
            "SELECT * FROM calendar_events WHERE user_id=? ORDER BY event_date ASC, event_time ASC",
            (user_id,),
        )

    @gateway_call("Error deleting event")
    def delete_event(self, event_id: str) -> int:
        return self._delete("calendar_events", event_id)

    # ---------- To-dos ----------

    @gateway_call("Error saving todo")
    def save_todo(self, user_id: str, todo: dict[str, Any]) -> dict[str, Any]:
        todo_id = str(uuid4())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO todos(id, user_id, task, completed, priority, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    todo_id,
                    user_id,
                    todo["task"],
                    int(bool(todo.get("completed"))),
                    todo.get("priority") or "medium",
                    _now_iso(),
                ),
            )
        return self._fetch_one("todos", todo_id, "Todo not found")

    @gateway_call("Error fetching todos")
    def get_user_todos(self, user_id: str) -> list[dict[str, Any]]:
        return self._fetch_all(
            "todos",
            "SELECT * FROM todos WHERE user_id=? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        )

    @gateway_call("Error updating todo")
    def update_todo_status(self, todo_id: str, completed: bool) -> int:
        return self._update("todos", todo_id, {"completed": int(bool(completed))}, "Todo not found")

    @gateway_call("Error deleting todo")
    def delete_todo(self, todo_id: str) -> int:
        return self._delete("todos", todo_id)
