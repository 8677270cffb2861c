"""Minimal stability self-check for migrations and the persistence gateway."""

from __future__ import annotations

import sqlite3
import sys
import uuid
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from migrations.migrate import DB_PATH, latest_migration_version, migrate_to_latest
from services.database_service import DatabaseManager


def check_migrations_idempotent() -> None:
    first = migrate_to_latest()
    second = migrate_to_latest()
    latest = latest_migration_version()
    assert second == first, f"migrate_to_latest not idempotent: {first} vs {second}"
    assert second == latest, f"schema version not latest: {second} vs {latest}"

    conn = sqlite3.connect(DB_PATH)
    try:
        row = conn.execute("SELECT value FROM meta WHERE key='schema_version'").fetchone()
        assert row is not None, "meta.schema_version row missing"
        assert int(row[0]) == latest, f"DB schema_version != latest ({row[0]} vs {latest})"
    finally:
        conn.close()


def _cleanup_test_user(user_id: str) -> None:
    """Delete every row owned by the self-check user."""
    conn = sqlite3.connect(DB_PATH)
    try:
        for table in ("progress", "quizzes", "projects", "materials", "calendar_events", "todos", "user_profiles"):
            conn.execute(f"DELETE FROM {table} WHERE user_id=?", [user_id])
        conn.execute("DELETE FROM users WHERE id=?", [user_id])
        conn.commit()
    finally:
        conn.close()


def check_gateway_crud() -> None:
    expected_tables = {
        "users",
        "user_profiles",
        "materials",
        "projects",
        "quizzes",
        "progress",
        "calendar_events",
        "todos",
        "operation_metrics",
    }
    conn = sqlite3.connect(DB_PATH)
    try:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        missing = expected_tables - {str(r[0]) for r in rows}
        assert not missing, f"missing tables: {sorted(missing)}"
    finally:
        conn.close()

    db = DatabaseManager()
    user = db.create_user(f"selfcheck-{uuid.uuid4().hex[:8]}@example.com", "x")
    assert user.success, f"user create failed: {user.error}"
    user_id = user.data["id"]
    file_path = None
    try:
        upload = db.upload_file(user_id, b"self check notes", "notes.txt")
        assert upload.success, f"blob upload failed: {upload.error}"
        file_path = upload.data
        material = db.save_material(user_id, {"name": "notes.txt", "type": "text/plain", "size": 16}, file_path)
        assert material.success and material.data["subject"] == "untagged", "material insert failed"
        assert db.download_file(file_path).data == b"self check notes", "blob round trip failed"

        project = db.save_project(user_id, {"name": "Self Check", "material_ids": [material.data["id"]], "actions": ["summary"]})
        assert project.success, f"project insert failed: {project.error}"
        assert db.update_project_summary(project.data["id"], "# Notes").success, "summary attach failed"
        assert db.get_project_by_id(project.data["id"]).data["summary_content"] == "# Notes", "summary missing"

        assert not db.update_project_quiz("missing", "q").success, "update on missing row should fail"

        assert db.delete_material(material.data["id"]).success, "material delete failed"
        file_path = None
    finally:
        if file_path:
            db.remove_file(file_path)
        _cleanup_test_user(user_id)


def main() -> None:
    check_migrations_idempotent()
    check_gateway_crud()
    print("self_check: OK")


if __name__ == "__main__":
    main()
