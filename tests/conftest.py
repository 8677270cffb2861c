"""Shared pytest fixtures for the StudyBuddy test suite."""

from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

import pytest

# Ensure src/ is on the path so all service imports resolve.
SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

MIGRATIONS_SQL_DIR = SRC_DIR / "migrations" / "sql"


def _apply_migrations(db_path: str) -> None:
    """Run all SQL migration files in order against *db_path*."""
    conn = sqlite3.connect(db_path)
    try:
        sql_files = sorted(MIGRATIONS_SQL_DIR.glob("[0-9][0-9][0-9]_*.sql"))
        for sql_file in sql_files:
            conn.executescript(sql_file.read_text(encoding="utf-8"))
        conn.execute(
            "INSERT INTO meta(key, value) VALUES('schema_version', ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (str(len(sql_files)),),
        )
        conn.commit()
    finally:
        conn.close()


@pytest.fixture
def tmp_db(tmp_path, monkeypatch):
    """Temporary SQLite DB with all migrations applied.

    Monkeypatches DB_PATH in the metrics module so metric rows land in the same DB.
    """
    db_file = str(tmp_path / "test_app.db")
    _apply_migrations(db_file)

    import utils.metrics as metrics_mod

    monkeypatch.setattr(metrics_mod, "DB_PATH", Path(db_file))
    return db_file


@pytest.fixture
def storage_dir(tmp_path):
    path = tmp_path / "storage"
    path.mkdir()
    return path


@pytest.fixture
def gateway(tmp_db, storage_dir):
    from services.database_service import DatabaseManager

    return DatabaseManager(db_path=tmp_db, storage_dir=storage_dir)


@pytest.fixture
def session(gateway):
    """A SessionStore already signed in as a confirmed user."""
    from services.auth_service import SessionStore

    store = SessionStore(gateway, require_email_confirmation=False)
    result = store.sign_up("student@example.com", "correct horse")
    assert result.success, result.error
    return store


@pytest.fixture(autouse=True)
def _fast_bcrypt(monkeypatch):
    import services.auth_service as auth_mod

    monkeypatch.setattr(auth_mod, "BCRYPT_ROUNDS", 4)
