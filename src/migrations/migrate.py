"""SQLite schema migration runner with backups."""

from __future__ import annotations

import re
import shutil
import sqlite3
import zipfile
from datetime import datetime
from pathlib import Path

from config import BACKUPS_DIR, DATA_DIR, DB_PATH, STORAGE_DIR

LOCK_PATH = BACKUPS_DIR / ".migrate.lock"
MIGRATIONS_SQL_DIR = Path(__file__).resolve().parent / "sql"


class MigrationError(RuntimeError):
    """Raised when a migration fails and rollback was triggered."""


class MigrationInProgressError(RuntimeError):
    """Raised when a migration lock already exists."""


def _ensure_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    BACKUPS_DIR.mkdir(parents=True, exist_ok=True)


def list_migrations() -> list[tuple[int, Path]]:
    out: list[tuple[int, Path]] = []
    for path in MIGRATIONS_SQL_DIR.glob("[0-9][0-9][0-9]_*.sql"):
        match = re.match(r"^(\d{3})_", path.name)
        if match:
            out.append((int(match.group(1)), path))
    out.sort(key=lambda x: x[0])
    return out


def latest_migration_version() -> int:
    """Return the latest migration numeric version from sql files."""
    migrations = list_migrations()
    return migrations[-1][0] if migrations else 0


def read_schema_version(conn: sqlite3.Connection) -> int:
    # A database without the meta table predates versioning.
    row = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='meta'").fetchone()
    if row is None:
        return 0
    row = conn.execute("SELECT value FROM meta WHERE key = 'schema_version'").fetchone()
    if not row:
        return 0
    try:
        return int(row[0])
    except (TypeError, ValueError):
        return 0


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(
        """
        INSERT INTO meta(key, value)
        VALUES('schema_version', ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (str(version),),
    )


def apply_migrations(conn: sqlite3.Connection, migrations: list[tuple[int, Path]]) -> int:
    """Apply *migrations* in order on an open connection; return the last version applied."""
    version = read_schema_version(conn)
    for number, sql_path in migrations:
        if number <= version:
            continue
        sql = sql_path.read_text(encoding="utf-8")
        try:
            conn.execute("BEGIN IMMEDIATE")
            conn.executescript(sql)
            _set_schema_version(conn, number)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise MigrationError(
                f"Migration failed at {sql_path.name}. Rolled back. "
                f"Use backups in: {BACKUPS_DIR}"
            ) from e
        version = number
    return version


def _backup(db_path: Path) -> None:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    if db_path.exists():
        shutil.copy2(db_path, BACKUPS_DIR / f"app_{timestamp}.db")

    if STORAGE_DIR.exists() and STORAGE_DIR.is_dir():
        zip_path = BACKUPS_DIR / f"storage_{timestamp}.zip"
        with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for p in STORAGE_DIR.rglob("*"):
                if p.is_file():
                    zf.write(p, arcname=str(p.relative_to(STORAGE_DIR)))


def _acquire_lock() -> None:
    try:
        LOCK_PATH.touch(exist_ok=False)
    except FileExistsError as e:
        raise MigrationInProgressError("migration in progress") from e


def _release_lock() -> None:
    try:
        LOCK_PATH.unlink(missing_ok=True)
    except OSError:
        pass


def migrate_to_latest(db_path: Path | None = None) -> int:
    """
    Run pending SQL migrations and return the final schema version.

    A missing database is created; an existing one is backed up (together
    with the blob storage directory) before the first pending migration.
    """
    target = Path(db_path or DB_PATH)
    _ensure_dirs()
    _acquire_lock()
    try:
        migrations = list_migrations()
        if not migrations:
            return 0
        existed = target.exists()
        target.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(target)
        try:
            current = read_schema_version(conn)
            if current >= migrations[-1][0]:
                return current
            if existed:
                _backup(target)
            return apply_migrations(conn, migrations)
        finally:
            conn.close()
    finally:
        _release_lock()
