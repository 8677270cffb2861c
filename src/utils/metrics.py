"""Lightweight operation metrics logger backed by SQLite."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any

from config import DB_PATH


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _connect() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def log_metric(operation: str, elapsed_s: float, user_id: str = "", **meta: Any) -> None:
    """Persist a single operation metric row.

    Never raises: metric failures must not interrupt the main user flow.

    Args:
        operation: e.g. "generate", "upload", "generate_backend"
        elapsed_s: Wall-clock seconds the operation took.
        user_id: Optional owning user.
        **meta:  Arbitrary key-value pairs stored as JSON (e.g. files=3).
    """
    try:
        meta_json = json.dumps(meta, ensure_ascii=False, default=str)
        with _connect() as conn:
            conn.execute(
                """
                INSERT INTO operation_metrics (operation, user_id, elapsed_s, meta_json, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (operation, user_id or "", round(elapsed_s, 3), meta_json, _now_iso()),
            )
    except Exception:  # noqa: BLE001
        pass


def get_recent_metrics(limit: int = 50) -> list[dict[str, Any]]:
    """Return the most recent *limit* metric rows, newest first.

    Returns an empty list on any error (e.g. table not yet created).
    """
    try:
        with _connect() as conn:
            rows = conn.execute(
                """
                SELECT id, operation, user_id, elapsed_s, meta_json, created_at
                FROM operation_metrics
                ORDER BY id DESC
                LIMIT ?
                """,
                (max(1, limit),),
            ).fetchall()
        out: list[dict[str, Any]] = []
        for row in rows:
            item = dict(row)
            try:
                item["meta"] = json.loads(item.pop("meta_json") or "{}")
            except json.JSONDecodeError:
                item["meta"] = {}
            out.append(item)
        return out
    except Exception:  # noqa: BLE001
        return []


def get_metrics_summary() -> dict[str, Any]:
    """Return per-operation averages and counts. Empty dict on any error."""
    try:
        with _connect() as conn:
            rows = conn.execute(
                """
                SELECT
                    operation,
                    COUNT(*)          AS total,
                    AVG(elapsed_s)    AS avg_s,
                    MAX(elapsed_s)    AS max_s,
                    MAX(created_at)   AS last_at
                FROM operation_metrics
                GROUP BY operation
                ORDER BY total DESC
                """
            ).fetchall()
        return {
            row["operation"]: {
                "total": row["total"],
                "avg_s": round(row["avg_s"], 2),
                "max_s": round(row["max_s"], 2),
                "last_at": row["last_at"],
            }
            for row in rows
        }
    except Exception:  # noqa: BLE001
        return {}
