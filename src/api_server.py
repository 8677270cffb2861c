"""Generation backend: turns stored materials into summary / quiz / flashcards."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from config import (
    ACTIONS,
    API_HOST,
    API_PORT,
    DEFAULT_DIFFICULTY,
    DEFAULT_QUESTION_COUNT,
    DIFFICULTIES,
    OPENAI_API_KEY,
    STORAGE_DIR,
)
from migrations.migrate import migrate_to_latest
from services.document_processor import extract_material_text
from services.llm_service import LLMProcessor
from services.quiz_generator import QuizGenerator
from utils.file_utils import resolve_inside
from utils.metrics import log_metric

LOGGER = logging.getLogger("studybuddy.api")


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _safe_int(value: Any, default: int = DEFAULT_QUESTION_COUNT) -> int:
    try:
        out = int(value)
    except (TypeError, ValueError):
        return default
    return out


class GenerationRequestError(ValueError):
    """The request body is malformed."""


def parse_generation_request(body: dict[str, Any]) -> dict[str, Any]:
    """
    Validate and normalise a ``/generate-learning-content`` body.

    Raises:
        GenerationRequestError: missing file paths or no known action.
    """
    file_paths = body.get("file_paths") if isinstance(body.get("file_paths"), list) else []
    file_paths = [str(p) for p in file_paths if isinstance(p, str) and p.strip()]
    if not file_paths:
        raise GenerationRequestError("file_paths must be a non-empty list")

    raw_actions = body.get("actions") if isinstance(body.get("actions"), list) else []
    actions = [a for a in ACTIONS if a in raw_actions]
    if not actions:
        raise GenerationRequestError(f"actions must include at least one of {', '.join(ACTIONS)}")

    difficulty = str(body.get("difficulty") or DEFAULT_DIFFICULTY)
    return {
        "file_paths": file_paths,
        "actions": actions,
        "project_name": str(body.get("project_name") or "").strip(),
        "question_count": max(1, min(50, _safe_int(body.get("question_count")))),
        "difficulty": difficulty if difficulty in DIFFICULTIES else DEFAULT_DIFFICULTY,
    }


def collect_material_text(file_paths: list[str], storage_dir: Path) -> str:
    """Read and extract every stored file; raises ValueError on the first unreadable one."""
    parts: list[str] = []
    for rel_path in file_paths:
        target = resolve_inside(storage_dir, rel_path)
        if not target.is_file():
            raise ValueError(f"File not found: {rel_path}")
        text = extract_material_text(rel_path, target.read_bytes()).strip()
        if text:
            parts.append(text)
    if not parts:
        raise ValueError("No text could be extracted from the selected materials")
    return "\n\n".join(parts)


def generate_learning_content(
    request: dict[str, Any],
    storage_dir: Path = STORAGE_DIR,
    api_key: str = OPENAI_API_KEY,
    llm: LLMProcessor | None = None,
    quiz_generator: QuizGenerator | None = None,
) -> dict[str, Any]:
    """
    Run every requested action. Any failure makes the whole response unsuccessful.

    Returns:
        ``{"success": True, "results": {...}}`` or ``{"success": False, "error": str}``.
    """
    if not (api_key and api_key.strip()):
        return {"success": False, "error": "OpenAI API key is not configured."}

    llm = llm or LLMProcessor()
    quiz_generator = quiz_generator or QuizGenerator(llm)
    try:
        text = collect_material_text(request["file_paths"], Path(storage_dir))
    except ValueError as e:
        return {"success": False, "error": str(e)}
    except OSError as e:
        LOGGER.error("reading materials failed: %s", e)
        return {"success": False, "error": f"Could not read materials: {e.strerror or e}"}

    results: dict[str, Any] = {}
    for action in request["actions"]:
        try:
            if action == "summary":
                summary = llm.generate_summary(text, api_key)
                if not summary.strip():
                    raise ValueError("Failed to generate summary")
                results["summary"] = summary
            elif action == "quiz":
                questions = quiz_generator.generate_quiz(
                    text,
                    num_questions=request["question_count"],
                    difficulty=request["difficulty"],
                    api_key=api_key,
                )
                if not questions:
                    raise ValueError("Failed to generate quiz")
                results["quiz"] = questions
            elif action == "flashcards":
                cards = llm.generate_flashcards(text, api_key)
                if not cards:
                    raise ValueError("Failed to generate flashcards")
                results["flashcards"] = cards
        except ValueError as e:
            LOGGER.error("generate.%s failed: %s", action, e)
            return {"success": False, "error": str(e)}

    return {"success": True, "results": results}


class ApiHandler(BaseHTTPRequestHandler):
    server_version = "StudyBuddyAPI/0.3.0"

    def _send_cors_headers(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET,POST,OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")

    def _send_json(self, code: int, payload: dict[str, Any]) -> None:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self._send_cors_headers()
        self.end_headers()
        self.wfile.write(body)

    def _read_json(self) -> dict[str, Any]:
        raw_len = self.headers.get("Content-Length")
        try:
            length = int(raw_len or "0")
        except ValueError:
            length = 0
        if length <= 0:
            return {}
        raw = self.rfile.read(length)
        try:
            parsed = json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(HTTPStatus.NO_CONTENT)
        self._send_cors_headers()
        self.end_headers()

    def do_GET(self) -> None:  # noqa: N802
        path = urlparse(self.path).path
        if path == "/health":
            self._send_json(HTTPStatus.OK, {"ok": True, "time": _now_iso()})
            return
        self._send_json(HTTPStatus.NOT_FOUND, {"success": False, "error": "not_found"})

    def do_POST(self) -> None:  # noqa: N802
        path = urlparse(self.path).path
        if path != "/generate-learning-content":
            self._send_json(HTTPStatus.NOT_FOUND, {"success": False, "error": "not_found"})
            return

        body = self._read_json()
        try:
            request = parse_generation_request(body)
        except GenerationRequestError as e:
            self._send_json(HTTPStatus.BAD_REQUEST, {"success": False, "error": str(e)})
            return

        LOGGER.info(
            "generate(project=%s,actions=%s,files=%d,count=%s,difficulty=%s)",
            request["project_name"],
            request["actions"],
            len(request["file_paths"]),
            request["question_count"],
            request["difficulty"],
        )
        t0 = time.time()
        options = getattr(self.server, "generation_options", {})
        payload = generate_learning_content(request, **options)
        log_metric(
            "generate_backend",
            time.time() - t0,
            files=len(request["file_paths"]),
            success=payload["success"],
        )
        self._send_json(HTTPStatus.OK, payload)


def make_server(host: str = API_HOST, port: int = API_PORT, **generation_options: Any) -> ThreadingHTTPServer:
    """Build the server; *generation_options* are passed to ``generate_learning_content``."""
    server = ThreadingHTTPServer((host, port), ApiHandler)
    server.generation_options = generation_options  # type: ignore[attr-defined]
    return server


def run_api_server(host: str = API_HOST, port: int = API_PORT) -> None:
    migrate_to_latest()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    server = make_server(host, port)
    LOGGER.info("API server listening on http://%s:%s", host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    run_api_server()
