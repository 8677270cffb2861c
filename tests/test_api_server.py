"""Tests for api_server — request parsing, generation orchestration and HTTP routing."""

from __future__ import annotations

import threading
from pathlib import Path

import httpx
import pytest

import api_server


class _FakeLLM:
    def __init__(self, summary="# Notes", cards=None, fail=None):
        self.summary = summary
        self.cards = cards if cards is not None else [{"front": "F", "back": "B"}]
        self.fail = fail

    def generate_summary(self, text, api_key):
        if self.fail:
            raise ValueError(self.fail)
        return self.summary

    def generate_flashcards(self, text, api_key):
        return self.cards


class _FakeQuizGenerator:
    def __init__(self, questions=None):
        self.questions = questions if questions is not None else [
            {"question": "Q", "options": ["a", "b"], "correct_answer": 0}
        ]
        self.calls = []

    def generate_quiz(self, text, num_questions, difficulty, api_key):
        self.calls.append((num_questions, difficulty))
        return self.questions


@pytest.fixture
def stored_file(storage_dir):
    (storage_dir / "u1").mkdir()
    (storage_dir / "u1" / "1-notes.txt").write_text("Photosynthesis converts light to energy.", encoding="utf-8")
    return "u1/1-notes.txt"


def _request(path, actions=("summary", "quiz", "flashcards")):
    return api_server.parse_generation_request({"file_paths": [path], "actions": list(actions)})


# ─── parse_generation_request ─────────────────────────────────────────────────

class TestParseRequest:
    def test_defaults_and_action_order(self):
        req = api_server.parse_generation_request({"file_paths": ["a"], "actions": ["flashcards", "summary"]})
        assert req["actions"] == ["summary", "flashcards"]
        assert req["question_count"] == 5
        assert req["difficulty"] == "medium"

    def test_count_clamped_and_difficulty_checked(self):
        req = api_server.parse_generation_request(
            {"file_paths": ["a"], "actions": ["quiz"], "question_count": 999, "difficulty": "brutal"}
        )
        assert req["question_count"] == 50
        assert req["difficulty"] == "medium"

    @pytest.mark.parametrize(
        "body",
        [{}, {"file_paths": [], "actions": ["quiz"]}, {"file_paths": ["a"], "actions": ["dance"]}],
    )
    def test_invalid_bodies(self, body):
        with pytest.raises(api_server.GenerationRequestError):
            api_server.parse_generation_request(body)


# ─── generate_learning_content ────────────────────────────────────────────────

class TestGenerateLearningContent:
    def test_all_actions(self, tmp_db, storage_dir, stored_file):
        quiz = _FakeQuizGenerator()
        out = api_server.generate_learning_content(
            _request(stored_file), storage_dir=storage_dir, api_key="k", llm=_FakeLLM(), quiz_generator=quiz
        )
        assert out["success"] is True
        assert out["results"]["summary"] == "# Notes"
        assert out["results"]["quiz"][0]["correct_answer"] == 0
        assert out["results"]["flashcards"] == [{"front": "F", "back": "B"}]
        assert quiz.calls == [(5, "medium")]

    def test_only_requested_actions_run(self, tmp_db, storage_dir, stored_file):
        out = api_server.generate_learning_content(
            _request(stored_file, ["summary"]),
            storage_dir=storage_dir,
            api_key="k",
            llm=_FakeLLM(),
            quiz_generator=_FakeQuizGenerator(),
        )
        assert set(out["results"]) == {"summary"}

    def test_missing_key(self, storage_dir, stored_file):
        out = api_server.generate_learning_content(_request(stored_file), storage_dir=storage_dir, api_key="")
        assert out == {"success": False, "error": "OpenAI API key is not configured."}

    def test_missing_file(self, storage_dir):
        out = api_server.generate_learning_content(
            _request("u1/nope.txt"), storage_dir=storage_dir, api_key="k", llm=_FakeLLM(), quiz_generator=_FakeQuizGenerator()
        )
        assert out["success"] is False
        assert "File not found" in out["error"]

    def test_path_escape_rejected(self, storage_dir):
        out = api_server.generate_learning_content(
            _request("../secret.txt"), storage_dir=storage_dir, api_key="k", llm=_FakeLLM(), quiz_generator=_FakeQuizGenerator()
        )
        assert out["success"] is False

    def test_unreadable_file_is_reported(self, storage_dir, stored_file, monkeypatch):
        def unreadable(self):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(Path, "read_bytes", unreadable)
        out = api_server.generate_learning_content(
            _request(stored_file), storage_dir=storage_dir, api_key="k", llm=_FakeLLM(), quiz_generator=_FakeQuizGenerator()
        )
        assert out == {"success": False, "error": "Could not read materials: Permission denied"}

    def test_llm_failure_fails_whole_request(self, storage_dir, stored_file):
        out = api_server.generate_learning_content(
            _request(stored_file),
            storage_dir=storage_dir,
            api_key="k",
            llm=_FakeLLM(fail="OpenAI API key is invalid."),
            quiz_generator=_FakeQuizGenerator(),
        )
        assert out == {"success": False, "error": "OpenAI API key is invalid."}

    def test_empty_quiz_is_a_failure(self, storage_dir, stored_file):
        out = api_server.generate_learning_content(
            _request(stored_file, ["quiz"]),
            storage_dir=storage_dir,
            api_key="k",
            llm=_FakeLLM(),
            quiz_generator=_FakeQuizGenerator(questions=[]),
        )
        assert out == {"success": False, "error": "Failed to generate quiz"}


# ─── HTTP server ──────────────────────────────────────────────────────────────

@pytest.fixture
def live_server(tmp_db, storage_dir):
    server = api_server.make_server(
        "127.0.0.1",
        0,
        storage_dir=storage_dir,
        api_key="k",
        llm=_FakeLLM(),
        quiz_generator=_FakeQuizGenerator(),
    )
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    yield f"http://{host}:{port}"
    server.shutdown()
    server.server_close()


class TestHttp:
    def test_health(self, live_server):
        r = httpx.get(f"{live_server}/health")
        assert r.status_code == 200
        assert r.json()["ok"] is True

    def test_generate(self, live_server, stored_file):
        r = httpx.post(
            f"{live_server}/generate-learning-content",
            json={"file_paths": [stored_file], "actions": ["summary"], "project_name": "Bio"},
        )
        assert r.status_code == 200
        assert r.json() == {"success": True, "results": {"summary": "# Notes"}}

    def test_bad_request(self, live_server):
        r = httpx.post(f"{live_server}/generate-learning-content", json={"actions": ["summary"]})
        assert r.status_code == 400
        assert r.json()["success"] is False

    def test_unknown_route(self, live_server):
        assert httpx.get(f"{live_server}/nope").status_code == 404

    def test_preflight_has_no_body(self, live_server):
        r = httpx.options(f"{live_server}/generate-learning-content")
        assert r.status_code == 204
        assert r.content == b""
        assert r.headers["access-control-allow-origin"] == "*"
        assert "content-length" not in r.headers or r.headers["content-length"] == "0"
