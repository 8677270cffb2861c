"""Tests for pure JSON parsing / validation helpers in quiz_generator (no API calls)."""

from __future__ import annotations

import pytest

import services.quiz_generator as qg_mod

_strip_json_raw = qg_mod._strip_json_raw
_try_parse_json = qg_mod._try_parse_json
_validate_quiz = qg_mod._validate_quiz
_answer_index = qg_mod._answer_index


class _FakeLLM:
    """Stands in for LLMProcessor and records the prompt it was given."""

    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.calls: list[tuple[str, str]] = []

    def invoke(self, system_prompt, user_message, api_key, temperature=0.3):
        self.calls.append((system_prompt, user_message))
        return self.reply


# ──────────────────────────────────────────────────────────────
# _strip_json_raw
# ──────────────────────────────────────────────────────────────

class TestStripJsonRaw:
    def test_no_fences_unchanged(self):
        assert _strip_json_raw("[1]") == "[1]"

    def test_strips_json_fences(self):
        assert _strip_json_raw("```json\n[1]\n```") == "[1]"

    def test_strips_bare_fences(self):
        assert _strip_json_raw("```\n[1]\n```") == "[1]"

    def test_strips_whitespace(self):
        assert _strip_json_raw("  [1]  \n") == "[1]"


# ──────────────────────────────────────────────────────────────
# _try_parse_json
# ──────────────────────────────────────────────────────────────

class TestTryParseJson:
    def test_valid_json_parsed(self):
        assert _try_parse_json('[{"question": "Q"}]') == [{"question": "Q"}]

    def test_fenced_json_parsed(self):
        assert _try_parse_json('```json\n[{"question": "Q"}]\n```') == [{"question": "Q"}]

    def test_embedded_array_extracted(self):
        assert _try_parse_json('Here is the quiz: [1, 2] done.') == [1, 2]

    def test_invalid_json_returns_empty(self):
        assert _try_parse_json("total garbage") == []

    def test_empty_string_returns_empty(self):
        assert _try_parse_json("") == []


# ──────────────────────────────────────────────────────────────
# _answer_index / _validate_quiz
# ──────────────────────────────────────────────────────────────

class TestAnswerIndex:
    OPTIONS = ["Paris", "Rome", "Berlin", "Madrid"]

    @pytest.mark.parametrize(
        "answer,expected",
        [(2, 2), ("1", 1), ("C", 2), ("b", 1), ("Madrid", 3), (" paris ", 0), (7, None), ("Z", None), (True, None)],
    )
    def test_forms(self, answer, expected):
        assert _answer_index(answer, self.OPTIONS) == expected


class TestValidateQuiz:
    def _make_question(self, **kwargs) -> dict:
        base = {"question": "What is 2+2?", "options": ["1", "2", "4", "8"], "correct_answer": 2}
        base.update(kwargs)
        return base

    def test_valid_quiz_passes_through(self):
        assert _validate_quiz([self._make_question()]) == [self._make_question()]

    def test_wrapped_in_questions_key(self):
        assert len(_validate_quiz({"questions": [self._make_question()]})) == 1

    def test_non_list_returns_empty(self):
        assert _validate_quiz(None) == []
        assert _validate_quiz("string") == []

    def test_letter_answer_normalised_to_index(self):
        result = _validate_quiz([self._make_question(correct_answer="C")])
        assert result[0]["correct_answer"] == 2

    def test_malformed_questions_skipped(self):
        questions = [
            "not a dict",
            self._make_question(question=""),
            self._make_question(options=["only one"]),
            self._make_question(correct_answer="Z"),
            self._make_question(),
        ]
        assert len(_validate_quiz(questions)) == 1


# ──────────────────────────────────────────────────────────────
# QuizGenerator with a fake LLM
# ──────────────────────────────────────────────────────────────

class TestQuizGenerator:
    def test_trims_to_requested_count(self):
        reply = "[" + ",".join(
            f'{{"question": "Q{i}", "options": ["a", "b"], "correct_answer": 0}}' for i in range(4)
        ) + "]"
        llm = _FakeLLM(reply)
        questions = qg_mod.QuizGenerator(llm).generate_quiz("text", num_questions=2, difficulty="hard", api_key="k")
        assert [q["question"] for q in questions] == ["Q0", "Q1"]
        assert "hard difficulty" in llm.calls[0][1]

    def test_unknown_difficulty_means_medium(self):
        llm = _FakeLLM("[]")
        qg_mod.QuizGenerator(llm).generate_quiz("text", difficulty="insane", api_key="k")
        assert "medium difficulty" in llm.calls[0][1]

    def test_count_clamped(self):
        llm = _FakeLLM("[]")
        qg_mod.QuizGenerator(llm).generate_quiz("text", num_questions=500, api_key="k")
        assert "exactly 50 " in llm.calls[0][1]

    def test_unparseable_reply_gives_empty_list(self):
        assert qg_mod.QuizGenerator(_FakeLLM("sorry")).generate_quiz("text", api_key="k") == []
