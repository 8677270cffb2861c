"""Tests for services/quiz_player — quiz state machine and scoring."""

from __future__ import annotations

import pytest

from services.content_parser import ContentParseError
from services.errors import ServiceError
from services.quiz_player import (
    QuizPlayer,
    QuizState,
    QuizStateError,
    performance_tier,
    score_percentage,
)

QUESTIONS = [
    {"question": "2+2?", "options": ["3", "4", "5"], "correct_answer": 1},
    {"question": "Capital of France?", "options": ["Paris", "Rome"], "correct_answer": 0},
    {"question": "H2O is?", "options": ["Salt", "Water"], "correct_answer": 1},
]


@pytest.fixture
def player(gateway):
    return QuizPlayer(gateway)


@pytest.fixture
def quiz_id(gateway):
    return gateway.save_quiz("u1", {"title": "Basics", "questions": QUESTIONS}).data["id"]


def _answer(player: QuizPlayer, option: int) -> None:
    player.select_option(option)
    player.submit()
    player.advance()


# ─── Scoring helpers ──────────────────────────────────────────────────────────

class TestScoring:
    @pytest.mark.parametrize(
        "correct,total,expected",
        [(0, 3, 0), (1, 3, 33), (2, 3, 67), (3, 3, 100), (1, 8, 13), (0, 0, 0)],
    )
    def test_score_percentage(self, correct, total, expected):
        assert score_percentage(correct, total) == expected

    @pytest.mark.parametrize(
        "pct,tier",
        [(100, "excellent"), (90, "excellent"), (85, "great"), (70, "good"), (60, "not bad"), (59, "keep practicing")],
    )
    def test_performance_tier(self, pct, tier):
        assert performance_tier(pct)[0] == tier


# ─── Start ────────────────────────────────────────────────────────────────────

class TestStart:
    def test_start_loads_questions(self, player, quiz_id):
        quiz = player.start(quiz_id)
        assert quiz["title"] == "Basics"
        assert player.state is QuizState.IN_PROGRESS
        assert player.index == 0
        assert player.current_question["question"] == "2+2?"

    def test_missing_quiz_id(self, player):
        with pytest.raises(ServiceError, match="Quiz not found for this project"):
            player.start(None)

    def test_unknown_quiz(self, player):
        with pytest.raises(ServiceError, match="Failed to load quiz data"):
            player.start("missing")

    def test_string_questions_are_extracted(self, gateway, player):
        raw = 'Sure! [{"question": "Q", "options": ["a", "b"], "correct_answer": 1}]'
        qid = gateway.save_quiz("u1", {"title": "T", "questions": raw}).data["id"]
        player.start(qid)
        assert player.questions == [{"question": "Q", "options": ["a", "b"], "correct_answer": 1}]

    def test_unparseable_questions(self, gateway, player):
        qid = gateway.save_quiz("u1", {"title": "T", "questions": "no array"}).data["id"]
        with pytest.raises(ContentParseError, match="Failed to parse quiz questions"):
            player.start(qid)
        assert player.state is QuizState.NOT_STARTED


# ─── Transitions ──────────────────────────────────────────────────────────────

class TestTransitions:
    def test_submit_requires_selection(self, player, quiz_id):
        player.start(quiz_id)
        with pytest.raises(QuizStateError):
            player.submit()

    def test_submit_reveals_answer(self, player, quiz_id):
        player.start(quiz_id)
        player.select_option(0)
        record = player.submit()
        assert record.is_correct is False
        assert record.correct_option == 1
        assert player.state is QuizState.ANSWER_REVEALED

    def test_cannot_select_while_revealed(self, player, quiz_id):
        player.start(quiz_id)
        player.select_option(1)
        player.submit()
        with pytest.raises(QuizStateError):
            player.select_option(0)

    def test_advance_then_complete(self, player, quiz_id):
        player.start(quiz_id)
        _answer(player, 1)
        _answer(player, 0)
        assert player.is_last_question
        _answer(player, 0)
        assert player.state is QuizState.COMPLETE
        assert player.current_question is None
        assert player.score == 2
        assert player.final_score == 67

    def test_previous_not_allowed_on_first_question(self, player, quiz_id):
        player.start(quiz_id)
        with pytest.raises(QuizStateError):
            player.previous()

    def test_reanswering_does_not_double_count(self, player, quiz_id):
        player.start(quiz_id)
        _answer(player, 1)
        player.previous()
        _answer(player, 1)
        assert player.score == 1

    def test_reanswering_wrong_removes_credit(self, player, quiz_id):
        player.start(quiz_id)
        _answer(player, 1)
        player.previous()
        _answer(player, 0)
        assert player.score == 0

    def test_restart_clears_answers(self, player, quiz_id):
        player.start(quiz_id)
        for option in (1, 0, 1):
            _answer(player, option)
        assert player.final_score == 100
        player.restart()
        assert player.state is QuizState.IN_PROGRESS
        assert player.index == 0
        assert player.score == 0

    def test_close_resets(self, player, quiz_id):
        player.start(quiz_id)
        player.close()
        assert player.state is QuizState.NOT_STARTED
        assert player.questions == []
