"""
Quiz playback state machine.

NOT_STARTED -> IN_PROGRESS(i) -> ANSWER_REVEALED(i) -> ... -> COMPLETE

``submit`` reveals the answer; the caller invokes ``advance`` after the
display delay (``config.QUIZ_ADVANCE_DELAY_S``) to move on.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from services.content_parser import ContentParseError, normalize_questions
from services.database_service import DatabaseManager
from services.errors import ServiceError

LOGGER = logging.getLogger("studybuddy.quiz")

_PERFORMANCE_TIERS = (
    (90, "excellent", "🌟 Excellent work! You've mastered this material!"),
    (80, "great", "👏 Great job! You have a solid understanding!"),
    (70, "good", "👍 Good work! Consider reviewing a few topics."),
    (60, "not bad", "📚 Not bad! Some more study would be helpful."),
)
_FALLBACK_TIER = ("keep practicing", "💪 Keep studying! You'll get there with more practice.")


class QuizState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    ANSWER_REVEALED = "answer_revealed"
    COMPLETE = "complete"


class QuizStateError(RuntimeError):
    """Operation is not valid in the current quiz state."""


@dataclass(frozen=True)
class AnswerRecord:
    question_index: int
    selected_option: int
    correct_option: int
    is_correct: bool


def score_percentage(correct: int, total: int) -> int:
    """round(100 * correct / total), halves rounded up."""
    if total <= 0:
        return 0
    return int(math.floor(100 * correct / total + 0.5))


def performance_tier(percentage: int) -> tuple[str, str]:
    """Return (tier, message) for a final percentage."""
    for threshold, tier, message in _PERFORMANCE_TIERS:
        if percentage >= threshold:
            return tier, message
    return _FALLBACK_TIER


class QuizPlayer:
    """Single active quiz session."""

    def __init__(self, gateway: DatabaseManager) -> None:
        self.gateway = gateway
        self._reset()

    def _reset(self) -> None:
        self.state = QuizState.NOT_STARTED
        self.quiz: dict[str, Any] | None = None
        self.questions: list[dict[str, Any]] = []
        self.index = 0
        self.pending_choice: int | None = None
        self.answers: list[AnswerRecord | None] = []

    # ---------- lifecycle ----------

    def start(self, quiz_id: str | None) -> dict[str, Any]:
        """
        Load a quiz and begin at question 0.

        Raises:
            ServiceError: no quiz id, or the quiz cannot be loaded.
            ContentParseError: the questions are not extractable.
        """
        if not quiz_id:
            raise ServiceError("Quiz not found for this project")
        result = self.gateway.get_quiz_by_id(quiz_id)
        if not result.success or not result.data:
            raise ServiceError("Failed to load quiz data")

        try:
            questions = normalize_questions(result.data.get("questions"))
        except ContentParseError as e:
            LOGGER.error("Error parsing quiz questions: %s", e)
            raise ContentParseError("Failed to parse quiz questions") from e

        self._reset()
        self.quiz = {**result.data, "questions": questions}
        self.questions = questions
        self.answers = [None] * len(questions)
        self.state = QuizState.IN_PROGRESS
        return self.quiz

    def close(self) -> None:
        self._reset()

    def restart(self) -> None:
        if not self.questions:
            raise QuizStateError("No quiz loaded")
        self.index = 0
        self.pending_choice = None
        self.answers = [None] * len(self.questions)
        self.state = QuizState.IN_PROGRESS

    # ---------- transitions ----------

    @property
    def current_question(self) -> dict[str, Any] | None:
        if not self.questions or self.state is QuizState.COMPLETE:
            return None
        return self.questions[self.index]

    @property
    def is_last_question(self) -> bool:
        return self.index == len(self.questions) - 1

    def select_option(self, option_index: int) -> None:
        if self.state is not QuizState.IN_PROGRESS:
            raise QuizStateError("Options can only be selected while a question is open")
        self.pending_choice = option_index

    def submit(self) -> AnswerRecord:
        if self.state is not QuizState.IN_PROGRESS or self.pending_choice is None:
            raise QuizStateError("Select an option before submitting")
        correct = int(self.questions[self.index]["correct_answer"])
        record = AnswerRecord(
            question_index=self.index,
            selected_option=self.pending_choice,
            correct_option=correct,
            is_correct=self.pending_choice == correct,
        )
        self.answers[self.index] = record
        self.state = QuizState.ANSWER_REVEALED
        return record

    def advance(self) -> QuizState:
        if self.state is not QuizState.ANSWER_REVEALED:
            raise QuizStateError("Nothing to advance from")
        self.pending_choice = None
        if self.index < len(self.questions) - 1:
            self.index += 1
            self.state = QuizState.IN_PROGRESS
        else:
            self.state = QuizState.COMPLETE
        return self.state

    def previous(self) -> None:
        if self.state is not QuizState.IN_PROGRESS or self.index == 0:
            raise QuizStateError("Cannot go back from here")
        self.index -= 1
        self.pending_choice = None

    # ---------- results ----------

    @property
    def score(self) -> int:
        return sum(1 for a in self.answers if a is not None and a.is_correct)

    @property
    def final_score(self) -> int:
        return score_percentage(self.score, len(self.questions))

    def performance(self) -> tuple[str, str]:
        return performance_tier(self.final_score)
