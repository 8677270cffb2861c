"""
Quiz generation: ask the LLM for multiple-choice questions and normalise them
to ``{question, options, correct_answer}`` with an integer answer index.
"""

from __future__ import annotations

import json
import re
from typing import Any

from config import DEFAULT_DIFFICULTY, DIFFICULTIES
from services.llm_service import LLMProcessor

QUIZ_SYSTEM_PROMPT = (
    "You are an exam question writer for students. "
    "Return ONLY valid JSON (no markdown, no extra text). "
    "Write multiple-choice questions from the provided study material with exactly 4 options each. "
    "JSON schema:\n"
    "[\n"
    "  {\n"
    '    "question": "string",\n'
    '    "options": ["A", "B", "C", "D"],\n'
    '    "correct_answer": 0\n'
    "  }\n"
    "]\n"
    "correct_answer is the zero-based index of the correct option."
)

_DIFFICULTY_HINTS = {
    "easy": "Focus on definitions and direct recall.",
    "medium": "Mix recall with questions that need understanding of the concepts.",
    "hard": "Prefer application and multi-step reasoning; distractors should be plausible.",
}


def _strip_json_raw(raw: str) -> str:
    """Remove markdown code fences and surrounding whitespace from LLM output."""
    text = raw.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```\s*$", "", text)
    return text.strip()


def _try_parse_json(raw: str) -> Any:
    """
    Parse JSON from LLM output. Tries raw parse, then stripped, then first [ to last ].
    Returns [] on failure.
    """
    for candidate in [raw, _strip_json_raw(raw)]:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            pass
    match = re.search(r"\[[\s\S]*\]", raw)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            pass
    return []


def _answer_index(answer: Any, options: list[str]) -> int | None:
    """Accept an index, a letter (A-D) or the option text; None if unresolvable."""
    if isinstance(answer, bool):
        return None
    if isinstance(answer, int):
        return answer if 0 <= answer < len(options) else None
    text = str(answer or "").strip()
    if text.isdigit():
        idx = int(text)
        return idx if idx < len(options) else None
    if len(text) == 1 and text.upper() in "ABCDEFGH":
        idx = ord(text.upper()) - ord("A")
        return idx if idx < len(options) else None
    for i, option in enumerate(options):
        if option.strip().lower() == text.lower():
            return i
    return None


def _validate_quiz(obj: Any) -> list[dict[str, Any]]:
    """Keep well-formed questions only; accepts a bare list or {"questions": [...]}."""
    if isinstance(obj, dict):
        obj = obj.get("questions")
    if not isinstance(obj, list):
        return []
    out: list[dict[str, Any]] = []
    for q in obj:
        if not isinstance(q, dict):
            continue
        options = [str(o) for o in q.get("options", [])] if isinstance(q.get("options"), list) else []
        question = str(q.get("question", "")).strip()
        index = _answer_index(q.get("correct_answer"), options)
        if not question or len(options) < 2 or index is None:
            continue
        out.append({"question": question, "options": options, "correct_answer": index})
    return out


class QuizGenerator:
    """Generates multiple-choice quizzes from study text via LLM."""

    def __init__(self, llm: LLMProcessor | None = None) -> None:
        self._llm = llm or LLMProcessor()

    def generate_quiz(
        self, text: str, num_questions: int = 5, difficulty: str = DEFAULT_DIFFICULTY, api_key: str = ""
    ) -> list[dict[str, Any]]:
        """
        Generate quiz questions from study text.

        Args:
            num_questions: Clamped to 1..50.
            difficulty: One of easy / medium / hard; anything else means medium.

        Returns:
            List of {"question", "options", "correct_answer": int}; the list
            is empty when the model output cannot be parsed.

        Raises:
            ValueError: If the LLM call fails (missing key, quota, ...).
        """
        safe_num = max(1, min(int(num_questions), 50))
        level = difficulty if difficulty in DIFFICULTIES else DEFAULT_DIFFICULTY
        user_message = (
            f"Generate exactly {safe_num} multiple-choice questions at {level} difficulty "
            "from the following study material.\n"
            "Requirements:\n"
            "- Exactly 4 options per question.\n"
            "- correct_answer is the zero-based index into options.\n"
            f"- {_DIFFICULTY_HINTS[level]}\n\n"
            f"{text[:30000]}"
        )
        raw = self._llm.invoke(QUIZ_SYSTEM_PROMPT, user_message, api_key=api_key, temperature=0.4)
        if not raw:
            return []
        return _validate_quiz(_try_parse_json(raw))[:safe_num]
