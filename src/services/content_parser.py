"""
Normalisation of generated quiz / flashcard payloads.

The backend may hand back either a structured list or a raw string with a
JSON array embedded in prose. Both are wrapped in a tagged variant and
normalised exactly once, at load time, into a plain list.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Union

# Greedy: from the first "[" to the last "]" in the text.
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


class ContentParseError(ValueError):
    """Generated content could not be extracted as an array."""


@dataclass(frozen=True)
class RawContent:
    text: str


@dataclass(frozen=True)
class ParsedContent:
    items: list[Any]


Content = Union[RawContent, ParsedContent]


def wrap(payload: Any) -> Content:
    """Tag a payload as it comes from storage or the backend."""
    if isinstance(payload, (ParsedContent, RawContent)):
        return payload
    if isinstance(payload, list):
        return ParsedContent(items=payload)
    if isinstance(payload, str):
        return RawContent(text=payload)
    if payload is None:
        raise ContentParseError("No content available")
    raise ContentParseError(f"Unsupported content type: {type(payload).__name__}")


def extract_array(text: str) -> list[Any]:
    """Parse the first-to-last bracketed array found in *text*."""
    match = _ARRAY_RE.search(text or "")
    if not match:
        raise ContentParseError("No JSON array found in content")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ContentParseError(f"Malformed JSON array: {e.msg}") from e
    if not isinstance(data, list):
        raise ContentParseError("Content is not an array")
    return data


def normalize_items(payload: Any) -> list[Any]:
    content = wrap(payload)
    if isinstance(content, ParsedContent):
        return list(content.items)
    return extract_array(content.text)


def normalize_questions(payload: Any) -> list[dict[str, Any]]:
    """
    Normalise quiz questions to ``{question, options, correct_answer:int}``.

    Raises:
        ContentParseError: if no array can be extracted or it is empty.
    """
    items = normalize_items(payload)
    if not items:
        raise ContentParseError("Quiz has no questions")
    out: list[dict[str, Any]] = []
    for i, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ContentParseError(f"Question {i + 1} is not an object")
        answer = raw.get("correct_answer", raw.get("correctOptionIndex", 0))
        try:
            correct = int(answer)
        except (TypeError, ValueError) as e:
            raise ContentParseError(f"Question {i + 1} has an invalid answer index") from e
        out.append(
            {
                "question": str(raw.get("question", "")),
                "options": [str(o) for o in (raw.get("options") or [])],
                "correct_answer": correct,
            }
        )
    return out


def normalize_flashcards(payload: Any) -> list[dict[str, str]]:
    """
    Normalise flashcards to ``{front, back}``.

    Raises:
        ContentParseError: if no array can be extracted or it is empty.
    """
    items = normalize_items(payload)
    cards = [
        {"front": str(item.get("front", "")), "back": str(item.get("back", ""))}
        for item in items
        if isinstance(item, dict)
    ]
    if not cards:
        raise ContentParseError("No flashcards available")
    return cards
