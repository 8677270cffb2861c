"""Flashcard playback: bounded navigation with a front/back face."""

from __future__ import annotations

import html
import logging
import re
from typing import Any

from services.content_parser import ContentParseError, normalize_flashcards
from services.database_service import DatabaseManager
from services.errors import ServiceError

LOGGER = logging.getLogger("studybuddy.flashcards")

FRONT = "front"
BACK = "back"

_BOLD_RE = re.compile(r"\*\*(.*?)\*\*")
_ITALIC_RE = re.compile(r"\*(.*?)\*")


class FlashcardStateError(RuntimeError):
    """Operation is not valid without a loaded card set."""


def format_flashcard_content(content: str | None) -> str:
    """
    Render markdown-lite card text as HTML.

    Bold / italic markers and line breaks are converted. Two or more
    adjacent lines containing ``|`` become rows of one table; a lone pipe
    line stays plain text.
    """
    if not content:
        return ""
    text = html.escape(content, quote=False)
    text = _BOLD_RE.sub(r"<strong>\1</strong>", text)
    text = _ITALIC_RE.sub(r"<em>\1</em>", text)

    lines = text.split("\n")
    out: list[str] = []
    i = 0
    while i < len(lines):
        j = i
        while j < len(lines) and "|" in lines[j]:
            j += 1
        if j - i >= 2:
            rows = []
            for line in lines[i:j]:
                cells = [c.strip() for c in line.strip().strip("|").split("|")]
                rows.append("<tr>" + "".join(f"<td>{c}</td>" for c in cells) + "</tr>")
            out.append('<table class="flashcard-table">' + "".join(rows) + "</table>")
            i = j
        else:
            out.append(lines[i])
            i += 1
    return "<br>".join(out)


class FlashcardPlayer:
    """Single active flashcard session."""

    def __init__(self, gateway: DatabaseManager) -> None:
        self.gateway = gateway
        self.close()

    def close(self) -> None:
        self.cards: list[dict[str, str]] = []
        self.index = 0
        self.face = FRONT

    @property
    def active(self) -> bool:
        return bool(self.cards)

    def start(self, project_id: str, cached_project: dict[str, Any] | None = None) -> list[dict[str, str]]:
        """
        Load the project's cards and show the first front.

        Raises:
            ServiceError: the project has no flashcards.
            ContentParseError: the stored cards are not extractable.
        """
        content = (cached_project or {}).get("flashcards_content")
        if not content:
            result = self.gateway.get_project_by_id(project_id)
            if not result.success or not result.data.get("flashcards_content"):
                raise ServiceError("Flashcards not found for this project")
            content = result.data["flashcards_content"]

        try:
            cards = normalize_flashcards(content)
        except ContentParseError as e:
            LOGGER.error("Error parsing flashcards: %s", e)
            raise ContentParseError("Failed to parse flashcards data") from e

        self.cards = cards
        self.index = 0
        self.face = FRONT
        return cards

    def _require_cards(self) -> None:
        if not self.cards:
            raise FlashcardStateError("No flashcards loaded")

    @property
    def current_card(self) -> dict[str, str] | None:
        return self.cards[self.index] if self.cards else None

    def flip(self) -> str:
        self._require_cards()
        self.face = BACK if self.face == FRONT else FRONT
        return self.face

    def next(self) -> int:
        self._require_cards()
        if self.index < len(self.cards) - 1:
            self.index += 1
            self.face = FRONT
        return self.index

    def previous(self) -> int:
        self._require_cards()
        if self.index > 0:
            self.index -= 1
            self.face = FRONT
        return self.index

    def progress_label(self) -> str:
        return f"Card {self.index + 1} of {len(self.cards)}" if self.cards else ""
