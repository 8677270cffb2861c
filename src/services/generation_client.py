from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

import httpx

from config import GENERATION_API_URL, GENERATION_TIMEOUT_S
from services.errors import ServiceError

LOGGER = logging.getLogger("studybuddy.generation")


class GenerationError(ServiceError):
    """The generation backend failed; the message is the backend's own text."""


@dataclass
class GenerationResults:
    summary: str | None = None
    quiz: Any = None
    flashcards: Any = None
    raw: dict[str, Any] = field(default_factory=dict)


class GenerationClient:
    """
    One POST per "generate project" action.

    No retry and no auth header. ``timeout_s=None`` means the request may
    wait indefinitely.
    """

    def __init__(
        self,
        url: str = GENERATION_API_URL,
        timeout_s: float | None = GENERATION_TIMEOUT_S,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout_s = timeout_s
        self._transport = transport

    def generate(
        self,
        file_paths: Sequence[str],
        actions: Sequence[str],
        project_name: str,
        question_count: int,
        difficulty: str,
    ) -> GenerationResults:
        payload = {
            "file_paths": list(file_paths),
            "actions": list(actions),
            "project_name": project_name,
            "question_count": question_count,
            "difficulty": difficulty,
        }
        LOGGER.info("Sending generation request: %s actions=%s files=%d", project_name, actions, len(file_paths))

        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                r = client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise GenerationError(f"Generation request failed: {e}") from e

        if r.status_code < 200 or r.status_code >= 300:
            raise GenerationError(f"HTTP error! status: {r.status_code}")

        try:
            data = r.json()
        except ValueError as e:
            raise GenerationError("Generation backend returned invalid JSON") from e

        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            raise GenerationError(error or "Failed to generate content")

        results = data.get("results") or {}
        return GenerationResults(
            summary=results.get("summary"),
            quiz=results.get("quiz"),
            flashcards=results.get("flashcards"),
            raw=results,
        )
