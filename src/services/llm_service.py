"""
LLM orchestration for the generation backend: summaries, flashcards, prompts.
"""

import json
import re
from typing import Any

from langchain_openai import ChatOpenAI

from config import LLM_MODEL

SUMMARY_SYSTEM_PROMPT = (
    "You are a friendly study assistant. Summarise the following study material into "
    "structured revision notes for a student. Use Markdown: '#' headings for sections, "
    "'-' bullet lists for key points and '1.' numbered lists for ordered steps. "
    "Separate paragraphs with a blank line. Cover the core concepts, definitions and "
    "anything likely to be examined."
)

FLASHCARDS_SYSTEM_PROMPT = """You are a study assistant. Extract the 8-12 most important terms, concepts or facts from the material and turn them into active-recall flashcards.

Output ONLY a valid JSON array, no markdown fences and no text outside the JSON.

Format exactly:
[
  {"front": "Term or question", "back": "Definition or answer"},
  {"front": "Next front", "back": "Next back"}
]

The back may use **bold** and *italic*. A small comparison may be written as pipe-separated rows, one row per line."""

_MAX_INPUT_CHARS = 30000


def _call_llm(system_prompt: str, user_message: str, api_key: str, temperature: float = 0.3) -> str:
    """
    Invoke OpenAI Chat with the given messages.

    Raises:
        ValueError: If API key is missing, invalid, or quota insufficient.
    """
    if not (api_key and api_key.strip()):
        raise ValueError("OpenAI API key is not configured.")
    try:
        llm = ChatOpenAI(
            model=LLM_MODEL,
            api_key=api_key.strip(),
            temperature=temperature,
        )
        messages = [("system", system_prompt), ("human", user_message)]
        response = llm.invoke(messages)
        return response.content if response.content else ""
    except Exception as e:
        err_msg = str(e).lower()
        if "invalid" in err_msg or "authentication" in err_msg or "incorrect api key" in err_msg:
            raise ValueError("OpenAI API key is invalid.") from e
        if "insufficient_quota" in err_msg or "quota" in err_msg or "rate limit" in err_msg:
            raise ValueError("OpenAI quota exhausted or rate limited, try again later.") from e
        raise ValueError(f"Error calling the language model: {e!s}") from e


def _strip_fences(raw: str) -> str:
    """Remove markdown code fences and surrounding whitespace from LLM output."""
    text = (raw or "").strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```\s*$", "", text)
    return text.strip()


def _extract_json_array(raw: str) -> list[Any]:
    """Parse a JSON array from LLM output: raw, fence-stripped, then first [ to last ]. [] on failure."""
    if not raw:
        return []
    for candidate in (raw, _strip_fences(raw)):
        try:
            obj = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        return obj if isinstance(obj, list) else []
    match = re.search(r"\[[\s\S]*\]", raw)
    if match:
        try:
            obj = json.loads(match.group(0))
        except json.JSONDecodeError:
            return []
        return obj if isinstance(obj, list) else []
    return []


class LLMProcessor:
    """Generates summaries and flashcards from study text via OpenAI."""

    def invoke(self, system_prompt: str, user_message: str, api_key: str, temperature: float = 0.3) -> str:
        return _call_llm(system_prompt, user_message, api_key, temperature)

    def generate_summary(self, text: str, api_key: str) -> str:
        """
        Summarise study material into Markdown revision notes.

        Raises:
            ValueError: If API key is missing, invalid, or quota insufficient.
        """
        return _call_llm(SUMMARY_SYSTEM_PROMPT, text[:_MAX_INPUT_CHARS], api_key, temperature=0.3)

    def generate_flashcards(self, text: str, api_key: str) -> list[dict[str, str]]:
        """
        Extract flashcard pairs from study material.

        Returns:
            List of {"front": "...", "back": "..."}; [] if the model output
            cannot be parsed.
        """
        raw = _call_llm(FLASHCARDS_SYSTEM_PROMPT, text[:_MAX_INPUT_CHARS], api_key, temperature=0.3)
        out: list[dict[str, str]] = []
        for item in _extract_json_array(raw)[:12]:
            if not isinstance(item, dict):
                continue
            front = str(item.get("front") or "").strip()
            back = str(item.get("back") or "").strip()
            if front:
                out.append({"front": front, "back": back or "—"})
        return out
