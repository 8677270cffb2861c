"""Tests for services/content_parser — tagged payloads and array extraction."""

from __future__ import annotations

import pytest

from services.content_parser import (
    ContentParseError,
    ParsedContent,
    RawContent,
    extract_array,
    normalize_flashcards,
    normalize_questions,
    wrap,
)


# ─── wrap ─────────────────────────────────────────────────────────────────────

class TestWrap:
    def test_list_becomes_parsed(self):
        assert wrap([1, 2]) == ParsedContent(items=[1, 2])

    def test_string_becomes_raw(self):
        assert wrap("text") == RawContent(text="text")

    def test_already_tagged_passes_through(self):
        tagged = RawContent(text="x")
        assert wrap(tagged) is tagged

    def test_none_raises(self):
        with pytest.raises(ContentParseError):
            wrap(None)

    def test_unsupported_type_raises(self):
        with pytest.raises(ContentParseError, match="Unsupported"):
            wrap(42)


# ─── extract_array ────────────────────────────────────────────────────────────

class TestExtractArray:
    def test_array_embedded_in_prose(self):
        text = 'Here you go:\n[{"front": "A", "back": "B"}]\nEnjoy!'
        assert extract_array(text) == [{"front": "A", "back": "B"}]

    def test_greedy_match_spans_first_to_last_bracket(self):
        text = 'x [1, [2, 3]] y'
        assert extract_array(text) == [1, [2, 3]]

    def test_no_brackets_raises(self):
        with pytest.raises(ContentParseError, match="No JSON array"):
            extract_array("nothing here")

    def test_two_separate_arrays_are_malformed(self):
        # Greedy span covers "[1] and [2]", which is not valid JSON.
        with pytest.raises(ContentParseError, match="Malformed"):
            extract_array("[1] and [2]")


# ─── normalize_questions ──────────────────────────────────────────────────────

class TestNormalizeQuestions:
    def test_structured_list(self):
        raw = [{"question": "Q?", "options": ["a", "b"], "correct_answer": 1}]
        assert normalize_questions(raw) == [{"question": "Q?", "options": ["a", "b"], "correct_answer": 1}]

    def test_string_payload(self):
        raw = 'Quiz:\n[{"question": "Q?", "options": ["a", "b"], "correct_answer": "0"}]'
        out = normalize_questions(raw)
        assert out[0]["correct_answer"] == 0

    def test_correct_option_index_alias(self):
        out = normalize_questions([{"question": "Q", "options": ["a", "b"], "correctOptionIndex": 1}])
        assert out[0]["correct_answer"] == 1

    def test_empty_list_raises(self):
        with pytest.raises(ContentParseError, match="no questions"):
            normalize_questions([])

    def test_non_numeric_answer_raises(self):
        with pytest.raises(ContentParseError, match="invalid answer"):
            normalize_questions([{"question": "Q", "options": ["a"], "correct_answer": "B"}])


# ─── normalize_flashcards ─────────────────────────────────────────────────────

class TestNormalizeFlashcards:
    def test_structured_list(self):
        assert normalize_flashcards([{"front": "F", "back": "B"}]) == [{"front": "F", "back": "B"}]

    def test_string_payload(self):
        cards = normalize_flashcards('[{"front": "F", "back": "B"}, {"front": "G", "back": "C"}]')
        assert [c["front"] for c in cards] == ["F", "G"]

    def test_non_dict_items_dropped(self):
        assert normalize_flashcards(["junk", {"front": "F", "back": "B"}]) == [{"front": "F", "back": "B"}]

    def test_empty_raises(self):
        with pytest.raises(ContentParseError, match="No flashcards"):
            normalize_flashcards([])

    def test_unparseable_string_raises(self):
        with pytest.raises(ContentParseError):
            normalize_flashcards("no cards here")
