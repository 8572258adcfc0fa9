"""Unit tests for RFP text normalization."""

from __future__ import annotations

import pytest

from rfpsearch.utils.errors import InvalidInputError
from rfpsearch.utils.text_normalizer import normalize_text, strip_boilerplate_lines


# ======================================================================
# Character-level cleanup
# ======================================================================


class TestCharacterCleanup:
    def test_strips_control_characters(self) -> None:
        assert normalize_text("a\x00b\x07c\x1fd\x7fe") == "abcde"

    def test_keeps_tabs_as_single_space(self) -> None:
        assert normalize_text("a\tb") == "a b"

    def test_curly_quotes_become_straight(self) -> None:
        assert normalize_text("‘hi’ “there”") == "'hi' \"there\""

    def test_dashes_become_hyphens(self) -> None:
        assert normalize_text("2019–2024 — scope") == "2019-2024 - scope"

    def test_collapses_spaces_and_tabs(self) -> None:
        assert normalize_text("a    b \t\t c") == "a b c"


# ======================================================================
# Boilerplate lines
# ======================================================================


class TestBoilerplateLines:
    @pytest.mark.parametrize(
        "line",
        [
            "Page 3 of 10",
            "Page 4",
            "  Page 12  ",
            "7 of 9",
            "CONFIDENTIAL",
            "Confidential - do not distribute",
            "© 2024 Acme Corp",
            "Copyright 2024 Acme Corp. All rights reserved.",
        ],
    )
    def test_drops_boilerplate_line(self, line: str) -> None:
        assert normalize_text(f"Intro\n{line}\nBody") == "Intro\n\nBody"

    def test_keeps_lines_that_only_mention_pages(self) -> None:
        text = "See Page 3 of the proposal\nBody"
        assert normalize_text(text) == text

    def test_boilerplate_in_cr_terminated_text(self) -> None:
        assert normalize_text("Intro\rPage 2 of 5\rBody") == "Intro\n\nBody"

    def test_strip_boilerplate_keeps_line_terminators(self) -> None:
        assert strip_boilerplate_lines("a\nPage 1\nb") == "a\n\nb"


# ======================================================================
# Line and whitespace structure
# ======================================================================


class TestLineStructure:
    def test_normalizes_line_endings(self) -> None:
        assert normalize_text("a\r\nb\rc") == "a\nb\nc"

    def test_collapses_three_or_more_newlines(self) -> None:
        assert normalize_text("a\n\n\n\n\nb") == "a\n\nb"

    def test_empties_whitespace_only_lines(self) -> None:
        assert normalize_text("a\n   \nb") == "a\n\nb"

    def test_whitespace_lines_between_breaks_collapse(self) -> None:
        assert normalize_text("a\n\n  \n\nb") == "a\n\nb"

    def test_trims_ends(self) -> None:
        assert normalize_text("\n\n  body text  \n\n") == "body text"


# ======================================================================
# Contract and fallbacks
# ======================================================================


class TestContract:
    def test_rejects_non_string(self) -> None:
        with pytest.raises(InvalidInputError):
            normalize_text(None)  # type: ignore[arg-type]

    def test_rejects_bytes(self) -> None:
        with pytest.raises(InvalidInputError):
            normalize_text(b"bytes")  # type: ignore[arg-type]

    def test_falls_back_to_trimmed_original_when_emptied(self) -> None:
        assert normalize_text("  Page 1 of 2  ") == "Page 1 of 2"

    def test_blank_input_stays_empty(self) -> None:
        assert normalize_text("   \n\t ") == ""

    @pytest.mark.parametrize(
        "raw",
        [
            "1.1 Scope\r\n\r\n\r\nThe vendor shall—at minimum—provide support.\n",
            "Question: “Uptime?”\n\n\n   \nAnswer: 99.9%\nPage 2 of 3\n",
            "\tIndented   text\n \nwith  gaps\n\n\n\nend",
        ],
    )
    def test_idempotent(self, raw: str) -> None:
        once = normalize_text(raw)
        assert normalize_text(once) == once
