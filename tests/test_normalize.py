"""
Tests for text and address normalization.
"""

import pytest

from assetmatch.normalize import (
    expand_abbreviations,
    normalize_address,
    normalize_reference,
    normalize_text,
)


class TestNormalizeText:
    """Test the canonical comparison form."""

    def test_strips_diacritics_and_punctuation(self):
        assert normalize_text("  Café  Olé, Apts. ") == "cafe ole apts"

    def test_removes_quote_marks(self):
        assert normalize_text('O’Brien\'s "Place"') == "obriens place"

    def test_collapses_whitespace(self):
        assert normalize_text("Sunrise\t\n  Villas ") == "sunrise villas"

    def test_empty_and_none(self):
        assert normalize_text("") == ""
        assert normalize_text(None) == ""
        assert normalize_text("   ") == ""

    @pytest.mark.parametrize(
        "text",
        [
            "Greenwood Apartments",
            "  Crème   Brûlée Lofts ",
            "İstanbul Towers",
            "㎒ Tower",
            "ﬁve Points",
            "N.E. 5th St., Apt #4",
            "“Quoted” ‘Name’",
            "",
        ],
    )
    def test_idempotent(self, text):
        """Normalizing twice gives the same result as once."""
        once = normalize_text(text)
        assert normalize_text(once) == once


class TestNormalizeAddress:
    """Test street-abbreviation expansion."""

    def test_expands_single_words(self):
        assert normalize_address("100 N. Main St.") == "100 north main street"

    def test_pairs_take_precedence(self):
        assert normalize_address("200 S W Oak Ave") == "200 southwest oak avenue"

    def test_pair_tokens_are_consumed(self):
        """'e' inside a matched pair must not also expand to 'east'."""
        assert normalize_address("5 N E 1st St") == "5 northeast 1st street"

    def test_unknown_words_kept(self):
        assert expand_abbreviations("1701 wynkoop") == "1701 wynkoop"

    def test_empty(self):
        assert normalize_address(None) == ""


class TestNormalizeReference:
    """Reference codes compare trimmed and case-insensitively."""

    def test_trim_and_lower(self):
        assert normalize_reference("  AB-12 ") == "ab-12"

    def test_punctuation_preserved(self):
        assert normalize_reference("99-88-77") == "99-88-77"

    def test_numbers_and_none(self):
        assert normalize_reference(12345) == "12345"
        assert normalize_reference(None) == ""
