"""Tests for length-preserving normalization."""

from python_docx_reconcile.normalization import (
    collapse_whitespace,
    fold_case,
    normalize_special_chars,
    search_form,
    squash_whitespace,
)


class TestSearchForm:
    """Tests for the same-length search form."""

    def test_special_chars(self):
        """Typographic characters map to ASCII one for one."""
        text = "“Quoted” – it’s here"
        normalized = normalize_special_chars(text)
        assert normalized == "\"Quoted\" - it's here"
        assert len(normalized) == len(text)

    def test_fold_case_keeps_length(self):
        """Characters whose lower case expands are kept."""
        assert fold_case("İstanbul ÉTÉ") == "İstanbul été"
        assert len(fold_case("İİ")) == 2

    def test_search_form(self):
        """Search form combines both normalizations."""
        assert search_form("It’s ÉTÉ") == "it's été"


class TestWhitespace:
    """Tests for whitespace helpers."""

    def test_collapse_with_offsets(self):
        """Collapsed text maps back to the original offsets."""
        view, offsets = collapse_whitespace("a \n b")
        assert view == "a b"
        assert offsets == [0, 1, 4]

    def test_squash_whitespace(self):
        """All whitespace collapses to single spaces."""
        assert squash_whitespace(" a\n\n b\t c ") == "a b c"
