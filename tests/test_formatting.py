"""Tests for text helpers."""

from services.formatting import dedupe, make_list, render_template, truncate_string, wrap_in_double_quotes


class TestMakeList:
    def test_three_items(self):
        assert make_list(["A", "B", "C"]) == "A, B, and C"

    def test_two_items_with_or(self):
        assert make_list(["A", "B"], "or") == "A or B"

    def test_no_conjunction(self):
        """Test an empty conjunction gives a plain comma list."""
        assert make_list(["A", "B", "C"], "") == "A, B, C"

    def test_blanks_dropped(self):
        assert make_list(["", "A", ""]) == "A"
        assert make_list([]) == ""


class TestRenderTemplate:
    def test_unknown_placeholder_kept(self):
        assert render_template("{a} {b}", {"a": "1"}) == "1 {b}"

    def test_values_not_reexpanded(self):
        """Test a value containing a placeholder is inserted literally."""
        assert render_template("{a}-{b}", {"a": "{b}", "b": "x"}) == "{b}-x"


class TestSmallHelpers:
    def test_wrap_in_double_quotes(self):
        assert wrap_in_double_quotes("New") == '"New"'
        assert wrap_in_double_quotes("") == '" "'

    def test_truncate(self):
        assert truncate_string("abcdef", 5) == "ab..."
        assert truncate_string("abc", 5) == "abc"

    def test_dedupe(self):
        assert dedupe(["b", "a", "", "b"]) == ["b", "a"]
