"""Tests for selector utility functions."""

from blockscrape.common.selector_utils import (
    is_self_selector,
    selector_type,
)


class TestSelectorType:
    """Tests for selector_type function."""

    def test_css_selectors(self):
        """Plain CSS selectors shall be classified as css."""
        assert selector_type("div.content") == "css"
        assert selector_type("#main-content") == "css"
        assert selector_type("table > tr:first-child") == "css"
        assert selector_type("a[href^='/']") == "css"
        assert selector_type("td.title > a") == "css"

    def test_absolute_xpath(self):
        """Expressions starting with / shall be classified as xpath."""
        assert selector_type("//div") == "xpath"
        assert selector_type("/html/body") == "xpath"

    def test_relative_xpath(self):
        """Relative paths shall be classified as xpath."""
        assert selector_type("./td[2]") == "xpath"
        assert selector_type("../tr") == "xpath"

    def test_parenthesized_xpath(self):
        """Parenthesized expressions shall be classified as xpath."""
        assert selector_type("(//tr)[1]") == "xpath"

    def test_surrounding_whitespace_ignored(self):
        """Leading whitespace shall not change the classification."""
        assert selector_type("  //div") == "xpath"


class TestIsSelfSelector:
    """Tests for is_self_selector function."""

    def test_dot_is_self(self):
        """A lone dot shall mean the block itself."""
        assert is_self_selector(".") is True

    def test_other_selectors_are_not_self(self):
        """Class selectors and relative XPath shall not mean the block itself."""
        assert is_self_selector(".item") is False
        assert is_self_selector("./td") is False
        assert is_self_selector("") is False
