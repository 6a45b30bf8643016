"""Tests for pagination and page-division rules."""

import pytest

from blockscrape.common.lxml_selection import LxmlSelection
from blockscrape.paginate import (
    ByQueryParam,
    BySelector,
    FunctionPaginator,
    LimitPages,
    NoPagination,
    Paginator,
    WithDelay,
    as_paginator,
    divide_by_body,
    divide_by_selector,
)

NO_PAGE = LxmlSelection()


def sel_from(content: str, url: str = "") -> LxmlSelection:
    return LxmlSelection.from_document(content, url)


def collect(url: str, paginator: Paginator) -> list[str]:
    """Follow a paginator from url until it stops, without any page content."""
    results = []
    while True:
        next_url = paginator.next_page(url, NO_PAGE)
        if not next_url:
            return results
        results.append(next_url)
        url = next_url


class TestBySelector:
    def test_reads_attribute(self):
        """BySelector shall return the attribute of the first match."""
        page = sel_from('<a href="http://www.google.com">foo</a>')
        assert BySelector("a", "href").next_page("", page) == "http://www.google.com"

    def test_missing_element(self):
        """A selector matching nothing shall stop pagination."""
        page = sel_from('<a href="http://www.google.com">foo</a>')
        assert BySelector("div", "xxx").next_page("", page) == ""

    def test_missing_attribute(self):
        """A match without the attribute shall stop pagination."""
        page = sel_from("<a>foo</a>")
        assert BySelector("a").next_page("http://example.com/", page) == ""

    def test_relative_link_resolved(self):
        """Relative links shall be resolved against the current URL."""
        page = sel_from('<a class="next" href="?page=3">next</a>')
        assert (
            BySelector("a.next").next_page("http://example.com/list?page=2", page)
            == "http://example.com/list?page=3"
        )

    def test_relative_link_resolved_against_served_url(self):
        """A page served from another URL shall resolve links against it."""
        page = sel_from(
            '<a class="next" href="page2">next</a>',
            "http://example.com/new/page1",
        )
        assert (
            BySelector("a.next").next_page("http://example.com/old", page)
            == "http://example.com/new/page2"
        )

    def test_first_match_wins(self):
        """Only the first matching element shall be consulted."""
        page = sel_from('<a href="/one">1</a><a href="/two">2</a>')
        assert (
            BySelector("a").next_page("http://example.com/", page)
            == "http://example.com/one"
        )


class TestByQueryParam:
    def test_increments(self):
        """The named parameter shall be incremented."""
        assert (
            ByQueryParam("foo").next_page("http://www.google.com?foo=1", NO_PAGE)
            == "http://www.google.com?foo=2"
        )

    def test_missing_parameter(self):
        """A missing parameter shall stop pagination."""
        assert ByQueryParam("bad").next_page("http://www.google.com", NO_PAGE) == ""

    def test_non_integer_parameter(self):
        """A non-integer parameter shall stop pagination."""
        assert (
            ByQueryParam("bad").next_page(
                "http://www.google.com?bad=asdf", NO_PAGE
            )
            == ""
        )

    def test_other_parameters_preserved(self):
        """Other query parameters shall be kept in order."""
        assert (
            ByQueryParam("page").next_page(
                "http://example.com/search?q=lamp&page=9&sort=asc", NO_PAGE
            )
            == "http://example.com/search?q=lamp&page=10&sort=asc"
        )


class TestLimitPages:
    @pytest.mark.parametrize(
        "limit,expected",
        [
            (0, []),
            (1, ["http://www.google.com?foo=2"]),
            (
                2,
                [
                    "http://www.google.com?foo=2",
                    "http://www.google.com?foo=3",
                ],
            ),
        ],
    )
    def test_limits(self, limit, expected):
        """LimitPages shall allow at most limit further pages."""
        paginator = LimitPages(limit, ByQueryParam("foo"))
        assert collect("http://www.google.com?foo=1", paginator) == expected

    def test_reset_restarts_count(self):
        """reset() shall allow the paginator to be reused for a new scrape."""
        paginator = LimitPages(1, ByQueryParam("foo"))
        assert collect("http://x.com?foo=1", paginator) == ["http://x.com?foo=2"]
        assert collect("http://x.com?foo=1", paginator) == []
        paginator.reset()
        assert collect("http://x.com?foo=1", paginator) == ["http://x.com?foo=2"]

    def test_reset_propagates(self):
        """reset() shall reset wrapped paginators too."""
        inner = LimitPages(1, ByQueryParam("foo"))
        outer = LimitPages(5, inner)
        assert collect("http://x.com?foo=1", outer) == ["http://x.com?foo=2"]
        outer.reset()
        assert collect("http://x.com?foo=1", outer) == ["http://x.com?foo=2"]

    def test_accepts_plain_function(self):
        """A plain page function shall be accepted as the wrapped rule."""
        paginator = LimitPages(1, lambda page: "http://example.com/next")
        assert collect("http://example.com/", paginator) == [
            "http://example.com/next"
        ]


class TestWithDelay:
    def test_sleeps_then_delegates(self, monkeypatch):
        """WithDelay shall sleep for its delay before asking the wrapped rule."""
        sleeps: list[float] = []
        monkeypatch.setattr("blockscrape.paginate.time.sleep", sleeps.append)

        paginator = WithDelay(0.5, ByQueryParam("p"))
        assert paginator.next_page("http://x.com?p=1", NO_PAGE) == "http://x.com?p=2"
        assert sleeps == [0.5]

    def test_reset_propagates(self, monkeypatch):
        """reset() shall reach a wrapped LimitPages."""
        monkeypatch.setattr("blockscrape.paginate.time.sleep", lambda s: None)
        paginator = WithDelay(0, LimitPages(1, ByQueryParam("p")))
        assert collect("http://x.com?p=1", paginator) == ["http://x.com?p=2"]
        paginator.reset()
        assert collect("http://x.com?p=1", paginator) == ["http://x.com?p=2"]


class TestAsPaginator:
    def test_none_never_paginates(self):
        """None shall become a paginator that always stops."""
        paginator = as_paginator(None)
        assert isinstance(paginator, NoPagination)
        assert paginator.next_page("http://example.com", NO_PAGE) == ""

    def test_paginator_passthrough(self):
        """An existing Paginator shall be returned unchanged."""
        rule = BySelector("a")
        assert as_paginator(rule) is rule

    def test_function_adapted(self):
        """A plain function shall be called with the page only."""
        seen = []

        def next_page(page):
            seen.append(page)
            return "http://example.com/2"

        paginator = as_paginator(next_page)
        assert isinstance(paginator, FunctionPaginator)
        assert paginator.next_page("http://example.com/1", NO_PAGE) == (
            "http://example.com/2"
        )
        assert seen == [NO_PAGE]


class TestDividePage:
    def test_divide_by_selector(self):
        """Each matching element shall become its own block."""
        page = sel_from(
            "<ul><li>a</li><li>b</li><li>c</li></ul><p>not a block</p>"
        )
        blocks = divide_by_selector("li")(page)
        assert [b.text() for b in blocks] == ["a", "b", "c"]
        assert all(len(b) == 1 for b in blocks)

    def test_no_matches(self):
        """A selector matching nothing shall give no blocks."""
        page = sel_from("<p>x</p>")
        assert divide_by_selector("li")(page) == []

    def test_divide_by_body(self):
        """The default rule shall yield exactly the body element."""
        page = sel_from("<html><body><p>x</p></body></html>")
        blocks = divide_by_body(page)
        assert len(blocks) == 1
        assert blocks[0].nodes[0].tag == "body"
