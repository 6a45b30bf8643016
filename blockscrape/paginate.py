"""Pagination and page-division rules.

A Paginator decides which URL the Scraper visits after the current page. It
must be deterministic and derive page N+1 only from page N (its URL and
content); otherwise the scrape may never terminate. Returning an empty string
or None ends the scrape.

Example::

    config = ScrapeConfig(
        pieces=[...],
        divide_page=divide_by_selector("div.result"),
        next_page=LimitPages(5, BySelector("a.next", "href")),
    )
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

from blockscrape.common.selection import Selection
from blockscrape.data_types import DividePageFunc, NextPageRule

logger = logging.getLogger(__name__)


@runtime_checkable
class Paginator(Protocol):
    """Computes the next page's URL from the current URL and page."""

    def next_page(self, url: str, page: Selection) -> str | None: ...


@dataclass(frozen=True)
class FunctionPaginator:
    """Adapts a plain ``page -> url`` function to the Paginator protocol."""

    func: Callable[[Selection], str | None]

    def next_page(self, url: str, page: Selection) -> str | None:
        return self.func(page)


@dataclass(frozen=True)
class NoPagination:
    """Never paginates: only the start URL is scraped."""

    def next_page(self, url: str, page: Selection) -> str | None:
        return ""


def as_paginator(rule: NextPageRule | None) -> Paginator:
    """Normalize a next-page rule into a Paginator.

    Args:
        rule: A Paginator, a function taking the page selection, or None.

    Returns:
        A Paginator. None becomes NoPagination.
    """
    if rule is None:
        return NoPagination()
    if isinstance(rule, Paginator):
        return rule
    return FunctionPaginator(rule)


@dataclass(frozen=True)
class BySelector:
    """Follows an attribute of the first element matching a selector.

    The value is resolved against the URL the page was served from (after
    any redirects), falling back to the current URL, so relative links work.

    Attributes:
        selector: CSS or XPath selector of the "next" link.
        attr: Attribute holding the next URL.
    """

    selector: str
    attr: str = "href"

    def next_page(self, url: str, page: Selection) -> str | None:
        value = page.find(self.selector).attr(self.attr)
        if not value:
            return ""
        return urljoin(page.url or url, value)


@dataclass(frozen=True)
class ByQueryParam:
    """Increments an integer query parameter of the current URL.

    ``http://example.com/list?page=1`` becomes ``...?page=2``. Pagination
    stops when the parameter is missing or not an integer.

    Attributes:
        param: Name of the query parameter.
    """

    param: str

    def next_page(self, url: str, page: Selection) -> str | None:
        parsed = urlparse(url)
        query = parse_qsl(parsed.query, keep_blank_values=True)

        updated: list[tuple[str, str]] = []
        found = False
        for key, value in query:
            if key == self.param and not found:
                try:
                    number = int(value)
                except ValueError:
                    return ""
                updated.append((key, str(number + 1)))
                found = True
            else:
                updated.append((key, value))

        if not found:
            return ""
        return urlunparse(parsed._replace(query=urlencode(updated)))


class LimitPages:
    """Stops pagination after a fixed number of further pages.

    ``LimitPages(2, rule)`` scrapes the start page plus at most two more.
    The Scraper calls reset() at the start of every scrape.
    """

    def __init__(self, limit: int, paginator: NextPageRule) -> None:
        self.limit = limit
        self.paginator = as_paginator(paginator)
        self._count = 0

    def __repr__(self) -> str:
        return f"LimitPages({self.limit}, {self.paginator!r})"

    def reset(self) -> None:
        self._count = 0
        reset = getattr(self.paginator, "reset", None)
        if reset is not None:
            reset()

    def next_page(self, url: str, page: Selection) -> str | None:
        if self._count >= self.limit:
            return ""
        next_url = self.paginator.next_page(url, page)
        if next_url:
            self._count += 1
        return next_url


class WithDelay:
    """Waits before asking the wrapped paginator for the next page."""

    def __init__(self, delay: float, paginator: NextPageRule) -> None:
        self.delay = delay
        self.paginator = as_paginator(paginator)

    def __repr__(self) -> str:
        return f"WithDelay({self.delay}, {self.paginator!r})"

    def reset(self) -> None:
        reset = getattr(self.paginator, "reset", None)
        if reset is not None:
            reset()

    def next_page(self, url: str, page: Selection) -> str | None:
        logger.debug(f"Waiting {self.delay}s before next page of {url}")
        time.sleep(self.delay)
        return self.paginator.next_page(url, page)


def divide_by_selector(selector: str) -> DividePageFunc:
    """Return a rule that treats each element matching a selector as a block.

    Args:
        selector: CSS or XPath selector for the block elements.
    """

    def divide(page: Selection) -> list[Selection]:
        return list(page.find(selector))

    return divide


# Default division rule: the whole <body> is a single block.
divide_by_body = divide_by_selector("body")
