"""Test utilities for scraper tests.

This module provides an in-memory fetcher and callback helpers so engine
tests can run without a network.
"""

from __future__ import annotations

import io
from collections.abc import Callable, Sequence
from typing import Any, BinaryIO

from blockscrape.common.exceptions import FetchError
from blockscrape.data_types import BlockResult, HttpMethod
from blockscrape.fetcher.base import method_name


class StaticFetcher:
    """Fetcher serving documents from a dict of URL -> HTML.

    Records every call so tests can assert on what was fetched, prepared and
    closed.

    Example:
        fetcher = StaticFetcher({"http://x/1": "<html>...</html>"})
        scraper = Scraper(ScrapeConfig(pieces=..., fetcher=fetcher))
    """

    def __init__(
        self,
        pages: dict[str, str],
        prepare_error: Exception | None = None,
    ) -> None:
        self.pages = pages
        self.prepare_error = prepare_error
        self.fetched: list[tuple[str, str]] = []
        self.prepare_calls = 0
        self.closed = False

    def prepare(self) -> None:
        self.prepare_calls += 1
        if self.prepare_error is not None:
            raise self.prepare_error

    def fetch(self, method: str | HttpMethod, url: str) -> BinaryIO:
        self.fetched.append((method_name(method), url))
        if url not in self.pages:
            raise FetchError("No such page", url)
        return io.BytesIO(self.pages[url].encode("utf-8"))

    def close(self) -> None:
        self.closed = True


def collect_pages() -> tuple[
    Callable[[str, int, Sequence[BlockResult]], None], list[Any]
]:
    """Create an on_page callback that collects committed pages in a list.

    Returns:
        A tuple of (callback_function, pages_list). Each entry is a
        (url, page_index, blocks) tuple.

    Example:
        callback, pages = collect_pages()
        scraper = Scraper(config, on_page=callback)
        scraper.scrape(url)
        assert len(pages) == 3
    """
    pages: list[Any] = []

    def callback(url: str, index: int, blocks: Sequence[BlockResult]) -> None:
        pages.append((url, index, list(blocks)))

    return callback, pages


def chained_pages(count: int, base: str = "http://example.com/page") -> dict[
    str, str
]:
    """Build a chain of pages where page N links to page N+1.

    Each page holds two ``div.item`` blocks.

    Returns:
        Mapping of URL to HTML for pages 1..count.
    """
    pages = {}
    for n in range(1, count + 1):
        next_link = (
            f'<a class="next" href="{base}{n + 1}">next</a>'
            if n < count
            else ""
        )
        pages[f"{base}{n}"] = (
            f"<html><body>"
            f'<div class="item"><span class="name">p{n}-a</span></div>'
            f'<div class="item"><span class="name">p{n}-b</span></div>'
            f"{next_link}"
            f"</body></html>"
        )
    return pages
