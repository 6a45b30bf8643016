"""The pagination/extraction engine.

A Scraper walks a chain of pages starting from one URL. For every page it:

1. Fetches the document with the configured fetcher.
2. Parses it into a Selection.
3. Divides the page into blocks.
4. Runs every piece, in configuration order, against every block.
5. Asks the pagination rule for the next URL.

A scrape either completes and returns every page's results, or raises and
returns nothing. There are no retries and no partial results.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from blockscrape.common.exceptions import (
    ConfigurationError,
    FetchError,
    FetcherPrepareError,
    PieceExtractionError,
)
from blockscrape.common.lxml_selection import LxmlSelection
from blockscrape.common.selection import Selection
from blockscrape.common.selector_utils import is_self_selector
from blockscrape.data_types import (
    OMIT,
    BlockResult,
    HttpMethod,
    Piece,
    ScrapeConfig,
    ScrapeResults,
)
from blockscrape.extract import force_list
from blockscrape.fetcher.base import Fetcher
from blockscrape.fetcher.http_fetcher import HttpClientFetcher
from blockscrape.paginate import Paginator, as_paginator, divide_by_body

logger = logging.getLogger(__name__)

# Called after each page: (url, page index, the page's block results)
PageCallback = Callable[[str, int, Sequence[BlockResult]], None]


class Scraper:
    """Runs a ScrapeConfig against a start URL.

    Example::

        config = ScrapeConfig(
            pieces=[Piece("title", "h1", Text())],
            next_page=BySelector("a.next"),
        )
        with Scraper(config) as scraper:
            results = scraper.scrape("https://example.com/")
        print(results.to_json(indent=2))

    A Scraper owns its fetcher and is not safe to use from several threads.
    The fetcher stays open between scrapes, including the HttpClientFetcher
    created when the config names none, so one Scraper can run several
    scrapes on the same session. It is only closed by close() or by leaving
    the ``with`` block; a Scraper used without either leaks its connections.
    """

    def __init__(
        self,
        config: ScrapeConfig,
        on_page: PageCallback | None = None,
    ) -> None:
        """Create a Scraper.

        Args:
            config: The scrape configuration. ScrapeConfig validates itself
                on construction.
            on_page: Optional callback invoked after each page is committed.

        Raises:
            ConfigurationError: If config is not a ScrapeConfig.
        """
        if not isinstance(config, ScrapeConfig):
            raise ConfigurationError(
                f"Expected a ScrapeConfig, got {type(config).__name__}"
            )
        self.config = config
        self.on_page = on_page

        self.fetcher: Fetcher = config.fetcher or HttpClientFetcher()
        self.divide_page = config.divide_page or divide_by_body
        self.paginator: Paginator = as_paginator(config.next_page)

        if config.always_return_list:
            self.pieces: tuple[Piece, ...] = tuple(
                Piece(p.name, p.selector, force_list(p.extractor))
                for p in config.pieces
            )
        else:
            self.pieces = tuple(config.pieces)

        self._prepared = False

    def _prepare(self) -> None:
        if self._prepared:
            return
        try:
            self.fetcher.prepare()
        except FetchError:
            raise
        except Exception as e:
            raise FetcherPrepareError(
                f"Fetcher preparation failed: {e}"
            ) from e
        self._prepared = True

    def _fetch_page(self, url: str) -> Selection:
        stream = self.fetcher.fetch(HttpMethod.GET, url)
        try:
            content = stream.read()
        finally:
            stream.close()

        # Links on a redirected page are relative to where it was served from
        document_url = getattr(stream, "url", None) or url
        if document_url != url:
            logger.debug(f"{url} was served from {document_url}")
        return LxmlSelection.from_document(content, document_url)

    def _extract_block(
        self, block: Selection, block_index: int, url: str
    ) -> BlockResult:
        """Run every piece against one block.

        Raises:
            PieceExtractionError: If any extractor raises.
            SelectorError: If a piece's selector is invalid.
        """
        result: BlockResult = {}
        for piece in self.pieces:
            if is_self_selector(piece.selector):
                selection = block
            else:
                selection = block.find(piece.selector)

            try:
                value = piece.extractor.extract(selection)
            except Exception as e:
                logger.error(
                    f"Extractor for piece '{piece.name}' failed on block "
                    f"{block_index} of {url}: {e}",
                    extra={
                        "piece": piece.name,
                        "block_index": block_index,
                        "request_url": url,
                        "extractor": type(piece.extractor).__name__,
                    },
                )
                raise PieceExtractionError(
                    piece.name, block_index, url, str(e)
                ) from e

            if value is OMIT:
                continue
            result[piece.name] = value
        return result

    def scrape(self, url: str) -> ScrapeResults:
        """Scrape every page reachable from url through the pagination rule.

        Args:
            url: The start URL.

        Returns:
            ScrapeResults with one entry per visited page.

        Raises:
            ConfigurationError: If url is empty.
            FetchError: If a page cannot be fetched (raised unchanged).
            DocumentParseError: If a page cannot be parsed.
            PieceExtractionError: If an extractor fails on any block.
        """
        if not url:
            raise ConfigurationError("No URL provided")

        self._prepare()

        reset = getattr(self.paginator, "reset", None)
        if reset is not None:
            reset()

        urls: list[str] = []
        results: list[tuple[BlockResult, ...]] = []

        current: str | None = url
        while current:
            logger.info(f"Scraping page {len(urls) + 1}: {current}")
            page = self._fetch_page(current)
            urls.append(current)

            blocks = self.divide_page(page)
            page_results: list[BlockResult] = []
            for block_index, block in enumerate(blocks):
                block_result = self._extract_block(block, block_index, current)
                logger.debug(
                    f"Block {block_index} of {current}: "
                    f"{len(block_result)} piece(s)"
                )
                page_results.append(block_result)

            results.append(tuple(page_results))
            if self.on_page is not None:
                self.on_page(current, len(urls) - 1, page_results)

            current = self.paginator.next_page(current, page)

        logger.info(f"Scrape finished: {len(urls)} page(s) from {url}")
        return ScrapeResults(urls=tuple(urls), results=tuple(results))

    def close(self) -> None:
        """Close the fetcher."""
        self.fetcher.close()

    def __enter__(self) -> Scraper:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
