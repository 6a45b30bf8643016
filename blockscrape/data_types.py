"""Data types for the scrape engine.

This module defines the configuration and result types exchanged between
callers and the Scraper. These types are designed to be:

1. Immutable - Frozen dataclasses, validated once at construction
2. Serializable - Results are plain lists, dicts, strings and integers
3. Protocol-based - Extractors, fetchers and rules are structural interfaces
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, Union

from blockscrape.common.exceptions import ConfigurationError

if TYPE_CHECKING:
    from blockscrape.common.selection import Selection
    from blockscrape.fetcher.base import Fetcher
    from blockscrape.paginate import Paginator


class HttpMethod(Enum):
    """HTTP methods a fetcher may be asked to perform."""

    GET = "GET"
    OPTIONS = "OPTIONS"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"


class Omitted(Enum):
    """Type of the OMIT signal returned by extractors."""

    OMIT = "omit"

    def __repr__(self) -> str:
        return "OMIT"


# Returned by an extractor to leave its piece out of a block's mapping.
# Distinct from None, "", 0 and [] which are all stored as values.
OMIT = Omitted.OMIT


class PieceExtractor(Protocol):
    """Something that turns a Selection into an emittable value.

    Implementations must be side-effect free and must not mutate the
    selection. The returned value should be JSON-encodable; returning OMIT
    leaves the piece out of the block's results. Raising aborts the scrape.
    """

    def extract(self, selection: Selection) -> Any: ...


# A page-division rule: full-page selection in, ordered blocks out.
DividePageFunc = Callable[["Selection"], Sequence["Selection"]]

# A pagination rule: either a Paginator or a plain function of the page.
NextPageRule = Union["Paginator", Callable[["Selection"], "str | None"]]


@dataclass(frozen=True)
class Piece:
    """A named chunk of data extracted from every block of every page.

    Attributes:
        name: Key under which the value is stored. Must be unique in a config.
        selector: CSS or XPath selector narrowing the block, or "." to hand
            the extractor the block itself.
        extractor: The PieceExtractor that produces the value.
    """

    name: str
    selector: str
    extractor: PieceExtractor


@dataclass(frozen=True)
class ScrapeConfig:
    """Main configuration for a scrape. Pass this to Scraper().

    The config is validated when it is constructed; an invalid config raises
    ConfigurationError and never reaches a Scraper.

    Attributes:
        pieces: Data extracted from each block, in execution order.
        fetcher: Fetcher used to retrieve pages. Defaults to an
            HttpClientFetcher when None.
        next_page: Controls pagination. Called with the current URL and page
            (or just the page, for plain functions) and returns the next URL,
            or an empty string / None when there are no more pages. When None,
            only the start URL is scraped.
        divide_page: Splits a page into blocks. When None, the page is a
            single block containing the <body> element.
        always_return_list: When True, every extractor that would collapse a
            single result into a bare string returns a list instead.
    """

    pieces: Sequence[Piece]
    fetcher: Fetcher | None = None
    next_page: NextPageRule | None = None
    divide_page: DividePageFunc | None = None
    always_return_list: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "pieces", tuple(self.pieces))
        self._validate()

    def _validate(self) -> None:
        if not self.pieces:
            raise ConfigurationError("No pieces in the config")

        seen_names: set[str] = set()
        for i, piece in enumerate(self.pieces):
            if not piece.name:
                raise ConfigurationError(
                    f"No name provided for piece {i}",
                    context={"piece_index": i},
                )
            if piece.name in seen_names:
                raise ConfigurationError(
                    f"Piece '{piece.name}' has a duplicate name",
                    context={"piece_index": i, "piece": piece.name},
                )
            seen_names.add(piece.name)

            if not piece.selector:
                raise ConfigurationError(
                    f"No selector provided for piece {i}",
                    context={"piece_index": i, "piece": piece.name},
                )
            if piece.extractor is None:
                raise ConfigurationError(
                    f"No extractor provided for piece {i}",
                    context={"piece_index": i, "piece": piece.name},
                )


# Block-level result: piece name -> extracted value.
BlockResult = dict[str, Any]


@dataclass(frozen=True)
class ScrapeResults:
    """Results of a completed scrape.

    Attributes:
        urls: Every URL visited, in order. Contains at least the start URL.
        results: One entry per page, each holding one mapping per block from
            piece name to extracted value. Omitted pieces have no key.
    """

    urls: tuple[str, ...] = ()
    results: tuple[tuple[BlockResult, ...], ...] = field(default=())

    def first(self) -> BlockResult | None:
        """Return the results of the first block on the first page.

        Returns:
            The first block's mapping, or None if the first page had no blocks.
        """
        if not self.results or not self.results[0]:
            return None
        return self.results[0][0]

    def to_dict(self) -> dict[str, Any]:
        """Encode the results as nested lists and dicts."""
        return {
            "urls": list(self.urls),
            "results": [
                [dict(block) for block in page] for page in self.results
            ],
        }

    def to_json(self, indent: int | None = None) -> str:
        """Encode the results as a JSON document."""
        return json.dumps(self.to_dict(), indent=indent)
