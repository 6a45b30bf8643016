"""Fetcher protocol.

A fetcher retrieves remote documents for the Scraper. The Scraper calls
prepare() once before its first fetch, fetch() for every page, and close()
when it is done.
"""

from __future__ import annotations

import io
from typing import BinaryIO, Protocol

from blockscrape.data_types import HttpMethod


class Fetcher(Protocol):
    """Protocol for things that can fetch remote URLs."""

    def prepare(self) -> None:
        """One-time setup before the first fetch (log in, prime cookies).

        Raises:
            Exception: Any error fails the scrape.
        """
        ...

    def fetch(self, method: str | HttpMethod, url: str) -> BinaryIO:
        """Retrieve a document.

        Args:
            method: HTTP method, e.g. "GET".
            url: Absolute URL to fetch.

        Returns:
            Binary stream of the document's content. The caller closes it. A
            stream with a ``url`` attribute (such as FetchedDocument) tells
            the Scraper where the document was finally served from.

        Raises:
            FetchError: If the document cannot be retrieved.
        """
        ...

    def close(self) -> None:
        """Release resources. Best effort; must not raise."""
        ...


def method_name(method: str | HttpMethod) -> str:
    """Normalize a method given as string or HttpMethod to upper case."""
    if isinstance(method, HttpMethod):
        return method.value
    return method.upper()


class FetchedDocument(io.BytesIO):
    """An in-memory document body that remembers its final URL.

    Fetchers that follow redirects return one of these, so relative links on
    the page resolve against the URL the document was actually served from.

    Attributes:
        url: The URL the document was served from.
    """

    def __init__(self, content: bytes, url: str) -> None:
        super().__init__(content)
        self.url = url
