"""HTTP fetcher built on httpx.

HttpClientFetcher owns an httpx.Client, so cookies set by one page (or by
the prepare_client hook, e.g. a login) are sent with every later request.
"""

from __future__ import annotations

import logging
import ssl
from collections.abc import Callable
from typing import Any, BinaryIO

import httpx

from blockscrape.common.exceptions import (
    FetchError,
    FetcherPrepareError,
    RequestTimeoutError,
    UnexpectedStatusError,
)
from blockscrape.data_types import HttpMethod
from blockscrape.fetcher.base import FetchedDocument, method_name

logger = logging.getLogger(__name__)


class HttpClientFetcher:
    """Fetcher that uses an httpx.Client to fetch URLs.

    Example::

        def login(client: httpx.Client) -> None:
            client.post("https://example.com/login", data={...})

        fetcher = HttpClientFetcher(prepare_client=login, timeout=30.0)
    """

    def __init__(
        self,
        prepare_client: Callable[[httpx.Client], None] | None = None,
        prepare_request: Callable[[httpx.Request], None] | None = None,
        process_response: Callable[[httpx.Response], None] | None = None,
        ssl_context: ssl.SSLContext | None = None,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            prepare_client: Called once by prepare() with the client. Use it to
                log in or prime cookies. Raising aborts the scrape.
            prepare_request: Called with each request before it is sent, e.g.
                to set headers. Not applied to requests made by prepare_client.
            process_response: Called with each response before its body is
                handed to the scraper. Raising aborts the scrape.
            ssl_context: Optional SSL context for HTTPS connections.
            timeout: Request timeout in seconds. None means no timeout.
            headers: Default headers sent with every request.
        """
        self.prepare_client = prepare_client
        self.prepare_request = prepare_request
        self.process_response = process_response
        self.timeout = timeout

        client_kwargs: dict[str, Any] = {
            "timeout": timeout,
            "follow_redirects": True,
            "headers": headers,
        }
        if ssl_context:
            client_kwargs["verify"] = ssl_context
        self._client = httpx.Client(**client_kwargs)

    @property
    def client(self) -> httpx.Client:
        return self._client

    def prepare(self) -> None:
        if self.prepare_client is None:
            return
        try:
            self.prepare_client(self._client)
        except httpx.HTTPError as e:
            raise FetcherPrepareError(
                f"Client preparation failed: {e}"
            ) from e

    def fetch(self, method: str | HttpMethod, url: str) -> BinaryIO:
        """Fetch a URL and return its body as a binary stream.

        Redirects are followed; the returned FetchedDocument carries the URL
        of the final response.

        Raises:
            RequestTimeoutError: If the request times out.
            UnexpectedStatusError: If the server returns a 5xx status code.
            FetchError: For any other transport failure.
        """
        request = self._client.build_request(method_name(method), url)
        if self.prepare_request is not None:
            self.prepare_request(request)

        try:
            response = self._client.send(request)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(url, self.timeout) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Request failed: {e}", url) from e

        logger.debug(
            f"{request.method} {url} -> {response.status_code} "
            f"({len(response.content)} bytes)"
        )

        if response.status_code >= 500:
            raise UnexpectedStatusError(response.status_code, url)

        if self.process_response is not None:
            self.process_response(response)

        return FetchedDocument(response.content, str(response.url))

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        self._client.close()

    def __enter__(self) -> HttpClientFetcher:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
