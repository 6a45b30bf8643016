"""Exception types for scrape errors.

Every error raised by blockscrape derives from ScrapeException and carries the
URL being processed plus a context dict, so a failed scrape can be traced back
to the page, block, and piece that caused it.

The hierarchy follows the four failure classes of a scrape:

- ConfigurationError: a bad config, detected before any network activity or
  the first time a malformed extractor runs.
- FetchError: the transport (HTTP client or browser subprocess) failed.
- DocumentParseError: fetched content could not be parsed.
- PieceExtractionError: an extractor failed against a particular block.

No layer retries. Errors propagate to the caller of Scraper.scrape().
"""

from typing import Any


class ScrapeException(Exception):
    """Base class for all scrape errors.

    Args:
        message: Human-readable description of the failure.
        request_url: The URL being processed when the failure happened.
        context: Optional dict of additional context (selector, piece, etc).
    """

    def __init__(
        self,
        message: str,
        request_url: str = "",
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.request_url = request_url
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context.

        Returns:
            Formatted error message string.
        """
        parts = [self.message]
        if self.request_url:
            parts.append(f"URL: {self.request_url}")

        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")

        return "\n".join(parts)


# =============================================================================
# Configuration errors
# =============================================================================


class ConfigurationError(ScrapeException):
    """Raised when a scrape config or one of its parts is invalid."""


class ExtractorConfigurationError(ConfigurationError):
    """Raised when a piece extractor is missing required configuration.

    Attributes:
        extractor: Name of the extractor class that is misconfigured.
    """

    def __init__(self, extractor: str, message: str) -> None:
        self.extractor = extractor
        super().__init__(
            f"{extractor}: {message}", context={"extractor": extractor}
        )


class NoBrowserEngineError(ConfigurationError):
    """Raised when no headless browser binary can be located.

    Pass an explicit path to QuiescenceFetcher, or set the
    BLOCKSCRAPE_BROWSER_ENGINE environment variable.
    """

    def __init__(self, searched: list[str]) -> None:
        self.searched = searched
        super().__init__(
            "No browser engine was found",
            context={"searched": ", ".join(searched)},
        )


class SelectorError(ScrapeException):
    """Raised when a CSS or XPath selector cannot be compiled.

    Attributes:
        selector: The selector string.
        selector_type: "css" or "xpath".
    """

    def __init__(
        self, selector: str, selector_type: str, request_url: str = ""
    ) -> None:
        self.selector = selector
        self.selector_type = selector_type
        super().__init__(
            f"Invalid {selector_type} selector: {selector!r}",
            request_url,
            {"selector": selector, "selector_type": selector_type},
        )


# =============================================================================
# Transport errors
# =============================================================================


class FetchError(ScrapeException):
    """Base class for failures while fetching a document."""


class InvalidMethodError(FetchError):
    """Raised when a fetcher is asked for a method it cannot perform."""

    def __init__(self, method: str, url: str, allowed: list[str]) -> None:
        self.method = method
        self.allowed = allowed
        super().__init__(
            f"Invalid method {method!r}",
            url,
            {"allowed": ", ".join(allowed)},
        )


class FetcherPrepareError(FetchError):
    """Raised when a fetcher's one-time preparation hook fails."""


class RequestTimeoutError(FetchError):
    """Raised when an HTTP request times out.

    Attributes:
        timeout_seconds: The configured timeout, if any.
    """

    def __init__(self, url: str, timeout_seconds: float | None) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Request timed out after {timeout_seconds}s", url
        )


class UnexpectedStatusError(FetchError):
    """Raised when the server answers with a 5xx status code.

    Attributes:
        status_code: The HTTP status code received.
    """

    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        super().__init__(
            f"HTTP {status_code} from server",
            url,
            {"status_code": status_code},
        )


class RenderError(FetchError):
    """Raised when the browser subprocess fails to produce a document.

    Attributes:
        returncode: Exit code of the subprocess, None if it never ran.
        stderr: Tail of the subprocess's standard error.
    """

    def __init__(
        self,
        message: str,
        url: str,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.returncode = returncode
        self.stderr = stderr
        context: dict[str, Any] = {}
        if returncode is not None:
            context["returncode"] = returncode
        if stderr:
            context["stderr"] = stderr
        super().__init__(message, url, context)


class NavigationError(RenderError):
    """Raised when the browser reports that the initial navigation failed."""


class MalformedRenderOutputError(RenderError):
    """Raised when the subprocess output is not a valid render document."""


class RenderTimeoutError(RenderError):
    """Raised when the optional parent-side watchdog expires."""


# =============================================================================
# Parse and extraction errors
# =============================================================================


class DocumentParseError(ScrapeException):
    """Raised when fetched content cannot be parsed into a document."""


class PieceExtractionError(ScrapeException):
    """Raised when an extractor fails for a block, aborting the scrape.

    Attributes:
        piece_name: Name of the piece whose extractor failed.
        block_index: Zero-based index of the block within the page.
    """

    def __init__(
        self,
        piece_name: str,
        block_index: int,
        request_url: str,
        reason: str,
    ) -> None:
        self.piece_name = piece_name
        self.block_index = block_index
        super().__init__(
            f"Extraction failed for piece '{piece_name}': {reason}",
            request_url,
            {"piece": piece_name, "block_index": block_index},
        )
