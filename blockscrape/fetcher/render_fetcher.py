"""Network-quiescence fetcher.

QuiescenceFetcher renders JavaScript-driven pages by delegating to a headless
browser running in a subprocess (see render_driver.py). The subprocess waits
until the page's network activity has settled, or until a hard deadline,
then prints a single JSON object ``{"contents": "<rendered markup>"}`` on
standard output and exits.

Every fetch spawns an independent subprocess; the only state shared between
fetches is the cookie-store file in the fetcher's temporary directory, which
close() removes.
"""

from __future__ import annotations

import io
import logging
import os
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Any, BinaryIO

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from blockscrape.common.exceptions import (
    ConfigurationError,
    InvalidMethodError,
    MalformedRenderOutputError,
    NavigationError,
    NoBrowserEngineError,
    RenderError,
    RenderTimeoutError,
)
from blockscrape.data_types import HttpMethod
from blockscrape.fetcher.base import method_name
from blockscrape.fetcher.quiescence import (
    DEFAULT_MAX_WAIT_MS,
    DEFAULT_SETTLE_MS,
)

logger = logging.getLogger(__name__)

# Environment variable naming the browser binary to use.
ENGINE_ENV_VAR = "BLOCKSCRAPE_BROWSER_ENGINE"

# Browser binaries looked up on PATH, in order.
ENGINE_CANDIDATES = (
    "chromium",
    "chromium-browser",
    "google-chrome",
    "google-chrome-stable",
    "chrome",
)

# Exit code the driver uses when the initial navigation fails. The driver
# reports its own usage errors with status 1.
NAVIGATION_FAILED_EXIT = 2

DRIVER_SCRIPT = Path(__file__).with_name("render_driver.py")

# Lines of subprocess stderr kept in error messages.
STDERR_TAIL_LINES = 20


class RenderSettings(BaseModel):
    """Timing settings for a render, in milliseconds."""

    settle_ms: int = Field(default=DEFAULT_SETTLE_MS, gt=0)
    max_wait_ms: int = Field(default=DEFAULT_MAX_WAIT_MS, gt=0)


class RenderOutput(BaseModel):
    """The JSON document the driver prints on standard output."""

    model_config = ConfigDict(strict=True)

    contents: str


def _bundled_chromium() -> str | None:
    """Return the Chromium build installed by ``playwright install``."""
    from playwright.sync_api import Error as PlaywrightError
    from playwright.sync_api import sync_playwright

    try:
        with sync_playwright() as playwright:
            path = playwright.chromium.executable_path
    except PlaywrightError as e:
        logger.debug(f"Could not query Playwright's bundled browser: {e}")
        return None
    return path if Path(path).is_file() else None


def _resolve(candidate: str) -> str | None:
    found = shutil.which(candidate)
    if found:
        return found
    if Path(candidate).is_file():
        return str(Path(candidate).resolve())
    return None


def find_browser_engine(engine: str | None = None) -> str:
    """Locate a headless browser binary.

    Search order: the explicit ``engine`` argument (no fallback when given),
    the BLOCKSCRAPE_BROWSER_ENGINE environment variable, well-known Chromium
    binaries on PATH, then Playwright's bundled Chromium.

    Args:
        engine: Optional explicit path or command name.

    Returns:
        Absolute path of the browser binary.

    Raises:
        NoBrowserEngineError: If nothing usable was found.
    """
    if engine:
        resolved = _resolve(engine)
        if resolved is None:
            raise NoBrowserEngineError([engine])
        return resolved

    searched: list[str] = []
    env_engine = os.environ.get(ENGINE_ENV_VAR)
    candidates = ([env_engine] if env_engine else []) + list(
        ENGINE_CANDIDATES
    )
    for candidate in candidates:
        searched.append(candidate)
        resolved = _resolve(candidate)
        if resolved is not None:
            return resolved

    searched.append("playwright chromium")
    bundled = _bundled_chromium()
    if bundled is not None:
        return bundled

    raise NoBrowserEngineError(searched)


def has_browser_engine() -> bool:
    """Return whether a QuiescenceFetcher can be created on this system."""
    try:
        find_browser_engine()
    except NoBrowserEngineError:
        return False
    return True


def _tail(stderr: bytes | str | None) -> str:
    if not stderr:
        return ""
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    lines = stderr.strip().splitlines()
    return "\n".join(lines[-STDERR_TAIL_LINES:])


class QuiescenceFetcher:
    """Fetcher that renders pages in a headless browser subprocess.

    Only GET is supported. Use this fetcher for pages whose content is built
    by client-side scripts.

    Example::

        with Scraper(ScrapeConfig(pieces=..., fetcher=QuiescenceFetcher())) as s:
            results = s.scrape("https://example.com/app")
    """

    def __init__(
        self,
        engine: str | None = None,
        settle_ms: int = DEFAULT_SETTLE_MS,
        max_wait_ms: int = DEFAULT_MAX_WAIT_MS,
        ignore_ssl_errors: bool = True,
        web_security: bool = False,
        watchdog_timeout: float | None = None,
        driver_script: Path | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            engine: Browser binary path or command name. Searched for when
                omitted (see find_browser_engine).
            settle_ms: Quiet period after the last resource completes before
                the page is rendered.
            max_wait_ms: Hard deadline after which the page is rendered
                regardless of network activity.
            ignore_ssl_errors: Ignore TLS certificate errors.
            web_security: Enforce same-origin restrictions in the browser.
            watchdog_timeout: Seconds after which the parent kills a stuck
                subprocess. None (default) waits indefinitely.
            driver_script: Override the driver script that is launched.

        Raises:
            NoBrowserEngineError: If no browser binary can be located.
            ConfigurationError: If the timing settings are invalid.
        """
        self.engine = find_browser_engine(engine)
        try:
            self.settings = RenderSettings(
                settle_ms=settle_ms, max_wait_ms=max_wait_ms
            )
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid render settings: {e.error_count()} error(s)",
                context={"errors": e.errors()},
            ) from e
        self.ignore_ssl_errors = ignore_ssl_errors
        self.web_security = web_security
        self.watchdog_timeout = watchdog_timeout
        self.driver_script = driver_script or DRIVER_SCRIPT

        self._temp_dir: Path | None = None
        self._args: list[str] = []

    @property
    def temp_dir(self) -> Path | None:
        return self._temp_dir

    @property
    def cookies_file(self) -> Path | None:
        if self._temp_dir is None:
            return None
        return self._temp_dir / "cookies.json"

    def prepare(self) -> None:
        """Create the session directory and the fixed driver arguments."""
        if self._temp_dir is None:
            self._temp_dir = Path(tempfile.mkdtemp(prefix="blockscrape-render-"))
            logger.debug(f"Created render session directory {self._temp_dir}")

        self._args = [
            f"--browser={self.engine}",
            f"--ignore-ssl-errors={str(self.ignore_ssl_errors).lower()}",
            f"--web-security={str(self.web_security).lower()}",
            f"--cookies-file={self.cookies_file}",
            f"--settle-ms={self.settings.settle_ms}",
            f"--max-wait-ms={self.settings.max_wait_ms}",
        ]

    def command(self, url: str) -> list[str]:
        """Build the subprocess command line for a URL."""
        if not self._args:
            self.prepare()
        return [sys.executable, str(self.driver_script), *self._args, url]

    def _environment(self) -> dict[str, str]:
        # The driver runs as a script, so make this package importable from it
        package_root = str(Path(__file__).resolve().parents[2])
        env = dict(os.environ)
        existing = env.get("PYTHONPATH")
        env["PYTHONPATH"] = (
            f"{package_root}{os.pathsep}{existing}" if existing else package_root
        )
        return env

    def fetch(self, method: str | HttpMethod, url: str) -> BinaryIO:
        """Render a URL and return the resulting markup as UTF-8 bytes.

        Raises:
            InvalidMethodError: If method is not GET.
            RenderTimeoutError: If the watchdog expired.
            NavigationError: If the browser could not load the page.
            MalformedRenderOutputError: If the output is not a render document.
            RenderError: If the subprocess could not run or failed.
        """
        if method_name(method) != HttpMethod.GET.value:
            raise InvalidMethodError(str(method), url, [HttpMethod.GET.value])

        command = self.command(url)
        logger.debug(f"Rendering {url}")

        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                timeout=self.watchdog_timeout,
                env=self._environment(),
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise RenderTimeoutError(
                f"Browser subprocess did not finish within "
                f"{self.watchdog_timeout}s",
                url,
                stderr=_tail(e.stderr),
            ) from e
        except OSError as e:
            raise RenderError(
                f"Could not launch browser subprocess: {e}", url
            ) from e

        stderr = _tail(completed.stderr)
        for line in completed.stderr.decode(
            "utf-8", errors="replace"
        ).splitlines():
            logger.debug(f"[render] {line}")

        if completed.returncode == NAVIGATION_FAILED_EXIT:
            raise NavigationError(
                "Browser could not load the page",
                url,
                completed.returncode,
                stderr,
            )
        if completed.returncode != 0:
            raise RenderError(
                f"Browser subprocess exited with status {completed.returncode}",
                url,
                completed.returncode,
                stderr,
            )

        try:
            output = RenderOutput.model_validate_json(completed.stdout)
        except ValidationError as e:
            raise MalformedRenderOutputError(
                f"Malformed render output: {e.errors()[0]['msg']}",
                url,
                completed.returncode,
                stderr,
            ) from e

        return io.BytesIO(output.contents.encode("utf-8"))

    def close(self) -> None:
        """Remove the session directory and its cookie store."""
        if self._temp_dir is not None:
            shutil.rmtree(self._temp_dir, ignore_errors=True)
            logger.debug(f"Removed render session directory {self._temp_dir}")
        self._temp_dir = None
        self._args = []

    def __enter__(self) -> QuiescenceFetcher:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
