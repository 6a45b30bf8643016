"""Headless browser driver run by QuiescenceFetcher in a subprocess.

Usage::

    python render_driver.py --browser=/usr/bin/chromium \\
        --ignore-ssl-errors=true --web-security=false \\
        --cookies-file=/tmp/blockscrape-render-xyz/cookies.json \\
        --settle-ms=300 --max-wait-ms=10000 https://example.com/

The page is loaded in Chromium via Playwright. Every resource request and
completion is fed to a QuiescenceMonitor, which decides when the page has
settled. The rendered markup is then printed to stdout as a single JSON
object ``{"contents": "..."}`` and the process exits 0.

Exit codes: 0 rendered, 1 any other failure (including bad arguments),
2 the initial navigation failed. The resource event log goes to stderr.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

import click
from playwright.async_api import Browser, Page, Request, Response, async_playwright
from playwright.async_api import Error as PlaywrightError
from pydantic import ValidationError

from blockscrape.common.exceptions import NavigationError
from blockscrape.fetcher.quiescence import (
    DEFAULT_MAX_WAIT_MS,
    DEFAULT_SETTLE_MS,
    QuiescenceMonitor,
    RenderTrigger,
)
from blockscrape.fetcher.render_fetcher import (
    NAVIGATION_FAILED_EXIT,
    RenderOutput,
    RenderSettings,
)

logger = logging.getLogger(__name__)


def watch_requests(page: Page, monitor: QuiescenceMonitor) -> None:
    """Feed the page's request lifecycle events to the monitor."""
    request_ids: dict[Request, int] = {}
    statuses: dict[Request, int] = {}

    def on_request(request: Request) -> None:
        request_ids[request] = monitor.request_started(request.url)

    def on_response(response: Response) -> None:
        statuses[response.request] = response.status

    def on_finished(request: Request) -> None:
        request_id = request_ids.pop(request, None)
        if request_id is None:
            return
        monitor.request_finished(
            request_id, request.url, statuses.pop(request, "")
        )

    def on_failed(request: Request) -> None:
        request_id = request_ids.pop(request, None)
        if request_id is None:
            return
        statuses.pop(request, None)
        monitor.request_finished(
            request_id, request.url, f"failed ({request.failure})"
        )

    page.on("request", on_request)
    page.on("response", on_response)
    page.on("requestfinished", on_finished)
    page.on("requestfailed", on_failed)


async def render_page(
    url: str,
    settings: RenderSettings,
    browser_executable: str | None = None,
    ignore_ssl_errors: bool = True,
    web_security: bool = False,
    cookies_file: Path | None = None,
) -> str:
    """Load a URL, wait for network quiescence and return the page markup.

    Args:
        url: Page to render.
        settings: Settle window and hard deadline.
        browser_executable: Chromium binary. Playwright's bundled build when
            None.
        ignore_ssl_errors: Ignore TLS certificate errors.
        web_security: Enforce same-origin restrictions.
        cookies_file: Playwright storage-state file, loaded when it exists
            and rewritten after rendering.

    Raises:
        NavigationError: If the initial navigation failed before the page
            was rendered.
    """
    monitor = QuiescenceMonitor(
        settle_seconds=settings.settle_ms / 1000,
        max_wait_seconds=settings.max_wait_ms / 1000,
    )

    playwright = await async_playwright().start()
    try:
        launch_args = [] if web_security else ["--disable-web-security"]
        browser: Browser = await playwright.chromium.launch(
            executable_path=browser_executable,
            headless=True,
            args=launch_args,
        )
        try:
            context_kwargs: dict[str, Any] = {
                "ignore_https_errors": ignore_ssl_errors,
                "bypass_csp": not web_security,
            }
            if cookies_file is not None and cookies_file.is_file():
                context_kwargs["storage_state"] = str(cookies_file)
            context = await browser.new_context(**context_kwargs)

            page = await context.new_page()
            watch_requests(page, monitor)

            monitor.start()
            navigation = asyncio.ensure_future(
                page.goto(url, wait_until="commit")
            )
            rendered = asyncio.ensure_future(monitor.wait())
            await asyncio.wait(
                {navigation, rendered}, return_when=asyncio.FIRST_COMPLETED
            )

            if (
                not rendered.done()
                and navigation.done()
                and navigation.exception() is not None
            ):
                monitor.stop()
                rendered.cancel()
                await asyncio.wait({rendered})
                raise NavigationError(
                    f"Unable to load url: {navigation.exception()}", url
                )

            trigger = await rendered
            if trigger is RenderTrigger.DEADLINE:
                logger.info(
                    f"Deadline reached with {monitor.in_flight} request(s) "
                    f"in flight"
                )
            if not navigation.done():
                navigation.cancel()
                await asyncio.wait({navigation})
            elif navigation.exception() is not None:
                logger.info(f"Navigation error after render: {navigation.exception()}")

            contents = await page.content()

            if cookies_file is not None:
                await context.storage_state(path=str(cookies_file))
            await context.close()
            return contents
        finally:
            await browser.close()
    finally:
        await playwright.stop()


@click.command()
@click.option(
    "--browser",
    "browser_executable",
    default=None,
    help="Chromium binary to launch.",
)
@click.option("--ignore-ssl-errors", type=click.BOOL, default=True)
@click.option("--web-security", type=click.BOOL, default=False)
@click.option(
    "--cookies-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Playwright storage-state file used as the cookie store.",
)
@click.option("--settle-ms", type=int, default=DEFAULT_SETTLE_MS)
@click.option("--max-wait-ms", type=int, default=DEFAULT_MAX_WAIT_MS)
@click.argument("url")
def main(
    browser_executable: str | None,
    ignore_ssl_errors: bool,
    web_security: bool,
    cookies_file: Path | None,
    settle_ms: int,
    max_wait_ms: int,
    url: str,
) -> None:
    """Render URL and print {"contents": <markup>} as JSON."""
    logging.basicConfig(
        stream=sys.stderr, level=logging.INFO, format="%(message)s"
    )

    try:
        settings = RenderSettings(settle_ms=settle_ms, max_wait_ms=max_wait_ms)
    except ValidationError as e:
        raise click.BadParameter(str(e)) from e

    try:
        contents = asyncio.run(
            render_page(
                url,
                settings,
                browser_executable=browser_executable,
                ignore_ssl_errors=ignore_ssl_errors,
                web_security=web_security,
                cookies_file=cookies_file,
            )
        )
    except NavigationError as e:
        logger.error(e.message)
        sys.exit(NAVIGATION_FAILED_EXIT)
    except PlaywrightError as e:
        logger.error(f"Render failed: {e}")
        sys.exit(1)

    click.echo(RenderOutput(contents=contents).model_dump_json())


def run(argv: list[str] | None = None) -> int:
    """Run the driver command and return its exit status.

    Usage errors exit 1 so that status 2 always means a failed navigation.
    """
    try:
        main.main(argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        return 1
    except click.Abort:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(run())
