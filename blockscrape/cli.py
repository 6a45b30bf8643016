"""blockscrape CLI: run scrape configs and render pages.

Usage:
    blockscrape scrape module.path:config URL            # Scrape over HTTP
    blockscrape scrape module.path:config URL --render   # Scrape in a browser
    blockscrape render URL                               # Print rendered markup
    blockscrape inspect module.path:config               # Show a config's pieces
"""

from __future__ import annotations

import dataclasses
import importlib
import logging
from typing import IO

import click

from blockscrape.common.exceptions import ScrapeException
from blockscrape.data_types import HttpMethod, ScrapeConfig
from blockscrape.fetcher.quiescence import (
    DEFAULT_MAX_WAIT_MS,
    DEFAULT_SETTLE_MS,
)
from blockscrape.fetcher.render_fetcher import QuiescenceFetcher
from blockscrape.paginate import as_paginator
from blockscrape.scraper import Scraper


def import_config(config_path: str) -> ScrapeConfig:
    """Import a ScrapeConfig from a dotted path.

    Args:
        config_path: ``"module.path:attribute"`` string. The attribute is a
            ScrapeConfig, or a callable taking no arguments that returns one.

    Returns:
        The ScrapeConfig.

    Raises:
        click.BadParameter: If the format is invalid, the import fails, or the
            attribute is not a config.
    """
    if ":" not in config_path:
        raise click.BadParameter(
            f"Invalid config path '{config_path}'. "
            "Expected format: 'module.path:attribute'"
        )

    module_path, attr_name = config_path.rsplit(":", 1)
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise click.BadParameter(
            f"Could not import module '{module_path}': {e}"
        ) from e

    try:
        config = getattr(module, attr_name)
    except AttributeError as e:
        raise click.BadParameter(
            f"Module '{module_path}' has no attribute '{attr_name}'"
        ) from e

    if callable(config):
        try:
            config = config()
        except ScrapeException as e:
            raise click.ClickException(str(e)) from e

    if not isinstance(config, ScrapeConfig):
        raise click.BadParameter(
            f"'{config_path}' is a {type(config).__name__}, "
            "not a ScrapeConfig"
        )
    return config


def _configure_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _render_options(func):
    func = click.option(
        "--engine",
        default=None,
        help="Browser binary (default: search PATH and Playwright).",
    )(func)
    func = click.option(
        "--max-wait-ms",
        type=click.IntRange(min=1),
        default=DEFAULT_MAX_WAIT_MS,
        show_default=True,
        help="Render after this long even if requests are pending.",
    )(func)
    func = click.option(
        "--settle-ms",
        type=click.IntRange(min=1),
        default=DEFAULT_SETTLE_MS,
        show_default=True,
        help="Quiet period after the last request before rendering.",
    )(func)
    return func


@click.group()
@click.version_option(package_name="blockscrape")
def cli() -> None:
    """blockscrape: extract structured records from paginated pages."""


@cli.command()
@click.argument("config_path", metavar="CONFIG")
@click.argument("url")
@click.option(
    "--render",
    is_flag=True,
    help="Fetch pages with a headless browser instead of plain HTTP.",
)
@_render_options
@click.option(
    "--indent",
    type=int,
    default=None,
    help="Indent the JSON output by this many spaces.",
)
@click.option(
    "-o",
    "--output",
    type=click.File("w"),
    default="-",
    help="Write results to this file instead of stdout.",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
def scrape(
    config_path: str,
    url: str,
    render: bool,
    settle_ms: int,
    max_wait_ms: int,
    engine: str | None,
    indent: int | None,
    output: IO[str],
    verbose: bool,
) -> None:
    """Scrape URL with a config and print the results as JSON.

    CONFIG is a dotted import path in the form module.path:attribute.

    \b
    Examples:
        blockscrape scrape blockscrape.demo.hacker_news:config \\
            https://news.ycombinator.com/
        blockscrape scrape my.configs:listing https://example.com --render
    """
    _configure_logging(verbose)

    config = import_config(config_path)

    try:
        if render:
            config = dataclasses.replace(
                config,
                fetcher=QuiescenceFetcher(
                    engine=engine, settle_ms=settle_ms, max_wait_ms=max_wait_ms
                ),
            )
        with Scraper(config) as scraper:
            results = scraper.scrape(url)
    except ScrapeException as e:
        raise click.ClickException(str(e)) from e

    click.echo(results.to_json(indent=indent), file=output)


@cli.command()
@click.argument("url")
@_render_options
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
def render(
    url: str,
    settle_ms: int,
    max_wait_ms: int,
    engine: str | None,
    verbose: bool,
) -> None:
    """Render URL in a headless browser and print its markup."""
    _configure_logging(verbose)

    try:
        with QuiescenceFetcher(
            engine=engine, settle_ms=settle_ms, max_wait_ms=max_wait_ms
        ) as fetcher:
            stream = fetcher.fetch(HttpMethod.GET, url)
            contents = stream.read()
    except ScrapeException as e:
        raise click.ClickException(str(e)) from e

    click.echo(contents.decode("utf-8"))


@cli.command()
@click.argument("config_path", metavar="CONFIG")
def inspect(config_path: str) -> None:
    """Show the pieces and rules of a config.

    CONFIG is a dotted import path in the form module.path:attribute.

    \b
    Examples:
        blockscrape inspect blockscrape.demo.hacker_news:config
    """
    config = import_config(config_path)

    fetcher = config.fetcher
    click.echo(
        "Fetcher:    "
        f"{type(fetcher).__name__ if fetcher else 'HttpClientFetcher (default)'}"
    )
    click.echo(f"Next page:  {as_paginator(config.next_page)!r}")
    click.echo(
        "Divide:     "
        f"{'custom' if config.divide_page else 'body (default)'}"
    )
    if config.always_return_list:
        click.echo("Lists:      always")

    click.echo(f"\nPieces ({len(config.pieces)}):")
    width = max(len(piece.name) for piece in config.pieces)
    for piece in config.pieces:
        click.echo(
            f"  {piece.name:<{width}}  {piece.selector}  {piece.extractor!r}"
        )


def main() -> None:
    """Entry point for the ``blockscrape`` console script."""
    cli()
