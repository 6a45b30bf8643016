"""Fetchers retrieve documents for the Scraper.

HttpClientFetcher talks HTTP directly. QuiescenceFetcher renders pages in a
headless browser subprocess and waits for their network activity to settle.
"""

from blockscrape.fetcher.base import Fetcher
from blockscrape.fetcher.http_fetcher import HttpClientFetcher
from blockscrape.fetcher.render_fetcher import (
    QuiescenceFetcher,
    find_browser_engine,
    has_browser_engine,
)

__all__ = [
    "Fetcher",
    "HttpClientFetcher",
    "QuiescenceFetcher",
    "find_browser_engine",
    "has_browser_engine",
]
