"""
Block-oriented web scraping.

A ScrapeConfig names the pieces of data to pull out of every block of every
page; a Scraper walks the pages from a start URL and returns ScrapeResults.
Pages can be fetched over HTTP or rendered in a headless browser.
"""

from blockscrape.data_types import (
    OMIT,
    Piece,
    ScrapeConfig,
    ScrapeResults,
)
from blockscrape.scraper import Scraper

__all__ = ["OMIT", "Piece", "ScrapeConfig", "ScrapeResults", "Scraper"]
