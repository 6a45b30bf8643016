"""Listing of old.reddit.com, rendered in a headless browser.

The config is built by a function because QuiescenceFetcher needs a browser
engine at construction time.
"""

from blockscrape.data_types import Piece, ScrapeConfig
from blockscrape.extract import Attr, Text
from blockscrape.fetcher.render_fetcher import QuiescenceFetcher
from blockscrape.paginate import divide_by_selector

START_URL = "https://old.reddit.com/"

PIECES = [
    Piece("title", "p.title > a", Text()),
    Piece("link", "p.title > a", Attr("href")),
    Piece("score", "div.score.unvoted", Text()),
    Piece("rank", "span.rank", Text()),
    Piece("author", "a.author", Text()),
    Piece("subreddit", "a.subreddit", Text()),
    # An edited self post carries two <time> elements, giving a list
    Piece("date", "time", Attr("datetime")),
]


def config() -> ScrapeConfig:
    return ScrapeConfig(
        fetcher=QuiescenceFetcher(),
        divide_page=divide_by_selector(".linklisting > div.thing"),
        pieces=PIECES,
    )
