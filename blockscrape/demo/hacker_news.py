"""Front page stories from Hacker News, first three pages."""

from blockscrape.data_types import Piece, ScrapeConfig
from blockscrape.extract import Attr, Regex, Text
from blockscrape.paginate import BySelector, LimitPages, divide_by_selector

START_URL = "https://news.ycombinator.com/"

config = ScrapeConfig(
    divide_page=divide_by_selector("tr.athing"),
    pieces=[
        Piece("title", "span.titleline > a", Text()),
        Piece("link", "span.titleline > a", Attr("href")),
        Piece("rank", "span.rank", Regex(r"(\d+)", only_text=True)),
        Piece("id", ".", Attr("id")),
    ],
    next_page=LimitPages(2, BySelector("a.morelink", "href")),
)
