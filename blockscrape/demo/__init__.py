"""Example scrape configurations.

Run one with the CLI::

    blockscrape scrape blockscrape.demo.hacker_news:config https://news.ycombinator.com/
    blockscrape scrape --render blockscrape.demo.reddit:config https://old.reddit.com/
"""
