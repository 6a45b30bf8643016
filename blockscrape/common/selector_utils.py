"""Selector utility functions.

Pieces and rules accept either CSS selectors or XPath expressions. This module
decides which engine a selector string is meant for.
"""

# A piece selector that means "the block itself, unnarrowed".
SELF_SELECTOR = "."


def selector_type(selector: str) -> str:
    """Classify a selector string as "xpath" or "css".

    Absolute paths, relative paths and parenthesized expressions are XPath.
    Everything else is treated as CSS.

    Args:
        selector: The selector string.

    Returns:
        "xpath" or "css".

    Examples:
        >>> selector_type("//div[@class='content']")
        'xpath'
        >>> selector_type("./td[2]")
        'xpath'
        >>> selector_type("(//tr)[1]")
        'xpath'
        >>> selector_type("td.title > a")
        'css'
    """
    selector = selector.strip()
    if selector.startswith(("/", "./", "../", "(")):
        return "xpath"
    return "css"


def is_self_selector(selector: str) -> bool:
    """Return True if the selector means "use the block unmodified"."""
    return selector == SELF_SELECTOR
