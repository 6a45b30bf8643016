"""Selection protocol for driver-agnostic data extraction.

A Selection is an ordered, de-duplicated set of elements from one parsed
document. Pieces narrow a block with a selector and hand the result to an
extractor; division and pagination rules query the full page the same way.

Selections are always backed by static parsed HTML (LXML). The fetcher is
responsible for obtaining the HTML, whether over HTTP or by serializing a
rendered browser DOM.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from lxml.html import HtmlElement


class Selection(Protocol):
    """Protocol for querying and serializing a set of elements.

    All methods are side-effect free: narrowing returns a new Selection and
    never changes the one it was called on.
    """

    @property
    def url(self) -> str:
        """The URL of the document this selection belongs to."""
        ...

    @property
    def nodes(self) -> tuple[HtmlElement, ...]:
        """The underlying lxml elements, in document order."""
        ...

    def find(self, selector: str) -> Selection:
        """Narrow to the descendants matching a CSS or XPath selector.

        Args:
            selector: CSS selector or XPath expression.

        Returns:
            A new Selection containing every match under every element,
            in element order then match order, without duplicates.

        Raises:
            SelectorError: If the selector cannot be compiled.
        """
        ...

    def attr(self, name: str) -> str | None:
        """Read an attribute of the first element.

        Args:
            name: Name of the attribute.

        Returns:
            The attribute value, or None if the selection is empty or the
            first element lacks the attribute.
        """
        ...

    def text(self) -> str:
        """Return the combined text content of every element."""
        ...

    def html(self) -> str:
        """Return the inner HTML of the first element ("" when empty)."""
        ...

    def outer_html(self) -> str:
        """Return the markup of the first element ("" when empty)."""
        ...

    def first(self) -> Selection:
        """Return a selection holding only the first element."""
        ...

    def __len__(self) -> int:
        """Return the number of elements."""
        ...

    def __iter__(self) -> Iterator[Selection]:
        """Iterate over single-element selections."""
        ...
