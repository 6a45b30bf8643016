"""LxmlSelection implementation of the Selection protocol.

Wraps a list of lxml HtmlElements. CSS selectors are translated to XPath with
cssselect and evaluated against descendants only, so narrowing a block never
matches the block element itself.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from functools import lru_cache
from html import escape
from typing import Any

from cssselect import HTMLTranslator
from cssselect import SelectorError as CssSelectorError
from lxml import etree, html
from lxml.html import HtmlElement

from blockscrape.common.exceptions import (
    DocumentParseError,
    SelectorError,
)
from blockscrape.common.selector_utils import selector_type

_translator = HTMLTranslator()

# libxml2 assumes ISO-8859-1 for undeclared documents; valid UTF-8 is parsed
# as UTF-8 instead.
_utf8_parser = html.HTMLParser(encoding="utf-8")

# Parsed in place of empty or whitespace-only content.
EMPTY_DOCUMENT = b"<html><body></body></html>"


def _is_utf8(content: bytes) -> bool:
    try:
        content.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


@lru_cache(maxsize=256)
def _compile(selector: str) -> Callable[[HtmlElement], Any]:
    """Compile a selector into a reusable XPath evaluator.

    Raises:
        SelectorError: If the selector is not valid CSS or XPath.
    """
    kind = selector_type(selector)
    try:
        if kind == "css":
            expression = _translator.css_to_xpath(
                selector, prefix="descendant::"
            )
        else:
            expression = selector
        return etree.XPath(expression)
    except (CssSelectorError, etree.XPathSyntaxError) as e:
        raise SelectorError(selector, kind) from e


def inner_html(node: HtmlElement) -> str:
    """Serialize the contents of an element, without its own tag."""
    parts = [escape(node.text, quote=False)] if node.text else []
    # tostring() includes each child's tail text
    parts.extend(html.tostring(child, encoding="unicode") for child in node)
    return "".join(parts)


def outer_html(node: HtmlElement) -> str:
    """Serialize an element including its own tag, without its tail."""
    return html.tostring(node, encoding="unicode", with_tail=False)


class LxmlSelection:
    """Selection over lxml elements.

    Attributes:
        _nodes: The wrapped elements, in document order.
        _url: URL of the document, used by pagination rules to resolve links.
    """

    def __init__(
        self, nodes: Iterable[HtmlElement] = (), url: str = ""
    ) -> None:
        self._nodes = tuple(nodes)
        self._url = url

    @classmethod
    def from_document(
        cls, content: bytes | str, url: str = ""
    ) -> LxmlSelection:
        """Parse a full HTML document into a single-root selection.

        Args:
            content: Raw document bytes or text. Bytes that are not valid
                UTF-8 are decoded using the document's own declaration.
            url: The URL the document was fetched from.

        Returns:
            Selection holding the document's <html> element. The element
            always has a <body>, even for empty or head-only documents.

        Raises:
            DocumentParseError: If the content cannot be parsed.
        """
        if isinstance(content, str):
            # lxml refuses str input that carries an encoding declaration
            content = content.encode("utf-8")
        if not content.strip():
            content = EMPTY_DOCUMENT
        parser = _utf8_parser if _is_utf8(content) else None
        try:
            root = html.document_fromstring(content, parser=parser)
        except (etree.ParserError, etree.ParseError, ValueError) as e:
            raise DocumentParseError(
                f"Could not parse document: {e}", url
            ) from e
        # libxml2 only creates <body> when there is body content
        if root.find("body") is None:
            etree.SubElement(root, "body")
        return cls([root], url)

    @property
    def url(self) -> str:
        return self._url

    @property
    def nodes(self) -> tuple[HtmlElement, ...]:
        return self._nodes

    def find(self, selector: str) -> LxmlSelection:
        try:
            matcher = _compile(selector)
        except SelectorError as e:
            raise SelectorError(
                e.selector, e.selector_type, self._url
            ) from e.__cause__

        found: list[HtmlElement] = []
        seen: set[HtmlElement] = set()
        for node in self._nodes:
            try:
                results = matcher(node)
            except etree.XPathEvalError as e:
                raise SelectorError(
                    selector, selector_type(selector), self._url
                ) from e
            if not isinstance(results, list):
                continue
            for result in results:
                # XPath may also return strings (text nodes, attributes)
                if isinstance(result, HtmlElement) and result not in seen:
                    seen.add(result)
                    found.append(result)
        return LxmlSelection(found, self._url)

    def attr(self, name: str) -> str | None:
        if not self._nodes:
            return None
        return self._nodes[0].get(name)

    def text(self) -> str:
        return "".join(node.text_content() for node in self._nodes)

    def html(self) -> str:
        if not self._nodes:
            return ""
        return inner_html(self._nodes[0])

    def outer_html(self) -> str:
        if not self._nodes:
            return ""
        return outer_html(self._nodes[0])

    def first(self) -> LxmlSelection:
        return LxmlSelection(self._nodes[:1], self._url)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[LxmlSelection]:
        for node in self._nodes:
            yield LxmlSelection([node], self._url)

    def __repr__(self) -> str:
        tags = ", ".join(node.tag for node in self._nodes[:5])
        more = ", ..." if len(self._nodes) > 5 else ""
        return f"LxmlSelection([{tags}{more}], url={self._url!r})"
