"""Piece extractors.

Each extractor is a small frozen dataclass holding only its own
configuration, with a single extract() entry point that turns a Selection
into a JSON-encodable value or OMIT.

Extractors never mutate the selection. The only errors they raise are
ExtractorConfigurationError for the enumerated configuration problems
documented on each class.

Example::

    pieces = [
        Piece("title", "td.title > a", Text()),
        Piece("link", "td.title > a", Attr("href")),
        Piece("rank", "td.rank", Regex(r"(\\d+)")),
    ]
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any

from blockscrape.common.exceptions import ExtractorConfigurationError
from blockscrape.common.selection import Selection
from blockscrape.data_types import OMIT, PieceExtractor


def _collapse(
    results: list[str], always_return_list: bool, omit_if_empty: bool
) -> Any:
    """Apply the omit-if-empty and single-result collapsing rules."""
    if not results and omit_if_empty:
        return OMIT
    if len(results) == 1 and not always_return_list:
        return results[0]
    return results


@dataclass(frozen=True)
class Const:
    """Returns a fixed value regardless of the selection."""

    value: Any

    def extract(self, selection: Selection) -> Any:
        return self.value


@dataclass(frozen=True)
class Text:
    """Returns the combined text contents of the selection."""

    def extract(self, selection: Selection) -> str:
        return selection.text()


@dataclass(frozen=True)
class MultipleText:
    """Returns the text of each element in the selection, as a list.

    Attributes:
        omit_if_empty: If the selection is empty, return OMIT instead of the
            empty list, so the piece is left out of the results entirely.
    """

    omit_if_empty: bool = False

    def extract(self, selection: Selection) -> Any:
        results = [element.text() for element in selection]
        if not results and self.omit_if_empty:
            return OMIT
        return results


@dataclass(frozen=True)
class Html:
    """Returns the inner HTML of every element, joined together.

    If the selection is ``[<p><b>ONE</b></p>, <p><i>TWO</i></p>]`` the
    result is ``"<b>ONE</b><i>TWO</i>"``.
    """

    def extract(self, selection: Selection) -> str:
        return "".join(element.html() for element in selection)


@dataclass(frozen=True)
class OuterHtml:
    """Returns the markup of every element, including its own tag, joined.

    If the selection is ``[<div><b>ONE</b></div>, <p><i>TWO</i></p>]`` the
    result is ``"<div><b>ONE</b></div><p><i>TWO</i></p>"``.
    """

    def extract(self, selection: Selection) -> str:
        return "".join(element.outer_html() for element in selection)


@dataclass(frozen=True)
class Regex:
    """Runs a regex over each element and extracts one capturing group.

    Matches are collected in element order, then match order. By default the
    regex runs over each element's inner HTML.

    Attributes:
        pattern: The regular expression, as a string or compiled pattern. It
            must define at least one capturing group.
        group: Index or name of the group to extract. Required when the
            pattern has more than one group; defaults to the sole group.
        only_text: Run the regex over each element's text instead of its HTML.
        always_return_list: Return a list even when there is a single match.
        omit_if_empty: Return OMIT instead of an empty list when nothing
            matched.

    Raises:
        ExtractorConfigurationError: At construction if the pattern does not
            compile; on extract() if no pattern was given, the pattern has no
            groups, or the group to extract is ambiguous or missing.
    """

    pattern: str | re.Pattern[str] | None = None
    group: int | str | None = None
    only_text: bool = False
    always_return_list: bool = False
    omit_if_empty: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.pattern, str):
            try:
                compiled = re.compile(self.pattern)
            except re.error as e:
                raise ExtractorConfigurationError(
                    "Regex", f"invalid pattern: {e}"
                ) from e
            object.__setattr__(self, "pattern", compiled)

    def _resolve_group(self) -> tuple[re.Pattern[str], int | str]:
        pattern = self.pattern
        if pattern is None:
            raise ExtractorConfigurationError("Regex", "no regex given")
        assert isinstance(pattern, re.Pattern)
        if pattern.groups == 0:
            raise ExtractorConfigurationError(
                "Regex", "regex has no capturing groups"
            )

        if self.group is None:
            if pattern.groups != 1:
                raise ExtractorConfigurationError(
                    "Regex",
                    f"regex has more than one capturing group "
                    f"({pattern.groups}), but which to extract was not "
                    f"specified",
                )
            return pattern, 1

        if isinstance(self.group, str):
            if self.group not in pattern.groupindex:
                raise ExtractorConfigurationError(
                    "Regex", f"regex has no group named '{self.group}'"
                )
        elif not 1 <= self.group <= pattern.groups:
            raise ExtractorConfigurationError(
                "Regex",
                f"group {self.group} out of range "
                f"(regex has {pattern.groups})",
            )
        return pattern, self.group

    def extract(self, selection: Selection) -> Any:
        pattern, group = self._resolve_group()

        results: list[str] = []
        for element in selection:
            contents = element.text() if self.only_text else element.html()
            for match in pattern.finditer(contents):
                # Groups that did not take part in the match count as ""
                results.append(match.group(group) or "")

        return _collapse(results, self.always_return_list, self.omit_if_empty)


@dataclass(frozen=True)
class Attr:
    """Extracts an attribute from each element that has it.

    Elements lacking the attribute are skipped.

    Attributes:
        attr: Name of the attribute to read.
        always_return_list: Return a list even when there is a single value.
        omit_if_empty: Return OMIT instead of an empty list when no element
            carried the attribute.

    Raises:
        ExtractorConfigurationError: On extract() if no attribute was given.
    """

    attr: str = ""
    always_return_list: bool = False
    omit_if_empty: bool = False

    def extract(self, selection: Selection) -> Any:
        if not self.attr:
            raise ExtractorConfigurationError("Attr", "no attribute provided")

        results: list[str] = []
        for element in selection:
            value = element.attr(self.attr)
            if value is not None:
                results.append(value)

        return _collapse(results, self.always_return_list, self.omit_if_empty)


@dataclass(frozen=True)
class Count:
    """Returns the number of elements in the selection.

    Attributes:
        omit_if_empty: Return OMIT instead of 0 for an empty selection.
    """

    omit_if_empty: bool = False

    def extract(self, selection: Selection) -> Any:
        count = len(selection)
        if count == 0 and self.omit_if_empty:
            return OMIT
        return count


def force_list(extractor: PieceExtractor) -> PieceExtractor:
    """Return a copy of the extractor that never collapses to a bare string.

    Used by the Scraper when ScrapeConfig.always_return_list is set.
    Extractors without a collapsing rule are returned unchanged.
    """
    if isinstance(extractor, (Regex, Attr)) and not extractor.always_return_list:
        return replace(extractor, always_return_list=True)
    return extractor
