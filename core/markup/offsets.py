"""Offset mapping between plain text and marked up value."""

from __future__ import annotations

from core.markup.grammar import MarkupGrammar
from core.markup.models import Correction, DisplayTransform, TextRun
from core.markup.scanner import iter_markup


def map_plain_text_index(
    value: str,
    markup: str,
    index_in_plain_text: int | None,
    correction: Correction = "START",
    display_transform: DisplayTransform | None = None,
    *,
    grammar: MarkupGrammar | None = None,
) -> int | None:
    """Map a plain text offset to the corresponding offset in the marked up value.

    Offsets inside a mention's display text are corrected according to correction:

    - `START`: offset of the first char of the mention markup
    - `END`: offset after the last char of the mention markup
    - `NULL`: None, the offset lies inside an atomic mention

    Anything that is not an int (e.g. None for an unknown selection) is returned
    unchanged. Negative offsets count as 0; offsets past the end of the plain text
    map to `len(value)`.
    """

    if not isinstance(index_in_plain_text, int) or isinstance(index_in_plain_text, bool):
        return index_in_plain_text

    target = max(0, index_in_plain_text)
    for item in iter_markup(value, markup, display_transform, grammar=grammar):
        if isinstance(item, TextRun):
            if item.plain_text_index + len(item.text) >= target:
                return item.index + target - item.plain_text_index
            continue

        if item.plain_text_index + len(item.display) > target:
            if correction == "NULL":
                return None
            if correction == "END":
                return item.index + len(item.markup)
            return item.index

    # a mention closes the value and the offset is at (or past) its end
    return len(value)


def find_mention_start_in_plain_text(
    value: str,
    markup: str,
    index_in_plain_text: int,
    display_transform: DisplayTransform | None = None,
    *,
    grammar: MarkupGrammar | None = None,
) -> int | None:
    """Return the plain text start of the mention covering the offset, if any."""

    for item in iter_markup(value, markup, display_transform, grammar=grammar):
        if isinstance(item, TextRun):
            continue
        if item.plain_text_index <= index_in_plain_text < item.plain_text_index + len(
            item.display
        ):
            return item.plain_text_index
    return None


def is_inside_of_mention(
    value: str,
    markup: str,
    index_in_plain_text: int,
    display_transform: DisplayTransform | None = None,
    *,
    grammar: MarkupGrammar | None = None,
) -> bool:
    """Return whether the offset lies strictly after the start of a mention."""

    mention_start = find_mention_start_in_plain_text(
        value, markup, index_in_plain_text, display_transform, grammar=grammar
    )
    return mention_start is not None and mention_start != index_in_plain_text
