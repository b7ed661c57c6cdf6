"""Apply edits made to the plain text view onto the marked up value."""

from __future__ import annotations

import logging

from core.markup.grammar import MarkupGrammar
from core.markup.mentions import splice_string
from core.markup.models import DisplayTransform
from core.markup.offsets import map_plain_text_index
from core.markup.plain_text import get_plain_text

logger = logging.getLogger("mentions.core")


def apply_change_to_value(
    value: str,
    markup: str,
    plain_text_value: str,
    selection_start_before: int | None,
    selection_end_before: int | None,
    selection_end_after: int,
    display_transform: DisplayTransform | None = None,
    treat_mention_as_unit: bool = False,
    *,
    grammar: MarkupGrammar | None = None,
) -> str:
    """Derive the new marked up value from an edit of its plain text view.

    The edit is located using the field selection before the change and the selection
    end after it (selection start after a change is not reliably reported by fields).

    Args:
        value: Marked up value before the edit.
        markup: Markup template.
        plain_text_value: Field text after the edit.
        selection_start_before: Selection start before the edit, None if unknown.
        selection_end_before: Selection end before the edit, None if unknown.
        selection_end_after: Selection end (caret) after the edit.
        display_transform: Display text hook, same as used to render the field.
        treat_mention_as_unit: Remove a whole mention when any of its chars is edited.
        grammar: Registry used to compile markup.

    Returns:
        New marked up value.
    """

    old_plain_text_value = get_plain_text(value, markup, display_transform, grammar=grammar)

    length_delta = len(old_plain_text_value) - len(plain_text_value)
    if selection_start_before is None:
        selection_start_before = selection_end_after + length_delta

    if selection_end_before is None:
        selection_end_before = selection_start_before

    # replacing a composed char (e.g. accented letters) keeps length and caret unchanged
    if (
        selection_start_before == selection_end_before == selection_end_after
        and len(old_plain_text_value) == len(plain_text_value)
    ):
        selection_start_before -= 1

    insert = _slice(plain_text_value, selection_start_before, selection_end_after)

    # Backspace with collapsed selection moves the caret left of the start
    splice_start = min(selection_start_before, selection_end_after)

    splice_end = selection_end_before
    if selection_start_before == selection_end_after:
        # Delete with collapsed selection keeps the caret in place
        splice_end = max(selection_end_before, selection_start_before + length_delta)

    mapped_splice_start = map_plain_text_index(
        value, markup, splice_start, "START", display_transform, grammar=grammar
    )
    mapped_splice_end = map_plain_text_index(
        value, markup, splice_end, "END", display_transform, grammar=grammar
    )

    control_splice_start = map_plain_text_index(
        value, markup, splice_start, "NULL", display_transform, grammar=grammar
    )
    control_splice_end = map_plain_text_index(
        value, markup, splice_end, "NULL", display_transform, grammar=grammar
    )
    will_remove_mention = treat_mention_as_unit and (
        control_splice_start is None or control_splice_end is None
    )

    new_value = splice_string(value, _int(mapped_splice_start), _int(mapped_splice_end), insert)
    if will_remove_mention:
        logger.debug(
            "mention removed by edit: plain=[%s, %s) markup=[%s, %s)",
            splice_start,
            splice_end,
            mapped_splice_start,
            mapped_splice_end,
        )
        return new_value

    control_plain_text_value = get_plain_text(
        new_value, markup, display_transform, grammar=grammar
    )
    if control_plain_text_value == plain_text_value:
        return new_value

    # the field changed more text than the selection tells (autocorrect, IME)
    splice_start = _first_difference(plain_text_value, control_plain_text_value)
    insert = _slice(plain_text_value, splice_start, selection_end_after)

    # Approximation: the rightmost occurrence of the unchanged remainder is taken as its
    # position in the old text, which is wrong when that text also follows the edit.
    splice_end = old_plain_text_value.rfind(plain_text_value[max(selection_end_after, 0) :])

    mapped_splice_start = map_plain_text_index(
        value, markup, splice_start, "START", display_transform, grammar=grammar
    )
    mapped_splice_end = map_plain_text_index(
        value, markup, splice_end, "END", display_transform, grammar=grammar
    )
    logger.debug(
        "autocorrection detected: plain=[%s, %s) insert=%r",
        splice_start,
        splice_end,
        insert,
    )
    return splice_string(value, _int(mapped_splice_start), _int(mapped_splice_end), insert)


def _first_difference(left: str, right: str) -> int:
    index = 0
    limit = min(len(left), len(right))
    while index < limit and left[index] == right[index]:
        index += 1
    return index


def _slice(text: str, start: int, end: int) -> str:
    return text[max(start, 0) : max(end, 0)]


def _int(index: int | None) -> int:
    # START/END corrections always resolve to an offset
    return index if index is not None else 0
