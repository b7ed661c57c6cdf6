"""Mention extraction and mention markup construction."""

from __future__ import annotations

from core.markup.grammar import MarkupGrammar
from core.markup.models import PLACEHOLDERS, DisplayTransform, Mention, MentionOccurrence
from core.markup.scanner import iter_markup


def get_mentions(
    value: str,
    markup: str,
    display_transform: DisplayTransform | None = None,
    *,
    grammar: MarkupGrammar | None = None,
) -> list[Mention]:
    """List all mentions of value in order of appearance."""

    return [
        Mention(
            id=item.id,
            display=item.display,
            type=item.type,
            index=item.index,
            plain_text_index=item.plain_text_index,
        )
        for item in iter_markup(value, markup, display_transform, grammar=grammar)
        if isinstance(item, MentionOccurrence)
    ]


def make_mention_markup(
    markup: str,
    mention_id: str | None,
    display: str | None,
    mention_type: str | None = None,
) -> str:
    """Fill the placeholders of markup with literal mention values."""

    result = markup.replace(PLACEHOLDERS["id"], mention_id or "", 1)
    result = result.replace(PLACEHOLDERS["display"], display or "", 1)
    return result.replace(PLACEHOLDERS["type"], mention_type or "", 1)


def splice_string(value: str, start: int, end: int, insert: str) -> str:
    """Replace value[start:end] with insert, clamping both bounds into value."""

    length = len(value)
    start = min(max(start, 0), length)
    end = min(max(end, 0), length)
    return value[:start] + insert + value[end:]
