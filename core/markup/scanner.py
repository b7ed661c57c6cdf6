"""Single-pass traversal of a marked up value.

Every offset computation in the engine goes through `iter_markup`, so plain text
offsets are derived the same way everywhere.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator

from core.markup.grammar import MarkupGrammar, resolve_grammar
from core.markup.models import DisplayTransform, MentionOccurrence, TextRun

TextVisitor = Callable[[TextRun], bool | None]
MentionVisitor = Callable[[MentionOccurrence], bool | None]


def iter_markup(
    value: str,
    markup: str,
    display_transform: DisplayTransform | None = None,
    *,
    grammar: MarkupGrammar | None = None,
) -> Iterator[TextRun | MentionOccurrence]:
    """Yield literal text runs and mention occurrences of value in order.

    A (possibly empty) text run precedes every mention. Text after the last mention
    is yielded only when non-empty.

    Args:
        value: Marked up value.
        markup: Markup template the mentions are encoded with.
        display_transform: Optional `(id, display, type) -> display` hook applied to
            every mention display text.
        grammar: Registry used to compile markup; defaults to the process registry.

    Raises:
        ConfigError: If markup has neither an id nor a display placeholder.
    """

    compiled = resolve_grammar(grammar).compiled(markup)
    positions = compiled.positions

    start = 0
    plain_text_index = 0
    for match in compiled.pattern.finditer(value):
        mention_id = match.group(positions.id)
        mention_type = match.group(positions.type) if positions.type is not None else None
        display = match.group(positions.display)
        if display_transform is not None:
            display = display_transform(mention_id, display, mention_type)

        text = value[start : match.start()]
        yield TextRun(text=text, index=start, plain_text_index=plain_text_index)
        plain_text_index += len(text)

        yield MentionOccurrence(
            markup=match.group(0),
            index=match.start(),
            plain_text_index=plain_text_index,
            id=mention_id,
            display=display,
            type=mention_type,
            last_mention_end=start,
        )
        plain_text_index += len(display)
        start = match.end()

    if start < len(value):
        yield TextRun(text=value[start:], index=start, plain_text_index=plain_text_index)


def scan(
    value: str,
    markup: str,
    on_text: TextVisitor,
    on_mention: MentionVisitor,
    display_transform: DisplayTransform | None = None,
    *,
    grammar: MarkupGrammar | None = None,
) -> None:
    """Visit text runs and mentions of value; a visitor returning True halts the scan."""

    for item in iter_markup(value, markup, display_transform, grammar=grammar):
        if isinstance(item, TextRun):
            if on_text(item):
                return
        elif on_mention(item):
            return
