"""Plain text projection of marked up values."""

from __future__ import annotations

import re

from core.markup.grammar import MarkupGrammar, resolve_grammar
from core.markup.models import DisplayTransform


def get_plain_text(
    value: str,
    markup: str,
    display_transform: DisplayTransform | None = None,
    *,
    grammar: MarkupGrammar | None = None,
) -> str:
    """Replace every mention in value with its (transformed) display text."""

    compiled = resolve_grammar(grammar).compiled(markup)
    positions = compiled.positions

    def _display(match: re.Match[str]) -> str:
        display = match.group(positions.display)
        if display_transform is not None:
            mention_type = match.group(positions.type) if positions.type is not None else None
            display = display_transform(match.group(positions.id), display, mention_type)
        return display

    return compiled.pattern.sub(_display, value)
