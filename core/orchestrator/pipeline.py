"""Orchestration of field edits: reconcile -> re-derive -> caret adjustment."""

from __future__ import annotations

from collections import Counter

from core.editor.models import (
    ChangeEvent,
    ChangeResult,
    EditorConfig,
    MentionSourceConfig,
    SuggestionGroup,
    SuggestionItem,
)
from core.markup.grammar import MarkupGrammar
from core.markup.mentions import get_mentions, make_mention_markup, splice_string
from core.markup.models import DisplayTransform, Mention
from core.markup.offsets import find_mention_start_in_plain_text, map_plain_text_index
from core.markup.plain_text import get_plain_text
from core.markup.reconcile import apply_change_to_value


def run_change(
    event: ChangeEvent,
    config: EditorConfig,
    *,
    display_transform: DisplayTransform | None = None,
    grammar: MarkupGrammar | None = None,
) -> ChangeResult:
    """Apply one field input event to its marked up value.

    Besides the new value this re-derives the plain text (a removed mention changes
    it), the mention list, and the selection to restore in the field.
    """

    transform = display_transform if display_transform is not None else config.display_transform()
    markup = config.markup

    new_value = apply_change_to_value(
        event.value,
        markup,
        event.plain_text_value,
        event.selection_start_before,
        event.selection_end_before,
        event.selection_end_after,
        transform,
        config.treat_mention_as_unit,
        grammar=grammar,
    )
    plain_text = get_plain_text(new_value, markup, transform, grammar=grammar)

    selection_start = (
        event.selection_start_after
        if event.selection_start_after is not None
        else event.selection_end_after
    )
    selection_end = event.selection_end_after
    selection_adjusted = False

    # characters of a removed mention outside the selection vanish too: move caret to it
    if config.treat_mention_as_unit:
        start_of_mention = find_mention_start_in_plain_text(
            event.value, markup, selection_start, transform, grammar=grammar
        )
        if (
            start_of_mention is not None
            and event.selection_end_before is not None
            and event.selection_end_before > start_of_mention
        ):
            selection_start = selection_end = start_of_mention
            selection_adjusted = True

    old_mentions = get_mentions(event.value, markup, transform, grammar=grammar)
    mentions = get_mentions(new_value, markup, transform, grammar=grammar)

    return ChangeResult(
        value=new_value,
        plain_text=plain_text,
        mentions=mentions,
        removed_mentions=_removed_mentions(old_mentions, mentions),
        selection_start=selection_start,
        selection_end=selection_end,
        selection_adjusted=selection_adjusted,
    )


def run_add_mention(
    value: str,
    suggestion: SuggestionItem,
    group: SuggestionGroup,
    source: MentionSourceConfig,
    config: EditorConfig,
    *,
    display_transform: DisplayTransform | None = None,
    grammar: MarkupGrammar | None = None,
) -> ChangeResult:
    """Replace the typed query described by group with a mention of suggestion."""

    transform = display_transform if display_transform is not None else config.display_transform()
    markup = config.markup

    start = map_plain_text_index(
        value, markup, group.query_start, "START", transform, grammar=grammar
    )
    start = start if start is not None else 0
    end = start + group.query_end - group.query_start

    insert = make_mention_markup(markup, suggestion.id, suggestion.label, source.type)
    display_value = (
        transform(suggestion.id, suggestion.label, source.type)
        if transform is not None
        else suggestion.label
    )
    if source.append_space_on_add:
        insert += " "
        display_value += " "

    new_value = splice_string(value, start, end, insert)
    caret = group.query_start + len(display_value)

    return ChangeResult(
        value=new_value,
        plain_text=splice_string(
            group.plain_text_value, group.query_start, group.query_end, display_value
        ),
        mentions=get_mentions(new_value, markup, transform, grammar=grammar),
        selection_start=caret,
        selection_end=caret,
        selection_adjusted=True,
    )


def _removed_mentions(before: list[Mention], after: list[Mention]) -> list[Mention]:
    remaining: Counter[tuple[str | None, str, str | None]] = Counter(
        (mention.id, mention.display, mention.type) for mention in after
    )
    removed: list[Mention] = []
    for mention in before:
        key = (mention.id, mention.display, mention.type)
        if remaining[key] > 0:
            remaining[key] -= 1
            continue
        removed.append(mention)
    return removed
