"""Headless state of a mentions input field.

`MentionsSession` holds what an editable field host keeps between input events: the
marked up value, the last known selection, and the suggestions for the query at the
caret. Rendering is left to the host; every event handler returns plain data.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from functools import partial
from typing import Any

from core.editor.models import (
    ChangeEvent,
    ChangeResult,
    EditorConfig,
    MentionSourceConfig,
    SuggestionGroup,
    SuggestionItem,
)
from core.editor.suggestions import (
    DataProvider,
    SuggestionQueries,
    build_data_provider,
    get_suggestion,
    to_suggestion_item,
)
from core.editor.triggers import find_trigger_query
from core.markup.grammar import MarkupGrammar, resolve_grammar
from core.markup.models import DisplayTransform
from core.markup.offsets import is_inside_of_mention
from core.markup.plain_text import get_plain_text
from core.orchestrator.pipeline import run_add_mention, run_change

logger = logging.getLogger("mentions.core")

ChangeListener = Callable[[ChangeResult], None]
AddListener = Callable[[str, str, str], None]

KEY_ESCAPE = "Escape"
KEY_DOWN = "ArrowDown"
KEY_UP = "ArrowUp"
KEY_RETURN = "Enter"
KEY_TAB = "Tab"


class MentionsSession:
    """Event-driven model of one mentions input."""

    def __init__(
        self,
        config: EditorConfig,
        *,
        value: str = "",
        providers: Mapping[str, Sequence[Any] | DataProvider] | None = None,
        on_change: ChangeListener | None = None,
        on_add: AddListener | None = None,
        display_transform: DisplayTransform | None = None,
        grammar: MarkupGrammar | None = None,
    ) -> None:
        self.config = config
        self.value = value
        self.selection_start: int | None = None
        self.selection_end: int | None = None
        self.focus_index = 0
        self.queries = SuggestionQueries()

        self._grammar = resolve_grammar(grammar)
        self._grammar.validate(config.markup)
        self._display_transform = (
            display_transform if display_transform is not None else config.display_transform()
        )
        self._on_change = on_change
        self._on_add = on_add
        self._providers: dict[str, DataProvider] = {}
        for source in config.sources:
            data: Sequence[Any] | DataProvider = source.data
            if providers is not None and source.type in providers:
                data = providers[source.type]
            self._providers[source.type] = build_data_provider(data)

        self._composing = False
        self._suggestions_pressed = False

    @property
    def plain_text(self) -> str:
        return get_plain_text(
            self.value, self.config.markup, self._display_transform, grammar=self._grammar
        )

    @property
    def suggestions(self) -> dict[str, SuggestionGroup]:
        return self.queries.groups

    @property
    def is_loading(self) -> bool:
        return self.queries.is_loading

    def handle_change(
        self,
        plain_text_value: str,
        selection_start: int | None,
        selection_end: int,
    ) -> ChangeResult:
        """Apply the field's new text and selection, and notify the change listener."""

        event = ChangeEvent(
            value=self.value,
            plain_text_value=plain_text_value,
            selection_start_before=self.selection_start,
            selection_end_before=self.selection_end,
            selection_start_after=selection_start,
            selection_end_after=selection_end,
        )
        result = run_change(
            event,
            self.config,
            display_transform=self._display_transform,
            grammar=self._grammar,
        )
        self.value = result.value
        self.selection_start = result.selection_start
        self.selection_end = result.selection_end
        self._emit(result)
        return result

    def handle_select(self, selection_start: int, selection_end: int) -> None:
        """Track the selection and refresh the suggestion queries for a collapsed caret."""

        if self._composing:
            return

        self.selection_start = selection_start
        self.selection_end = selection_end

        if selection_start == selection_end:
            self.update_mentions_queries(self.plain_text, selection_start)
        else:
            self.clear_suggestions()

    def handle_key_down(self, key: str) -> bool:
        """Handle navigation keys while suggestions are shown; return True if consumed."""

        if key not in {KEY_ESCAPE, KEY_DOWN, KEY_UP, KEY_RETURN, KEY_TAB}:
            return False
        if not self.queries.count:
            return False

        if key == KEY_ESCAPE:
            self.clear_suggestions()
        elif key == KEY_DOWN:
            self.shift_focus(+1)
        elif key == KEY_UP:
            self.shift_focus(-1)
        else:
            self.select_focused()
        return True

    def handle_blur(self) -> bool:
        """Forget the selection unless focus moved to the suggestion list."""

        clicked_suggestion = self._suggestions_pressed
        self._suggestions_pressed = False
        if not clicked_suggestion:
            self.selection_start = None
            self.selection_end = None
        return clicked_suggestion

    def press_suggestions(self) -> None:
        self._suggestions_pressed = True

    def start_composition(self) -> None:
        self._composing = True

    def end_composition(self) -> None:
        self._composing = False

    def shift_focus(self, delta: int) -> None:
        count = self.queries.count
        if count:
            self.focus_index = (count + self.focus_index + delta) % count

    def select_focused(self) -> ChangeResult | None:
        found = get_suggestion(self.queries.groups, self.focus_index)
        self.focus_index = 0
        if found is None:
            return None
        suggestion, group = found
        return self.add_mention(suggestion, group)

    def clear_suggestions(self) -> None:
        self.queries.invalidate()
        self.focus_index = 0

    def update_mentions_queries(self, plain_text_value: str, caret: int) -> None:
        """Query every source whose trigger starts a query right before caret."""

        self.clear_suggestions()

        if is_inside_of_mention(
            self.value,
            self.config.markup,
            caret,
            self._display_transform,
            grammar=self._grammar,
        ):
            return

        for source in self.config.sources:
            match = find_trigger_query(plain_text_value, caret, source.trigger)
            if match is None:
                continue
            self._query_data(
                source, match.query, match.query_start, match.query_end, plain_text_value
            )

    def update_suggestions(
        self,
        query_id: int,
        source: MentionSourceConfig,
        query: str,
        query_start: int,
        query_end: int,
        plain_text_value: str,
        results: Sequence[Any],
    ) -> bool:
        group = SuggestionGroup(
            source_type=source.type,
            query=query,
            query_start=query_start,
            query_end=query_end,
            plain_text_value=plain_text_value,
            results=[to_suggestion_item(item) for item in results],
        )
        return self.queries.update(query_id, group)

    def add_mention(self, suggestion: SuggestionItem, group: SuggestionGroup) -> ChangeResult:
        """Insert suggestion in place of the query it was suggested for."""

        source = self.config.source(group.source_type)
        result = run_add_mention(
            self.value,
            suggestion,
            group,
            source,
            self.config,
            display_transform=self._display_transform,
            grammar=self._grammar,
        )
        self.value = result.value
        self.selection_start = result.selection_start
        self.selection_end = result.selection_end

        self._emit(result)
        self.clear_suggestions()

        if self._on_add is not None:
            self._on_add(source.type, suggestion.id, suggestion.label)
        return result

    def _query_data(
        self,
        source: MentionSourceConfig,
        query: str,
        query_start: int,
        query_end: int,
        plain_text_value: str,
    ) -> None:
        query_id = self.queries.query_id
        callback = partial(
            self.update_suggestions,
            query_id,
            source,
            query,
            query_start,
            query_end,
            plain_text_value,
        )
        provider = self._providers[source.type]
        self.queries.mark_pending(query_id, source.type)
        sync_result = provider(query, callback)
        if sync_result is not None:
            callback(sync_result)

    def _emit(self, result: ChangeResult) -> None:
        logger.debug(
            "value changed: mentions=%s removed=%s",
            len(result.mentions),
            len(result.removed_mentions),
        )
        if self._on_change is not None:
            self._on_change(result)
