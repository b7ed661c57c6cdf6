"""Suggestion providers and bookkeeping of suggestion queries."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from core.editor.models import SuggestionGroup, SuggestionItem

logger = logging.getLogger("mentions.core")

SuggestionsCallback = Callable[[Sequence[Any]], None]
DataProvider = Callable[[str, SuggestionsCallback], Sequence[Any] | None]


def build_data_provider(data: Sequence[Any] | DataProvider) -> DataProvider:
    """Turn a list of suggestion items into a provider; callables are used as is.

    A provider returns a list for synchronous results, or None after arranging to
    call the callback later.
    """

    if callable(data):
        return data

    items = [to_suggestion_item(item) for item in data]

    def _query(query: str, callback: SuggestionsCallback) -> list[SuggestionItem]:
        needle = query.lower()
        return [item for item in items if needle in item.label.lower()]

    return _query


def to_suggestion_item(raw: Any) -> SuggestionItem:
    if isinstance(raw, SuggestionItem):
        return raw
    return SuggestionItem.model_validate(raw)


def count_suggestions(suggestions: Mapping[str, SuggestionGroup]) -> int:
    return sum(len(group.results) for group in suggestions.values())


def get_suggestion(
    suggestions: Mapping[str, SuggestionGroup],
    index: int,
) -> tuple[SuggestionItem, SuggestionGroup] | None:
    """Return the suggestion at a flat index across all groups, in group order."""

    if index < 0:
        return None
    for group in suggestions.values():
        if index < len(group.results):
            return group.results[index], group
        index -= len(group.results)
    return None


class SuggestionQueries:
    """Track suggestion groups of the current query generation.

    Each query is tagged with the generation id at the time it was issued. Invalidating
    starts a new generation, so late results of earlier queries are dropped.
    """

    def __init__(self) -> None:
        self.query_id = 0
        self.groups: dict[str, SuggestionGroup] = {}
        self.pending: set[str] = set()

    def invalidate(self) -> int:
        self.query_id += 1
        self.groups = {}
        self.pending = set()
        return self.query_id

    def mark_pending(self, query_id: int, source_type: str) -> None:
        if query_id == self.query_id:
            self.pending.add(source_type)

    def update(self, query_id: int, group: SuggestionGroup) -> bool:
        """Store group unless it answers a stale query; return whether it was kept."""

        if query_id != self.query_id:
            logger.debug(
                "dropping stale suggestions: source=%s query_id=%s current=%s",
                group.source_type,
                query_id,
                self.query_id,
            )
            return False

        # copy so groups of different sources never overwrite each other
        self.groups = {**self.groups, group.source_type: group}
        self.pending.discard(group.source_type)
        return True

    @property
    def count(self) -> int:
        return count_suggestions(self.groups)

    @property
    def is_loading(self) -> bool:
        return bool(self.pending)
