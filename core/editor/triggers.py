"""Detection of mention queries typed before the caret."""

from __future__ import annotations

import re
from dataclasses import dataclass

from core.markup.grammar import escape_regex


@dataclass(frozen=True)
class TriggerMatch:
    """A typed query: `plain_text[query_start:query_end]` is replaced on completion."""

    query: str
    query_start: int
    query_end: int


def build_trigger_pattern(trigger: str | re.Pattern[str]) -> re.Pattern[str]:
    """Compile a trigger into a pattern matching a query ending at the input end.

    Group 1 covers the trigger and the query, group 2 the query alone. Compiled
    patterns are used as given; without a group 2 their query is empty.
    """

    if isinstance(trigger, re.Pattern):
        return trigger

    escaped = escape_regex(trigger)
    return re.compile(rf"(?:^|\s)({escaped}([^\s{escaped}]*))$")


def find_trigger_query(
    plain_text: str,
    caret: int,
    trigger: str | re.Pattern[str],
) -> TriggerMatch | None:
    """Find the query typed right before caret, if the trigger starts one."""

    substring = plain_text[: max(caret, 0)]
    match = build_trigger_pattern(trigger).search(substring)
    if match is None:
        return None

    # patterns without a query group yield an empty query
    groups = match.re.groups
    query = (match.group(2) or "") if groups >= 2 else ""
    span = match.span(1) if groups >= 1 else match.span()
    return TriggerMatch(query=query, query_start=span[0], query_end=span[1])
