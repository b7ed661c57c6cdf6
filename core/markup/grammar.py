"""Markup template compilation.

A markup template is literal text with up to three placeholders (`__id__`,
`__display__`, `__type__`). Compiling it yields a pattern in which each placeholder
is a lazy one-or-more capture group, plus the capture group index of every
placeholder so matches can be decoded.
"""

from __future__ import annotations

import re
from typing import cast

from core.markup.cache import TemplateCache
from core.markup.models import PLACEHOLDERS, CompiledMarkup, GroupPositions
from core.utils.errors import ConfigError

_REGEX_SPECIAL_RE = re.compile(r"[-/\\^$*+?.()|[\]{}]")
_PLACEHOLDER_GROUP = "(.+?)"
_REPLACEMENT_ORDER = ("display", "id", "type")


def escape_regex(text: str) -> str:
    """Backslash-escape every character in `-/\\^$*+?.()|[]{}`."""

    return _REGEX_SPECIAL_RE.sub(r"\\\g<0>", text)


def markup_to_regex(markup: str, match_at_end: bool = False) -> re.Pattern[str]:
    """Build the uncached matching pattern for a markup template.

    Args:
        markup: Markup template such as `@[__display__](__id__)`.
        match_at_end: Anchor the pattern to the end of the input.

    Returns:
        Compiled pattern; use with `finditer`/`sub` to match repeatedly.
    """

    pattern = escape_regex(markup)
    for key in _REPLACEMENT_ORDER:
        pattern = pattern.replace(PLACEHOLDERS[key], _PLACEHOLDER_GROUP, 1)
    if match_at_end:
        pattern += "$"
    return re.compile(pattern)


def compute_group_positions(markup: str) -> GroupPositions:
    """Rank placeholder offsets in the raw template to get their capture group indexes.

    Raises:
        ConfigError: If the template has neither an `__id__` nor a `__display__`
            placeholder.
    """

    offsets = {key: markup.find(token) for key, token in PLACEHOLDERS.items()}
    present = sorted((offset, key) for key, offset in offsets.items() if offset >= 0)
    positions = {key: rank + 1 for rank, (_, key) in enumerate(present)}

    id_position = positions.get("id")
    display_position = positions.get("display")
    if id_position is None and display_position is None:
        raise ConfigError(
            f"Markup '{markup}' has to contain at least one of placeholders "
            f"{PLACEHOLDERS['id']} or {PLACEHOLDERS['display']}",
            template=markup,
        )

    # a missing id or display reads the same group as the other one
    if id_position is None:
        id_position = display_position
    elif display_position is None:
        display_position = id_position

    return GroupPositions(
        id=cast(int, id_position),
        display=cast(int, display_position),
        type=positions.get("type"),
    )


class MarkupGrammar:
    """Registry of compiled markup patterns and group positions.

    One long-lived instance (`default_grammar`) serves the process; tests may build
    their own to get isolated caches.
    """

    def __init__(
        self,
        pattern_cache: TemplateCache[tuple[str, bool], re.Pattern[str]] | None = None,
        positions_cache: TemplateCache[str, GroupPositions] | None = None,
    ) -> None:
        self.pattern_cache = pattern_cache if pattern_cache is not None else TemplateCache()
        self.positions_cache = (
            positions_cache if positions_cache is not None else TemplateCache()
        )

    def compile(self, markup: str, match_at_end: bool = False) -> re.Pattern[str]:
        return self.pattern_cache.get_or_compute(
            (markup, match_at_end),
            lambda key: markup_to_regex(key[0], key[1]),
        )

    def use_pattern(self, markup: str, pattern: re.Pattern[str] | None = None) -> re.Pattern[str]:
        """Register a caller supplied pattern for markup, or return the cached one."""

        if pattern is not None:
            return self.pattern_cache.set((markup, False), pattern)
        return self.compile(markup)

    def group_positions(self, markup: str) -> GroupPositions:
        return self.positions_cache.get_or_compute(markup, compute_group_positions)

    def compiled(self, markup: str) -> CompiledMarkup:
        positions = self.group_positions(markup)
        return CompiledMarkup(template=markup, pattern=self.compile(markup), positions=positions)

    def validate(self, markup: str) -> None:
        """Fail fast with ConfigError when markup cannot encode mentions."""

        self.group_positions(markup)

    def clear(self) -> None:
        self.pattern_cache.clear()
        self.positions_cache.clear()


default_grammar = MarkupGrammar()


def resolve_grammar(grammar: MarkupGrammar | None) -> MarkupGrammar:
    return grammar if grammar is not None else default_grammar
