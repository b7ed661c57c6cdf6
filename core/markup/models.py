"""Data models for markup templates, scan results, and mentions."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal

PLACEHOLDERS = MappingProxyType(
    {
        "id": "__id__",
        "display": "__display__",
        "type": "__type__",
    }
)

DEFAULT_MARKUP = "@[__display__](__id__)"

Correction = Literal["START", "END", "NULL"]
CORRECTIONS: tuple[Correction, ...] = ("START", "END", "NULL")

DisplayTransform = Callable[[str | None, str | None, str | None], str]


@dataclass(frozen=True)
class GroupPositions:
    """1-based capture group index of each placeholder in a compiled markup pattern.

    `id` and `display` always resolve: when a template lacks one of them, it shares
    the group of the other.
    """

    id: int
    display: int
    type: int | None = None


@dataclass(frozen=True)
class CompiledMarkup:
    """A markup template together with its matching pattern and group positions."""

    template: str
    pattern: re.Pattern[str]
    positions: GroupPositions


@dataclass(frozen=True)
class TextRun:
    """Literal text between two mentions."""

    text: str
    index: int
    plain_text_index: int


@dataclass(frozen=True)
class MentionOccurrence:
    """A mention token as met while scanning a marked up value."""

    markup: str
    index: int
    plain_text_index: int
    id: str | None
    display: str
    type: str | None
    last_mention_end: int


@dataclass(frozen=True)
class Mention:
    """Mention exposed to hosts: identity plus offsets in both representations."""

    id: str | None
    display: str
    type: str | None
    index: int
    plain_text_index: int
