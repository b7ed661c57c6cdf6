"""Data models for editor configuration, edit events, and edit results."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.markup.mentions import make_mention_markup
from core.markup.models import DEFAULT_MARKUP, DisplayTransform, Mention


class SuggestionItem(BaseModel):
    """One entry a mention source can suggest; extra keys are kept for hosts."""

    model_config = ConfigDict(extra="allow")

    id: str
    display: str | None = None

    @property
    def label(self) -> str:
        return self.display or self.id


class MentionSourceConfig(BaseModel):
    """A kind of mention the editor offers, e.g. users behind `@` or tags behind `#`.

    `trigger` is a literal string or a compiled pattern laid out like the ones
    `build_trigger_pattern` compiles.
    """

    model_config = ConfigDict(extra="forbid")

    type: str = "default"
    trigger: str | re.Pattern[str] = "@"
    append_space_on_add: bool = False
    data: list[SuggestionItem] = Field(default_factory=list)

    @field_validator("trigger")
    @classmethod
    def _non_empty_trigger(cls, value: str | re.Pattern[str]) -> str | re.Pattern[str]:
        if isinstance(value, str) and not value:
            raise ValueError("trigger must not be empty")
        return value


class EditorConfig(BaseModel):
    """Editor configuration loaded from YAML."""

    model_config = ConfigDict(extra="forbid")

    markup: str = DEFAULT_MARKUP
    treat_mention_as_unit: bool = True
    display_template: str | None = None
    sources: list[MentionSourceConfig] = Field(
        default_factory=lambda: [MentionSourceConfig()]
    )

    def display_transform(self) -> DisplayTransform | None:
        """Build the display hook described by `display_template` (None: identity)."""

        template = self.display_template
        if template is None:
            return None

        def _transform(
            mention_id: str | None, display: str | None, mention_type: str | None
        ) -> str:
            return make_mention_markup(template, mention_id, display, mention_type)

        return _transform

    def source(self, source_type: str) -> MentionSourceConfig:
        for item in self.sources:
            if item.type == source_type:
                return item
        raise ValueError(f"Unknown mention source: {source_type}")


class ChangeEvent(BaseModel):
    """An input event reported by an editable field."""

    model_config = ConfigDict(extra="forbid")

    value: str
    plain_text_value: str
    selection_start_before: int | None = None
    selection_end_before: int | None = None
    selection_start_after: int | None = None
    selection_end_after: int


class ChangeResult(BaseModel):
    """New field state after an edit or a mention insertion.

    `mentions` and `removed_mentions` report each display as shown in the field, i.e.
    with the display transform applied, so their `plain_text_index` and `display`
    line up with `plain_text`. The stored display is the one in `value`.
    """

    model_config = ConfigDict(extra="forbid")

    value: str
    plain_text: str
    mentions: list[Mention] = Field(default_factory=list)
    removed_mentions: list[Mention] = Field(default_factory=list)
    selection_start: int | None = None
    selection_end: int | None = None
    selection_adjusted: bool = False


class SuggestionGroup(BaseModel):
    """Suggestions returned by one mention source for the query at the caret."""

    model_config = ConfigDict(extra="forbid")

    source_type: str
    query: str
    query_start: int
    query_end: int
    plain_text_value: str
    results: list[SuggestionItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_query_range(self) -> SuggestionGroup:
        if not 0 <= self.query_start <= self.query_end <= len(self.plain_text_value):
            raise ValueError(
                f"query range {self.query_start}..{self.query_end} is outside the plain text "
                f"of length {len(self.plain_text_value)}"
            )
        return self

    def summary(self) -> dict[str, Any]:
        return {
            "source_type": self.source_type,
            "query": self.query,
            "count": len(self.results),
        }
