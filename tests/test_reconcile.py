from __future__ import annotations

import logging

import pytest

from core.markup.models import DEFAULT_MARKUP
from core.markup.plain_text import get_plain_text
from core.markup.reconcile import apply_change_to_value

VALUE = "Hi @[Alice](42)!"
GREETING = "Hello @[John](1), how are you?"


def _apply(
    value: str,
    plain_text_value: str,
    start_before: int | None,
    end_before: int | None,
    end_after: int,
    *,
    unit: bool = True,
) -> str:
    return apply_change_to_value(
        value,
        DEFAULT_MARKUP,
        plain_text_value,
        start_before,
        end_before,
        end_after,
        treat_mention_as_unit=unit,
    )


def test_insert_after_mention_keeps_mention() -> None:
    assert _apply(VALUE, "Hi Alice!!", 9, 9, 10) == "Hi @[Alice](42)!!"


def test_insert_at_start_of_value() -> None:
    assert _apply(VALUE, "xHi Alice!", 0, 0, 1) == "xHi @[Alice](42)!"


def test_insert_at_mention_start_goes_before_markup() -> None:
    assert _apply(VALUE, "Hi xAlice!", 3, 3, 4) == "Hi x@[Alice](42)!"


def test_insert_at_mention_end_goes_after_markup() -> None:
    assert _apply(VALUE, "Hi Alicex!", 8, 8, 9) == "Hi @[Alice](42)x!"


def test_unknown_selection_is_derived_from_length_delta() -> None:
    assert _apply(VALUE, "Hi Alice!!", None, None, 10) == "Hi @[Alice](42)!!"


def test_backspace_inside_mention_removes_whole_mention() -> None:
    assert _apply(GREETING, "Hello Jon, how are you?", 9, 9, 8) == "Hello , how are you?"


def test_backspace_on_last_mention_char_removes_mention() -> None:
    assert _apply(VALUE, "Hi Alic!", 8, 8, 7) == "Hi !"


def test_forward_delete_at_mention_start_removes_mention() -> None:
    assert _apply(VALUE, "Hi lice!", 3, 3, 3) == "Hi !"


def test_backspace_inside_mention_without_unit_breaks_mention() -> None:
    result = _apply(GREETING, "Hello Jon, how are you?", 9, 9, 8, unit=False)

    assert "@[John](1)" not in result
    assert result == "Hello Jo, how are you?"


def test_replacing_selected_text_before_mention() -> None:
    assert _apply(VALUE, "Yo Alice!", 0, 3, 3) == "Yo @[Alice](42)!"


def test_replacing_composed_character_keeps_length() -> None:
    assert _apply("cafe", "café", 4, 4, 4) == "café"


def test_autocorrection_rewrites_preceding_text(caplog: pytest.LogCaptureFixture) -> None:
    value = "Hi @[Alice](42) teh"
    caplog.set_level(logging.DEBUG, logger="mentions.core")

    result = _apply(value, "Hi Alice the ", 12, 12, 13)

    assert result == "Hi @[Alice](42) the "
    assert any("autocorrection detected" in record.getMessage() for record in caplog.records)


def test_result_projects_to_edited_plain_text() -> None:
    result = _apply(VALUE, "Hi Alice, bye!", 8, 8, 13)

    assert result == "Hi @[Alice](42), bye!"
    assert get_plain_text(result, DEFAULT_MARKUP) == "Hi Alice, bye!"


def test_display_transform_is_honored() -> None:
    result = apply_change_to_value(
        VALUE,
        DEFAULT_MARKUP,
        "Hi @Alice!!",
        10,
        10,
        11,
        lambda _id, display, _type: f"@{display}",
        True,
    )

    assert result == "Hi @[Alice](42)!!"
