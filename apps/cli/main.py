"""Typer CLI entrypoint for mentions-engine."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Literal, TypeVar, cast

import typer

from apps.cli.format_human import render_change_summary, render_mentions
from apps.cli.io import load_change_event, read_value, write_json_atomic
from core.editor.config_loader import load_editor_config
from core.editor.models import EditorConfig
from core.markup.grammar import default_grammar
from core.markup.mentions import get_mentions, make_mention_markup
from core.markup.models import CORRECTIONS, Correction
from core.markup.offsets import map_plain_text_index
from core.markup.plain_text import get_plain_text
from core.orchestrator.pipeline import run_change
from core.utils.errors import ChangeRequestError, ConfigError

app = typer.Typer(help="Mentions markup CLI", rich_markup_mode=None)
ReportMode = Literal["human", "json", "both"]

EXIT_INTERNAL = 1
EXIT_INVALID_INPUT = 2
EXIT_INVALID_MARKUP = 3

T = TypeVar("T")

ValueOption = Annotated[str | None, typer.Option("--value", help="Marked up value.")]
ValueFileOption = Annotated[
    Path | None,
    typer.Option("--value-file", exists=True, dir_okay=False, help="UTF-8 file with the value."),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", exists=True, dir_okay=False, help="Editor config YAML."),
]
MarkupOption = Annotated[
    str | None, typer.Option("--markup", help="Markup template overriding the config.")
]


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep subcommands explicit."""


@app.command("plain-text")
def plain_text_command(
    value: ValueOption = None,
    value_file: ValueFileOption = None,
    config: ConfigOption = None,
    markup: MarkupOption = None,
) -> None:
    """Print the plain text shown for a marked up value."""

    def _run() -> None:
        editor_config = _resolve_config(config, markup)
        text = get_plain_text(
            read_value(value, value_file),
            editor_config.markup,
            editor_config.display_transform(),
        )
        typer.echo(text)

    _guarded(_run)


@app.command("mentions")
def mentions_command(
    value: ValueOption = None,
    value_file: ValueFileOption = None,
    config: ConfigOption = None,
    markup: MarkupOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print mentions as JSON.")] = False,
) -> None:
    """List the mentions of a marked up value."""

    def _run() -> None:
        editor_config = _resolve_config(config, markup)
        mentions = get_mentions(
            read_value(value, value_file),
            editor_config.markup,
            editor_config.display_transform(),
        )
        if as_json:
            typer.echo(json.dumps([asdict(mention) for mention in mentions], ensure_ascii=False))
        else:
            typer.echo(render_mentions(mentions))

    _guarded(_run)


@app.command("map-index")
def map_index_command(
    index: Annotated[int, typer.Option("--index", help="Offset in the plain text.")],
    value: ValueOption = None,
    value_file: ValueFileOption = None,
    config: ConfigOption = None,
    markup: MarkupOption = None,
    correction: Annotated[str, typer.Option("--correction")] = "START",
) -> None:
    """Print the marked up offset of a plain text offset ("null" inside a mention)."""

    def _run() -> None:
        normalized = correction.upper().strip()
        if normalized not in CORRECTIONS:
            raise ChangeRequestError("--correction must be one of: START, END, NULL.")
        editor_config = _resolve_config(config, markup)
        mapped = map_plain_text_index(
            read_value(value, value_file),
            editor_config.markup,
            index,
            cast(Correction, normalized),
            editor_config.display_transform(),
        )
        typer.echo("null" if mapped is None else str(mapped))

    _guarded(_run)


@app.command("apply-change")
def apply_change_command(
    change: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    config: ConfigOption = None,
    markup: MarkupOption = None,
    report: Annotated[str, typer.Option("--report")] = "human",
    out: Annotated[
        Path | None,
        typer.Option("--out", help="Write the change result JSON to this path."),
    ] = None,
) -> None:
    """Apply an edit event (JSON file) made in the plain text view to its value."""

    normalized_report = report.lower().strip()
    if normalized_report not in {"human", "json", "both"}:
        typer.echo("ERROR: --report must be one of: human, json, both.")
        raise typer.Exit(code=EXIT_INVALID_INPUT)
    report_mode = cast(ReportMode, normalized_report)

    def _run() -> None:
        editor_config = _resolve_config(config, markup)
        event = load_change_event(change)
        result = run_change(event, editor_config)
        payload = result.model_dump(mode="json")

        if report_mode in {"human", "both"}:
            typer.echo(render_change_summary(result))
        if report_mode in {"json", "both"}:
            typer.echo(json.dumps(payload, ensure_ascii=False, sort_keys=True))
        if out is not None:
            write_json_atomic(out, payload)
            typer.echo(f"INFO: wrote change result to {out}")

    _guarded(_run)


@app.command("make-markup")
def make_markup_command(
    mention_id: Annotated[str, typer.Option("--id")],
    display: Annotated[str, typer.Option("--display")],
    mention_type: Annotated[str | None, typer.Option("--type")] = None,
    config: ConfigOption = None,
    markup: MarkupOption = None,
) -> None:
    """Print the markup encoding one mention."""

    def _run() -> None:
        editor_config = _resolve_config(config, markup)
        typer.echo(make_mention_markup(editor_config.markup, mention_id, display, mention_type))

    _guarded(_run)


def _resolve_config(config_path: Path | None, markup: str | None) -> EditorConfig:
    editor_config = load_editor_config(config_path) if config_path is not None else EditorConfig()
    if markup is not None:
        editor_config = editor_config.model_copy(update={"markup": markup})
    default_grammar.validate(editor_config.markup)
    return editor_config


def _guarded(run: Callable[[], T]) -> T:
    try:
        return run()
    except ConfigError as exc:
        typer.echo(f"ERROR: invalid markup: {exc}")
        raise typer.Exit(code=EXIT_INVALID_MARKUP) from exc
    except (ChangeRequestError, ValueError) as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INVALID_INPUT) from exc
    except Exception as exc:  # noqa: BLE001
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        raise typer.Exit(code=EXIT_INTERNAL) from exc


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
