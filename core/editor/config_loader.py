"""Editor configuration loading utilities."""

from __future__ import annotations

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from core.editor.models import EditorConfig
from core.markup.grammar import MarkupGrammar, resolve_grammar


def load_editor_config(
    path: Path | None = None,
    *,
    grammar: MarkupGrammar | None = None,
) -> EditorConfig:
    """Load and validate editor configuration from YAML.

    Raises:
        ValueError: If the file is missing, is not a YAML mapping, or does not match
            the configuration schema.
        ConfigError: If the configured markup has no id/display placeholder.
    """

    config_path = path or Path(__file__).with_name("editor.yaml")

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Editor config file not found: {config_path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in editor config file: {config_path}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Editor config file must contain a mapping: {config_path}")

    try:
        config = EditorConfig.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid editor config schema: {config_path}") from exc

    _check_unique_sources(config, config_path)
    resolve_grammar(grammar).validate(config.markup)
    return config


def _check_unique_sources(config: EditorConfig, config_path: Path) -> None:
    seen: set[str] = set()
    for source in config.sources:
        if source.type in seen:
            raise ValueError(
                f"Duplicate mention source type '{source.type}' in {config_path}. "
                "Each source needs its own type."
            )
        seen.add(source.type)
