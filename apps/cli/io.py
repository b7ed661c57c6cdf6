"""CLI I/O helpers for input loading and atomic output writing."""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from core.editor.models import ChangeEvent
from core.utils.errors import ChangeRequestError


def read_value(value: str | None, value_file: Path | None) -> str:
    """Return the marked up value given inline or as a UTF-8 file."""

    if value is not None and value_file is not None:
        raise ChangeRequestError("--value and --value-file cannot be used together")
    if value_file is not None:
        return value_file.read_text(encoding="utf-8")
    if value is None:
        raise ChangeRequestError("one of --value or --value-file is required")
    return value


def load_change_event(path: Path) -> ChangeEvent:
    """Load one edit event from a JSON file."""

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ChangeRequestError(
            "Change file is not valid JSON", detail={"path": str(path)}
        ) from exc

    if not isinstance(raw, dict):
        raise ChangeRequestError("Change JSON must be an object", detail={"path": str(path)})

    try:
        return ChangeEvent.model_validate(raw)
    except ValidationError as exc:
        raise ChangeRequestError(
            "Invalid change event schema",
            detail={"path": str(path), "errors": exc.errors(include_url=False)},
        ) from exc


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Write JSON payload atomically using a temporary file + replace."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        json.dump(payload, tmp, ensure_ascii=False, sort_keys=True, separators=(",", ":"))

    try:
        tmp_path.replace(path)
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise
