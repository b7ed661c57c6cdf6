from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from apps.cli.main import app

runner = CliRunner()


def _write_change(path: Path, **overrides: object) -> Path:
    payload: dict[str, object] = {
        "value": "Hello @[John](1), how are you?",
        "plain_text_value": "Hello Jon, how are you?",
        "selection_start_before": 9,
        "selection_end_before": 9,
        "selection_start_after": 8,
        "selection_end_after": 8,
    }
    payload.update(overrides)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_apply_change_human_report(tmp_path: Path) -> None:
    change = _write_change(tmp_path / "change.json")

    result = runner.invoke(app, ["apply-change", "--change", str(change)])

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "change_summary:"
    assert "value='Hello , how are you?'" in lines
    assert "selection=6..6 (adjusted)" in lines
    assert "mentions: none" in lines
    assert "removed: John#1" in lines


def test_apply_change_json_report(tmp_path: Path) -> None:
    change = _write_change(
        tmp_path / "change.json",
        value="Hi @[Alice](42)!",
        plain_text_value="Hi Alice!!",
        selection_start_before=9,
        selection_end_before=9,
        selection_start_after=10,
        selection_end_after=10,
    )

    result = runner.invoke(app, ["apply-change", "--change", str(change), "--report", "json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["value"] == "Hi @[Alice](42)!!"
    assert payload["plain_text"] == "Hi Alice!!"
    assert payload["mentions"][0]["id"] == "42"
    assert payload["selection_adjusted"] is False


def test_apply_change_writes_out_file(tmp_path: Path) -> None:
    change = _write_change(tmp_path / "change.json")
    out = tmp_path / "out" / "result.json"

    result = runner.invoke(
        app, ["apply-change", "--change", str(change), "--report", "json", "--out", str(out)]
    )

    assert result.exit_code == 0, result.output
    assert f"INFO: wrote change result to {out}" in result.output
    written = json.loads(out.read_text(encoding="utf-8"))
    assert written["value"] == "Hello , how are you?"
    assert written["removed_mentions"][0]["display"] == "John"
    assert list(out.parent.glob("*.tmp")) == []


def test_apply_change_without_unit_mode_from_config(tmp_path: Path) -> None:
    change = _write_change(tmp_path / "change.json")
    config_path = tmp_path / "editor.yaml"
    config_path.write_text("treat_mention_as_unit: false\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["apply-change", "--change", str(change), "--config", str(config_path), "--report", "json"],
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["value"] == "Hello Jo, how are you?"


def test_apply_change_rejects_invalid_json(tmp_path: Path) -> None:
    change = tmp_path / "change.json"
    change.write_text("{not json", encoding="utf-8")

    result = runner.invoke(app, ["apply-change", "--change", str(change)])

    assert result.exit_code == 2
    assert "Change file is not valid JSON" in result.output


def test_apply_change_rejects_incomplete_event(tmp_path: Path) -> None:
    change = tmp_path / "change.json"
    change.write_text(json.dumps({"value": "x", "plain_text_value": "xy"}), encoding="utf-8")

    result = runner.invoke(app, ["apply-change", "--change", str(change)])

    assert result.exit_code == 2
    assert "Invalid change event schema" in result.output


def test_apply_change_rejects_unknown_report_mode(tmp_path: Path) -> None:
    change = _write_change(tmp_path / "change.json")

    result = runner.invoke(app, ["apply-change", "--change", str(change), "--report", "xml"])

    assert result.exit_code == 2
    assert "--report must be one of" in result.output
