from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx
import pytest

from apps.api.main import app

VALUE = "Hi @[Alice](42)!"


async def _post(path: str, payload: dict[str, Any]) -> httpx.Response:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        return await client.post(path, json=payload)


@pytest.mark.anyio
async def test_plain_text_endpoint() -> None:
    response = await _post("/v1/plain-text", {"value": VALUE})

    assert response.status_code == 200
    payload = response.json()
    assert payload["plain_text"] == "Hi Alice!"
    assert payload["request_id"] == response.headers["X-Mentions-Request-Id"]


@pytest.mark.anyio
async def test_plain_text_endpoint_with_markup_override() -> None:
    response = await _post(
        "/v1/plain-text", {"value": "ping <@U1|ann>", "markup": "<@__id__|__display__>"}
    )

    assert response.status_code == 200
    assert response.json()["plain_text"] == "ping ann"


@pytest.mark.anyio
async def test_mentions_endpoint() -> None:
    response = await _post("/v1/mentions", {"value": VALUE})

    assert response.status_code == 200
    assert response.json()["mentions"] == [
        {"id": "42", "display": "Alice", "type": None, "index": 3, "plain_text_index": 3}
    ]


@pytest.mark.anyio
async def test_map_index_endpoint() -> None:
    inside = await _post("/v1/map-index", {"value": VALUE, "index": 5, "correction": "NULL"})
    after = await _post("/v1/map-index", {"value": VALUE, "index": 8})
    unknown = await _post("/v1/map-index", {"value": VALUE, "index": None})

    assert inside.json()["index"] is None
    assert after.json()["index"] == 15
    assert unknown.json()["index"] is None


@pytest.mark.anyio
async def test_map_index_endpoint_rejects_unknown_correction() -> None:
    response = await _post("/v1/map-index", {"value": VALUE, "index": 5, "correction": "MIDDLE"})

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_ARGUMENT"


@pytest.mark.anyio
async def test_change_endpoint_inserts_text_after_mention() -> None:
    response = await _post(
        "/v1/change",
        {
            "value": VALUE,
            "plain_text_value": "Hi Alice!!",
            "selection_start_before": 9,
            "selection_end_before": 9,
            "selection_end_after": 10,
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["value"] == "Hi @[Alice](42)!!"
    assert payload["plain_text"] == "Hi Alice!!"
    assert payload["removed_mentions"] == []


@pytest.mark.anyio
async def test_change_endpoint_removes_mention_as_unit() -> None:
    body = {
        "value": "Hello @[John](1), how are you?",
        "plain_text_value": "Hello Jon, how are you?",
        "selection_start_before": 9,
        "selection_end_before": 9,
        "selection_start_after": 8,
        "selection_end_after": 8,
    }

    unit = await _post("/v1/change", body)
    broken = await _post("/v1/change", {**body, "treat_mention_as_unit": False})

    assert unit.json()["value"] == "Hello , how are you?"
    assert unit.json()["selection_start"] == 6
    assert broken.json()["value"] == "Hello Jo, how are you?"


@pytest.mark.anyio
async def test_change_endpoint_rejects_incomplete_event() -> None:
    response = await _post("/v1/change", {"value": VALUE, "plain_text_value": "Hi Alice!!"})

    assert response.status_code == 400
    payload = response.json()
    assert payload["error_code"] == "INVALID_CHANGE"
    assert payload["detail"]["errors"]


@pytest.mark.anyio
async def test_mention_markup_endpoint() -> None:
    response = await _post("/v1/mention-markup", {"id": "7", "display": "Bob"})

    assert response.status_code == 200
    assert response.json()["markup"] == "@[Bob](7)"


@pytest.mark.anyio
async def test_suggestions_endpoint_uses_configured_sources(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    config_path = tmp_path / "editor.yaml"
    config_path.write_text(
        "\n".join(
            [
                "sources:",
                "  - type: user",
                '    trigger: "@"',
                "    data:",
                '      - {id: "42", display: Alice}',
                '      - {id: "7", display: Bob}',
                "",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("MENTIONS_CONFIG_PATH", str(config_path))

    response = await _post("/v1/suggestions", {"value": "Hi @al", "caret": 6})

    assert response.status_code == 200
    payload = response.json()
    assert payload["plain_text"] == "Hi @al"
    group = payload["groups"][0]
    assert (group["source_type"], group["query"], group["query_start"]) == ("user", "al", 3)
    assert [item["id"] for item in group["results"]] == ["42"]


@pytest.mark.anyio
async def test_suggestions_endpoint_without_trigger() -> None:
    response = await _post("/v1/suggestions", {"value": VALUE, "caret": 2})

    assert response.status_code == 200
    assert response.json()["groups"] == []


@pytest.mark.anyio
async def test_add_mention_endpoint() -> None:
    group = {
        "source_type": "user",
        "query": "al",
        "query_start": 3,
        "query_end": 6,
        "plain_text_value": "Hi @al",
    }
    response = await _post(
        "/v1/add-mention",
        {"value": "Hi @al", "suggestion": {"id": "42", "display": "Alice"}, "group": group},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["value"] == "Hi @[Alice](42)"
    assert payload["plain_text"] == "Hi Alice"
    assert payload["selection_start"] == 8


@pytest.mark.anyio
async def test_add_mention_endpoint_rejects_unknown_source() -> None:
    group = {
        "source_type": "tag",
        "query": "py",
        "query_start": 0,
        "query_end": 3,
        "plain_text_value": "#py",
    }
    response = await _post(
        "/v1/add-mention", {"value": "#py", "suggestion": {"id": "python"}, "group": group}
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "UNKNOWN_SOURCE"


@pytest.mark.anyio
async def test_add_mention_endpoint_rejects_inverted_query_range() -> None:
    group = {
        "source_type": "user",
        "query": "jo",
        "query_start": 9,
        "query_end": 2,
        "plain_text_value": "hello @jo",
    }
    response = await _post(
        "/v1/add-mention",
        {"value": "hello @jo", "suggestion": {"id": "1", "display": "John"}, "group": group},
    )

    assert response.status_code == 400
    payload = response.json()
    assert payload["error_code"] == "INVALID_ARGUMENT"
    assert "value" not in payload
