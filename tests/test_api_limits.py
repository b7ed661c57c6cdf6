from __future__ import annotations

import base64

import httpx
import pytest

from apps.api.main import app


@pytest.mark.anyio
async def test_invalid_markup_returns_400() -> None:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post(
            "/v1/plain-text", json={"value": "x", "markup": "[__type__]"}
        )

    assert response.status_code == 400
    payload = response.json()
    assert payload["error_code"] == "INVALID_MARKUP"
    assert payload["detail"]["markup"] == "[__type__]"
    assert payload["detail"]["request_id"] == response.headers["X-Mentions-Request-Id"]


@pytest.mark.anyio
async def test_non_json_body_returns_invalid_json() -> None:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        garbage = await client.post("/v1/plain-text", content=b"not json")
        array = await client.post("/v1/plain-text", json=["x"])

    assert garbage.status_code == 400
    assert garbage.json()["error_code"] == "INVALID_JSON"
    assert array.status_code == 400
    assert array.json()["error_code"] == "INVALID_JSON"


@pytest.mark.anyio
async def test_unknown_field_returns_invalid_argument() -> None:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post("/v1/plain-text", json={"value": "x", "extra": 1})

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_ARGUMENT"


@pytest.mark.anyio
async def test_value_over_limit_returns_413(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MENTIONS_MAX_VALUE_CHARS", "5")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post("/v1/plain-text", json={"value": "123456"})

    assert response.status_code == 413
    payload = response.json()
    assert payload["error_code"] == "VALUE_TOO_LARGE"
    assert payload["detail"]["max_value_chars"] == 5


@pytest.mark.anyio
async def test_invalid_limit_env_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MENTIONS_MAX_VALUE_CHARS", "lots")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post("/v1/plain-text", json={"value": "123456"})

    assert response.status_code == 200


@pytest.mark.anyio
async def test_missing_config_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MENTIONS_CONFIG_PATH", "/nonexistent/editor.yaml")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post("/v1/plain-text", json={"value": "x"})

    assert response.status_code == 500
    assert response.json()["error_code"] == "CONFIG_ERROR"


@pytest.mark.anyio
async def test_endpoints_require_basic_auth_when_enabled(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("MENTIONS_BASIC_AUTH", "u:p")
    token = base64.b64encode(b"u:p").decode("ascii")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        denied = await client.post("/v1/plain-text", json={"value": "x"})
        allowed = await client.post(
            "/v1/plain-text",
            json={"value": "x"},
            headers={"Authorization": f"Basic {token}"},
        )

    assert denied.status_code == 401
    assert denied.json()["error_code"] == "UNAUTHORIZED"
    assert allowed.status_code == 200
