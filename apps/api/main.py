"""FastAPI wrapper for the mentions markup engine."""

from __future__ import annotations

import base64
import binascii
import hmac
import importlib.metadata
import json
import logging
import os
import time
import uuid
from collections.abc import Callable
from dataclasses import asdict
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.editor.config_loader import load_editor_config
from core.editor.models import (
    ChangeEvent,
    EditorConfig,
    SuggestionGroup,
    SuggestionItem,
)
from core.editor.suggestions import build_data_provider
from core.editor.triggers import find_trigger_query
from core.markup.grammar import default_grammar
from core.markup.mentions import get_mentions, make_mention_markup
from core.markup.models import CORRECTIONS, DEFAULT_MARKUP, PLACEHOLDERS, Correction
from core.markup.offsets import is_inside_of_mention, map_plain_text_index
from core.markup.plain_text import get_plain_text
from core.orchestrator.pipeline import run_add_mention, run_change
from core.utils.errors import ConfigError

app = FastAPI(title="mentions-engine API", version="0.1.0")
logger = logging.getLogger("mentions.api")

REQUEST_ID_HEADER = "X-Mentions-Request-Id"

_DEFAULT_MAX_VALUE_CHARS = 1_000_000
_BASIC_AUTH_REALM = "mentions"


class ApiRequestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.detail = detail or {}


class ValueRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: str
    markup: str | None = None


class MapIndexRequest(ValueRequest):
    index: int | None
    correction: Correction = "START"


class ChangeRequest(ChangeEvent):
    markup: str | None = None
    treat_mention_as_unit: bool | None = None


class MentionMarkupRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    display: str
    type: str | None = None
    markup: str | None = None


class SuggestionsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: str
    caret: int = Field(ge=0)
    markup: str | None = None


class AddMentionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: str
    suggestion: SuggestionItem
    group: SuggestionGroup
    markup: str | None = None


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Ensure every response has a request id header."""

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage="middleware",
        )
        response = _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    response.headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/v1/meta")
async def meta_v1(request: Request) -> JSONResponse:
    """Metadata endpoint for clients bootstrapping an editor."""

    request_id = _request_id_from_request(request)
    auth_error = _guard_meta_access(request, request_id)
    if auth_error is not None:
        return auth_error

    try:
        config = _editor_config()
    except (ConfigError, ValueError) as exc:
        return _error_response(
            status_code=500,
            error_code="CONFIG_ERROR",
            message="editor config is invalid",
            request_id=request_id,
            detail={"reason": str(exc)},
        )

    payload = {
        "default_markup": DEFAULT_MARKUP,
        "markup": config.markup,
        "placeholders": dict(PLACEHOLDERS),
        "corrections": list(CORRECTIONS),
        "treat_mention_as_unit": config.treat_mention_as_unit,
        "sources": [
            {
                "type": source.type,
                "trigger": (
                    source.trigger
                    if isinstance(source.trigger, str)
                    else source.trigger.pattern
                ),
                "append_space_on_add": source.append_space_on_add,
            }
            for source in config.sources
        ],
        "max_value_chars": _max_value_chars(),
        "version": app.version,
        "build": {"version": _package_version()},
    }
    return JSONResponse(
        status_code=200,
        headers={REQUEST_ID_HEADER: request_id},
        content=payload,
    )


@app.post("/v1/plain-text", response_model=None)
async def plain_text_v1(request: Request) -> JSONResponse:
    def _handle(body: ValueRequest, config: EditorConfig) -> dict[str, Any]:
        return {
            "plain_text": get_plain_text(body.value, config.markup, config.display_transform())
        }

    return await _handle_request(request, "plain_text", ValueRequest, _handle)


@app.post("/v1/mentions", response_model=None)
async def mentions_v1(request: Request) -> JSONResponse:
    def _handle(body: ValueRequest, config: EditorConfig) -> dict[str, Any]:
        mentions = get_mentions(body.value, config.markup, config.display_transform())
        return {"mentions": [asdict(mention) for mention in mentions]}

    return await _handle_request(request, "mentions", ValueRequest, _handle)


@app.post("/v1/map-index", response_model=None)
async def map_index_v1(request: Request) -> JSONResponse:
    def _handle(body: MapIndexRequest, config: EditorConfig) -> dict[str, Any]:
        mapped = map_plain_text_index(
            body.value,
            config.markup,
            body.index,
            body.correction,
            config.display_transform(),
        )
        return {"index": mapped}

    return await _handle_request(request, "map_index", MapIndexRequest, _handle)


@app.post("/v1/change", response_model=None)
async def change_v1(request: Request) -> JSONResponse:
    def _handle(body: ChangeRequest, config: EditorConfig) -> dict[str, Any]:
        if body.treat_mention_as_unit is not None:
            config = config.model_copy(
                update={"treat_mention_as_unit": body.treat_mention_as_unit}
            )
        event = ChangeEvent.model_validate(
            body.model_dump(exclude={"markup", "treat_mention_as_unit"})
        )
        return run_change(event, config).model_dump(mode="json")

    return await _handle_request(
        request, "change", ChangeRequest, _handle, invalid_body_code="INVALID_CHANGE"
    )


@app.post("/v1/mention-markup", response_model=None)
async def mention_markup_v1(request: Request) -> JSONResponse:
    def _handle(body: MentionMarkupRequest, config: EditorConfig) -> dict[str, Any]:
        return {"markup": make_mention_markup(config.markup, body.id, body.display, body.type)}

    return await _handle_request(request, "mention_markup", MentionMarkupRequest, _handle)


@app.post("/v1/suggestions", response_model=None)
async def suggestions_v1(request: Request) -> JSONResponse:
    def _handle(body: SuggestionsRequest, config: EditorConfig) -> dict[str, Any]:
        transform = config.display_transform()
        plain_text = get_plain_text(body.value, config.markup, transform)
        groups: list[dict[str, Any]] = []
        if is_inside_of_mention(body.value, config.markup, body.caret, transform):
            return {"plain_text": plain_text, "groups": groups}

        for source in config.sources:
            match = find_trigger_query(plain_text, body.caret, source.trigger)
            if match is None:
                continue
            provider = build_data_provider(source.data)
            results = provider(match.query, lambda _results: None) or []
            group = SuggestionGroup(
                source_type=source.type,
                query=match.query,
                query_start=match.query_start,
                query_end=match.query_end,
                plain_text_value=plain_text,
                results=list(results),
            )
            groups.append(group.model_dump(mode="json"))
        return {"plain_text": plain_text, "groups": groups}

    return await _handle_request(request, "suggestions", SuggestionsRequest, _handle)


@app.post("/v1/add-mention", response_model=None)
async def add_mention_v1(request: Request) -> JSONResponse:
    def _handle(body: AddMentionRequest, config: EditorConfig) -> dict[str, Any]:
        try:
            source = config.source(body.group.source_type)
        except ValueError as exc:
            raise ApiRequestError(
                status_code=400,
                error_code="UNKNOWN_SOURCE",
                message=str(exc),
                detail={"source_type": body.group.source_type},
            ) from exc
        result = run_add_mention(body.value, body.suggestion, body.group, source, config)
        return result.model_dump(mode="json")

    return await _handle_request(request, "add_mention", AddMentionRequest, _handle)


async def _handle_request(
    request: Request,
    endpoint: str,
    model: type[Any],
    handler: Callable[[Any, EditorConfig], dict[str, Any]],
    *,
    invalid_body_code: str = "INVALID_ARGUMENT",
) -> JSONResponse:
    request_id = _request_id_from_request(request)
    started = time.perf_counter()
    failure_stage = "parse_body"
    _log_event(logging.INFO, "start", request_id, endpoint=endpoint)

    try:
        auth_error = _basic_auth_error_response_if_needed(request, request_id)
        if auth_error is not None:
            _log_event(
                logging.INFO,
                "error",
                request_id,
                endpoint=endpoint,
                error_code="UNAUTHORIZED",
                status_code=401,
                failure_stage="auth",
            )
            return auth_error

        body = await _parse_body(request, model, invalid_body_code)
        failure_stage = "validate_value"
        _check_value_size(body)
        failure_stage = "load_config"
        try:
            config = _editor_config()
        except (ConfigError, ValueError) as exc:
            raise ApiRequestError(
                status_code=500,
                error_code="CONFIG_ERROR",
                message="editor config is invalid",
                detail={"reason": str(exc)},
            ) from exc
        markup = getattr(body, "markup", None)
        if markup is not None:
            config = config.model_copy(update={"markup": markup})
        default_grammar.validate(config.markup)
        failure_stage = endpoint
        payload = handler(body, config)
    except ConfigError as exc:
        return _failure(
            request_id,
            endpoint,
            failure_stage,
            started,
            ApiRequestError(
                status_code=400,
                error_code="INVALID_MARKUP",
                message="invalid markup template",
                detail={"markup": exc.template, "reason": str(exc)},
            ),
        )
    except ApiRequestError as exc:
        return _failure(request_id, endpoint, failure_stage, started, exc)

    total_ms = _elapsed_ms(started)
    _log_event(
        logging.INFO,
        "done",
        request_id,
        endpoint=endpoint,
        status_code=200,
        timing={"total_ms": total_ms},
    )
    return JSONResponse(
        status_code=200,
        headers={REQUEST_ID_HEADER: request_id},
        content={**payload, "request_id": request_id},
    )


async def _parse_body(request: Request, model: type[Any], invalid_body_code: str) -> Any:
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request body must be JSON",
        ) from exc

    if not isinstance(raw, dict):
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request body must be a JSON object",
        )

    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code=invalid_body_code,
            message="invalid request body",
            detail={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


def _check_value_size(body: Any) -> None:
    limit = _max_value_chars()
    for field_name in ("value", "plain_text_value"):
        text = getattr(body, field_name, None)
        if isinstance(text, str) and len(text) > limit:
            raise ApiRequestError(
                status_code=413,
                error_code="VALUE_TOO_LARGE",
                message=f"{field_name} exceeds limit",
                detail={"field": field_name, "max_value_chars": limit},
            )


def _failure(
    request_id: str,
    endpoint: str,
    failure_stage: str,
    started: float,
    exc: ApiRequestError,
) -> JSONResponse:
    _log_event(
        logging.ERROR if exc.status_code >= 500 else logging.INFO,
        "error",
        request_id,
        endpoint=endpoint,
        error_code=exc.error_code,
        status_code=exc.status_code,
        failure_stage=failure_stage,
        timing={"total_ms": _elapsed_ms(started)},
    )
    return _error_response(
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.message,
        request_id=request_id,
        detail=exc.detail,
    )


def _editor_config() -> EditorConfig:
    raw = os.getenv("MENTIONS_CONFIG_PATH")
    if raw is None or not raw.strip():
        return load_editor_config()
    return load_editor_config(Path(raw.strip()).expanduser())


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _guard_meta_access(request: Request, request_id: str) -> JSONResponse | None:
    if not _meta_enabled():
        return _error_response(
            status_code=404,
            error_code="NOT_FOUND",
            message="meta endpoint is disabled",
            request_id=request_id,
            detail={"path": request.url.path},
        )

    auth_error = _basic_auth_error_response_if_needed(request, request_id)
    if auth_error is not None:
        return auth_error
    return None


def _meta_enabled() -> bool:
    raw = os.getenv("MENTIONS_ENABLE_META", "1").strip().lower()
    return raw not in {"0", "false", "off", "no"}


def _basic_auth_error_response_if_needed(request: Request, request_id: str) -> JSONResponse | None:
    expected = _basic_auth_credentials()
    if expected is None:
        return None

    if _request_has_valid_basic_auth(request, expected):
        return None

    return _error_response(
        status_code=401,
        error_code="UNAUTHORIZED",
        message="authentication required",
        request_id=request_id,
        detail={
            "path": request.url.path,
            "auth_enabled": True,
        },
        extra_headers={"WWW-Authenticate": f'Basic realm="{_BASIC_AUTH_REALM}"'},
    )


def _basic_auth_credentials() -> tuple[str, str] | None:
    raw = os.getenv("MENTIONS_BASIC_AUTH")
    if raw is None:
        return None

    candidate = raw.strip()
    if not candidate or ":" not in candidate:
        return None

    username, password = candidate.split(":", 1)
    if not username or not password:
        return None
    return username, password


def _request_has_valid_basic_auth(request: Request, expected: tuple[str, str]) -> bool:
    auth_header = request.headers.get("authorization")
    if auth_header is None:
        return False

    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "basic" or not token:
        return False

    try:
        decoded = base64.b64decode(token.encode("ascii"), validate=True).decode("utf-8")
    except (ValueError, UnicodeDecodeError, binascii.Error):
        return False

    if ":" not in decoded:
        return False
    username, password = decoded.split(":", 1)
    expected_username, expected_password = expected
    return hmac.compare_digest(username, expected_username) and hmac.compare_digest(
        password, expected_password
    )


def _max_value_chars() -> int:
    raw = os.getenv("MENTIONS_MAX_VALUE_CHARS")
    if raw is None:
        return _DEFAULT_MAX_VALUE_CHARS
    try:
        parsed = int(raw)
    except ValueError:
        return _DEFAULT_MAX_VALUE_CHARS
    return parsed if parsed > 0 else _DEFAULT_MAX_VALUE_CHARS


def _package_version() -> str:
    try:
        return importlib.metadata.version("mentions-engine")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    detail: dict[str, Any] | None = None,
    extra_headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload_detail = dict(detail or {})
    payload_detail["request_id"] = request_id

    headers = {REQUEST_ID_HEADER: request_id}
    if extra_headers is not None:
        headers.update(extra_headers)

    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, _dump_json(payload))
