"""Custom exceptions for core logic."""

from __future__ import annotations

from typing import Any


class ConfigError(Exception):
    """Raised when a markup template cannot be used to encode mentions."""

    def __init__(self, message: str, *, template: str | None = None) -> None:
        super().__init__(message)
        self.template = template


class ChangeRequestError(Exception):
    """Raised when an edit event payload is malformed."""

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}
