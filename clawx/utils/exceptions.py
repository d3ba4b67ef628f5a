"""
Error types for gateway supervision and RPC, plus helpers that turn any
exception into a short, secret-free message for the UI.

Every clawx error carries a stable ``code`` (for logs and the bridge), an
``ErrorCategory`` (whether retrying can help) and structured ``details``.
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    RECOVERABLE = "recoverable"
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PERMISSION = "permission"
    TIMEOUT = "timeout"


_RETRY_CATEGORIES = frozenset({ErrorCategory.RETRYABLE, ErrorCategory.TIMEOUT})


class ClawxError(Exception):
    """Base exception for all clawx errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = dict(details or {})

    @property
    def retryable(self) -> bool:
        return self.category in _RETRY_CATEGORIES

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class GatewayError(ClawxError):
    """Base class for gateway supervision and transport failures."""


class SpawnFailureError(GatewayError):
    """The gateway process could not be created, or died before becoming healthy."""

    def __init__(self, message: str, command: str | None = None, exit_code: int | None = None):
        details: dict[str, Any] = {}
        if command:
            details["command"] = command
        if exit_code is not None:
            details["exit_code"] = exit_code
        super().__init__(message, code="SPAWN_FAILURE", category=ErrorCategory.FATAL, details=details)


class StartupTimeoutError(GatewayError):
    """The gateway never answered its health check within the polling window."""

    def __init__(self, attempts: int, interval_seconds: float):
        super().__init__(
            "Gateway failed to start",
            code="STARTUP_TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"attempts": attempts, "interval_seconds": interval_seconds},
        )


class ConnectFailureError(GatewayError):
    """Websocket handshake with the gateway failed."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            f"Gateway connection failed ({url}): {reason}",
            code="CONNECT_FAILURE",
            category=ErrorCategory.RETRYABLE,
            details={"url": url},
        )


class NotConnectedError(GatewayError):
    """Send or call attempted while no socket is open."""

    def __init__(self, message: str = "Gateway not connected"):
        super().__init__(message, code="NOT_CONNECTED", category=ErrorCategory.RETRYABLE)


class GatewayStoppedError(NotConnectedError):
    """Pending request failed because the supervisor was stopped."""

    def __init__(self) -> None:
        super().__init__("Gateway stopped")
        self.code = "GATEWAY_STOPPED"


class RpcTimeoutError(GatewayError):
    """No response arrived within the call deadline."""

    def __init__(self, method: str, timeout_seconds: float):
        super().__init__(
            f"RPC timeout: {method}",
            code="RPC_TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"method": method, "timeout_seconds": timeout_seconds},
        )
        self.method = method


class RpcError(GatewayError):
    """The gateway answered with a JSON-RPC error object."""

    def __init__(self, method: str, message: str, rpc_code: Any = None, data: Any = None):
        details: dict[str, Any] = {"method": method}
        if rpc_code is not None:
            details["rpc_code"] = rpc_code
        if data is not None:
            details["data"] = data
        super().__init__(message, code="RPC_ERROR", category=ErrorCategory.RECOVERABLE, details=details)
        self.method = method
        self.rpc_code = rpc_code
        self.data = data


_REDACT = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"sk-[a-zA-Z0-9]{20,}"),
]

# Checked in order; the first matching type wins.
_BUILTIN_CLASSES: list[tuple[type[BaseException], str, ErrorCategory]] = [
    (FileNotFoundError, "FILE_NOT_FOUND", ErrorCategory.NOT_FOUND),
    (PermissionError, "PERMISSION_DENIED", ErrorCategory.PERMISSION),
    (asyncio.TimeoutError, "TIMEOUT", ErrorCategory.TIMEOUT),
    (ConnectionError, "CONNECTION_ERROR", ErrorCategory.RETRYABLE),
    (json.JSONDecodeError, "JSON_PARSE_ERROR", ErrorCategory.VALIDATION),
    ((ValueError, KeyError, TypeError), "INVALID_VALUE", ErrorCategory.VALIDATION),  # type: ignore[list-item]
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove credentials and tokens from an error message."""
    for pattern in _REDACT:
        message = pattern.sub(replacement, message)
    return message


def classify_exception(exc: BaseException) -> tuple[str, ErrorCategory, bool]:
    """Return ``(code, category, should_retry)`` for any exception."""
    if isinstance(exc, ClawxError):
        return exc.code, exc.category, exc.category is ErrorCategory.RETRYABLE
    for types, code, category in _BUILTIN_CLASSES:
        if isinstance(exc, types):
            return code, category, category in _RETRY_CATEGORIES
    text = str(exc).lower()
    if "timeout" in text or "timed out" in text:
        return "TIMEOUT", ErrorCategory.TIMEOUT, True
    if "connection" in text or "network" in text:
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True
    return "INTERNAL_ERROR", ErrorCategory.FATAL, False


def describe_error(exc: BaseException) -> str:
    """Render an exception as one user-facing line, secrets stripped."""
    if isinstance(exc, ClawxError):
        text = exc.message
    else:
        text = str(exc) or exc.__class__.__name__
    return sanitize_error_message(text)
