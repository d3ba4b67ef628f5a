"""Utility functions for clawx."""

from clawx.utils.helpers import ensure_dir, expand_path, get_data_path, get_logs_path
from clawx.utils.exceptions import (
    ClawxError,
    GatewayError,
    SpawnFailureError,
    StartupTimeoutError,
    ConnectFailureError,
    NotConnectedError,
    GatewayStoppedError,
    RpcTimeoutError,
    RpcError,
    ErrorCategory,
    classify_exception,
    describe_error,
    sanitize_error_message,
)

__all__ = [
    "ensure_dir",
    "expand_path",
    "get_data_path",
    "get_logs_path",
    "ClawxError",
    "GatewayError",
    "SpawnFailureError",
    "StartupTimeoutError",
    "ConnectFailureError",
    "NotConnectedError",
    "GatewayStoppedError",
    "RpcTimeoutError",
    "RpcError",
    "ErrorCategory",
    "classify_exception",
    "describe_error",
    "sanitize_error_message",
]
