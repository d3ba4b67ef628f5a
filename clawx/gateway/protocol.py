"""JSON-RPC 2.0 envelope models and codec for the gateway socket."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

JSONRPC_VERSION = "2.0"

_UNSET: Any = object()


@dataclass(slots=True)
class RpcErrorPayload:
    """Normalized error object carried by a response envelope."""

    message: str
    code: Any = None
    data: Any = None


@dataclass(slots=True)
class RpcEnvelope:
    """JSON-RPC request/response/notification frame.

    ``result`` uses a sentinel so that an explicit ``null`` result stays distinct
    from a frame without a result at all.
    """

    id: str | None = None
    method: str | None = None
    params: Any = None
    result: Any = _UNSET
    error: Any = None

    @property
    def has_result(self) -> bool:
        return self.result is not _UNSET

    @property
    def is_response(self) -> bool:
        """An id with no method: must be matched to a pending request."""
        return self.id is not None and self.method is None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION}
        if self.id is not None:
            payload["id"] = self.id
        if self.method is not None:
            payload["method"] = self.method
        if self.params is not None:
            payload["params"] = self.params
        if self.has_result:
            payload["result"] = self.result
        if self.error is not None:
            payload["error"] = self.error
        return payload


def safe_dict(value: Any) -> dict[str, Any]:
    """Return the value when dict-like, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def build_request(request_id: str, method: str, params: Any = None) -> RpcEnvelope:
    return RpcEnvelope(id=request_id, method=method, params=params)


def encode_envelope(envelope: RpcEnvelope) -> str:
    """Encode an envelope into one JSON text frame."""
    return json.dumps(envelope.to_dict(), ensure_ascii=False)


def decode_envelope(raw: Any) -> RpcEnvelope:
    """Decode an inbound frame (text, bytes or parsed dict) into an envelope.

    Raises ValueError when the frame is not a JSON object.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    data = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(data, dict):
        raise ValueError("rpc frame must be a JSON object")
    req_id = data.get("id")
    method = data.get("method")
    return RpcEnvelope(
        id=str(req_id) if req_id is not None else None,
        method=str(method) if isinstance(method, str) else None,
        params=data.get("params"),
        result=data["result"] if "result" in data else _UNSET,
        error=data.get("error"),
    )


def normalize_rpc_error(error: Any) -> RpcErrorPayload:
    """Normalize a JSON-RPC error object or bare value into RpcErrorPayload."""
    if isinstance(error, dict):
        message = str(error.get("message") or "rpc failed")
        return RpcErrorPayload(message=message, code=error.get("code"), data=error.get("data"))
    text = str(error or "").strip()
    return RpcErrorPayload(message=text or "rpc failed")
