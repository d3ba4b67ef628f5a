"""Pending-request table matching gateway responses to their callers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Protocol
from uuid import uuid4

from loguru import logger

from clawx.gateway.protocol import RpcEnvelope, build_request, normalize_rpc_error
from clawx.utils.exceptions import NotConnectedError, RpcError, RpcTimeoutError


class RequestSender(Protocol):
    @property
    def is_open(self) -> bool: ...

    async def send(self, envelope: RpcEnvelope) -> None: ...


@dataclass(slots=True)
class PendingRequest:
    request_id: str
    method: str
    future: asyncio.Future[Any]
    deadline: asyncio.TimerHandle


class RequestCorrelator:
    """Issues JSON-RPC requests and settles each one exactly once.

    A request ends when its response arrives, its deadline passes, or the
    table is flushed; the entry and its timer are removed in every case.
    """

    def __init__(self, transport: RequestSender, *, default_timeout: float = 30.0):
        self._transport = transport
        self.default_timeout = default_timeout
        self._pending: dict[str, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    async def call(self, method: str, params: Any = None, *, timeout: float | None = None) -> Any:
        if not self._transport.is_open:
            raise NotConnectedError()
        deadline_s = self.default_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        request_id = str(uuid4())
        fut: asyncio.Future[Any] = loop.create_future()
        handle = loop.call_later(deadline_s, self._expire, request_id, deadline_s)
        self._pending[request_id] = PendingRequest(request_id, method, fut, handle)
        try:
            await self._transport.send(build_request(request_id, method, params))
            return await fut
        finally:
            self._discard(request_id)

    def handle_message(self, envelope: RpcEnvelope) -> bool:
        """Settle the matching pending request; False when nothing was waiting."""
        if not envelope.is_response:
            return False
        entry = self._pending.pop(envelope.id or "", None)
        if entry is None:
            logger.debug("Dropping gateway response for unknown id {}", envelope.id)
            return False
        entry.deadline.cancel()
        if entry.future.done():
            return True
        if envelope.error is not None:
            err = normalize_rpc_error(envelope.error)
            entry.future.set_exception(RpcError(entry.method, err.message, err.code, err.data))
        else:
            entry.future.set_result(envelope.result if envelope.has_result else None)
        return True

    def flush(self, error_factory: Callable[[], BaseException] = NotConnectedError) -> int:
        """Fail every pending request at once; returns how many were failed."""
        doomed = list(self._pending.values())
        self._pending.clear()
        for entry in doomed:
            entry.deadline.cancel()
            if not entry.future.done():
                entry.future.set_exception(error_factory())
        if doomed:
            logger.debug("Flushed {} pending gateway request(s)", len(doomed))
        return len(doomed)

    def _expire(self, request_id: str, timeout: float) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None or entry.future.done():
            return
        logger.warning("Gateway RPC {} timed out after {}s", entry.method, timeout)
        entry.future.set_exception(RpcTimeoutError(entry.method, timeout))

    def _discard(self, request_id: str) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is not None:
            entry.deadline.cancel()
