"""UI bridge: gateway command handlers and event forwarding.

Commands always resolve to a tagged result (``{"success": bool, ...}``); no
exception crosses into the UI layer. Supervisor events are pushed one-way to a
sink callable ``sink(channel, payload)``.
"""

from __future__ import annotations

import asyncio
import inspect
import weakref
from functools import partial
from typing import Any, Awaitable, Callable

from loguru import logger

from clawx.gateway.events import EVENT_EXIT, EVENT_NOTIFICATION, EVENT_STATUS
from clawx.gateway.manager import GatewayManager
from clawx.gateway.status import BackendStatus
from clawx.utils.exceptions import ClawxError, classify_exception, describe_error

BridgeResult = dict[str, Any]
EventSink = Callable[[str, Any], Any]

CHANNEL_STATUS = "gateway:status"
CHANNEL_START = "gateway:start"
CHANNEL_STOP = "gateway:stop"
CHANNEL_RESTART = "gateway:restart"
CHANNEL_RPC = "gateway:rpc"

EVENT_STATUS_CHANGED = "gateway:status-changed"
EVENT_MESSAGE = "gateway:message"
EVENT_PROCESS_EXIT = "gateway:exit"
EVENT_START_ERROR = "gateway:error"

_FORWARDED_EVENTS = {
    EVENT_STATUS: EVENT_STATUS_CHANGED,
    EVENT_NOTIFICATION: EVENT_MESSAGE,
    EVENT_EXIT: EVENT_PROCESS_EXIT,
}


class BridgeDetachedError(ClawxError):
    def __init__(self) -> None:
        super().__init__("Gateway manager is no longer available", code="BRIDGE_DETACHED")


def _failure(exc: BaseException) -> BridgeResult:
    return {"success": False, "error": describe_error(exc)}


class GatewayBridge:
    """Exposes a GatewayManager to the UI without owning it."""

    def __init__(self, manager: GatewayManager, sink: EventSink):
        self._manager_ref = weakref.ref(manager)
        self._sink = sink
        self._unsubscribers: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._handlers: dict[str, Callable[..., Awaitable[Any]]] = {
            CHANNEL_STATUS: self.status,
            CHANNEL_START: self.start,
            CHANNEL_STOP: self.stop,
            CHANNEL_RESTART: self.restart,
            CHANNEL_RPC: self.call,
        }

    @property
    def attached(self) -> bool:
        return bool(self._unsubscribers)

    @property
    def channels(self) -> list[str]:
        return sorted(self._handlers)

    def _manager(self) -> GatewayManager:
        manager = self._manager_ref()
        if manager is None:
            raise BridgeDetachedError()
        return manager

    # ------------------------------------------------------------------
    # Event forwarding
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Subscribe to supervisor events; idempotent."""
        if self._unsubscribers:
            return
        manager = self._manager()
        for event, channel in _FORWARDED_EVENTS.items():
            self._unsubscribers.append(manager.subscribe(event, partial(self._forward, channel)))

    def detach(self) -> None:
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()

    def send_error(self, message: str) -> None:
        """Report a gateway start failure that happened outside a UI command."""
        self._forward(EVENT_START_ERROR, message)

    def _forward(self, channel: str, payload: Any) -> None:
        if isinstance(payload, BackendStatus):
            payload = payload.to_dict()
        try:
            result = self._sink(channel, payload)
        except Exception as e:
            logger.warning("Bridge sink failed for {}: {}", channel, e)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(partial(self._sink_done, channel))

    def _sink_done(self, channel: str, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Bridge sink failed for {}: {}", channel, exc)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def handle(self, channel: str, *args: Any) -> Any:
        """Dispatch a UI request by channel name."""
        handler = self._handlers.get(channel)
        if handler is None:
            return {"success": False, "error": f"unknown channel: {channel}"}
        try:
            return await handler(*args)
        except TypeError as e:
            return _failure(e)

    async def status(self) -> BridgeResult:
        try:
            return self._manager().get_status().to_dict()
        except Exception as e:
            return _failure(e)

    async def start(self) -> BridgeResult:
        return await self._run("start", lambda m: m.start())

    async def stop(self) -> BridgeResult:
        return await self._run("stop", lambda m: m.stop())

    async def restart(self) -> BridgeResult:
        return await self._run("restart", lambda m: m.restart())

    async def call(self, method: str, params: Any = None) -> BridgeResult:
        if not isinstance(method, str) or not method.strip():
            return {"success": False, "error": "method must be a non-empty string"}
        try:
            result = await self._manager().rpc(method.strip(), params)
        except Exception as e:
            code, _, _ = classify_exception(e)
            logger.debug("Bridge rpc {} failed [{}]: {}", method, code, describe_error(e))
            return _failure(e)
        return {"success": True, "result": result}

    async def _run(self, name: str, op: Callable[[GatewayManager], Awaitable[None]]) -> BridgeResult:
        try:
            await op(self._manager())
        except Exception as e:
            logger.warning("Bridge {} failed: {}", name, describe_error(e))
            return _failure(e)
        return {"success": True}
