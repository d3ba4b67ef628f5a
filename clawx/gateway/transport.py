"""Persistent websocket transport to the gateway control endpoint."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed

from clawx.gateway.protocol import RpcEnvelope, encode_envelope
from clawx.utils.exceptions import ConnectFailureError, NotConnectedError

MessageCallback = Callable[[dict[str, Any]], None]
CloseCallback = Callable[[bool], None]
Connector = Callable[[str], Awaitable[Any]]


def make_websocket_connector(*, open_timeout: float = 10.0) -> Connector:
    """Build the default connector; keepalive pings are driven by the transport."""

    async def _connect(url: str) -> Any:
        return await websockets.connect(url, open_timeout=open_timeout, ping_interval=None)

    return _connect


class SocketTransport:
    """Owns zero or one open websocket and the heartbeat that goes with it.

    ``on_close(expected)`` fires once per connection; ``expected`` is True only
    when the owner called ``close()``.
    """

    def __init__(
        self,
        *,
        on_message: MessageCallback,
        on_close: CloseCallback,
        connector: Connector | None = None,
        heartbeat_interval: float = 30.0,
        pong_timeout: float | None = None,
    ):
        self._on_message = on_message
        self._on_close = on_close
        self._connector = connector or make_websocket_connector()
        self.heartbeat_interval = heartbeat_interval
        self.pong_timeout = pong_timeout
        self.url: str | None = None
        self._ws: Any = None
        self._open = False
        self._closing = False
        self._reader_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None

    @property
    def is_open(self) -> bool:
        return self._open and self._ws is not None

    @property
    def heartbeat_active(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    async def connect(self, url: str) -> None:
        if self._ws is not None:
            await self.close()
        self._closing = False
        try:
            ws = await self._connector(url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("WebSocket error: {}", e)
            raise ConnectFailureError(url, str(e) or e.__class__.__name__) from e
        self.url = url
        self._ws = ws
        self._open = True
        self._reader_task = asyncio.create_task(self._read_loop(ws))
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(ws))
        logger.info("WebSocket connected to gateway at {}", url)

    async def send(self, envelope: RpcEnvelope) -> None:
        """Send one frame; raises NotConnectedError before awaiting when closed."""
        ws = self._ws
        if ws is None or not self._open:
            raise NotConnectedError()
        try:
            await ws.send(encode_envelope(envelope))
        except ConnectionClosed as e:
            raise NotConnectedError() from e

    async def close(self) -> None:
        ws = self._ws
        if ws is None:
            return
        self._closing = True
        self._open = False
        self._cancel_heartbeat()
        try:
            await ws.close()
        except Exception as e:
            logger.debug("WebSocket close error: {}", e)
        reader = self._reader_task
        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            try:
                await asyncio.wait_for(asyncio.shield(reader), timeout=2.0)
            except asyncio.TimeoutError:
                reader.cancel()
        if self._ws is ws:
            self._handle_closed(ws)

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                self._dispatch(raw)
        except ConnectionClosed as e:
            logger.debug("WebSocket closed: {}", e)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning("WebSocket error: {}", e)
        finally:
            self._handle_closed(ws)

    def _dispatch(self, raw: Any) -> None:
        try:
            if isinstance(raw, (bytes, bytearray)):
                raw = raw.decode("utf-8", errors="replace")
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error("Failed to parse WebSocket message: {}", e)
            return
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object gateway frame: {}", str(raw)[:200])
            return
        try:
            self._on_message(message)
        except Exception:
            logger.exception("Gateway message handler failed")

    async def _heartbeat_loop(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            if self._ws is not ws or not self._open:
                return
            try:
                pong_waiter = await ws.ping()
            except ConnectionClosed:
                return
            except Exception as e:
                logger.debug("Gateway ping failed: {}", e)
                continue
            if self.pong_timeout is None:
                continue
            try:
                await asyncio.wait_for(pong_waiter, timeout=self.pong_timeout)
            except asyncio.TimeoutError:
                logger.warning("Gateway pong not received within {}s, dropping connection", self.pong_timeout)
                self._heartbeat_task = None
                await ws.close()
                return
            except ConnectionClosed:
                return

    def _cancel_heartbeat(self) -> None:
        task = self._heartbeat_task
        self._heartbeat_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _handle_closed(self, ws: Any) -> None:
        if self._ws is not ws:
            return
        self._ws = None
        self._open = False
        self._reader_task = None
        self._cancel_heartbeat()
        expected = self._closing
        logger.info("WebSocket disconnected ({})", "closed" if expected else "lost")
        try:
            self._on_close(expected)
        except Exception:
            logger.exception("Gateway close handler failed")
