"""Gateway process manager: lifecycle state machine over probe, launcher and socket."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

from loguru import logger

from clawx.config.schema import GatewayConfig
from clawx.gateway.correlator import RequestCorrelator
from clawx.gateway.events import EVENT_EXIT, EVENT_NOTIFICATION, EVENT_STATUS, EventHub, Listener
from clawx.gateway.launcher import ProcessHandle, ProcessLauncher, expand_args
from clawx.gateway.probe import BackendProbe
from clawx.gateway.protocol import decode_envelope
from clawx.gateway.status import BackendStatus, GatewayState
from clawx.gateway.transport import Connector, SocketTransport, make_websocket_connector
from clawx.utils.exceptions import (
    GatewayStoppedError,
    NotConnectedError,
    SpawnFailureError,
    describe_error,
)


class GatewayManager:
    """Starts, adopts, monitors and reconnects the gateway.

    Owns one ``SocketTransport`` + ``RequestCorrelator`` pair at a time (replaced
    on every connect) and the only ``BackendStatus``. Events: ``status``
    (BackendStatus snapshot), ``notification`` (inbound uncorrelated frame) and
    ``exit`` (process exit code or None).
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        events: EventHub | None = None,
        probe: BackendProbe | None = None,
        launcher: ProcessLauncher | None = None,
        connector: Connector | None = None,
    ):
        self.config = config or GatewayConfig()
        self.events = events or EventHub()
        self._probe = probe or BackendProbe(
            health_path=self.config.health_path,
            timeout=self.config.probe_timeout_seconds,
        )
        self._launcher = launcher or ProcessLauncher()
        self._connector = connector or make_websocket_connector(open_timeout=self.config.connect_timeout_seconds)
        self._status = BackendStatus(port=self.config.port)
        self._process: ProcessHandle | None = None
        # True only when this manager spawned the process; adopted gateways survive stop().
        self._owns_process = False
        self._transport: SocketTransport | None = None
        self._correlator: RequestCorrelator | None = None
        self._start_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def get_status(self) -> BackendStatus:
        """Current status copy with derived uptime."""
        return self._status.snapshot()

    @property
    def state(self) -> GatewayState:
        return self._status.state

    @property
    def owns_process(self) -> bool:
        return self._owns_process

    @property
    def pending_count(self) -> int:
        return self._correlator.pending_count if self._correlator else 0

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_open

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        return self.events.subscribe(event, listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Adopt or launch the gateway and connect; no-op while running.

        Concurrent callers share one in-flight start attempt.
        """
        if self._status.state is GatewayState.RUNNING:
            return
        task = self._start_task
        if task is None or task.done():
            task = asyncio.create_task(self._run_start())
            self._start_task = task
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and (current is None or not current.cancelling()):
                raise GatewayStoppedError() from None
            raise

    async def stop(self) -> None:
        """Cancel timers, close the socket, end an owned process, fail pending calls."""
        current = asyncio.current_task()
        reconnect, self._reconnect_task = self._reconnect_task, None
        if reconnect is not None and not reconnect.done() and reconnect is not current:
            reconnect.cancel()
        start_task, self._start_task = self._start_task, None
        if start_task is not None and not start_task.done() and start_task is not current:
            start_task.cancel()
            await asyncio.gather(start_task, return_exceptions=True)

        # Detach before the teardown awaits; exit/close callbacks fired while
        # closing then see stale handles and never schedule a reconnect.
        transport, correlator = self._transport, self._correlator
        process, owned = self._process, self._owns_process
        self._transport = None
        self._correlator = None
        self._process = None
        self._owns_process = False
        if correlator is not None:
            failed = correlator.flush(GatewayStoppedError)
            if failed:
                logger.info("Rejected {} pending gateway request(s) on stop", failed)
        self._set_status(state=GatewayState.STOPPED, pid=None, connected_at=None)

        if transport is not None:
            await transport.close()
        if process is not None and owned:
            logger.info("Stopping gateway process {}", process.pid)
            await process.terminate(timeout=self.config.terminate_timeout_seconds)

        reconnect, self._reconnect_task = self._reconnect_task, None
        if reconnect is not None and not reconnect.done() and reconnect is not current:
            reconnect.cancel()

    async def restart(self) -> None:
        await self.stop()
        await self.start()

    async def rpc(self, method: str, params: Any = None, *, timeout: float | None = None) -> Any:
        """Make an RPC call to the gateway."""
        correlator = self._correlator
        if correlator is None:
            raise NotConnectedError()
        return await correlator.call(method, params, timeout=timeout)

    # ------------------------------------------------------------------
    # Start sequence
    # ------------------------------------------------------------------

    async def _run_start(self) -> None:
        cfg = self.config
        self._set_status(state=GatewayState.STARTING, last_error=None)
        try:
            if await self._probe.probe(cfg.base_url, timeout=cfg.probe_timeout_seconds):
                if not self._owns_live_process():
                    logger.info("Found existing gateway on port {}", cfg.port)
                await self._connect()
                return
            handle = self._process if self._owns_live_process() else await self._launch()
            await self._probe.wait_until_ready(
                cfg.base_url,
                max_attempts=cfg.ready_max_attempts,
                interval=cfg.ready_interval_seconds,
                timeout=cfg.ready_probe_timeout_seconds,
                should_abort=lambda: _abort_if_exited(handle),
            )
            await self._connect()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            message = describe_error(e)
            logger.error("Gateway start failed: {}", message)
            self._set_status(state=GatewayState.ERROR, last_error=message)
            raise

    def _owns_live_process(self) -> bool:
        return self._owns_process and self._process is not None and self._process.running

    async def _launch(self) -> ProcessHandle:
        cfg = self.config
        args = expand_args(cfg.process.args, port=cfg.port, host=cfg.host)
        handle = await self._launcher.launch(
            cfg.process.command,
            args,
            env=cfg.process.env,
            cwd=cfg.process.cwd,
            on_exit=self._on_process_exit,
        )
        self._process = handle
        self._owns_process = True
        self._set_status(pid=handle.pid)
        return handle

    async def _connect(self) -> None:
        cfg = self.config

        def _on_message(message: dict[str, Any]) -> None:
            self._handle_message(transport, message)

        def _on_close(expected: bool) -> None:
            self._handle_disconnect(transport, expected)

        transport = SocketTransport(
            on_message=_on_message,
            on_close=_on_close,
            connector=self._connector,
            heartbeat_interval=cfg.heartbeat_interval_seconds,
            pong_timeout=cfg.pong_timeout_seconds,
        )
        await transport.connect(cfg.ws_url)
        self._transport = transport
        self._correlator = RequestCorrelator(transport, default_timeout=cfg.rpc_timeout_seconds)
        pid = self._process.pid if self._owns_live_process() and self._process else None
        self._set_status(
            state=GatewayState.RUNNING,
            port=cfg.port,
            pid=pid,
            connected_at=time.time(),
            last_error=None,
        )

    # ------------------------------------------------------------------
    # Transport / process callbacks
    # ------------------------------------------------------------------

    def _handle_message(self, transport: SocketTransport, message: dict[str, Any]) -> None:
        if transport is not self._transport:
            return
        correlator = self._correlator
        if correlator is not None and correlator.handle_message(decode_envelope(message)):
            return
        self.events.emit(EVENT_NOTIFICATION, message)

    def _handle_disconnect(self, transport: SocketTransport, expected: bool) -> None:
        if transport is not self._transport:
            return
        self._detach_transport()
        if expected:
            return
        logger.warning("Gateway connection lost")
        if self._status.state is GatewayState.RUNNING:
            self._set_status(state=GatewayState.STOPPED, connected_at=None)
            self._schedule_reconnect()

    def _on_process_exit(self, handle: ProcessHandle, code: int | None) -> None:
        self.events.emit(EVENT_EXIT, code)
        if handle is not self._process:
            return
        self._process = None
        self._owns_process = False
        if self._status.state is GatewayState.RUNNING:
            transport = self._detach_transport()
            if transport is not None:
                self._spawn_background(transport.close())
            self._set_status(state=GatewayState.STOPPED, pid=None, connected_at=None)
            self._schedule_reconnect()
        elif self._status.pid is not None:
            self._set_status(pid=None)

    def _detach_transport(self) -> SocketTransport | None:
        transport, correlator = self._transport, self._correlator
        self._transport = None
        self._correlator = None
        if correlator is not None:
            correlator.flush(lambda: NotConnectedError("Gateway connection lost"))
        return transport

    # ------------------------------------------------------------------
    # Reconnect
    # ------------------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        if self.reconnect_scheduled:
            return
        delay = self.config.reconnect_delay_seconds
        logger.info("Gateway reconnect scheduled in {}s", delay)
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await self.start()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Gateway reconnection failed: {}", describe_error(e))
            self._reconnect_task = None
            self._schedule_reconnect()
        else:
            self._reconnect_task = None

    def _spawn_background(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _set_status(self, **changes: Any) -> None:
        self._status = self._status.with_changes(**changes)
        self.events.emit(EVENT_STATUS, self._status.snapshot())


def _abort_if_exited(handle: ProcessHandle | None) -> None:
    if handle is not None and not handle.running:
        raise SpawnFailureError(
            f"Gateway process exited with code {handle.returncode} before becoming healthy",
            command=handle.command,
            exit_code=handle.returncode,
        )
