"""Pytest hooks and fixtures."""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any, Callable

import pytest

from clawx.config.schema import GatewayConfig
from clawx.gateway.manager import GatewayManager
from clawx.utils.exceptions import StartupTimeoutError


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line(
        "markers",
        "requires_gateway: needs a real openclaw gateway binary on PATH (skipped in CI)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip requires_gateway tests when running in CI (no gateway installed)."""
    if os.environ.get("CI") != "true":
        return
    skip = pytest.mark.skip(reason="Requires openclaw gateway (skipped in CI)")
    for item in items:
        if "requires_gateway" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    """Keep ~/.clawx writes out of the real home directory."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in list(os.environ):
        if key.startswith("CLAWX_"):
            monkeypatch.delenv(key, raising=False)


_CLOSE = object()


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self, *, auto_reply: Callable[[dict[str, Any]], Any] | None = None, answer_pings: bool = True):
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.pings = 0
        self.auto_reply = auto_reply
        self.answer_pings = answer_pings
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()

    async def send(self, data: str) -> None:
        frame = json.loads(data)
        self.sent.append(frame)
        if self.auto_reply is not None:
            reply = self.auto_reply(frame)
            if reply is not None:
                self.feed(reply)

    def feed(self, frame: Any) -> None:
        self._inbox.put_nowait(frame if isinstance(frame, (str, bytes)) else json.dumps(frame))

    def drop(self) -> None:
        """Simulate the server side going away."""
        self._inbox.put_nowait(_CLOSE)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._inbox.put_nowait(_CLOSE)

    async def ping(self) -> asyncio.Future[float]:
        self.pings += 1
        waiter: asyncio.Future[float] = asyncio.get_running_loop().create_future()
        if self.answer_pings:
            waiter.set_result(0.0)
        return waiter

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        item = await self._inbox.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        return item


class FakeConnector:
    def __init__(self, *, auto_reply: Callable[[dict[str, Any]], Any] | None = None):
        self.auto_reply = auto_reply
        self.sockets: list[FakeWebSocket] = []
        self.urls: list[str] = []
        self.fail: Exception | None = None

    async def __call__(self, url: str) -> FakeWebSocket:
        self.urls.append(url)
        if self.fail is not None:
            raise self.fail
        ws = FakeWebSocket(auto_reply=self.auto_reply)
        self.sockets.append(ws)
        return ws

    @property
    def last(self) -> FakeWebSocket:
        return self.sockets[-1]


class FakeProbe:
    """Health probe with a switchable answer; ``gate`` can hold readiness open."""

    def __init__(self, *, healthy: bool = False, ready: bool = True):
        self.healthy = healthy
        self.ready = ready
        self.gate: asyncio.Event | None = None
        self.probes = 0
        self.ready_calls = 0

    async def probe(self, base_url: str, *, timeout: float | None = None) -> bool:
        self.probes += 1
        return self.healthy

    async def wait_until_ready(
        self,
        base_url: str,
        *,
        max_attempts: int = 30,
        interval: float = 1.0,
        timeout: float | None = 1.0,
        should_abort: Callable[[], None] | None = None,
    ) -> None:
        self.ready_calls += 1
        if should_abort is not None:
            should_abort()
        if self.gate is not None:
            await self.gate.wait()
        if not self.ready:
            raise StartupTimeoutError(max_attempts, interval)


class FakeProcess:
    def __init__(self, pid: int, command: str, args: list[str], on_exit: Callable[..., None] | None):
        self.pid = pid
        self.command = command
        self.args = args
        self.returncode: int | None = None
        self.terminated = False
        self._on_exit = on_exit

    @property
    def running(self) -> bool:
        return self.returncode is None

    def exit(self, code: int | None) -> None:
        self.returncode = code if code is not None else -15
        if self._on_exit is not None:
            self._on_exit(self, code)

    async def terminate(self, timeout: float = 5.0) -> int | None:
        self.terminated = True
        if self.running:
            self.exit(None)
        return None


class FakeLauncher:
    def __init__(self, *, exit_code_on_launch: int | None = None):
        self.launched: list[FakeProcess] = []
        self.fail: Exception | None = None
        self.exit_code_on_launch = exit_code_on_launch

    async def launch(self, command, args, *, env=None, cwd=None, on_exit=None, on_error=None) -> FakeProcess:
        if self.fail is not None:
            raise self.fail
        proc = FakeProcess(4242 + len(self.launched), command, list(args), on_exit)
        self.launched.append(proc)
        if self.exit_code_on_launch is not None:
            proc.exit(self.exit_code_on_launch)
        return proc

    @property
    def last(self) -> FakeProcess:
        return self.launched[-1]


def echo_reply(frame: dict[str, Any]) -> dict[str, Any] | None:
    """Answer every request with {"method": ..., "params": ...}."""
    if "id" not in frame or "method" not in frame:
        return None
    return {"jsonrpc": "2.0", "id": frame["id"], "result": {"method": frame["method"], "params": frame.get("params")}}


def fast_gateway_config(**overrides: Any) -> GatewayConfig:
    values: dict[str, Any] = {
        "reconnect_delay_seconds": 0.01,
        "heartbeat_interval_seconds": 60.0,
        "ready_interval_seconds": 0.01,
        "rpc_timeout_seconds": 1.0,
    }
    values.update(overrides)
    return GatewayConfig(**values)


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector(auto_reply=echo_reply)


@pytest.fixture
def make_manager(probe, launcher, connector):
    def _make(**overrides: Any) -> GatewayManager:
        return GatewayManager(
            fast_gateway_config(**overrides),
            probe=probe,
            launcher=launcher,
            connector=connector,
        )

    return _make
