"""Gateway supervision status snapshot."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


class GatewayState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class BackendStatus:
    """Immutable snapshot of the supervisor state; callers always get a copy."""

    state: GatewayState = GatewayState.STOPPED
    port: int = 0
    pid: int | None = None
    last_error: str | None = None
    connected_at: float | None = None
    uptime_seconds: float | None = None

    def with_changes(self, **changes: Any) -> BackendStatus:
        return replace(self, **changes)

    def snapshot(self, now: float | None = None) -> BackendStatus:
        """Copy with uptime derived from connected_at (running only)."""
        if self.state is not GatewayState.RUNNING or self.connected_at is None:
            return replace(self, uptime_seconds=None)
        current = time.time() if now is None else now
        return replace(self, uptime_seconds=max(0.0, current - self.connected_at))

    def to_dict(self) -> dict[str, Any]:
        """UI payload: {state, port, pid?, uptime?, error?, connectedAt?}."""
        payload: dict[str, Any] = {"state": self.state.value, "port": self.port}
        if self.pid is not None:
            payload["pid"] = self.pid
        if self.uptime_seconds is not None:
            payload["uptime"] = round(self.uptime_seconds, 3)
        if self.last_error:
            payload["error"] = self.last_error
        if self.connected_at is not None:
            payload["connectedAt"] = int(self.connected_at * 1000)
        return payload
