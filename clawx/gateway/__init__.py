"""Gateway supervision: probe, launcher, socket transport, correlator and manager."""

from clawx.gateway.client import GatewayClient
from clawx.gateway.correlator import PendingRequest, RequestCorrelator
from clawx.gateway.events import EVENT_EXIT, EVENT_NOTIFICATION, EVENT_STATUS, EventHub
from clawx.gateway.launcher import ProcessHandle, ProcessLauncher
from clawx.gateway.manager import GatewayManager
from clawx.gateway.probe import BackendProbe
from clawx.gateway.protocol import RpcEnvelope, RpcErrorPayload
from clawx.gateway.status import BackendStatus, GatewayState
from clawx.gateway.transport import SocketTransport

__all__ = [
    "BackendProbe",
    "BackendStatus",
    "EVENT_EXIT",
    "EVENT_NOTIFICATION",
    "EVENT_STATUS",
    "EventHub",
    "GatewayClient",
    "GatewayManager",
    "GatewayState",
    "PendingRequest",
    "ProcessHandle",
    "ProcessLauncher",
    "RequestCorrelator",
    "RpcEnvelope",
    "RpcErrorPayload",
    "SocketTransport",
]
