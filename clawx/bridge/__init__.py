"""Bridge between the UI layer and the gateway manager."""

from clawx.bridge.handlers import (
    CHANNEL_RESTART,
    CHANNEL_RPC,
    CHANNEL_START,
    CHANNEL_STATUS,
    CHANNEL_STOP,
    EVENT_MESSAGE,
    EVENT_PROCESS_EXIT,
    EVENT_START_ERROR,
    EVENT_STATUS_CHANGED,
    GatewayBridge,
)

__all__ = [
    "CHANNEL_RESTART",
    "CHANNEL_RPC",
    "CHANNEL_START",
    "CHANNEL_STATUS",
    "CHANNEL_STOP",
    "EVENT_MESSAGE",
    "EVENT_PROCESS_EXIT",
    "EVENT_START_ERROR",
    "EVENT_STATUS_CHANGED",
    "GatewayBridge",
]
