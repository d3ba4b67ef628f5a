"""Desktop shell lifecycle: owns the gateway manager and its UI bridge."""

from __future__ import annotations

from loguru import logger

from clawx.bridge.handlers import EventSink, GatewayBridge
from clawx.config.schema import Config
from clawx.gateway.client import GatewayClient
from clawx.gateway.manager import GatewayManager
from clawx.utils.exceptions import describe_error


class DesktopShell:
    """Explicit create -> initialize -> dispose lifecycle for the gateway core."""

    def __init__(self, config: Config, sink: EventSink, *, manager: GatewayManager | None = None):
        self.config = config
        self.manager = manager or GatewayManager(config.gateway)
        self.bridge = GatewayBridge(self.manager, sink)
        self.client = GatewayClient(self.manager)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Wire the bridge and, when configured, bring the gateway up.

        A start failure is reported to the UI as ``gateway:error``; the shell
        itself keeps running so the user can retry.
        """
        if self._initialized:
            return
        self.bridge.attach()
        self._initialized = True
        if not self.config.gateway.auto_start:
            return
        try:
            await self.manager.start()
            logger.info("Gateway started successfully")
        except Exception as e:
            message = describe_error(e)
            logger.error("Failed to start gateway: {}", message)
            self.bridge.send_error(message)

    async def dispose(self) -> None:
        if not self._initialized:
            return
        self._initialized = False
        try:
            await self.manager.stop()
        finally:
            self.bridge.detach()
