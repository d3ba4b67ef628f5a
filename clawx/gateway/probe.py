"""HTTP health probe for gateway adoption and readiness polling."""

from __future__ import annotations

import asyncio
from typing import Callable

import httpx
from loguru import logger

from clawx.utils.exceptions import StartupTimeoutError


class BackendProbe:
    """Checks whether a gateway answers its health endpoint."""

    def __init__(
        self,
        *,
        health_path: str = "/health",
        timeout: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.health_path = health_path
        self.timeout = timeout
        self._transport = transport

    def health_url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}{self.health_path}"

    async def probe(self, base_url: str, *, timeout: float | None = None) -> bool:
        """Return True only for a 2xx health response. Never raises."""
        url = self.health_url(base_url)
        try:
            async with httpx.AsyncClient(
                timeout=timeout if timeout is not None else self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except Exception as e:
            logger.debug("Gateway health probe failed for {}: {}", url, e)
            return False
        return response.is_success

    async def wait_until_ready(
        self,
        base_url: str,
        *,
        max_attempts: int = 30,
        interval: float = 1.0,
        timeout: float | None = 1.0,
        should_abort: Callable[[], None] | None = None,
    ) -> None:
        """Poll the health endpoint until it answers.

        ``should_abort`` is called before every attempt and may raise to end
        polling early (e.g. when the launched process already exited).
        """
        for attempt in range(max_attempts):
            if should_abort is not None:
                should_abort()
            if await self.probe(base_url, timeout=timeout):
                logger.debug("Gateway healthy after {} attempt(s)", attempt + 1)
                return
            await asyncio.sleep(interval)
        raise StartupTimeoutError(max_attempts, interval)
