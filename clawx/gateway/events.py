"""Subscription hub for gateway supervisor events."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

from loguru import logger

EVENT_STATUS = "status"
EVENT_NOTIFICATION = "notification"
EVENT_EXIT = "exit"

GATEWAY_EVENTS = frozenset({EVENT_STATUS, EVENT_NOTIFICATION, EVENT_EXIT})

Listener = Callable[[Any], Any]


class EventHub:
    """Named-event observer registry.

    Listeners run synchronously in subscription order, inside the ``emit`` call.
    Coroutine results are scheduled as tasks on the running loop. A failing
    listener is logged and does not stop delivery to the others.
    """

    def __init__(self, events: frozenset[str] = GATEWAY_EVENTS):
        self._events = events
        self._listeners: dict[str, list[Listener]] = {name: [] for name in events}
        self._tasks: set[asyncio.Task[Any]] = set()

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """Add a listener; returns a callable that removes it again."""
        if event not in self._events:
            raise ValueError(f"unknown gateway event: {event}")
        self._listeners[event].append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(event, listener)

        return _unsubscribe

    def unsubscribe(self, event: str, listener: Listener) -> bool:
        rows = self._listeners.get(event)
        if not rows or listener not in rows:
            return False
        rows.remove(listener)
        return True

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, payload: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(payload)
            except Exception as e:
                logger.warning("Gateway {} listener error: {}", event, e)
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)

    def _schedule(self, event: str, awaitable: Any) -> None:
        async def _runner() -> None:
            try:
                await awaitable
            except Exception as e:
                logger.warning("Gateway {} listener error: {}", event, e)

        task = asyncio.get_running_loop().create_task(_runner())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
