"""In-process publish/subscribe channel used for cross-cutting notifications."""
from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Union

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], Union[None, Awaitable[None]]]

# Event names emitted by the A2A core.
AGENT_REGISTERED = "a2a:agent:registered"
TASK_UPDATE = "a2a:task:update"
REGISTRY_AGENT_REGISTERED = "a2a:registry:agent:registered"
REGISTRY_AGENT_UPDATED = "a2a:registry:agent:updated"
REGISTRY_AGENT_IMPORTED = "a2a:registry:agent:imported"
REGISTRY_AGENT_CAPABILITIES_UPDATED = "a2a:registry:agent:capabilities:updated"
REGISTRY_AGENT_ENDPOINTS_UPDATED = "a2a:registry:agent:endpoints:updated"
REGISTRY_CLEARED = "a2a:registry:cleared"
HANDLER_REGISTERED = "a2a:message:handler:registered"
HANDLER_UNREGISTERED = "a2a:message:handler:unregistered"
MESSAGE_FORMATTED = "a2a:message:formatted"
MESSAGE_ROUTED = "a2a:message:routed"
MESSAGE_BROADCAST = "a2a:message:broadcast"
SYSTEM_INITIALIZED = "a2a:system:initialized"
# Emitted by the host when it instantiates a new agent.
AGENTS_CREATED = "agents:created"


class Subscription:
    """Caller-owned handle; ``unsubscribe`` stops further callbacks."""

    __slots__ = ("_cancel", "_active")

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel = cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._cancel()


class EventBus:
    """Named-event hub with isolated listeners."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[EventCallback]] = defaultdict(list)
        self._pending: set[asyncio.Task[Any]] = set()

    def on(self, event: str, callback: EventCallback) -> EventCallback:
        self._listeners[event].append(callback)
        return callback

    def off(self, event: str, callback: EventCallback) -> None:
        listeners = self._listeners.get(event)
        if not listeners:
            return
        try:
            listeners.remove(callback)
        except ValueError:
            return
        if not listeners:
            del self._listeners[event]

    def subscribe(self, event: str, callback: EventCallback) -> Subscription:
        """Register ``callback`` and return a handle that removes it."""
        self.on(event, callback)
        return Subscription(lambda: self.off(event, callback))

    def emit(self, event: str, data: Any = None) -> None:
        """Notify listeners synchronously; coroutine results are scheduled."""
        for callback in list(self._listeners.get(event, ())):
            try:
                result = callback(data)
            except Exception:  # noqa: BLE001
                logger.exception("Error in event handler for %s", event)
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)

    async def emit_async(self, event: str, data: Any = None) -> None:
        """Notify listeners and wait for every coroutine listener to finish."""
        awaitables = []
        for callback in list(self._listeners.get(event, ())):
            try:
                result = callback(data)
            except Exception:  # noqa: BLE001
                logger.exception("Error in event handler for %s", event)
                continue
            if inspect.isawaitable(result):
                awaitables.append(result)
        results = await asyncio.gather(*awaitables, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.error("Error in async event handler for %s: %s", event, result)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def has_listeners(self, event: str) -> bool:
        return self.listener_count(event) > 0

    def clear(self) -> None:
        self._listeners.clear()

    async def drain(self) -> None:
        """Wait for coroutine listeners scheduled by :meth:`emit`."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _schedule(self, event: str, awaitable: Awaitable[Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running loop; dropping async handler for %s", event)
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._finish(event, t))

    def _finish(self, event: str, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Error in async event handler for %s: %s", event, task.exception())

