"""
EventBus - in-process publish/subscribe plus single-responder requests.

``emit`` fans out synchronously to every subscriber. ``request`` asks only
the first subscriber and returns (or awaits) its answer. The two are
intentionally asymmetric.
"""
import asyncio
import inspect
from typing import Any, Callable, Dict, List, Set
from loguru import logger

from agentlet.core.base_system import BaseSystem
from agentlet.core.errors import NoResponderError


class EventBus(BaseSystem):
    """
    Event bus shared by the registry, the loader and every module.

    Usage:
        bus.on("module:activated", handle_activation)
        bus.emit("module:activated", {"module": "github"})
        granted = await bus.request("permission:request", {...})
    """

    def __init__(self, locator=None, config=None):
        super().__init__(locator, config)
        self._subscribers: Dict[str, List[Callable]] = {}
        self._pending: Set[asyncio.Task] = set()

    async def initialize(self):
        logger.info("EventBus initialized")
        await super().initialize()

    async def shutdown(self):
        self._subscribers.clear()
        await super().shutdown()

    def on(self, event: str, handler: Callable) -> None:
        """
        Subscribe to an event.

        Args:
            event: Event name (e.g. "module:activated")
            handler: Callable receiving the event data
        """
        handlers = self._subscribers.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug(f"Subscribed to {event}: {getattr(handler, '__name__', handler)}")

    def off(self, event: str, handler: Callable) -> None:
        """Unsubscribe a handler; unknown events or handlers are ignored."""
        handlers = self._subscribers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)
            logger.debug(f"Unsubscribed from {event}: {getattr(handler, '__name__', handler)}")

    def emit(self, event: str, data: Any = None) -> None:
        """
        Deliver an event to every subscriber, synchronously and in order.

        A failing subscriber is logged and skipped. Coroutine results are
        scheduled on the running loop.
        """
        for handler in list(self._subscribers.get(event, ())):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    self._schedule(event, result)
            except Exception as e:
                logger.error(f"Error in handler for {event}: {e}")

        if self._debug_mode:
            logger.debug(f"Event emitted: {event} {data}")

    async def request(self, event: str, data: Any = None) -> Any:
        """
        Ask the first subscriber of ``event`` for an answer.

        Only the first subscriber is invoked, unlike ``emit``.

        Raises:
            NoResponderError: If nobody subscribed to ``event``
        """
        handlers = self._subscribers.get(event) or []
        if not handlers:
            raise NoResponderError(event)

        result = handlers[0](data)
        if inspect.isawaitable(result):
            result = await result
        return result

    def get_events(self) -> List[str]:
        return list(self._subscribers.keys())

    def get_listener_count(self, event: str) -> int:
        return len(self._subscribers.get(event, ()))

    def clear(self) -> None:
        self._subscribers.clear()

    def clear_event(self, event: str) -> None:
        self._subscribers.pop(event, None)

    def _schedule(self, event: str, awaitable) -> None:
        try:
            task = asyncio.ensure_future(awaitable)
        except RuntimeError:
            # No running loop: the coroutine can never run.
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.error(f"Async handler for {event} dropped: no running event loop")
            return
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Error in async handler: {task.exception()}")

    @property
    def _debug_mode(self) -> bool:
        if self.config is None:
            return False
        return self.config.data.general.debug_mode
