from abc import ABC, abstractmethod
import inspect
from typing import TYPE_CHECKING, Optional
from loguru import logger

if TYPE_CHECKING:
    from .locator import AppContext
    from .config import ConfigManager


class BaseSystem(ABC):
    """
    Abstract base for runtime systems (EventBus, ModuleRegistry, ModuleLoader).

    Systems receive the application context and the config manager
    explicitly; there is no global service locator.

    Methods decorated with @subscribe_event are subscribed to the EventBus
    during initialize():

        class ModuleRegistry(BaseSystem):
            @subscribe_event("storage:changed")
            def on_storage_changed(self, data):
                ...
    """
    def __init__(self, locator: Optional['AppContext'], config: Optional['ConfigManager']):
        self.locator = locator
        self.config = config
        self._is_ready = False

    @abstractmethod
    async def initialize(self):
        """
        Async initialization, called by AppContext.start_all().

        Subscribes methods decorated with @subscribe_event.
        """
        self._auto_subscribe_events()
        self._is_ready = True

    def _auto_subscribe_events(self) -> None:
        from .events import EventBus

        if isinstance(self, EventBus):
            bus = self
        elif isinstance(getattr(self, "bus", None), EventBus):
            bus = self.bus
        elif self.locator is None:
            return
        else:
            try:
                bus = self.locator.get_system(EventBus)
            except KeyError:
                logger.warning(f"{self.__class__.__name__}: EventBus not available for auto-subscription")
                return

        for name, method in inspect.getmembers(self, predicate=inspect.ismethod):
            events = getattr(method, "_subscribed_events", None)
            if not events:
                continue
            for event in events:
                bus.on(event, method)
                logger.debug(f"{self.__class__.__name__}.{name} auto-subscribed to: {event}")

    @abstractmethod
    async def shutdown(self):
        self._is_ready = False

    @property
    def is_ready(self) -> bool:
        return self._is_ready

    async def __aenter__(self):
        if not self._is_ready:
            await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._is_ready:
            await self.shutdown()
