from loguru import logger
from typing import Callable, List


class Signal:
    """
    Synchronous observer used for in-process notifications that are not
    routed through the EventBus (config changes, module-change callbacks).
    """
    def __init__(self, name: str = "Signal"):
        self.name = name
        self._subscribers: List[Callable] = []

    def connect(self, callback: Callable):
        """Connect a callback; connecting the same callback twice is a no-op."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def disconnect(self, callback: Callable):
        """Disconnect a callback if it is connected."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def clear(self):
        self._subscribers.clear()

    def emit(self, *args, **kwargs):
        """Call every subscriber in connection order; failures are logged."""
        for sub in list(self._subscribers):
            try:
                sub(*args, **kwargs)
            except Exception as e:
                logger.error(f"Signal '{self.name}' error in subscriber '{sub}': {e}")

    def __len__(self) -> int:
        return len(self._subscribers)
