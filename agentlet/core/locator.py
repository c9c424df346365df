from typing import Any, Dict, List, Optional, Type, TypeVar
from loguru import logger

from .base_system import BaseSystem
from .config import ConfigManager

T = TypeVar("T", bound=BaseSystem)


class AppContext:
    """
    Explicit application context owning the runtime systems.

    Systems are created with ``(context, config)``, started in registration
    order and stopped in reverse. There is no global instance.
    """

    def __init__(self, config: Optional[ConfigManager] = None):
        self.config = config or ConfigManager()
        self._systems: Dict[Type[BaseSystem], BaseSystem] = {}
        self._order: List[BaseSystem] = []
        self.is_ready = False

        self.config.on_changed.connect(self._on_config_change)

    def register_system(self, system_cls: Type[T], **kwargs: Any) -> T:
        """Instantiate and register a system; a second registration returns the first instance."""
        existing = self._systems.get(system_cls)
        if existing is not None:
            logger.warning(f"System already registered: {system_cls.__name__}")
            return existing

        system = system_cls(self, self.config, **kwargs)
        self._systems[system_cls] = system
        self._order.append(system)
        logger.debug(f"Registered system: {system_cls.__name__}")
        return system

    def get_system(self, system_cls: Type[T]) -> T:
        """
        Raises:
            KeyError: If no system of that type is registered
        """
        system = self._systems.get(system_cls)
        if system is None:
            for candidate in self._order:
                if isinstance(candidate, system_cls):
                    return candidate
            raise KeyError(f"System not registered: {system_cls.__name__}")
        return system

    def has_system(self, system_cls: Type[BaseSystem]) -> bool:
        try:
            self.get_system(system_cls)
        except KeyError:
            return False
        return True

    async def start_all(self) -> None:
        for system in self._order:
            if not system.is_ready:
                logger.debug(f"Starting {system.__class__.__name__}")
                await system.initialize()
        self.is_ready = True

    async def stop_all(self) -> None:
        for system in reversed(self._order):
            if not system.is_ready:
                continue
            try:
                await system.shutdown()
            except Exception as e:
                logger.error(f"Error stopping {system.__class__.__name__}: {e}")
        self.is_ready = False

    def _on_config_change(self, section, key, value):
        if section == "registry" and key == "guard_generations":
            from .registry import ModuleRegistry

            if self.has_system(ModuleRegistry):
                self.get_system(ModuleRegistry).guard_generations = value
                logger.info(f"Generation guard {'enabled' if value else 'disabled'}")
