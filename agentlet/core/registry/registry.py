"""
Module Registry - owns registered modules and elects the active one per URL.
"""
import inspect
import time
from typing import Any, Callable, Dict, List, Optional
from loguru import logger

from agentlet.core.base_system import BaseSystem
from agentlet.core.decorators import subscribe_event
from agentlet.core.errors import AgentletError, DuplicateModuleError, LifecycleHookError
from agentlet.core.events import EventBus, Events
from agentlet.core.modules.protocol import ModuleProtocol


class ModuleRegistry(BaseSystem):
    """
    Registry of modules keyed by name, in registration order.

    On every URL change all modules receive ``activate`` (URL update), then
    the first module whose pattern matches is elected. Changing the active
    module cleans up the old one before initializing the new one.

    Election is unguarded by default: a slow ``init`` may finish after a
    newer navigation. With ``guard_generations`` enabled, results of a
    superseded cycle are discarded.

    Usage:
        registry = ModuleRegistry(ctx, config, bus=bus)
        registry.register(github_module)
        await registry.handle_url_change("https://github.com/org/repo")
    """

    def __init__(self, locator=None, config=None, bus: Optional[EventBus] = None):
        super().__init__(locator, config)
        if bus is None and locator is not None:
            bus = locator.get_system(EventBus)
        self.bus = bus

        self._modules: Dict[str, ModuleProtocol] = {}
        self._sources: Dict[str, str] = {}
        self.active_module: Optional[ModuleProtocol] = None
        self.current_url: Optional[str] = None
        self.last_url: Optional[str] = None
        self.on_module_change: Optional[Callable[[Optional[ModuleProtocol]], Any]] = None

        self.guard_generations = config.data.registry.guard_generations if config is not None else False
        self._generation = 0

        self.metrics: Dict[str, float] = {
            "activation_count": 0,
            "failed_activations": 0,
            "last_election_time": 0.0,
        }

    async def initialize(self):
        logger.info("ModuleRegistry initialized")
        await super().initialize()

    async def shutdown(self):
        """Clean up every module and empty the registry."""
        for module in list(self._modules.values()):
            try:
                await module.cleanup()
            except Exception as e:
                logger.error(f"Error cleaning up module {module.name}: {e}")
        self._modules.clear()
        self._sources.clear()
        self.active_module = None
        logger.info("ModuleRegistry shut down")
        await super().shutdown()

    # --- Registration -----------------------------------------------------------
    def register(self, module: ModuleProtocol, source: str = "local") -> bool:
        """
        Register a module under its name.

        Re-registering the same instance is a no-op. A different instance
        under a taken name is rejected with ``module:registrationFailed``.
        Never raises.

        Returns:
            True if the module is registered after the call
        """
        if not isinstance(module, ModuleProtocol):
            error = AgentletError(f"{type(module).__name__} does not implement the module protocol")
            logger.error(f"Registration rejected from {source}: {error}")
            self._emit(Events.MODULE_REGISTRATION_FAILED, {"module": getattr(module, "name", None), "source": source, "error": error})
            return False

        existing = self._modules.get(module.name)
        if existing is module:
            logger.warning(f"Module {module.name} already registered with same instance, ignoring")
            return True
        if existing is not None:
            error = DuplicateModuleError(module.name)
            logger.error(f"Registration rejected from {source}: {error}")
            self._emit(Events.MODULE_REGISTRATION_FAILED, {"module": module.name, "source": source, "error": error})
            return False

        self._attach_bus(module)
        self._modules[module.name] = module
        self._sources[module.name] = source

        logger.info(f"Module registered: {module.name} ({source})")
        self._emit(Events.MODULE_REGISTERED, {"module": module.name, "version": module.version, "source": source})
        return True

    def _attach_bus(self, module: ModuleProtocol) -> None:
        if self.bus is None:
            return
        if getattr(module, "event_bus", False) is None:
            module.event_bus = self.bus
        for submodule in getattr(module, "submodules", ()):
            if getattr(submodule, "event_bus", False) is None:
                submodule.event_bus = self.bus

    async def unregister(self, name: str) -> bool:
        """Clean up and remove a module whether or not it is active."""
        module = self._modules.get(name)
        if module is None:
            return False

        if module is self.active_module:
            await self._deactivate_active()
            await self._notify_change(None)
        else:
            await module.cleanup()

        self._remove(name)
        logger.info(f"Module unregistered: {name}")
        self._emit(Events.MODULE_UNREGISTERED, {"module": name})
        return True

    async def unload(self, name: str) -> bool:
        """
        Remove a module, cleaning it up first if it is the active one.

        Returns:
            False if no module is registered under ``name``
        """
        module = self._modules.get(name)
        if module is None:
            logger.warning(f"Cannot unload unknown module: {name}")
            return False

        was_active = module is self.active_module
        if was_active:
            await self._deactivate_active()

        self._remove(name)
        logger.info(f"Module unloaded: {name}")
        self._emit(Events.MODULE_UNLOADED, {"module": name, "was_active": was_active})
        await self._notify_change(self.active_module)
        return True

    def _remove(self, name: str) -> None:
        self._modules.pop(name, None)
        self._sources.pop(name, None)

    # --- Election -----------------------------------------------------------------
    def find_matching_module(self, url: str) -> Optional[ModuleProtocol]:
        """First module in registration order whose pattern matches ``url``."""
        for module in self._modules.values():
            try:
                if module.check_pattern(url):
                    return module
            except Exception as e:
                logger.warning(f"Pattern check failed for {module.name}: {e}")
        return None

    async def handle_url_change(self, url: str, trigger: str = "urlChange") -> Optional[ModuleProtocol]:
        """
        Propagate a navigation and re-elect the active module.

        Returns:
            The active module after this cycle
        """
        self._generation += 1
        generation = self._generation
        start = time.perf_counter()

        old_url = self.current_url
        self.last_url = old_url
        self.current_url = url
        context = {"old_url": old_url, "new_url": url, "trigger": trigger}

        for module in list(self._modules.values()):
            try:
                await module.activate(dict(context))
            except Exception as e:
                logger.error(f"URL update failed for {module.name}: {e}")
        if self._superseded(generation):
            return self.active_module

        matching = self.find_matching_module(url)
        if matching is not self.active_module:
            if self.active_module is not None:
                await self._deactivate_active()
                if self._superseded(generation):
                    return self.active_module
            if matching is not None:
                await self._activate(matching, context, generation)
                if self._superseded(generation):
                    return self.active_module
            await self._notify_change(self.active_module)

        if old_url != url:
            self._emit(Events.URL_CHANGED, {"old_url": old_url, "new_url": url})
        if matching is not None:
            self._emit(Events.APPLICATION_DETECTED, {"module": matching.name, "url": url})
        else:
            self._emit(Events.APPLICATION_NOT_DETECTED, {"url": url})

        self.metrics["last_election_time"] = (time.perf_counter() - start) * 1000
        return self.active_module

    async def refresh(self) -> Optional[ModuleProtocol]:
        """Re-run election for the current URL, e.g. after new registrations."""
        if self.current_url is None:
            return None
        return await self.handle_url_change(self.current_url, trigger="moduleRegistration")

    async def _activate(self, module: ModuleProtocol, context: Dict[str, Any], generation: int) -> None:
        try:
            await module.init(self.current_url)
        except Exception as e:
            self.metrics["failed_activations"] += 1
            logger.error(f"Module activation failed: {module.name}: {e}")
            self._emit(Events.MODULE_REGISTRATION_FAILED, {"module": module.name, "phase": "activation", "error": e})
            if not isinstance(e, LifecycleHookError):
                await module.cleanup()
            return

        if self._superseded(generation):
            logger.warning(f"Discarding stale activation of {module.name}")
            if module is not self.active_module:
                await module.cleanup()
            return

        self.active_module = module
        self.metrics["activation_count"] += 1
        logger.info(f"Module activated: {module.name}")
        self._emit(Events.MODULE_ACTIVATED, {"module": module.name, "context": context})

    async def _deactivate_active(self) -> None:
        module = self.active_module
        if module is None:
            return
        try:
            await module.cleanup()
        except Exception as e:
            logger.error(f"Module deactivation failed: {module.name}: {e}")
        if self.active_module is module:
            self.active_module = None
        logger.info(f"Module deactivated: {module.name}")
        self._emit(Events.MODULE_DEACTIVATED, {"module": module.name})

    def _superseded(self, generation: int) -> bool:
        return self.guard_generations and generation != self._generation

    async def _notify_change(self, module: Optional[ModuleProtocol]) -> None:
        callback = self.on_module_change
        if callback is None:
            return
        try:
            result = callback(module)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Module change callback failed: {e}")

    def set_module_change_callback(self, callback: Optional[Callable[[Optional[ModuleProtocol]], Any]]) -> None:
        self.on_module_change = callback

    # --- Host events ------------------------------------------------------------------
    @subscribe_event(Events.STORAGE_CHANGED)
    def on_storage_changed(self, data: Dict[str, Any]) -> None:
        """Forward storage changes to the active module."""
        module = self.active_module
        if module is None or not data:
            return
        handler = getattr(module, "on_storage_change", None)
        if callable(handler):
            handler(data.get("key"), data.get("new_value"))

    # --- Accessors --------------------------------------------------------------------
    def get(self, name: str) -> Optional[ModuleProtocol]:
        return self._modules.get(name)

    def get_all(self) -> List[ModuleProtocol]:
        return list(self._modules.values())

    def get_names(self) -> List[str]:
        return list(self._modules.keys())

    def get_source(self, name: str) -> Optional[str]:
        return self._sources.get(name)

    def get_statistics(self) -> Dict[str, Any]:
        return {
            **self.metrics,
            "total_modules": len(self._modules),
            "active_module": self.active_module.name if self.active_module is not None else None,
            "module_list": self.get_names(),
            "current_url": self.current_url,
            "generation": self._generation,
        }

    def __contains__(self, name: str) -> bool:
        return name in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def _emit(self, event: str, data: Dict[str, Any]) -> None:
        if self.bus is not None:
            self.bus.emit(event, data)
