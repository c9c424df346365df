"""
Module Loader - fetches remote module source and lets it self-register.

Remote source is plain Python that calls ``register(module)``. It passes
the security gate before it is executed.
"""
import hashlib
import importlib.util
import json
import time
from statistics import mean
from typing import Any, Dict, List, Optional, Set
from urllib.parse import urljoin

from loguru import logger
from pydantic import BaseModel

from agentlet.core.base_system import BaseSystem
from agentlet.core.config import LoaderSettings, RegistrySettings
from agentlet.core.errors import AgentletError
from agentlet.core.events import Events
from agentlet.core.modules import BaseModule, LifecycleHooks, MatchMode, Submodule
from .fetch import AiohttpFetcher, RemoteFetcher
from .registry import ModuleRegistry
from .security import SecurityGate


class RegistryEntry(BaseModel):
    """One agentlet listed in a registry manifest."""
    name: str
    url: str
    module: Optional[str] = None


class ModuleLoader(BaseSystem):
    """
    Loads modules from remote URLs and registry manifests.

    Validated sources are cached by URL until ``clear_cache()``.

    Usage:
        loader = ModuleLoader(ctx, config, registry=registry)
        await loader.load_from_url("https://cdn.example.com/github.py")
        await loader.load_from_registry("https://cdn.example.com/agentlets.json")
    """

    def __init__(
        self,
        locator=None,
        config=None,
        registry: Optional[ModuleRegistry] = None,
        fetcher: Optional[RemoteFetcher] = None,
        gate: Optional[SecurityGate] = None,
    ):
        super().__init__(locator, config)
        if registry is None and locator is not None:
            registry = locator.get_system(ModuleRegistry)
        self.registry = registry

        settings = config.data.loader if config is not None else LoaderSettings()
        self.fetcher = fetcher or AiohttpFetcher(settings.fetch_timeout)
        self.gate = gate or SecurityGate()
        self.cache_sources = settings.cache_sources

        self._source_cache: Dict[str, str] = {}
        self._loaded_registries: Set[str] = set()
        self._load_times: List[float] = []
        self.metrics: Dict[str, int] = {
            "total_modules_loaded": 0,
            "failed_loads": 0,
            "registries_loaded": 0,
            "registry_load_failures": 0,
        }

    async def initialize(self):
        registry_url = self._registry_settings().registry_url
        if registry_url:
            await self.load_from_registry(registry_url)
        logger.info("ModuleLoader initialized")
        await super().initialize()

    async def shutdown(self):
        self.clear_cache()
        await super().shutdown()

    # --- Remote modules ---------------------------------------------------------
    async def load_from_url(self, url: str, options: Optional[Dict[str, Any]] = None) -> List[str]:
        """
        Fetch, validate and execute remote module source.

        A load is all or nothing: when execution fails, modules the source
        already registered are unregistered and its cached source dropped.

        Args:
            url: Source URL
            options: ``name`` (label for events), ``module`` (class to
                instantiate when the source does not self-register),
                ``use_cache`` (defaults to the loader setting)

        Returns:
            Names of modules registered by this load

        Raises:
            FetchError: If the source could not be fetched
            SecurityValidationError: If the source was rejected
        """
        options = dict(options or {})
        start = time.perf_counter()
        logger.info(f"Loading module from {url}")

        registered: List[str] = []
        try:
            source = await self._get_source(url, options.get("use_cache", self.cache_sources))
            self._execute(source, url, options, registered)
        except Exception as e:
            for name in registered:
                await self.registry.unregister(name)
            self._source_cache.pop(url, None)
            self.metrics["failed_loads"] += 1
            logger.error(f"Failed to load module from {url}: {e}")
            self._emit(Events.MODULE_REGISTRATION_FAILED, {
                "module": options.get("name"),
                "source": url,
                "phase": "load",
                "error": e,
            })
            raise

        self._load_times.append((time.perf_counter() - start) * 1000)
        self.metrics["total_modules_loaded"] += len(registered)
        logger.info(f"Loaded {len(registered)} module(s) from {url}")

        if registered:
            await self.registry.refresh()
        return registered

    async def _get_source(self, url: str, use_cache: bool) -> str:
        if use_cache and url in self._source_cache:
            logger.debug(f"Using cached source for {url}")
            return self._source_cache[url]

        source = await self.fetcher.fetch_text(url)
        self.gate.validate(source, url)
        if use_cache:
            self._source_cache[url] = source
        return source

    def _execute(self, source: str, url: str, options: Dict[str, Any], registered: List[str]) -> None:
        """Run ``source``, appending every module it registers to ``registered``."""

        def register(module) -> bool:
            if self.registry.register(module, source=url):
                registered.append(module.name)
                return True
            return False

        digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:12]
        spec = importlib.util.spec_from_loader(f"agentlet_remote_{digest}", loader=None, origin=url)
        namespace = importlib.util.module_from_spec(spec)
        namespace.__dict__.update({
            "register": register,
            "BaseModule": BaseModule,
            "Submodule": Submodule,
            "LifecycleHooks": LifecycleHooks,
            "MatchMode": MatchMode,
            "logger": logger,
        })
        exec(compile(source, url, "exec"), namespace.__dict__)

        class_name = options.get("module")
        if class_name and not registered:
            module_cls = getattr(namespace, class_name, None)
            if not isinstance(module_cls, type):
                raise AgentletError(f"Module class {class_name!r} not found after loading {url}")
            instance = module_cls()
            if self._registry_settings().skip_registry_module_registration:
                logger.info(f"Module {instance.name} loaded (registration skipped)")
            else:
                register(instance)

    # --- Registry manifests --------------------------------------------------------
    async def load_from_registry(self, registry_url: Optional[str] = None) -> int:
        """
        Load every agentlet listed in a JSON manifest.

        The manifest is a list of entries or ``{"agentlets": [...]}``. Entry
        URLs are resolved relative to the manifest URL. Each entry is
        isolated: one failing load does not stop the others.

        Returns:
            Number of entries loaded
        """
        url = registry_url or self._registry_settings().registry_url
        if not url:
            logger.warning("No registry URL configured, skipping registry loading")
            return 0
        if url in self._loaded_registries:
            logger.info(f"Registry already loaded: {url}")
            return 0

        try:
            data = json.loads(await self.fetcher.fetch_text(url))
            entries = data if isinstance(data, list) else data.get("agentlets") if isinstance(data, dict) else None
            if not isinstance(entries, list):
                raise ValueError("Registry must contain an agentlets array")
        except Exception as e:
            self.metrics["registry_load_failures"] += 1
            logger.error(f"Failed to load registry from {url}: {e}")
            self._emit(Events.REGISTRY_LOAD_FAILED, {"url": url, "error": e})
            return 0

        logger.info(f"Found {len(entries)} agentlet(s) in registry {url}")
        loaded = 0
        for raw in entries:
            try:
                entry = RegistryEntry.model_validate(raw)
                if entry.name in self.registry:
                    logger.info(f"Agentlet already loaded: {entry.name}")
                    continue
                await self.load_from_url(urljoin(url, entry.url), {"name": entry.name, "module": entry.module})
                loaded += 1
            except Exception as e:
                self.metrics["registry_load_failures"] += 1
                logger.error(f"Failed to load agentlet {raw!r}: {e}")

        self._loaded_registries.add(url)
        self.metrics["registries_loaded"] += 1
        self._emit(Events.REGISTRY_LOADED, {"url": url, "agentlet_count": len(entries), "loaded": loaded})
        return loaded

    # --- Cache & metrics ------------------------------------------------------------
    def clear_cache(self) -> None:
        """Forget cached sources so the next load fetches again."""
        count = len(self._source_cache)
        self._source_cache.clear()
        logger.debug(f"Cleared {count} cached module source(s)")

    def is_cached(self, url: str) -> bool:
        return url in self._source_cache

    def get_loading_metrics(self) -> Dict[str, Any]:
        return {
            **self.metrics,
            "average_load_time": mean(self._load_times) if self._load_times else 0.0,
            "cache_size": len(self._source_cache),
        }

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "loading_metrics": self.get_loading_metrics(),
            "loaded_registries": sorted(self._loaded_registries),
            "registry": self.registry.get_statistics() if self.registry is not None else None,
        }

    def _registry_settings(self) -> RegistrySettings:
        if self.config is None:
            return RegistrySettings()
        return self.config.data.registry

    def _emit(self, event: str, data: Dict[str, Any]) -> None:
        bus = self.registry.bus if self.registry is not None else None
        if bus is not None:
            bus.emit(event, data)
