"""
Runtime composition root.

Wires the config, the event bus, the registry and the loader into one
AppContext and exposes them through typed accessors.
"""
from typing import List, Optional

from loguru import logger

from .config import ConfigManager
from .events import EventBus
from .locator import AppContext
from .modules.protocol import ModuleProtocol
from .registry import ModuleLoader, ModuleRegistry, RemoteFetcher


class AgentletRuntime:
    """
    Host-facing entry point.

    Example:
        runtime = AgentletRuntime("agentlet.toml", with_logging=True)
        await runtime.start()
        runtime.registry.register(GithubModule())
        await runtime.navigate("https://github.com/org/repo")
        await runtime.stop()
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        *,
        config: Optional[ConfigManager] = None,
        fetcher: Optional[RemoteFetcher] = None,
        with_logging: bool = False,
    ):
        """
        Args:
            config_path: Optional JSON/TOML settings file
            config: Pre-built config manager (takes precedence over config_path)
            fetcher: Remote source fetcher, aiohttp-backed by default
            with_logging: Configure loguru sinks from the general settings
        """
        self._with_logging = with_logging
        self.context = AppContext(config or ConfigManager(config_path))
        self.context.register_system(EventBus)
        self.context.register_system(ModuleRegistry)
        self.context.register_system(ModuleLoader, fetcher=fetcher)

    @property
    def config(self) -> ConfigManager:
        return self.context.config

    @property
    def bus(self) -> EventBus:
        return self.context.get_system(EventBus)

    @property
    def registry(self) -> ModuleRegistry:
        return self.context.get_system(ModuleRegistry)

    @property
    def loader(self) -> ModuleLoader:
        return self.context.get_system(ModuleLoader)

    async def start(self) -> "AgentletRuntime":
        if self._with_logging:
            from .logging import setup_logging

            general = self.config.data.general
            setup_logging(general.debug_mode, general.log_dir, general.log_to_file)
        logger.info("Starting agentlet runtime")
        await self.context.start_all()
        return self

    async def stop(self) -> None:
        await self.context.stop_all()
        logger.info("Agentlet runtime stopped")

    def register(self, module: ModuleProtocol) -> bool:
        return self.registry.register(module)

    async def navigate(self, url: str) -> Optional[ModuleProtocol]:
        """Signal a URL change; returns the active module afterwards."""
        return await self.registry.handle_url_change(url)

    async def load(self, url: str) -> List[str]:
        return await self.loader.load_from_url(url)

    async def __aenter__(self):
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
