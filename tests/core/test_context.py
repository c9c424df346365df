"""
AppContext and AgentletRuntime wiring.
"""
import pytest

from agentlet.core.base_system import BaseSystem
from agentlet.core.config import ConfigManager
from agentlet.core.events import EventBus, Events
from agentlet.core.locator import AppContext
from agentlet.core.modules import BaseModule
from agentlet.core.registry import ModuleLoader, ModuleRegistry
from agentlet.core.runtime import AgentletRuntime


class FakeFetcher:
    def __init__(self, sources):
        self.sources = sources

    async def fetch_text(self, url):
        return self.sources[url]


class RecordingSystem(BaseSystem):
    log = []

    async def initialize(self):
        self.log.append(("start", self.__class__.__name__))
        await super().initialize()

    async def shutdown(self):
        self.log.append(("stop", self.__class__.__name__))
        await super().shutdown()


class FirstSystem(RecordingSystem):
    pass


class SecondSystem(RecordingSystem):
    pass


class TestAppContext:

    def test_get_unregistered_system_raises(self):
        with pytest.raises(KeyError):
            AppContext().get_system(EventBus)

    def test_register_twice_returns_same_instance(self):
        ctx = AppContext()
        assert ctx.register_system(EventBus) is ctx.register_system(EventBus)

    @pytest.mark.asyncio
    async def test_start_in_order_stop_in_reverse(self):
        RecordingSystem.log = []
        ctx = AppContext()
        ctx.register_system(FirstSystem)
        ctx.register_system(SecondSystem)

        await ctx.start_all()
        await ctx.stop_all()

        assert RecordingSystem.log == [
            ("start", "FirstSystem"),
            ("start", "SecondSystem"),
            ("stop", "SecondSystem"),
            ("stop", "FirstSystem"),
        ]

    def test_registry_resolves_bus_from_context(self):
        ctx = AppContext()
        bus = ctx.register_system(EventBus)
        registry = ctx.register_system(ModuleRegistry)
        assert registry.bus is bus

    def test_guard_toggled_by_config(self):
        ctx = AppContext(ConfigManager())
        ctx.register_system(EventBus)
        registry = ctx.register_system(ModuleRegistry)

        ctx.config.update("registry", "guard_generations", True)

        assert registry.guard_generations is True


class TestAgentletRuntime:

    @pytest.mark.asyncio
    async def test_typed_accessors(self):
        runtime = AgentletRuntime()

        assert isinstance(runtime.bus, EventBus)
        assert isinstance(runtime.registry, ModuleRegistry)
        assert isinstance(runtime.loader, ModuleLoader)
        assert runtime.registry.bus is runtime.bus
        assert runtime.loader.registry is runtime.registry

    @pytest.mark.asyncio
    async def test_navigate_end_to_end(self):
        async with AgentletRuntime() as runtime:
            detected = []
            runtime.bus.on(Events.APPLICATION_DETECTED, detected.append)
            module = BaseModule({"name": "github", "patterns": ["github.com"]})
            runtime.register(module)

            active = await runtime.navigate("https://github.com/org/repo")

            assert active is module
            assert detected == [{"module": "github", "url": "https://github.com/org/repo"}]

        assert module.is_active is False

    @pytest.mark.asyncio
    async def test_storage_change_routed_after_start(self):
        runtime = await AgentletRuntime().start()
        module = BaseModule({"name": "github", "patterns": ["github.com"]})
        runtime.register(module)
        await runtime.navigate("https://github.com/")
        changes = []
        module.on("localStorageChange", changes.append)

        runtime.bus.emit(Events.STORAGE_CHANGED, {"key": "k", "new_value": 1})

        assert changes == [{"key": "k", "new_value": 1}]
        await runtime.stop()

    @pytest.mark.asyncio
    async def test_registry_url_loaded_on_start(self):
        config = ConfigManager()
        config.update("registry", "registry_url", "https://cdn.example/agentlets.json")
        fetcher = FakeFetcher({
            "https://cdn.example/agentlets.json": '[{"name": "hello", "url": "hello.py"}]',
            "https://cdn.example/hello.py": 'register(BaseModule({"name": "hello", "patterns": ["hello.example"]}))',
        })

        runtime = await AgentletRuntime(config=config, fetcher=fetcher).start()

        assert "hello" in runtime.registry
        await runtime.stop()
