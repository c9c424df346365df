"""
ModuleLoader, SecurityGate and AiohttpFetcher.
"""
import json
import pytest
from aiohttp import web
from aiohttp import test_utils

from agentlet.core.errors import FetchError, SecurityValidationError
from agentlet.core.events import Events
from agentlet.core.registry import AiohttpFetcher, ModuleLoader, ModuleRegistry, SecurityGate

GREETER_SOURCE = '''
class GreeterModule(BaseModule):
    async def perform_module_launch(self):
        self.launched = True


register(GreeterModule({"name": "greeter", "patterns": ["greet.example"]}))
'''

PLAIN_SOURCE = '''
import re

SLUG = re.compile(r"[a-z]+")


class PlainModule(BaseModule):
    def __init__(self):
        super().__init__({"name": "plain", "patterns": ["plain.example"]})
'''


class FakeFetcher:
    def __init__(self, sources):
        self.sources = sources
        self.calls = []

    async def fetch_text(self, url):
        self.calls.append(url)
        if url not in self.sources:
            raise FetchError(url, "HTTP 404: Not Found")
        return self.sources[url]


@pytest.fixture
def registry(bus):
    return ModuleRegistry(None, None, bus=bus)


def make_loader(registry, sources):
    return ModuleLoader(None, None, registry=registry, fetcher=FakeFetcher(sources))


class TestSecurityGate:

    @pytest.mark.parametrize("source", [
        'x = eval("1 + 1")',
        'exec("print(1)")',
        'code = compile("1", "<s>", "eval")',
        'mod = __import__("os")',
        'import importlib',
        'from builtins import open',
        'el.innerHTML = "<b>hi</b>"',
        'el.insertAdjacentHTML("beforeend", html)',
        'document.write("<p>")',
        'snippet = "<script>alert(1)</script>"',
        'href = "javascript:alert(1)"',
        'src = "data:text/html;base64,PGI+"',
        'href = "vbscript:msgbox(1)"',
    ])
    def test_dangerous_constructs_rejected(self, source):
        gate = SecurityGate()

        assert gate.find_violations(source)
        with pytest.raises(SecurityValidationError):
            gate.validate(source, "https://cdn/m.py")

    def test_benign_source_passes(self):
        gate = SecurityGate()
        assert gate.find_violations(GREETER_SOURCE) == []
        assert gate.find_violations(PLAIN_SOURCE) == []

    def test_violations_listed_on_error(self):
        with pytest.raises(SecurityValidationError) as exc:
            SecurityGate().validate('eval("1"); document.write("x")', "https://cdn/m.py")

        assert exc.value.source == "https://cdn/m.py"
        assert len(exc.value.violations) == 2


class TestLoadFromUrl:

    @pytest.mark.asyncio
    async def test_source_self_registers(self, registry):
        loader = make_loader(registry, {"https://cdn/greeter.py": GREETER_SOURCE})

        loaded = await loader.load_from_url("https://cdn/greeter.py")

        assert loaded == ["greeter"]
        assert registry.get("greeter") is not None
        assert registry.get_source("greeter") == "https://cdn/greeter.py"
        assert loader.get_loading_metrics()["total_modules_loaded"] == 1

    @pytest.mark.asyncio
    async def test_loaded_module_activates_for_current_url(self, registry):
        await registry.handle_url_change("https://greet.example/home")
        loader = make_loader(registry, {"https://cdn/greeter.py": GREETER_SOURCE})

        await loader.load_from_url("https://cdn/greeter.py")

        greeter = registry.get("greeter")
        assert registry.active_module is greeter
        assert greeter.launched is True

    @pytest.mark.asyncio
    async def test_module_class_option(self, registry):
        loader = make_loader(registry, {"https://cdn/plain.py": PLAIN_SOURCE})

        loaded = await loader.load_from_url("https://cdn/plain.py", {"module": "PlainModule"})

        assert loaded == ["plain"]

    @pytest.mark.asyncio
    async def test_missing_module_class(self, registry, recorder):
        recorder.watch(Events.MODULE_REGISTRATION_FAILED)
        loader = make_loader(registry, {"https://cdn/plain.py": PLAIN_SOURCE})

        with pytest.raises(Exception):
            await loader.load_from_url("https://cdn/plain.py", {"module": "Missing"})

        assert len(recorder.of(Events.MODULE_REGISTRATION_FAILED)) == 1

    @pytest.mark.asyncio
    async def test_rejected_source_never_executes(self, registry, recorder):
        recorder.watch(Events.MODULE_REGISTRATION_FAILED)
        source = GREETER_SOURCE + '\nvalue = eval("1")\n'
        loader = make_loader(registry, {"https://cdn/evil.py": source})

        with pytest.raises(SecurityValidationError):
            await loader.load_from_url("https://cdn/evil.py", {"name": "evil"})

        assert len(registry) == 0
        assert loader.is_cached("https://cdn/evil.py") is False
        failure = recorder.of(Events.MODULE_REGISTRATION_FAILED)[0]
        assert failure["module"] == "evil"
        assert isinstance(failure["error"], SecurityValidationError)
        assert loader.metrics["failed_loads"] == 1

    @pytest.mark.asyncio
    async def test_failure_after_register_rolls_back(self, registry, recorder):
        recorder.watch(Events.MODULE_REGISTERED, Events.MODULE_UNREGISTERED, Events.MODULE_REGISTRATION_FAILED)
        source = (
            'register(BaseModule({"name": "half", "patterns": ["half.example"]}))\n'
            'raise RuntimeError("broken after register")\n'
        )
        await registry.handle_url_change("https://half.example/")
        loader = make_loader(registry, {"https://cdn/half.py": source})

        with pytest.raises(RuntimeError):
            await loader.load_from_url("https://cdn/half.py")

        assert registry.get("half") is None
        assert registry.active_module is None
        assert loader.is_cached("https://cdn/half.py") is False
        assert recorder.names() == [
            Events.MODULE_REGISTERED,
            Events.MODULE_UNREGISTERED,
            Events.MODULE_REGISTRATION_FAILED,
        ]
        assert loader.get_loading_metrics()["total_modules_loaded"] == 0

    @pytest.mark.asyncio
    async def test_fetch_error(self, registry, recorder):
        recorder.watch(Events.MODULE_REGISTRATION_FAILED)
        loader = make_loader(registry, {})

        with pytest.raises(FetchError):
            await loader.load_from_url("https://cdn/missing.py")

        assert recorder.of(Events.MODULE_REGISTRATION_FAILED)[0]["phase"] == "load"

    @pytest.mark.asyncio
    async def test_cache_and_clear(self, registry):
        loader = make_loader(registry, {"https://cdn/greeter.py": GREETER_SOURCE})

        await loader.load_from_url("https://cdn/greeter.py")
        await registry.unload("greeter")
        await loader.load_from_url("https://cdn/greeter.py")
        assert loader.fetcher.calls == ["https://cdn/greeter.py"]
        assert loader.get_loading_metrics()["cache_size"] == 1

        loader.clear_cache()
        await registry.unload("greeter")
        await loader.load_from_url("https://cdn/greeter.py")

        assert len(loader.fetcher.calls) == 2


class TestLoadFromRegistry:

    MANIFEST_URL = "https://cdn.example/agentlets.json"

    def sources(self, manifest):
        return {
            self.MANIFEST_URL: json.dumps(manifest),
            "https://cdn.example/greeter.py": GREETER_SOURCE,
            "https://cdn.example/plain.py": PLAIN_SOURCE,
        }

    @pytest.mark.asyncio
    async def test_entries_loaded_and_failures_isolated(self, registry, recorder):
        recorder.watch(Events.REGISTRY_LOADED)
        loader = make_loader(registry, self.sources({"agentlets": [
            {"name": "greeter", "url": "greeter.py"},
            {"name": "broken", "url": "missing.py"},
            {"name": "plain", "url": "plain.py", "module": "PlainModule"},
            {"url": "no-name.py"},
        ]}))

        loaded = await loader.load_from_registry(self.MANIFEST_URL)

        assert loaded == 2
        assert registry.get_names() == ["greeter", "plain"]
        assert loader.metrics["registry_load_failures"] == 2
        assert recorder.of(Events.REGISTRY_LOADED)[0]["agentlet_count"] == 4

    @pytest.mark.asyncio
    async def test_list_manifest_and_no_reload(self, registry):
        loader = make_loader(registry, self.sources([{"name": "greeter", "url": "greeter.py"}]))

        assert await loader.load_from_registry(self.MANIFEST_URL) == 1
        assert await loader.load_from_registry(self.MANIFEST_URL) == 0
        assert loader.fetcher.calls.count(self.MANIFEST_URL) == 1

    @pytest.mark.asyncio
    async def test_already_registered_entry_skipped(self, registry):
        loader = make_loader(registry, self.sources([{"name": "greeter", "url": "greeter.py"}]))
        await loader.load_from_url("https://cdn.example/greeter.py")

        assert await loader.load_from_registry(self.MANIFEST_URL) == 0

    @pytest.mark.asyncio
    async def test_invalid_manifest(self, registry, recorder):
        recorder.watch(Events.REGISTRY_LOAD_FAILED)
        loader = make_loader(registry, {self.MANIFEST_URL: "{not json"})

        assert await loader.load_from_registry(self.MANIFEST_URL) == 0
        assert len(recorder.of(Events.REGISTRY_LOAD_FAILED)) == 1

    @pytest.mark.asyncio
    async def test_no_registry_url(self, registry):
        loader = make_loader(registry, {})
        assert await loader.load_from_registry() == 0


class TestAiohttpFetcher:

    @staticmethod
    def make_app():
        async def module_source(request):
            return web.Response(text="x = 1")

        app = web.Application()
        app.router.add_get("/module.py", module_source)
        return app

    @pytest.mark.asyncio
    async def test_fetch_text(self):
        async with test_utils.TestServer(self.make_app()) as server:
            text = await AiohttpFetcher(timeout=5).fetch_text(str(server.make_url("/module.py")))

        assert text == "x = 1"

    @pytest.mark.asyncio
    async def test_http_error(self):
        async with test_utils.TestServer(self.make_app()) as server:
            with pytest.raises(FetchError) as exc:
                await AiohttpFetcher(timeout=5).fetch_text(str(server.make_url("/missing.py")))

        assert "404" in exc.value.reason
