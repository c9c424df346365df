"""
Agentlet Core - module lifecycle and activation engine.

Provides:
- AppContext / AgentletRuntime: explicit context and composition root
- EventBus: pub/sub plus single-responder requests
- BaseModule / Submodule: URL-bound units with lifecycle hooks
- ModuleRegistry: active-module election per URL
- ModuleLoader: remote loading behind a security gate

Usage:
    from agentlet.core import AgentletRuntime, BaseModule

    runtime = AgentletRuntime()
    await runtime.start()
    runtime.register(BaseModule({"name": "github", "patterns": ["github.com"]}))
    await runtime.navigate("https://github.com/org/repo")
"""
from .base_system import BaseSystem
from .config import AgentletConfig, ConfigManager
from .decorators import subscribe_event
from .errors import (
    AgentletError,
    ConfigValidationError,
    DuplicateModuleError,
    FetchError,
    LifecycleHookError,
    NoResponderError,
    PatternError,
    RenderError,
    SecurityValidationError,
)
from .events import EventBus, Events, Signal
from .lifecycle import ModuleLifecycle, ModuleState
from .locator import AppContext
from .logging import setup_logging
from .modules import (
    BaseModule,
    LifecycleHooks,
    MatchMode,
    ModuleConfig,
    ModuleProtocol,
    PatternMatcher,
    StyleSurface,
    Submodule,
    TemplateEngine,
)
from .registry import AiohttpFetcher, ModuleLoader, ModuleRegistry, RemoteFetcher, SecurityGate
from .runtime import AgentletRuntime


__all__ = [
    "AgentletConfig",
    "AgentletError",
    "AgentletRuntime",
    "AiohttpFetcher",
    "AppContext",
    "BaseModule",
    "BaseSystem",
    "ConfigManager",
    "ConfigValidationError",
    "DuplicateModuleError",
    "EventBus",
    "Events",
    "FetchError",
    "LifecycleHookError",
    "LifecycleHooks",
    "MatchMode",
    "ModuleConfig",
    "ModuleLifecycle",
    "ModuleLoader",
    "ModuleProtocol",
    "ModuleRegistry",
    "ModuleState",
    "NoResponderError",
    "PatternError",
    "PatternMatcher",
    "RemoteFetcher",
    "RenderError",
    "SecurityGate",
    "SecurityValidationError",
    "Signal",
    "StyleSurface",
    "Submodule",
    "TemplateEngine",
    "setup_logging",
    "subscribe_event",
]
