"""
Agentlet - plugin runtime for page-context assistants.
"""
from .core import (
    AgentletRuntime,
    AppContext,
    BaseModule,
    ConfigManager,
    EventBus,
    Events,
    LifecycleHooks,
    MatchMode,
    ModuleLoader,
    ModuleRegistry,
    Submodule,
)

__version__ = "1.0.0"

__all__ = [
    "AgentletRuntime",
    "AppContext",
    "BaseModule",
    "ConfigManager",
    "EventBus",
    "Events",
    "LifecycleHooks",
    "MatchMode",
    "ModuleLoader",
    "ModuleRegistry",
    "Submodule",
]
