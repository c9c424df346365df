"""
Module registry and remote loading.

Provides:
- ModuleRegistry: registration and active-module election
- ModuleLoader: remote source loading and registry manifests
- SecurityGate: source validation before execution
- RemoteFetcher / AiohttpFetcher: source fetching
"""
from .fetch import AiohttpFetcher, RemoteFetcher
from .loader import ModuleLoader, RegistryEntry
from .registry import ModuleRegistry
from .security import DEFAULT_RULES, SecurityGate


__all__ = [
    "AiohttpFetcher",
    "DEFAULT_RULES",
    "ModuleLoader",
    "ModuleRegistry",
    "RegistryEntry",
    "RemoteFetcher",
    "SecurityGate",
]
