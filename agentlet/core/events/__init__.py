"""
Event System.

Provides:
- Signal: synchronous observer for local notifications (config changes)
- EventBus: pub/sub plus single-responder request channel
- Events: standard event name constants

Usage:
    from agentlet.core.events import EventBus, Events

    bus.on(Events.MODULE_REGISTERED, on_registered)
    bus.emit(Events.MODULE_REGISTERED, {"module": "github"})
"""
from .observer import Signal
from .bus import EventBus
from .constants import Events


__all__ = ["Signal", "EventBus", "Events"]
