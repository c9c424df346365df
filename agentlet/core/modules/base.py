"""
Base module: a unit of agentlet behaviour bound to URL patterns.

Lifecycle: init -> activate (on every navigation) -> cleanup.
Hooks are resolved once at construction: an injected hook receives the
module as its first argument, otherwise the overridable ``*_module``
methods are used.
"""
import functools
import inspect
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
from loguru import logger

from agentlet.core.errors import LifecycleHookError, RenderError
from agentlet.core.events.constants import Events
from agentlet.core.lifecycle import ModuleLifecycle, ModuleState
from .machine import SubmoduleMachine
from .matcher import MatchMode, PatternMatcher
from .protocol import ModuleProtocol, StyleSurface, TemplateEngine
from .schema import ModuleConfig, validate_module_config
from .template import render_template


@dataclass(frozen=True)
class LifecycleHooks:
    """
    Optional lifecycle hook overrides.

    Signatures: ``init(module)``, ``activate(module, context)``,
    ``cleanup(module, context)``. Sync and async callables are accepted.
    """
    init: Optional[Callable] = None
    activate: Optional[Callable] = None
    cleanup: Optional[Callable] = None


async def _invoke(fn: Callable, *args) -> Any:
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class BaseModule:
    """
    Module with pattern matching, lifecycle hooks, settings, local events
    and an exclusively-activated list of submodules.

    Usage:
        module = BaseModule({"name": "github", "patterns": ["github.com"]})
        module.add_submodule(Submodule({"name": "pulls", "patterns": ["/pulls"]}))
        await module.init("https://github.com/org/repo/pulls")
    """

    event_prefix = "module"

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        hooks: Optional[LifecycleHooks] = None,
        event_bus=None,
        surface: Optional[StyleSurface] = None,
        template_engine: Optional[TemplateEngine] = None,
        **overrides: Any,
    ):
        raw = config if config is not None else {}
        if overrides and isinstance(raw, ModuleConfig):
            raw = raw.model_dump()
        if overrides and isinstance(raw, dict):
            raw = {**raw, **overrides}
        self._config = validate_module_config(raw)
        cfg = self._config

        self.name = cfg.name
        self.version = cfg.version
        self.description = cfg.description

        self._matcher = PatternMatcher(
            list(cfg.patterns), cfg.match_mode, cfg.custom_matcher, owner=f"{self.event_prefix} {cfg.name}"
        )

        self.capabilities = list(cfg.capabilities)
        self.permissions = list(cfg.permissions)
        self.dependencies = list(cfg.dependencies)
        self.settings = {**self.get_default_settings(), **cfg.settings}

        self.template = cfg.template
        self.template_engine = template_engine
        self.requires_storage_notification = cfg.requires_storage_notification

        self.event_bus = event_bus
        self.surface = surface
        self.current_url: Optional[str] = None
        self.last_url: Optional[str] = None

        self.lifecycle = ModuleLifecycle(self.name)
        self.submodules: List["BaseModule"] = []
        self._machine = SubmoduleMachine(self)

        self._listeners: Dict[str, List[Callable]] = {}
        self._bus_subscriptions: List[Tuple[str, Callable]] = []
        self._style_id: Optional[str] = None

        self.performance_metrics: Dict[str, float] = {
            "init_time": 0.0,
            "page_analysis_time": 0.0,
            "render_time": 0.0,
        }

        self._hooks = self._resolve_hooks(hooks or LifecycleHooks())

    def _resolve_hooks(self, hooks: LifecycleHooks) -> LifecycleHooks:
        def bind(injected, default):
            return functools.partial(injected, self) if injected else default

        return LifecycleHooks(
            init=bind(hooks.init, self.init_module),
            activate=bind(hooks.activate, self.activate_module),
            cleanup=bind(hooks.cleanup, self.cleanup_module),
        )

    # --- Pattern matching ---------------------------------------------------
    @property
    def patterns(self) -> List[str]:
        return self._matcher.patterns

    @property
    def match_mode(self) -> MatchMode:
        return self._matcher.mode

    @property
    def custom_matcher(self):
        return self._matcher.custom_matcher

    def check_pattern(self, url: str) -> bool:
        return self._matcher.matches(url)

    # --- State ----------------------------------------------------------------
    @property
    def state(self) -> ModuleState:
        return self.lifecycle.state

    @property
    def is_active(self) -> bool:
        return self.lifecycle.is_active

    @property
    def active_submodule(self) -> Optional[ModuleProtocol]:
        return self._machine.active

    # --- Overridable lifecycle hooks ------------------------------------------
    async def init_module(self) -> None:
        logger.debug(f"Initializing {self.event_prefix}: {self.name}")
        self.emit(Events.LIFECYCLE_INIT)

    async def activate_module(self, context: Dict[str, Any]) -> None:
        logger.debug(f"Activating {self.event_prefix}: {self.name} {context}")
        self.emit(Events.LIFECYCLE_ACTIVATE, context)

    async def cleanup_module(self, context: Dict[str, Any]) -> None:
        logger.debug(f"Cleaning up {self.event_prefix}: {self.name}")
        self.emit(Events.LIFECYCLE_CLEANUP, context)

    async def perform_page_analysis(self) -> None:
        """Override for custom page analysis."""
        pass

    async def perform_module_launch(self) -> None:
        """Override for custom launch logic."""
        pass

    # --- Lifecycle --------------------------------------------------------------
    async def init(self, url: Optional[str] = None) -> None:
        """
        Initialize the module for ``url`` (or the last known URL).

        Order: init hook, page analysis, module launch, submodule election,
        then the module becomes active.

        Raises:
            LifecycleHookError: If the init hook fails
        """
        if url is not None:
            self.current_url = url
        start = time.perf_counter()

        try:
            await _invoke(self._hooks.init)
        except Exception as e:
            logger.error(f"Init hook failed for {self.name}: {e}")
            self.emit(Events.ERROR, {"phase": "initialization", "error": e})
            raise LifecycleHookError(self.name, "initialize", e) from e

        await self.analyze_page()
        await self.launch_module()
        if self.current_url is not None:
            await self._machine.elect(self.current_url)

        self.lifecycle.activate()
        self.inject_styles()

        self.performance_metrics["init_time"] = _elapsed_ms(start)
        self.emit(Events.INITIALIZED, {"metrics": dict(self.performance_metrics)})
        logger.info(f"{self.event_prefix.capitalize()} {self.name} initialized in {self.performance_metrics['init_time']:.2f}ms")

    async def activate(self, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Handle a navigation while registered.

        Re-runs submodule election when the module still matches; emits
        ``applicationLeft`` when it no longer does. Never deactivates the
        module itself.
        """
        context = dict(context or {})
        new_url = context.get("new_url", self.current_url)
        old_url = context.get("old_url", self.last_url)
        context.setdefault("trigger", "urlChange")
        self.last_url = self.current_url
        self.current_url = new_url

        try:
            await _invoke(self._hooks.activate, context)

            if new_url is not None and self.check_pattern(new_url):
                if self.is_active and self.submodules:
                    await self._machine.elect(new_url)
            elif self.is_active:
                logger.info(f"Left {self.name} application")
                self.emit(Events.APPLICATION_LEFT, {"old_url": old_url, "new_url": new_url})
        except Exception as e:
            logger.error(f"URL update failed for {self.name}: {e}")
            self.emit(Events.ERROR, {"phase": "urlUpdate", "error": e, "old_url": old_url, "new_url": new_url})

    async def update_url(self, new_url: str) -> None:
        await self.activate({"old_url": self.current_url, "new_url": new_url, "trigger": "urlChange"})

    async def cleanup(self, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Deactivate the module. Idempotent and never raises.
        """
        try:
            await _invoke(self._hooks.cleanup, dict(context or {}))
        except Exception as e:
            logger.error(f"Error cleaning up {self.event_prefix} {self.name}: {e}")
            self.emit(Events.ERROR, {"phase": "cleanup", "error": e})

        await self._machine.deactivate()
        self.remove_event_listeners()
        self.remove_styles()
        self.lifecycle.deactivate()

        self.emit(Events.CLEANUP)
        logger.info(f"{self.event_prefix.capitalize()} {self.name} cleaned up")

    async def analyze_page(self) -> None:
        start = time.perf_counter()
        try:
            await self.perform_page_analysis()
        except Exception as e:
            logger.error(f"Error analyzing page in {self.name}: {e}")
            self.emit(Events.ERROR, {"phase": "pageAnalysis", "error": e})
            return
        self.performance_metrics["page_analysis_time"] = _elapsed_ms(start)
        self.emit(Events.PAGE_ANALYZED, {"url": self.current_url, "metrics": dict(self.performance_metrics)})

    async def launch_module(self) -> None:
        try:
            await self.perform_module_launch()
        except Exception as e:
            logger.error(f"Error launching {self.name}: {e}")
            self.emit(Events.ERROR, {"phase": "moduleLaunch", "error": e})
            return
        self.emit(Events.MODULE_LAUNCHED)

    # --- Submodules -----------------------------------------------------------
    def add_submodule(self, submodule: "BaseModule") -> "BaseModule":
        """Append a submodule; list order decides election priority."""
        if hasattr(submodule, "parent_module"):
            submodule.parent_module = self.name
        if getattr(submodule, "event_bus", None) is None:
            submodule.event_bus = self.event_bus
        if getattr(submodule, "surface", None) is None:
            submodule.surface = self.surface
        self.submodules.append(submodule)
        return submodule

    def set_submodule_change_callback(self, callback: Optional[Callable[[], Any]]) -> None:
        self._machine.on_change = callback

    async def check_submodules(self, url: str) -> None:
        await self._machine.elect(url)

    # --- Content ----------------------------------------------------------------
    def get_content(self, context: Optional[Dict[str, Any]] = None) -> str:
        """Render module content; failures yield fallback content, never raise."""
        start = time.perf_counter()
        try:
            data = {**self.get_template_data(), **(context or {})}
            content = render_template(self.get_template(), data, self.template_engine)
            active = self.active_submodule
            submodule_content = active.get_content(context) if active is not None else ""
            self.performance_metrics["render_time"] = _elapsed_ms(start)
            return content + submodule_content
        except Exception as e:
            error = e if isinstance(e, RenderError) else RenderError(str(e))
            logger.error(f"Error rendering {self.name}: {e}")
            self.emit(Events.ERROR, {"phase": "contentGeneration", "error": error})
            return self.get_fallback_content()

    def get_template(self) -> str:
        return self.template or self.get_default_template()

    def get_default_template(self) -> str:
        return (
            '<div class="agentlet-module-content" data-module="{{name}}">'
            '<div class="agentlet-module-header">'
            "<h3>{{displayName}} AI Assistant</h3>"
            '<span class="agentlet-module-version">v{{version}}</span>'
            "</div>"
            '<div class="agentlet-module-body">'
            "<p><strong>Current URL:</strong> {{url}}</p>"
            "<p><strong>Status:</strong> {{status}}</p>"
            "{{#if activeSubmodule}}<p><strong>Active Submodule:</strong> {{activeSubmodule}}</p>{{/if}}"
            "</div>"
            '<div class="agentlet-module-actions">{{actions}}</div>'
            "</div>"
        )

    def get_template_data(self) -> Dict[str, Any]:
        active = self.active_submodule
        return {
            "name": self.name,
            "displayName": self.name[:1].upper() + self.name[1:],
            "version": self.version,
            "description": self.description,
            "url": self.current_url or "",
            "status": "Active" if self.is_active else "Inactive",
            "activeSubmodule": active.name if active is not None else None,
            "capabilities": ", ".join(self.capabilities),
            "actions": self.get_action_buttons(),
        }

    def get_action_buttons(self) -> str:
        return (
            f'<button class="agentlet-btn agentlet-btn-primary" '
            f'data-agentlet-module="{self.name}" data-agentlet-action="analyze">Analyze Page</button>'
        )

    def get_fallback_content(self) -> str:
        return (
            '<div class="agentlet-module-error">'
            f"<h3>{self.name} Module</h3>"
            "<p>Error rendering module content</p>"
            "</div>"
        )

    # --- Styles -------------------------------------------------------------------
    def get_styles(self) -> str:
        """Override to provide module CSS."""
        return ""

    def inject_styles(self, styles: Optional[str] = None, style_id: Optional[str] = None) -> None:
        if self.surface is None:
            return
        style_id = style_id or f"agentlet-{self.event_prefix}-{self.name}-styles"
        try:
            styles = styles if styles is not None else self.get_styles()
            if not styles or not styles.strip():
                return
            self.remove_styles()
            self.surface.inject_style(
                style_id,
                styles,
                {"data-agentlet-module": self.name, "data-agentlet-version": self.version},
            )
        except Exception as e:
            logger.error(f"Style injection failed for {self.name}: {e}")
            self.emit(Events.ERROR, {"phase": "styles", "error": e})
            return
        self._style_id = style_id
        self.emit(Events.STYLES_INJECTED, {"module": self.name, "style_id": style_id, "styles_length": len(styles)})

    def remove_styles(self) -> None:
        if self._style_id is None or self.surface is None:
            return
        style_id, self._style_id = self._style_id, None
        try:
            self.surface.remove_style(style_id)
        except Exception as e:
            logger.error(f"Style removal failed for {self.name}: {e}")
            self.emit(Events.ERROR, {"phase": "styles", "error": e})
            return
        self.emit(Events.STYLES_REMOVED, {"module": self.name})

    def has_injected_styles(self) -> bool:
        return self._style_id is not None

    # --- Events ---------------------------------------------------------------------
    def on(self, event: str, callback: Callable) -> "BaseModule":
        self._listeners.setdefault(event, []).append(callback)
        return self

    def off(self, event: str, callback: Callable) -> "BaseModule":
        listeners = self._listeners.get(event)
        if listeners and callback in listeners:
            listeners.remove(callback)
        return self

    def emit(self, event: str, data: Any = None) -> "BaseModule":
        """Notify local listeners, then forward to the bus as ``<prefix>:<name>:<event>``."""
        data = {} if data is None else data
        for callback in list(self._listeners.get(event, ())):
            try:
                callback(data)
            except Exception as e:
                logger.error(f"Error in {self.name} listener for {event}: {e}")

        if self.event_bus is not None:
            self.event_bus.emit(f"{self.event_prefix}:{self.name}:{event}", self._bus_payload(event, data))
        return self

    def _bus_payload(self, event: str, data: Any) -> Dict[str, Any]:
        return {"module": self.name, "event": event, "data": data}

    def listen(self, event: str, handler: Callable) -> None:
        """Subscribe to a bus event for as long as the module is active."""
        if self.event_bus is None:
            raise RuntimeError(f"{self.name} has no event bus to listen on")
        self.event_bus.on(event, handler)
        self._bus_subscriptions.append((event, handler))

    def remove_event_listeners(self) -> None:
        self._listeners.clear()
        if self.event_bus is not None:
            for event, handler in self._bus_subscriptions:
                self.event_bus.off(event, handler)
        self._bus_subscriptions.clear()

    # --- Capabilities & settings ------------------------------------------------------
    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

    async def request_permission(self, permission: str) -> bool:
        """
        Check a permission, asking the host through the bus when not held.

        Returns:
            True if the permission is (now) granted
        """
        if permission in self.permissions:
            return True
        if self.event_bus is None:
            return False

        try:
            granted = await self.event_bus.request(
                Events.PERMISSION_REQUEST, {"module": self.name, "permission": permission}
            )
        except Exception as e:
            logger.error(f"Error requesting permission {permission} for {self.name}: {e}")
            return False

        if granted:
            self.permissions.append(permission)
        return bool(granted)

    def get_default_settings(self) -> Dict[str, Any]:
        return {"enabled": True, "debug_mode": False, "log_level": "info"}

    def update_settings(self, new_settings: Dict[str, Any]) -> None:
        self.settings = {**self.settings, **new_settings}
        self.emit(Events.SETTINGS_UPDATED, {"settings": dict(self.settings)})

    def get_setting(self, key: str, default: Any = None) -> Any:
        return self.settings.get(key, default)

    def on_storage_change(self, key: str, new_value: Any) -> None:
        """Forward a storage change to the active submodule if it asked for it."""
        logger.debug(f"{self.name}: storage changed - {key}")
        self.emit(Events.LOCAL_STORAGE_CHANGE, {"key": key, "new_value": new_value})

        active = self.active_submodule
        if active is not None and getattr(active, "requires_storage_notification", False):
            active.on_storage_change(key, new_value)

    # --- Actions ------------------------------------------------------------------------
    async def perform_action(self, action: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Run ``analyze``, ``refresh`` or a public method named ``action``.

        Raises:
            ValueError: If the action is unknown
        """
        params = dict(params or {})
        self.emit(Events.ACTION_STARTED, {"action": action, "params": params})

        try:
            result = None
            if action == "analyze":
                await self.analyze_page()
            elif action == "refresh":
                await self.refresh_content()
            else:
                handler = None if action.startswith("_") else getattr(self, action, None)
                if not callable(handler):
                    raise ValueError(f"Unknown action: {action}")
                result = await _invoke(handler, params)
        except Exception as e:
            self.emit(Events.ACTION_FAILED, {"action": action, "params": params, "error": e})
            raise

        self.emit(Events.ACTION_COMPLETED, {"action": action, "params": params})
        return result

    async def refresh_content(self) -> None:
        self.emit(Events.CONTENT_REFRESH_STARTED)
        if self.event_bus is not None:
            self.event_bus.emit(Events.UI_REFRESH_CONTENT, {"module": self.name})
        self.emit(Events.CONTENT_REFRESH_COMPLETED)

    # --- Introspection ------------------------------------------------------------------
    def get_metadata(self) -> Dict[str, Any]:
        active = self.active_submodule
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "patterns": list(self.patterns),
            "match_mode": self.match_mode.value,
            "capabilities": list(self.capabilities),
            "permissions": list(self.permissions),
            "dependencies": list(self.dependencies),
            "is_active": self.is_active,
            "state": self.state.value,
            "active_submodule": active.name if active is not None else None,
            "submodules": [sub.name for sub in self.submodules],
            "performance_metrics": dict(self.performance_metrics),
            "settings": dict(self.settings),
        }

    def export_config(self) -> Dict[str, Any]:
        """Export the persistable part of the configuration."""
        return {
            "name": self.name,
            "version": self.version,
            "patterns": list(self.patterns),
            "match_mode": self.match_mode.value,
            "settings": dict(self.settings),
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name}, state={self.state.value})"
