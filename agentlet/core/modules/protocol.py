"""
Protocol definitions for modules and their collaborators.

The registry stores ModuleProtocol references and never depends on a
concrete module class.
"""
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .matcher import MatchMode


@runtime_checkable
class ModuleProtocol(Protocol):
    """
    Capability contract every module and submodule satisfies.

    Attributes:
        name: Unique key within a registry
        version: Module version string
        patterns: Ordered URL patterns
        match_mode: includes | regex | exact | custom
    """
    name: str
    version: str
    patterns: List[str]
    match_mode: MatchMode
    is_active: bool

    def check_pattern(self, url: str) -> bool:
        ...

    async def init(self, url: Optional[str] = None) -> None:
        ...

    async def activate(self, context: Optional[Dict[str, Any]] = None) -> None:
        ...

    async def cleanup(self) -> None:
        ...

    def get_content(self, context: Optional[Dict[str, Any]] = None) -> str:
        ...

    def get_metadata(self) -> Dict[str, Any]:
        ...


@runtime_checkable
class StyleSurface(Protocol):
    """Rendering surface able to inject and remove module styles."""

    def inject_style(self, style_id: str, css: str, attributes: Dict[str, str]) -> None:
        ...

    def remove_style(self, style_id: str) -> None:
        ...


@runtime_checkable
class TemplateEngine(Protocol):
    """Pluggable template engine used instead of the built-in renderer."""

    def render(self, template: str, data: Dict[str, Any]) -> str:
        ...
