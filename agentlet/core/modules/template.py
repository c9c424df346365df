"""
Minimal template rendering for module content.

Supports ``{{key}}`` substitution and ``{{#if key}}...{{/if}}`` blocks.
"""
import re
from typing import Any, Dict, Optional

from agentlet.core.errors import RenderError
from .protocol import TemplateEngine

_VAR_RE = re.compile(r"\{\{(\w+)\}\}")
_IF_RE = re.compile(r"\{\{#if (\w+)\}\}(.*?)\{\{/if\}\}", re.DOTALL)


def render_template(template: str, data: Dict[str, Any], engine: Optional[TemplateEngine] = None) -> str:
    """
    Render ``template`` with ``data``.

    Raises:
        RenderError: If the template is not a string or the engine fails
    """
    if engine is not None:
        try:
            return engine.render(template, data)
        except Exception as e:
            raise RenderError(f"Template engine failed: {e}") from e

    if not isinstance(template, str):
        raise RenderError(f"Template must be a string, got {type(template).__name__}")

    def _substitute(match: "re.Match[str]") -> str:
        value = data.get(match.group(1))
        return "" if value is None else str(value)

    rendered = _VAR_RE.sub(_substitute, template)
    return _IF_RE.sub(lambda m: m.group(2) if data.get(m.group(1)) else "", rendered)
