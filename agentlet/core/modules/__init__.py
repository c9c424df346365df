from .base import BaseModule, LifecycleHooks
from .machine import SubmoduleMachine
from .matcher import MatchMode, PatternMatcher
from .protocol import ModuleProtocol, StyleSurface, TemplateEngine
from .schema import ModuleConfig, validate_module_config
from .submodule import Submodule
from .template import render_template

__all__ = [
    "BaseModule",
    "LifecycleHooks",
    "MatchMode",
    "ModuleConfig",
    "ModuleProtocol",
    "PatternMatcher",
    "StyleSurface",
    "Submodule",
    "SubmoduleMachine",
    "TemplateEngine",
    "render_template",
    "validate_module_config",
]
