"""
Error taxonomy for the agentlet runtime.

Fatal errors (config validation, init hooks, remote loads) are raised to the
direct caller. Recoverable ones (patterns, rendering, cleanup) are logged and
surfaced as ``error`` events instead.
"""
from typing import Optional


class AgentletError(Exception):
    """Base class for all runtime errors."""
    pass


class ConfigValidationError(AgentletError):
    """Module configuration rejected at construction time."""

    def __init__(self, errors, module_name: Optional[str] = None):
        self.errors = list(errors)
        self.module_name = module_name
        super().__init__(
            f"Module configuration validation failed: {'; '.join(self.errors)}"
        )


class PatternError(AgentletError):
    """A regex or custom matcher could not be evaluated."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid pattern {pattern!r}: {reason}")


class LifecycleHookError(AgentletError):
    """A lifecycle hook raised; carries the module and phase it failed in."""

    def __init__(self, module_name: str, phase: str, cause: BaseException):
        self.module_name = module_name
        self.phase = phase
        self.cause = cause
        super().__init__(f"Failed to {phase} module {module_name}: {cause}")


class RenderError(AgentletError):
    """Content generation failed; callers fall back to static content."""
    pass


class SecurityValidationError(AgentletError):
    """Remote module source rejected before execution."""

    def __init__(self, source: str, violations):
        self.source = source
        self.violations = list(violations)
        super().__init__(
            f"Security validation failed for {source}: {', '.join(self.violations)}"
        )


class FetchError(AgentletError):
    """Remote module source could not be fetched."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class DuplicateModuleError(AgentletError):
    """A different module is already registered under the same name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Module {name} is already registered")


class NoResponderError(AgentletError):
    """``request()`` was called for an event nobody listens to."""

    def __init__(self, event: str):
        self.event = event
        super().__init__(f"No listeners for event: {event}")
