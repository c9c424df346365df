"""
Module Lifecycle State.

Tracks the Registered -> Active -> Inactive lifecycle of a single module.
"""
from enum import Enum
from loguru import logger


class ModuleState(Enum):
    """Module lifecycle states."""
    REGISTERED = "registered"
    ACTIVE = "active"
    INACTIVE = "inactive"


class ModuleLifecycle:
    """
    Records the lifecycle state of one module.

    A module starts REGISTERED and only ever moves between ACTIVE and
    INACTIVE afterwards. Re-entering the current state is a silent no-op,
    so repeated cleanup stays idempotent.

    Usage:
        lifecycle = ModuleLifecycle("github")
        lifecycle.activate()
        lifecycle.deactivate()
    """

    def __init__(self, owner: str):
        self.owner = owner
        self._state = ModuleState.REGISTERED

    @property
    def state(self) -> ModuleState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == ModuleState.ACTIVE

    def activate(self) -> None:
        self._move(ModuleState.ACTIVE)

    def deactivate(self) -> None:
        self._move(ModuleState.INACTIVE)

    def _move(self, target: ModuleState) -> None:
        if self._state != target:
            logger.debug(f"Lifecycle {self.owner}: {self._state.value} -> {target.value}")
            self._state = target
