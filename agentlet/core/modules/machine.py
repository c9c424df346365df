"""
Submodule election: keeps at most one submodule of a module active.
"""
import inspect
from typing import Any, Callable, Optional
from loguru import logger

from agentlet.core.events.constants import Events


class SubmoduleMachine:
    """
    First-match-wins election over the owner's ``submodules`` list.

    Election for a URL:
      1. An active submodule that no longer matches is cleaned up.
      2. The first matching submodule in list order wins. If it is already
         active it only receives ``update_url``; otherwise any active
         submodule is cleaned up and the winner is initialized.
      3. ``on_change`` is called after every election, whether or not the
         active submodule changed.
    """

    def __init__(self, owner):
        self.owner = owner
        self.active = None
        self.on_change: Optional[Callable[[], Any]] = None

    async def elect(self, url: str) -> None:
        owner = self.owner
        if not owner.submodules:
            return

        if self.active is not None and not self.active.check_pattern(url):
            previous = self.active
            logger.info(f"Deactivating submodule: {previous.name}")
            await previous.cleanup()
            self.active = None
            owner.emit(Events.SUBMODULE_DEACTIVATED, {"submodule": previous.name})

        for submodule in owner.submodules:
            if not submodule.check_pattern(url):
                continue

            if submodule is self.active:
                await submodule.update_url(url)
                break

            if self.active is not None:
                await self.active.cleanup()
                self.active = None

            logger.info(f"Activating submodule: {submodule.name}")
            try:
                await submodule.init(url)
            except Exception as e:
                logger.error(f"Submodule {submodule.name} failed to initialize: {e}")
                owner.emit(Events.ERROR, {"phase": "submoduleActivation", "submodule": submodule.name, "error": e})
                break

            self.active = submodule
            owner.emit(Events.SUBMODULE_ACTIVATED, {"submodule": submodule.name})
            break

        await self._notify()

    async def deactivate(self) -> None:
        if self.active is None:
            return
        previous, self.active = self.active, None
        await previous.cleanup()
        self.owner.emit(Events.SUBMODULE_DEACTIVATED, {"submodule": previous.name})

    async def _notify(self) -> None:
        callback = self.on_change
        if callback is None:
            return
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Submodule change callback failed for {self.owner.name}: {e}")
