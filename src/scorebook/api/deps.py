"""FastAPI dependency injection for the event store and match controllers."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import Depends, Request

from scorebook.core.controller import MatchController
from scorebook.core.event_bus import EventBus
from scorebook.core.identity import IdentityProvider
from scorebook.db.store import SqlEventStore

logger = logging.getLogger(__name__)


class ControllerRegistry:
    """One live controller per match, so all writes to a match share one lock.

    Controllers are created on start or resumed from the store on first use.
    Ended matches are not kept: they accept no further writes, and a read
    replays them from the store.
    """

    def __init__(
        self,
        store: SqlEventStore,
        identity: IdentityProvider,
        event_bus: EventBus | None = None,
    ) -> None:
        self.store = store
        self.identity = identity
        self.event_bus = event_bus
        self._controllers: dict[str, MatchController] = {}
        self._lock = asyncio.Lock()

    def add(self, controller: MatchController) -> None:
        self._controllers[controller.match_id] = controller

    def release(self, controller: MatchController) -> None:
        """Drop the cached controller once its match has ended."""
        if controller.state.game_state != "ended":
            return
        if self._controllers.pop(controller.match_id, None) is not None:
            logger.debug("controller_evicted match=%s", controller.match_id)

    async def get(self, match_id: str) -> MatchController:
        """Return the cached controller, resuming it from the store if needed.

        Raises UnknownMatch if the store has no events for the match.
        """
        async with self._lock:
            controller = self._controllers.get(match_id)
            if controller is None:
                controller = await MatchController.resume(
                    self.store,
                    match_id,
                    identity=self.identity,
                    event_bus=self.event_bus,
                )
                if controller.state.game_state != "ended":
                    self._controllers[match_id] = controller
            return controller

    def __len__(self) -> int:
        return len(self._controllers)


async def get_store(request: Request) -> SqlEventStore:
    """Get the event store from app state."""
    return request.app.state.store


async def get_registry(request: Request) -> ControllerRegistry:
    return request.app.state.controllers


async def get_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


StoreDep = Annotated[SqlEventStore, Depends(get_store)]
RegistryDep = Annotated[ControllerRegistry, Depends(get_registry)]
BusDep = Annotated[EventBus, Depends(get_bus)]
