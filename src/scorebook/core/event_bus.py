"""In-memory async bus carrying match state snapshots to presentation.

The controller publishes after every operation; SSE endpoints subscribe,
either to one match or to all matches. Delivery is fire-and-forget: with no
subscribers a snapshot is dropped, and a full subscriber queue drops the
snapshot for that subscriber only.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import defaultdict
from typing import Any

from scorebook.models.match import MatchState

logger = logging.getLogger(__name__)

STATE_CHANGED = "match.state_changed"


class EventBus:
    """Async pub/sub keyed by match id.

    Usage:
        bus = EventBus()

        async with bus.subscribe("match_123") as sub:
            async for envelope in sub:
                ...

        await bus.publish_state(state)
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[asyncio.Queue[dict[str, Any]]]] = defaultdict(list)
        self._wildcard_subscribers: list[asyncio.Queue[dict[str, Any]]] = []

    async def publish(self, match_id: str, event_type: str, data: dict[str, Any]) -> int:
        """Deliver an envelope to this match's subscribers and to wildcard subscribers.

        Returns the number of subscribers that received it.
        """
        envelope = {"type": event_type, "match_id": match_id, "data": data}
        count = 0
        for queue in [*self._subscribers.get(match_id, []), *self._wildcard_subscribers]:
            try:
                queue.put_nowait(envelope)
                count += 1
            except asyncio.QueueFull:
                logger.warning("bus_drop match=%s type=%s slow subscriber", match_id, event_type)
        return count

    async def publish_state(self, state: MatchState) -> int:
        return await self.publish(state.match_id, STATE_CHANGED, state.model_dump(mode="json"))

    def subscribe(self, match_id: str | None = None, max_size: int = 100) -> Subscription:
        """Subscribe to one match, or to every match when ``match_id`` is None.

        Use the returned Subscription as an async context manager.
        """
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=max_size)
        return Subscription(self, queue, match_id)

    def _register(self, queue: asyncio.Queue[dict[str, Any]], match_id: str | None) -> None:
        if match_id is None:
            self._wildcard_subscribers.append(queue)
        else:
            self._subscribers[match_id].append(queue)

    def _unregister(self, queue: asyncio.Queue[dict[str, Any]], match_id: str | None) -> None:
        if match_id is None:
            with contextlib.suppress(ValueError):
                self._wildcard_subscribers.remove(queue)
        else:
            queues = self._subscribers.get(match_id, [])
            with contextlib.suppress(ValueError):
                queues.remove(queue)
            if not queues:
                self._subscribers.pop(match_id, None)

    @property
    def subscriber_count(self) -> int:
        keyed = sum(len(subs) for subs in self._subscribers.values())
        return keyed + len(self._wildcard_subscribers)


class Subscription:
    """An active subscription. Async context manager and async iterator."""

    def __init__(
        self,
        bus: EventBus,
        queue: asyncio.Queue[dict[str, Any]],
        match_id: str | None,
    ) -> None:
        self._bus = bus
        self._queue = queue
        self._match_id = match_id
        self._active = False

    async def __aenter__(self) -> Subscription:
        self._bus._register(self._queue, self._match_id)
        self._active = True
        return self

    async def __aexit__(self, *args: object) -> None:
        self._active = False
        self._bus._unregister(self._queue, self._match_id)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> dict[str, Any]:
        if not self._active:
            raise StopAsyncIteration
        try:
            return await self._queue.get()
        except asyncio.CancelledError:
            raise StopAsyncIteration from None

    async def get(self, timeout: float | None = None) -> dict[str, Any] | None:
        """Next envelope, or None on timeout."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except TimeoutError:
            return None
