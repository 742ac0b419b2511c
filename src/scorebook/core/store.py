"""Event store collaborator — the contract the controller appends through.

Stores must preserve submission order and never reorder or drop events.
Failures propagate to the caller; retry policy, if any, belongs to the store.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Protocol

from scorebook.core.errors import SequenceConflict, StorageUnavailable
from scorebook.models.events import MatchEvent


class EventStore(Protocol):
    async def append(self, match_id: str, event: MatchEvent) -> None: ...

    async def load_events(self, match_id: str) -> list[MatchEvent]: ...


class InMemoryEventStore:
    """Process-local store with an explicit open → use → close lifecycle.

    Usage:
        async with InMemoryEventStore() as store:
            controller = MatchController(store, NETBALL_FAST5)
    """

    def __init__(self) -> None:
        self._logs: dict[str, list[MatchEvent]] = defaultdict(list)
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False

    async def __aenter__(self) -> InMemoryEventStore:
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _require_open(self) -> None:
        if not self._open:
            raise StorageUnavailable("InMemoryEventStore is not open")

    async def append(self, match_id: str, event: MatchEvent) -> None:
        self._require_open()
        log = self._logs[match_id]
        if event.sequence != len(log):
            msg = (
                f"Event {event.event_id} has sequence {event.sequence}; "
                f"match {match_id} expects {len(log)}"
            )
            raise SequenceConflict(msg)
        log.append(event)

    async def load_events(self, match_id: str) -> list[MatchEvent]:
        self._require_open()
        return list(self._logs.get(match_id, ()))

    def match_ids(self) -> list[str]:
        return list(self._logs)
