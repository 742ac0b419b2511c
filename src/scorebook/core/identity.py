"""Identity/time collaborator — supplies ids, timestamps, and the event source.

The core treats these as opaque. The only requirements are that event ids are
unique within a match and that ``now()`` never goes backwards.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Protocol

from scorebook.models.events import EventSource, Platform


class IdentityProvider(Protocol):
    def new_match_id(self) -> str: ...

    def new_event_id(self) -> str: ...

    def now(self) -> datetime: ...

    def source(self) -> EventSource: ...


class DefaultIdentity:
    """uuid4 ids, UTC timestamps clamped to be non-decreasing."""

    def __init__(
        self,
        device_id: str = "server",
        platform: Platform | None = "api",
        scorer_id: str | None = None,
    ) -> None:
        self._source = EventSource(device_id=device_id, platform=platform, scorer_id=scorer_id)
        self._last: datetime | None = None

    def new_match_id(self) -> str:
        return f"match_{uuid.uuid4().hex}"

    def new_event_id(self) -> str:
        return f"evt_{uuid.uuid4().hex}"

    def now(self) -> datetime:
        current = datetime.now(UTC)
        if self._last is not None and current < self._last:
            current = self._last
        self._last = current
        return current

    def source(self) -> EventSource:
        return self._source
