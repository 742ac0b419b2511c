"""SqlEventStore — durable event store over SQLAlchemy async.

An explicit storage context object: open → use → close. Nothing here is
process-wide; each store owns its engine and session factory.

Usage:
    async with SqlEventStore.from_url("sqlite+aiosqlite:///scorebook.db") as store:
        controller = MatchController(store, NETBALL_STANDARD)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from scorebook.core.errors import SequenceConflict, StorageUnavailable
from scorebook.db.engine import create_engine, create_session_factory, create_tables, get_session
from scorebook.db.models import MatchEventRow, MatchRow
from scorebook.db.repository import Repository
from scorebook.models.events import (
    MatchCreatedEvent,
    MatchEvent,
    PeriodTransitionEvent,
    parse_event,
)
from scorebook.models.templates import get_template, template_ids

logger = logging.getLogger(__name__)


def event_to_row(event: MatchEvent) -> MatchEventRow:
    return MatchEventRow(
        event_id=event.event_id,
        match_id=event.match_id,
        sequence=event.sequence,
        event_type=event.type,
        payload=event.payload.model_dump(mode="json"),
        source=event.source.model_dump(mode="json"),
        match_version=event.match_version,
        event_metadata=event.metadata or None,
        created_at=event.created_at,
    )


def row_to_event(row: MatchEventRow) -> MatchEvent:
    created_at = row.created_at
    if created_at.tzinfo is None:
        # SQLite drops the offset; everything is written in UTC.
        created_at = created_at.replace(tzinfo=UTC)
    return parse_event(
        {
            "match_id": row.match_id,
            "event_id": row.event_id,
            "type": row.event_type,
            "payload": row.payload,
            "source": row.source,
            "sequence": row.sequence,
            "match_version": row.match_version,
            "metadata": row.event_metadata or {},
            "created_at": created_at,
        }
    )


def _ends_match(match: MatchRow, event: MatchEvent) -> bool:
    if not isinstance(event, PeriodTransitionEvent) or event.payload.is_start:
        return False
    period_count = match.period_count
    if period_count is None:
        # Logs written before period_count was recorded on match_created.
        if match.template_id not in template_ids():
            return False
        period_count = get_template(match.template_id).period_count
    return event.payload.period_index >= period_count - 1


class SqlEventStore:
    """Event store persisting one row per event, keyed by (match_id, sequence)."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_url(cls, database_url: str) -> SqlEventStore:
        return cls(create_engine(database_url))

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._factory is not None

    async def open(self) -> None:
        """Create tables if missing and start accepting reads and writes."""
        await create_tables(self._engine)
        self._factory = create_session_factory(self._engine)
        logger.info("event_store_opened url=%s", self._engine.url.render_as_string())

    async def close(self) -> None:
        self._factory = None
        await self._engine.dispose()
        logger.info("event_store_closed")

    async def __aenter__(self) -> SqlEventStore:
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._factory is None:
            raise StorageUnavailable("SqlEventStore is not open")
        return self._factory

    # --- EventStore protocol ---

    async def append(self, match_id: str, event: MatchEvent) -> None:
        async with get_session(self._session_factory()) as session:
            repo = Repository(session)
            if isinstance(event, MatchCreatedEvent):
                await repo.create_match(
                    match_id=match_id,
                    name=event.payload.match_name,
                    home_team=event.payload.home_team_name,
                    away_team=event.payload.away_team_name,
                    template_id=event.payload.template_id,
                    period_count=event.payload.period_count,
                )
            expected = await repo.count_events(match_id)
            if event.sequence != expected:
                msg = (
                    f"Event {event.event_id} has sequence {event.sequence}; "
                    f"match {match_id} expects {expected}"
                )
                raise SequenceConflict(msg)
            await repo.append_event(event_to_row(event))

            match = await repo.get_match(match_id)
            if match is not None and _ends_match(match, event):
                await repo.update_match_status(match_id, "ended")

    async def load_events(self, match_id: str) -> list[MatchEvent]:
        async with get_session(self._session_factory()) as session:
            rows = await Repository(session).get_events_for_match(match_id)
            return [row_to_event(row) for row in rows]

    # --- Listing / export ---

    async def list_matches(self, status: str | None = None) -> list[MatchRow]:
        async with get_session(self._session_factory()) as session:
            return await Repository(session).list_matches(status)

    async def export_match(self, match_id: str) -> list[dict[str, Any]]:
        """The match log as JSON-ready dicts, in sequence order."""
        return [e.model_dump(mode="json") for e in await self.load_events(match_id)]

    async def import_match(self, events: Iterable[dict[str, Any]]) -> int:
        """Append an exported log. Sequence checks apply as for any append."""
        count = 0
        for data in events:
            event = parse_event(data)
            await self.append(event.match_id, event)
            count += 1
        return count
