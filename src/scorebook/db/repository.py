"""Repository pattern for database access.

Wraps SQLAlchemy async sessions. Match events are append-only: there is no
update or delete for match_events rows.
"""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from scorebook.db.models import MatchEventRow, MatchRow


class Repository:
    """Async repository for all database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # --- Matches ---

    async def create_match(
        self,
        match_id: str,
        name: str,
        home_team: str,
        away_team: str,
        template_id: str,
        period_count: int | None = None,
    ) -> MatchRow:
        row = MatchRow(
            id=match_id,
            name=name,
            home_team=home_team,
            away_team=away_team,
            template_id=template_id,
            period_count=period_count,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_match(self, match_id: str) -> MatchRow | None:
        return await self.session.get(MatchRow, match_id)

    async def list_matches(self, status: str | None = None) -> list[MatchRow]:
        """All matches, most recent first, optionally filtered by status."""
        stmt = select(MatchRow).order_by(MatchRow.created_at.desc())
        if status is not None:
            stmt = stmt.where(MatchRow.status == status)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update_match_status(self, match_id: str, status: str) -> None:
        await self.session.execute(
            update(MatchRow).where(MatchRow.id == match_id).values(status=status)
        )
        await self.session.flush()

    # --- Match Events (append-only) ---

    async def append_event(self, row: MatchEventRow) -> MatchEventRow:
        # The (match_id, sequence) unique constraint rejects a second writer
        # that raced for the same sequence number.
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_events_for_match(self, match_id: str) -> list[MatchEventRow]:
        stmt = (
            select(MatchEventRow)
            .where(MatchEventRow.match_id == match_id)
            .order_by(MatchEventRow.sequence)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_events(self, match_id: str) -> int:
        stmt = select(func.count()).where(MatchEventRow.match_id == match_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()
