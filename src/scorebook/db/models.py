"""SQLAlchemy ORM models for the Scorebook database.

Two tables: matches (a summary row per match, for listing) and match_events
(the append-only log, one row per event). Scores are never stored; they are
re-derived by replaying match_events.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class MatchRow(Base):
    __tablename__ = "matches"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    home_team: Mapped[str] = mapped_column(String(100), nullable=False)
    away_team: Mapped[str] = mapped_column(String(100), nullable=False)
    template_id: Mapped[str] = mapped_column(String(64), nullable=False)
    period_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(UTC))

    events: Mapped[list[MatchEventRow]] = relationship(
        back_populates="match", order_by="MatchEventRow.sequence"
    )


class MatchEventRow(Base):
    """Append-only match event store. Source of truth for match state."""

    __tablename__ = "match_events"

    event_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    match_id: Mapped[str] = mapped_column(ForeignKey("matches.id"), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    source: Mapped[dict] = mapped_column(JSON, nullable=False)
    match_version: Mapped[int] = mapped_column(Integer, default=1)
    event_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    match: Mapped[MatchRow] = relationship(back_populates="events")

    __table_args__ = (
        UniqueConstraint("match_id", "sequence", name="uq_match_events_match_sequence"),
        Index("ix_match_events_type", "event_type"),
    )
