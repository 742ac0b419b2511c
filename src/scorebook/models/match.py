"""MatchState — the projection output.

Derived, never hand-edited. Produced only by scorebook.core.projection.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from scorebook.models.events import GoalScoredEvent, MatchEvent, TeamKey

GameState = Literal["setup", "active", "ended"]


class TeamScore(BaseModel):
    """A side's name (fixed at match start) and derived cumulative score."""

    model_config = ConfigDict(frozen=True)

    name: str
    score: int = Field(default=0, ge=0)


class PeriodState(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = 0
    label: str = ""


class MatchTeams(BaseModel):
    model_config = ConfigDict(frozen=True)

    home: TeamScore = TeamScore(name="Home")
    away: TeamScore = TeamScore(name="Away")

    def get(self, team: TeamKey) -> TeamScore:
        return self.home if team == "home" else self.away


class MatchState(BaseModel):
    """Current state of a match, derived by replaying its event log."""

    model_config = ConfigDict(frozen=True)

    match_id: str = ""
    template_id: str = ""
    period_count: int | None = None
    teams: MatchTeams = Field(default_factory=MatchTeams)
    period: PeriodState = Field(default_factory=PeriodState)
    game_state: GameState = "setup"
    events: tuple[MatchEvent, ...] = ()
    removed_goal_ids: frozenset[str] = frozenset()

    @property
    def event_count(self) -> int:
        return len(self.events)

    def score(self, team: TeamKey) -> int:
        return self.teams.get(team).score

    def active_goals(self) -> list[GoalScoredEvent]:
        """Goals in log order that have not been compensated by goal_removed."""
        return [
            e
            for e in self.events
            if isinstance(e, GoalScoredEvent) and e.event_id not in self.removed_goal_ids
        ]

    def recent_events(self, limit: int = 10) -> list[MatchEvent]:
        """Goal and period events, newest first (the scoreboard ticker)."""
        shown = [e for e in self.events if e.type in ("goal_scored", "period_transition")]
        return list(reversed(shown[-limit:]))
