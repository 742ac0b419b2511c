"""RuleTemplate — the declarative ruleset a match is played under.

Selected once at match creation and fixed for the match's lifetime.
Consumed by validation, projection, the controller, and the API.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class PeriodDefinition(BaseModel):
    """One timed block of play (quarter, half, extra-time period)."""

    model_config = ConfigDict(frozen=True)

    label: str
    duration_seconds: int = Field(gt=0)
    break_seconds: int | None = Field(default=None, ge=0)
    is_extra_time: bool = False


class ScoreZone(BaseModel):
    """A scoring location with a fixed point value."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    points: int = Field(ge=0)
    restricted_to_roles: tuple[str, ...] | None = None


class ScoringRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    zones: tuple[ScoreZone, ...] = ()
    allowed_scorers: tuple[str, ...] | None = None
    min_event_gap_seconds: int | None = Field(default=None, ge=0)


class ClockAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    seconds_remaining: int = Field(ge=0)
    tone: str
    vibrate: bool = False


class ClockRules(BaseModel):
    """Clock behaviour. Stoppage categories gate which timeouts are legal."""

    model_config = ConfigDict(frozen=True)

    auto_start_on_centre_pass: bool = False
    stoppage_categories: tuple[str, ...] = ("team", "injury", "official")
    alerts: tuple[ClockAlert, ...] = ()


class SubstitutionRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["traditional", "rolling"] = "rolling"
    max_per_period: int | None = Field(default=None, ge=0)


class MatchDefaults(BaseModel):
    model_config = ConfigDict(frozen=True)

    periods: tuple[PeriodDefinition, ...] = Field(min_length=1)
    centre_pass_alternates: bool = False
    allow_draw: bool = True


class RuleTemplate(BaseModel):
    """A sport-specific ruleset.

    Pure data: the only behaviour is lookup. A template with no zones and no
    allowed_scorers list is "open scoring" and accepts any goal.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    sport: str
    name: str
    version: str = "0.1.0"
    description: str = ""
    defaults: MatchDefaults
    scoring: ScoringRules = Field(default_factory=ScoringRules)
    clock: ClockRules = Field(default_factory=ClockRules)
    substitutions: SubstitutionRules | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def periods(self) -> tuple[PeriodDefinition, ...]:
        return self.defaults.periods

    @property
    def period_count(self) -> int:
        return len(self.defaults.periods)

    @property
    def is_open_scoring(self) -> bool:
        return not self.scoring.zones and self.scoring.allowed_scorers is None

    def get_zone(self, zone_id: str) -> ScoreZone | None:
        """Look up a scoring zone by id. Returns None if not configured."""
        for zone in self.scoring.zones:
            if zone.id == zone_id:
                return zone
        return None

    def period_label(self, index: int) -> str:
        """Label for the period at ``index``. Raises IndexError if out of range."""
        return self.defaults.periods[index].label
