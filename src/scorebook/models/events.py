"""Match event schema — the closed set of things that can be appended to a match log.

Every event shares one envelope (ids, timestamp, source, sequence) and carries
a payload whose shape is fixed by its ``type``. ``MatchEvent`` is a tagged
union discriminated on ``type``; parse untrusted data with ``parse_event``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

EventType = Literal[
    "match_created",
    "period_transition",
    "clock",
    "goal_scored",
    "goal_removed",
    "turnover_recorded",
    "timeout_called",
    "substitution_made",
    "note_added",
    "sync_checkpoint",
]

EVENT_TYPES: tuple[str, ...] = get_args(EventType)

TeamKey = Literal["home", "away"]
TEAM_KEYS: tuple[str, ...] = get_args(TeamKey)

Platform = Literal["mobile", "web", "desktop", "api"]


class EventSource(BaseModel):
    """Originating device / scorer. Opaque to the core."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    scorer_id: str | None = None
    platform: Platform | None = None


# --- Payloads ---


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class MatchCreatedPayload(_Payload):
    template_id: str
    match_name: str
    home_team_name: str = Field(min_length=1)
    away_team_name: str = Field(min_length=1)
    competition_id: str | None = None
    scheduled_start: datetime | None = None
    # Recorded so a log replays without looking its template up by id.
    period_count: int | None = Field(default=None, ge=1)


class PeriodTransitionPayload(_Payload):
    period_index: int = Field(ge=0)
    period_label: str
    reason: Literal["start", "end", "extra_time_start", "extra_time_end"]

    @property
    def is_start(self) -> bool:
        return self.reason in ("start", "extra_time_start")


class ClockPayload(_Payload):
    action: Literal["start", "stop", "adjust"]
    period_index: int = Field(ge=0)
    elapsed_seconds: int = Field(ge=0)
    adjustment_seconds: int | None = None
    note: str | None = None


class GoalScoredPayload(_Payload):
    team_id: TeamKey
    player_id: str | None = None
    position: str | None = None
    location_zone: str | None = None
    points: int = Field(ge=0)
    period_index: int = Field(ge=0)
    clock_time_seconds: int = Field(default=0, ge=0)


class GoalRemovedPayload(_Payload):
    replaced_event_id: str
    reason: Literal["manual", "official_correction"] = "manual"


class TurnoverRecordedPayload(_Payload):
    team_id: TeamKey
    period_index: int = Field(ge=0)
    clock_time_seconds: int = Field(default=0, ge=0)
    cause: Literal["intercept", "held_ball", "offside", "contact", "obstruction", "break"]
    note: str | None = None


class TimeoutCalledPayload(_Payload):
    team_id: TeamKey | None = None
    period_index: int = Field(ge=0)
    clock_time_seconds: int = Field(default=0, ge=0)
    category: str


class SubstitutionMadePayload(_Payload):
    team_id: TeamKey
    period_index: int = Field(ge=0)
    clock_time_seconds: int = Field(default=0, ge=0)
    player_out_id: str
    player_in_id: str
    position_out: str | None = None
    position_in: str | None = None


class NoteAddedPayload(_Payload):
    period_index: int = Field(ge=0)
    clock_time_seconds: int = Field(default=0, ge=0)
    message: str = Field(min_length=1)


class SyncCheckpointPayload(_Payload):
    projection_version: int = Field(ge=0)


# --- Events ---


class _EventBase(BaseModel):
    """Shared envelope. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    match_id: str
    event_id: str
    created_at: datetime
    source: EventSource
    sequence: int = Field(ge=0)
    match_version: int = Field(default=1, ge=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


class MatchCreatedEvent(_EventBase):
    type: Literal["match_created"] = "match_created"
    payload: MatchCreatedPayload


class PeriodTransitionEvent(_EventBase):
    type: Literal["period_transition"] = "period_transition"
    payload: PeriodTransitionPayload


class ClockEvent(_EventBase):
    type: Literal["clock"] = "clock"
    payload: ClockPayload


class GoalScoredEvent(_EventBase):
    type: Literal["goal_scored"] = "goal_scored"
    payload: GoalScoredPayload


class GoalRemovedEvent(_EventBase):
    type: Literal["goal_removed"] = "goal_removed"
    payload: GoalRemovedPayload


class TurnoverRecordedEvent(_EventBase):
    type: Literal["turnover_recorded"] = "turnover_recorded"
    payload: TurnoverRecordedPayload


class TimeoutCalledEvent(_EventBase):
    type: Literal["timeout_called"] = "timeout_called"
    payload: TimeoutCalledPayload


class SubstitutionMadeEvent(_EventBase):
    type: Literal["substitution_made"] = "substitution_made"
    payload: SubstitutionMadePayload


class NoteAddedEvent(_EventBase):
    type: Literal["note_added"] = "note_added"
    payload: NoteAddedPayload


class SyncCheckpointEvent(_EventBase):
    type: Literal["sync_checkpoint"] = "sync_checkpoint"
    payload: SyncCheckpointPayload


MatchEvent = Annotated[
    MatchCreatedEvent
    | PeriodTransitionEvent
    | ClockEvent
    | GoalScoredEvent
    | GoalRemovedEvent
    | TurnoverRecordedEvent
    | TimeoutCalledEvent
    | SubstitutionMadeEvent
    | NoteAddedEvent
    | SyncCheckpointEvent,
    Field(discriminator="type"),
]

EVENT_CLASSES: dict[str, type[_EventBase]] = {
    "match_created": MatchCreatedEvent,
    "period_transition": PeriodTransitionEvent,
    "clock": ClockEvent,
    "goal_scored": GoalScoredEvent,
    "goal_removed": GoalRemovedEvent,
    "turnover_recorded": TurnoverRecordedEvent,
    "timeout_called": TimeoutCalledEvent,
    "substitution_made": SubstitutionMadeEvent,
    "note_added": NoteAddedEvent,
    "sync_checkpoint": SyncCheckpointEvent,
}

_EVENT_ADAPTER: TypeAdapter[MatchEvent] = TypeAdapter(MatchEvent)


def parse_event(data: dict[str, Any]) -> MatchEvent:
    """Validate raw data into a typed MatchEvent.

    Raises pydantic.ValidationError if the type is unknown or the payload
    does not match the shape declared for that type.
    """
    return _EVENT_ADAPTER.validate_python(data)


def is_match_event(value: object) -> bool:
    """Cheap envelope check: does ``value`` look like a serialized event?"""
    if not isinstance(value, dict):
        return False
    return (
        isinstance(value.get("match_id"), str)
        and isinstance(value.get("event_id"), str)
        and value.get("type") in EVENT_TYPES
        and value.get("created_at") is not None
    )
