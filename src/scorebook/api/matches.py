"""Match API endpoints.

Intents (start, goal, undo, advance, audit events) go through the match's
controller; reads replay the stored log. Responses carry the projected
MatchState.
"""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from scorebook.api.deps import RegistryDep, StoreDep
from scorebook.core.controller import MatchController
from scorebook.core.errors import (
    MatchAlreadyStarted,
    MatchNotActive,
    SetupIncomplete,
    UnknownMatch,
    UnknownTemplateError,
    ValidationRejected,
)
from scorebook.core.projection import project
from scorebook.models.events import TeamKey
from scorebook.models.match import MatchState
from scorebook.models.templates import get_template

router = APIRouter(prefix="/api/matches", tags=["matches"])


# --- Request bodies ---


class StartMatchRequest(BaseModel):
    home_name: str
    away_name: str
    template_id: str | None = None
    match_name: str | None = None
    competition_id: str | None = None


class GoalRequest(BaseModel):
    team: TeamKey
    position: str | None = None
    zone_id: str | None = None
    points: int | None = Field(default=None, ge=0)
    player_id: str | None = None
    clock_time_seconds: int = Field(default=0, ge=0)


class UndoRequest(BaseModel):
    reason: Literal["manual", "official_correction"] = "manual"


class TurnoverRequest(BaseModel):
    team: TeamKey
    cause: Literal["intercept", "held_ball", "offside", "contact", "obstruction", "break"]
    clock_time_seconds: int = Field(default=0, ge=0)
    note: str | None = None


class TimeoutRequest(BaseModel):
    category: str
    team: TeamKey | None = None
    clock_time_seconds: int = Field(default=0, ge=0)


class SubstitutionRequest(BaseModel):
    team: TeamKey
    player_out_id: str
    player_in_id: str
    position_out: str | None = None
    position_in: str | None = None
    clock_time_seconds: int = Field(default=0, ge=0)


class NoteRequest(BaseModel):
    message: str = Field(min_length=1)
    clock_time_seconds: int = Field(default=0, ge=0)


# --- Error mapping ---

# Storage and sequencing failures are not listed: they propagate as server errors.
_CLIENT_ERRORS = (
    UnknownMatch,
    UnknownTemplateError,
    ValidationRejected,
    SetupIncomplete,
    MatchNotActive,
    MatchAlreadyStarted,
)


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (UnknownMatch, UnknownTemplateError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValidationRejected):
        return HTTPException(status_code=422, detail={"reason": exc.reason})
    if isinstance(exc, SetupIncomplete):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, (MatchNotActive, MatchAlreadyStarted)):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _state_body(state: MatchState) -> dict[str, Any]:
    return state.model_dump(mode="json")


# --- Routes ---


@router.post("", status_code=201)
async def start_match(body: StartMatchRequest, request: Request, registry: RegistryDep) -> dict:
    """Create a match and emit its opening events."""
    template_id = body.template_id or request.app.state.settings.scorebook_default_template
    try:
        template = get_template(template_id)
        controller = MatchController(
            registry.store,
            template,
            identity=registry.identity,
            event_bus=registry.event_bus,
        )
        state = await controller.start_match(
            body.home_name,
            body.away_name,
            match_name=body.match_name,
            competition_id=body.competition_id,
        )
    except _CLIENT_ERRORS as exc:
        raise _http_error(exc) from exc
    registry.add(controller)
    return _state_body(state)


@router.get("")
async def list_matches(store: StoreDep, status: str | None = None) -> list[dict]:
    """Match summaries with scores re-derived from each log."""
    summaries = []
    for row in await store.list_matches(status):
        state = project(await store.load_events(row.id))
        summaries.append(
            {
                "match_id": row.id,
                "name": row.name,
                "template_id": row.template_id,
                "status": row.status,
                "created_at": row.created_at.isoformat(),
                "home": {"name": row.home_team, "score": state.score("home")},
                "away": {"name": row.away_team, "score": state.score("away")},
                "period": state.period.label,
                "game_state": state.game_state,
            }
        )
    return summaries


@router.get("/{match_id}")
async def get_match(match_id: str, registry: RegistryDep) -> dict:
    try:
        controller = await registry.get(match_id)
    except _CLIENT_ERRORS as exc:
        raise _http_error(exc) from exc
    return _state_body(controller.state)


@router.get("/{match_id}/events")
async def export_events(match_id: str, store: StoreDep) -> list[dict]:
    """The raw event log in sequence order."""
    events = await store.export_match(match_id)
    if not events:
        raise HTTPException(status_code=404, detail=f"Unknown match: {match_id}")
    return events


@router.post("/{match_id}/goals")
async def record_goal(match_id: str, body: GoalRequest, registry: RegistryDep) -> dict:
    try:
        controller = await registry.get(match_id)
        state = await controller.record_goal(
            body.team,
            body.position,
            body.zone_id,
            points=body.points,
            player_id=body.player_id,
            clock_time_seconds=body.clock_time_seconds,
        )
    except _CLIENT_ERRORS as exc:
        raise _http_error(exc) from exc
    return _state_body(state)


@router.post("/{match_id}/undo")
async def undo_last_goal(
    match_id: str, registry: RegistryDep, body: UndoRequest | None = None
) -> dict:
    try:
        controller = await registry.get(match_id)
        state = await controller.undo_last_goal(body.reason if body else "manual")
    except _CLIENT_ERRORS as exc:
        raise _http_error(exc) from exc
    return _state_body(state)


@router.post("/{match_id}/periods/advance")
async def advance_period(match_id: str, registry: RegistryDep) -> dict:
    try:
        controller = await registry.get(match_id)
        state = await controller.advance_period()
    except _CLIENT_ERRORS as exc:
        raise _http_error(exc) from exc
    registry.release(controller)
    return _state_body(state)


@router.post("/{match_id}/turnovers")
async def record_turnover(match_id: str, body: TurnoverRequest, registry: RegistryDep) -> dict:
    try:
        controller = await registry.get(match_id)
        state = await controller.record_turnover(
            body.team,
            body.cause,
            clock_time_seconds=body.clock_time_seconds,
            note=body.note,
        )
    except _CLIENT_ERRORS as exc:
        raise _http_error(exc) from exc
    return _state_body(state)


@router.post("/{match_id}/timeouts")
async def call_timeout(match_id: str, body: TimeoutRequest, registry: RegistryDep) -> dict:
    try:
        controller = await registry.get(match_id)
        state = await controller.call_timeout(
            body.category,
            body.team,
            clock_time_seconds=body.clock_time_seconds,
        )
    except _CLIENT_ERRORS as exc:
        raise _http_error(exc) from exc
    return _state_body(state)


@router.post("/{match_id}/substitutions")
async def record_substitution(
    match_id: str, body: SubstitutionRequest, registry: RegistryDep
) -> dict:
    try:
        controller = await registry.get(match_id)
        state = await controller.record_substitution(
            body.team,
            body.player_out_id,
            body.player_in_id,
            position_out=body.position_out,
            position_in=body.position_in,
            clock_time_seconds=body.clock_time_seconds,
        )
    except _CLIENT_ERRORS as exc:
        raise _http_error(exc) from exc
    return _state_body(state)


@router.post("/{match_id}/notes")
async def add_note(match_id: str, body: NoteRequest, registry: RegistryDep) -> dict:
    try:
        controller = await registry.get(match_id)
        state = await controller.add_note(
            body.message, clock_time_seconds=body.clock_time_seconds
        )
    except _CLIENT_ERRORS as exc:
        raise _http_error(exc) from exc
    return _state_body(state)
