"""Projection engine — fold an ordered event log into MatchState.

A deterministic left fold: the same prefix always yields the same state, and
the full state is recoverable by replaying from sequence 0. Nothing here reads
the wall clock or a random source; only fields already on each event.

    state = project(events)                  # full replay
    state = apply_event(state, event, tmpl)  # incremental

``project(E[:k])`` folded with ``E[k:]`` via ``apply_event`` equals ``project(E)``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from scorebook.models.events import (
    EVENT_TYPES,
    GoalRemovedEvent,
    GoalScoredEvent,
    MatchCreatedEvent,
    MatchEvent,
    PeriodTransitionEvent,
)
from scorebook.models.match import MatchState, MatchTeams, PeriodState, TeamScore
from scorebook.models.rules import RuleTemplate
from scorebook.models.templates import get_template

Folder = Callable[[MatchState, MatchEvent, RuleTemplate | None], MatchState]


def initial_state() -> MatchState:
    """State before any event: setup phase, zero scores."""
    return MatchState()


def _with_score(teams: MatchTeams, team: str, score: int) -> MatchTeams:
    current = getattr(teams, team)
    return teams.model_copy(update={team: TeamScore(name=current.name, score=max(0, score))})


def _fold_match_created(
    state: MatchState, event: MatchCreatedEvent, template: RuleTemplate | None
) -> MatchState:
    payload = event.payload
    return state.model_copy(
        update={
            "match_id": event.match_id,
            "template_id": payload.template_id,
            "period_count": payload.period_count,
            "teams": MatchTeams(
                home=TeamScore(name=payload.home_team_name),
                away=TeamScore(name=payload.away_team_name),
            ),
            "game_state": "active",
        }
    )


def _fold_period_transition(
    state: MatchState, event: PeriodTransitionEvent, template: RuleTemplate | None
) -> MatchState:
    payload = event.payload
    if payload.is_start:
        return state.model_copy(
            update={
                "period": PeriodState(index=payload.period_index, label=payload.period_label),
                "game_state": "active",
            }
        )
    # An end is informational; the following start is authoritative. Ending
    # the last defined period ends the match.
    if payload.period_index >= _period_count(state, template) - 1:
        return state.model_copy(update={"game_state": "ended"})
    return state


def _fold_goal_scored(
    state: MatchState, event: GoalScoredEvent, template: RuleTemplate | None
) -> MatchState:
    team = event.payload.team_id
    return state.model_copy(
        update={
            "teams": _with_score(state.teams, team, state.score(team) + event.payload.points)
        }
    )


def _fold_goal_removed(
    state: MatchState, event: GoalRemovedEvent, template: RuleTemplate | None
) -> MatchState:
    target_id = event.payload.replaced_event_id
    if target_id in state.removed_goal_ids:
        return state
    target = next(
        (e for e in state.events if isinstance(e, GoalScoredEvent) and e.event_id == target_id),
        None,
    )
    if target is None:
        return state
    team = target.payload.team_id
    return state.model_copy(
        update={
            "teams": _with_score(state.teams, team, state.score(team) - target.payload.points),
            "removed_goal_ids": state.removed_goal_ids | {target_id},
        }
    )


def _fold_audit_only(
    state: MatchState, event: MatchEvent, template: RuleTemplate | None
) -> MatchState:
    return state


_FOLDERS: dict[str, Folder] = {
    "match_created": _fold_match_created,  # type: ignore[dict-item]
    "period_transition": _fold_period_transition,  # type: ignore[dict-item]
    "clock": _fold_audit_only,
    "goal_scored": _fold_goal_scored,  # type: ignore[dict-item]
    "goal_removed": _fold_goal_removed,  # type: ignore[dict-item]
    "turnover_recorded": _fold_audit_only,
    "timeout_called": _fold_audit_only,
    "substitution_made": _fold_audit_only,
    "note_added": _fold_audit_only,
    "sync_checkpoint": _fold_audit_only,
}

_unhandled = set(EVENT_TYPES) - set(_FOLDERS)
if _unhandled:
    raise RuntimeError(f"Projection has no folder for event types: {sorted(_unhandled)}")


def apply_event(
    state: MatchState,
    event: MatchEvent,
    template: RuleTemplate | None = None,
) -> MatchState:
    """Fold a single event into ``state``. Returns a new state; inputs are untouched.

    Without ``template``, the period count recorded by match_created is used,
    falling back to the registered template named there for older logs.
    """
    if template is None and not state.template_id and not isinstance(event, MatchCreatedEvent):
        msg = (
            f"Cannot fold {event.type} (sequence {event.sequence}) without a rule template: "
            "no match_created event precedes it"
        )
        raise ValueError(msg)
    folded = _FOLDERS[event.type](state, event, template)
    return folded.model_copy(update={"events": (*folded.events, event)})


def project(
    events: Iterable[MatchEvent],
    template: RuleTemplate | None = None,
) -> MatchState:
    """Replay ``events`` (already ordered by sequence) from the initial state."""
    state = initial_state()
    for event in events:
        state = apply_event(state, event, template)
    return state


def _period_count(state: MatchState, template: RuleTemplate | None) -> int:
    if template is not None:
        return template.period_count
    if state.period_count is not None:
        return state.period_count
    return get_template(state.template_id).period_count
