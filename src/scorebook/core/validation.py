"""Validation engine — is a candidate event legal under a rule template?

Pure functions of (event, template[, state]). No hidden state, no I/O, safe
to call speculatively before appending. Structural shape is enforced by the
event models themselves; this module applies the template's rules.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from scorebook.models.events import (
    GoalRemovedEvent,
    GoalScoredEvent,
    MatchEvent,
    TimeoutCalledEvent,
)
from scorebook.models.match import MatchState
from scorebook.models.rules import RuleTemplate

RejectionCode = Literal[
    "position_not_allowed",
    "unknown_zone",
    "role_not_eligible",
    "points_mismatch",
    "unknown_stoppage",
    "unknown_goal",
]


class ValidationResult(BaseModel):
    """Outcome of a validation check. ``reason`` and ``code`` are set when ok is False."""

    ok: bool
    reason: str | None = None
    code: RejectionCode | None = None


OK = ValidationResult(ok=True)


def _reject(code: RejectionCode, reason: str) -> ValidationResult:
    return ValidationResult(ok=False, reason=reason, code=code)


def validate_goal_event(event: GoalScoredEvent, template: RuleTemplate) -> ValidationResult:
    """Check a goal against the template's scoring rules.

    Order matters: open scoring short-circuits everything, the allowed-scorer
    list is checked before the zone, and a goal with no zone is legal.
    """
    scoring = template.scoring
    payload = event.payload

    if template.is_open_scoring:
        return OK

    if (
        scoring.allowed_scorers is not None
        and payload.position
        and payload.position not in scoring.allowed_scorers
    ):
        return _reject(
            "position_not_allowed",
            f"Position {payload.position} is not permitted to score in this rule set.",
        )

    if not payload.location_zone:
        return OK

    zone = template.get_zone(payload.location_zone)
    if zone is None:
        return _reject("unknown_zone", f"Zone {payload.location_zone} is not configured.")

    if (
        zone.restricted_to_roles is not None
        and payload.position
        and payload.position not in zone.restricted_to_roles
    ):
        return _reject(
            "role_not_eligible",
            f"Role {payload.position} cannot score from zone {zone.label}.",
        )

    if zone.points != payload.points:
        return _reject(
            "points_mismatch",
            f"Expected {zone.points} point(s) for zone {zone.label} "
            f"but received {payload.points}.",
        )

    return OK


def validate_timeout(event: TimeoutCalledEvent, template: RuleTemplate) -> ValidationResult:
    categories = template.clock.stoppage_categories
    if event.payload.category not in categories:
        return _reject(
            "unknown_stoppage",
            f"Stoppage category {event.payload.category} is not one of "
            f"{', '.join(categories)}.",
        )
    return OK


def validate_goal_removal(event: GoalRemovedEvent, state: MatchState) -> ValidationResult:
    """A removal must reference a goal in the log that is still counted."""
    target = event.payload.replaced_event_id
    if any(g.event_id == target for g in state.active_goals()):
        return OK
    return _reject("unknown_goal", f"No counted goal with id {target} in this match.")


def validate_event(
    event: MatchEvent,
    template: RuleTemplate,
    state: MatchState | None = None,
) -> ValidationResult:
    """Dispatch to the rule check for this event type.

    Types without rule checks are legal once they have parsed. Goal removals
    are only checked when ``state`` is supplied.
    """
    if isinstance(event, GoalScoredEvent):
        return validate_goal_event(event, template)
    if isinstance(event, TimeoutCalledEvent):
        return validate_timeout(event, template)
    if isinstance(event, GoalRemovedEvent) and state is not None:
        return validate_goal_removal(event, state)
    return OK
