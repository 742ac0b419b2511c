"""Match controller — intent → event → validation → append → re-projection.

One controller owns one match's log. It is the single writer for that log:
every operation runs under the controller's lock, so sequence numbers taken
from the current log length stay gap-free. Each operation either appends and
re-projects or raises without touching the log. Corrections are compensating
events; nothing already appended is ever edited or removed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Literal

from scorebook.core.errors import (
    IneligiblePosition,
    MatchAlreadyStarted,
    MatchNotActive,
    PointsMismatch,
    SetupIncomplete,
    UnknownMatch,
    UnknownPosition,
    UnknownZone,
    ValidationRejected,
)
from scorebook.core.event_bus import EventBus
from scorebook.core.identity import DefaultIdentity, IdentityProvider
from scorebook.core.projection import apply_event, initial_state, project
from scorebook.core.store import EventStore
from scorebook.core.validation import validate_event
from scorebook.models.events import (
    ClockEvent,
    ClockPayload,
    GoalRemovedEvent,
    GoalRemovedPayload,
    GoalScoredEvent,
    GoalScoredPayload,
    MatchCreatedEvent,
    MatchCreatedPayload,
    MatchEvent,
    NoteAddedEvent,
    NoteAddedPayload,
    PeriodTransitionEvent,
    PeriodTransitionPayload,
    SubstitutionMadeEvent,
    SubstitutionMadePayload,
    SyncCheckpointEvent,
    SyncCheckpointPayload,
    TeamKey,
    TimeoutCalledEvent,
    TimeoutCalledPayload,
    TurnoverRecordedEvent,
    TurnoverRecordedPayload,
)
from scorebook.models.match import MatchState
from scorebook.models.rules import RuleTemplate
from scorebook.models.templates import get_template

logger = logging.getLogger(__name__)

_REJECTIONS: dict[str, type[ValidationRejected]] = {
    "position_not_allowed": UnknownPosition,
    "unknown_zone": UnknownZone,
    "role_not_eligible": IneligiblePosition,
    "points_mismatch": PointsMismatch,
}


class MatchController:
    """Owns the event log of a single match.

    Usage:
        controller = MatchController(store, NETBALL_FAST5)
        await controller.start_match("Thunderbirds", "Swifts")
        await controller.record_goal("home", "GA", "outer")
        await controller.advance_period()

        # later, in another process
        controller = await MatchController.resume(store, match_id)
    """

    def __init__(
        self,
        store: EventStore,
        template: RuleTemplate,
        *,
        identity: IdentityProvider | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self.template = template
        self._identity: IdentityProvider = identity or DefaultIdentity()
        self._bus = event_bus
        self._lock = asyncio.Lock()
        self._state = initial_state()

    @classmethod
    async def resume(
        cls,
        store: EventStore,
        match_id: str,
        *,
        template: RuleTemplate | None = None,
        identity: IdentityProvider | None = None,
        event_bus: EventBus | None = None,
    ) -> MatchController:
        """Rebuild a controller by replaying a stored log.

        Pass ``template`` for a match played under a template that is not in
        the built-in registry; otherwise it is looked up by the id recorded in
        match_created. Storage errors propagate; an empty log raises
        UnknownMatch rather than yielding a fresh match.
        """
        events = await store.load_events(match_id)
        if not events:
            raise UnknownMatch(match_id)
        state = project(events, template)
        if template is None:
            template = get_template(state.template_id)
        elif template.id != state.template_id:
            msg = f"Match {match_id} was recorded under {state.template_id}, not {template.id}"
            raise ValueError(msg)
        controller = cls(
            store,
            template,
            identity=identity,
            event_bus=event_bus,
        )
        controller._state = state
        logger.info("match_resumed match=%s events=%d", match_id, state.event_count)
        return controller

    @property
    def state(self) -> MatchState:
        return self._state

    @property
    def match_id(self) -> str:
        return self._state.match_id

    @property
    def events(self) -> tuple[MatchEvent, ...]:
        return self._state.events

    # --- Lifecycle ---

    async def start_match(
        self,
        home_name: str,
        away_name: str,
        *,
        match_name: str | None = None,
        competition_id: str | None = None,
        match_id: str | None = None,
    ) -> MatchState:
        """Emit match_created (sequence 0) and the first period start (sequence 1)."""
        home = (home_name or "").strip()
        away = (away_name or "").strip()
        if not home or not away:
            raise SetupIncomplete("Both team names are required to start a match")

        async with self._lock:
            if self._state.event_count:
                raise MatchAlreadyStarted(f"Match {self.match_id} has already started")
            new_id = match_id or self._identity.new_match_id()
            created = MatchCreatedEvent(
                **self._envelope(new_id, 0),
                payload=MatchCreatedPayload(
                    template_id=self.template.id,
                    match_name=match_name or f"{home} vs {away}",
                    home_team_name=home,
                    away_team_name=away,
                    competition_id=competition_id,
                    scheduled_start=self._identity.now(),
                    period_count=self.template.period_count,
                ),
            )
            first_period = PeriodTransitionEvent(
                **self._envelope(new_id, 1),
                payload=PeriodTransitionPayload(
                    period_index=0,
                    period_label=self.template.period_label(0),
                    reason="start",
                ),
            )
            state = await self._commit([created, first_period])

        logger.info(
            "match_started match=%s template=%s home=%s away=%s",
            new_id,
            self.template.id,
            home,
            away,
        )
        return state

    async def advance_period(self) -> MatchState:
        """End the current period and start the next, or end the match after the last."""
        async with self._lock:
            self._require_active()
            current = self._state.period
            next_index = current.index + 1
            events: list[MatchEvent] = [
                PeriodTransitionEvent(
                    **self._envelope(self.match_id, 0),
                    payload=PeriodTransitionPayload(
                        period_index=current.index,
                        period_label=current.label,
                        reason="end",
                    ),
                )
            ]
            if next_index < self.template.period_count:
                events.append(
                    PeriodTransitionEvent(
                        **self._envelope(self.match_id, 1),
                        payload=PeriodTransitionPayload(
                            period_index=next_index,
                            period_label=self.template.period_label(next_index),
                            reason="start",
                        ),
                    )
                )
            state = await self._commit(events)

        if state.game_state == "ended":
            logger.info(
                "match_ended match=%s home=%d away=%d",
                self.match_id,
                state.score("home"),
                state.score("away"),
            )
        else:
            logger.info("period_started match=%s period=%s", self.match_id, state.period.label)
        return state

    # --- Scoring ---

    async def record_goal(
        self,
        team: TeamKey,
        position: str | None = None,
        zone_id: str | None = None,
        *,
        points: int | None = None,
        player_id: str | None = None,
        clock_time_seconds: int = 0,
    ) -> MatchState:
        """Validate and append a goal.

        ``points`` defaults to the zone's configured value (1 with no zone).
        Raises a ValidationRejected subclass carrying the rejection reason;
        the log is untouched in that case.
        """
        async with self._lock:
            self._require_active()
            if points is None:
                zone = self.template.get_zone(zone_id) if zone_id else None
                points = zone.points if zone is not None else 1
            goal = GoalScoredEvent(
                **self._envelope(self.match_id, 0),
                payload=GoalScoredPayload(
                    team_id=team,
                    player_id=player_id,
                    position=position,
                    location_zone=zone_id,
                    points=points,
                    period_index=self._state.period.index,
                    clock_time_seconds=clock_time_seconds,
                ),
            )
            state = await self._validate_and_commit(goal)

        logger.info(
            "goal_recorded match=%s team=%s points=%d zone=%s",
            self.match_id,
            team,
            points,
            zone_id,
        )
        return state

    async def undo_last_goal(
        self,
        reason: Literal["manual", "official_correction"] = "manual",
    ) -> MatchState:
        """Compensate the most recent goal that still counts.

        Appends a goal_removed event referencing it. With no such goal this
        is a silent no-op and returns the current state.
        """
        async with self._lock:
            self._require_active()
            goals = self._state.active_goals()
            if not goals:
                logger.debug("undo_noop match=%s", self.match_id)
                return self._state
            target = goals[-1]
            removal = GoalRemovedEvent(
                **self._envelope(self.match_id, 0),
                payload=GoalRemovedPayload(replaced_event_id=target.event_id, reason=reason),
            )
            state = await self._commit([removal])

        logger.info("goal_undone match=%s goal=%s", self.match_id, target.event_id)
        return state

    async def remove_goal(
        self,
        goal_event_id: str,
        reason: Literal["manual", "official_correction"] = "official_correction",
    ) -> MatchState:
        """Compensate a specific goal, e.g. an official's correction."""
        async with self._lock:
            self._require_active()
            removal = GoalRemovedEvent(
                **self._envelope(self.match_id, 0),
                payload=GoalRemovedPayload(replaced_event_id=goal_event_id, reason=reason),
            )
            return await self._validate_and_commit(removal)

    # --- Audit-only events ---

    async def record_turnover(
        self,
        team: TeamKey,
        cause: Literal["intercept", "held_ball", "offside", "contact", "obstruction", "break"],
        *,
        clock_time_seconds: int = 0,
        note: str | None = None,
    ) -> MatchState:
        async with self._lock:
            self._require_active()
            return await self._validate_and_commit(
                TurnoverRecordedEvent(
                    **self._envelope(self.match_id, 0),
                    payload=TurnoverRecordedPayload(
                        team_id=team,
                        period_index=self._state.period.index,
                        clock_time_seconds=clock_time_seconds,
                        cause=cause,
                        note=note,
                    ),
                )
            )

    async def call_timeout(
        self,
        category: str,
        team: TeamKey | None = None,
        *,
        clock_time_seconds: int = 0,
    ) -> MatchState:
        """Record a stoppage. The category must be one the template allows."""
        async with self._lock:
            self._require_active()
            return await self._validate_and_commit(
                TimeoutCalledEvent(
                    **self._envelope(self.match_id, 0),
                    payload=TimeoutCalledPayload(
                        team_id=team,
                        period_index=self._state.period.index,
                        clock_time_seconds=clock_time_seconds,
                        category=category,
                    ),
                )
            )

    async def record_substitution(
        self,
        team: TeamKey,
        player_out_id: str,
        player_in_id: str,
        *,
        position_out: str | None = None,
        position_in: str | None = None,
        clock_time_seconds: int = 0,
    ) -> MatchState:
        async with self._lock:
            self._require_active()
            return await self._validate_and_commit(
                SubstitutionMadeEvent(
                    **self._envelope(self.match_id, 0),
                    payload=SubstitutionMadePayload(
                        team_id=team,
                        period_index=self._state.period.index,
                        clock_time_seconds=clock_time_seconds,
                        player_out_id=player_out_id,
                        player_in_id=player_in_id,
                        position_out=position_out,
                        position_in=position_in,
                    ),
                )
            )

    async def add_note(self, message: str, *, clock_time_seconds: int = 0) -> MatchState:
        async with self._lock:
            self._require_active()
            return await self._validate_and_commit(
                NoteAddedEvent(
                    **self._envelope(self.match_id, 0),
                    payload=NoteAddedPayload(
                        period_index=self._state.period.index,
                        clock_time_seconds=clock_time_seconds,
                        message=message,
                    ),
                )
            )

    async def record_clock(
        self,
        action: Literal["start", "stop", "adjust"],
        elapsed_seconds: int,
        *,
        adjustment_seconds: int | None = None,
        note: str | None = None,
    ) -> MatchState:
        """Record a clock action. Nothing here drives a running clock."""
        async with self._lock:
            self._require_active()
            return await self._validate_and_commit(
                ClockEvent(
                    **self._envelope(self.match_id, 0),
                    payload=ClockPayload(
                        action=action,
                        period_index=self._state.period.index,
                        elapsed_seconds=elapsed_seconds,
                        adjustment_seconds=adjustment_seconds,
                        note=note,
                    ),
                )
            )

    async def checkpoint(self) -> MatchState:
        """Mark the log position a downstream replica has projected up to.

        Allowed after the match has ended, unlike the other intents.
        """
        async with self._lock:
            if not self._state.event_count:
                raise MatchNotActive("Match has not started")
            return await self._validate_and_commit(
                SyncCheckpointEvent(
                    **self._envelope(self.match_id, 0),
                    payload=SyncCheckpointPayload(projection_version=self._state.event_count),
                )
            )

    # --- Internals ---

    def _require_active(self) -> None:
        if self._state.game_state != "active":
            raise MatchNotActive(
                f"Match {self.match_id or '<unstarted>'} is {self._state.game_state}, not active"
            )

    def _envelope(self, match_id: str, offset: int) -> dict[str, Any]:
        """Common event fields. ``offset`` counts events already built in this operation."""
        return {
            "match_id": match_id,
            "event_id": self._identity.new_event_id(),
            "created_at": self._identity.now(),
            "source": self._identity.source(),
            "sequence": self._state.event_count + offset,
        }

    async def _validate_and_commit(self, event: MatchEvent) -> MatchState:
        result = validate_event(event, self.template, self._state)
        if not result.ok:
            logger.info(
                "event_rejected match=%s type=%s code=%s reason=%s",
                event.match_id,
                event.type,
                result.code,
                result.reason,
            )
            exc_class = _REJECTIONS.get(result.code or "", ValidationRejected)
            raise exc_class(result.reason or "Rejected")
        return await self._commit([event])

    async def _commit(self, events: list[MatchEvent]) -> MatchState:
        """Append events in order, folding each one after it is stored.

        If the store fails part-way, state reflects exactly what was stored
        and the error propagates.
        """
        for event in events:
            try:
                await self._store.append(event.match_id, event)
            except Exception:  # Re-raise pattern
                logger.warning(
                    "append_failed match=%s sequence=%d type=%s",
                    event.match_id,
                    event.sequence,
                    event.type,
                )
                raise
            self._state = apply_event(self._state, event, self.template)

        if self._bus is not None:
            await self._bus.publish_state(self._state)
        return self._state
