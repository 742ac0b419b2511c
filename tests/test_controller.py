"""Tests for the match controller: lifecycle, scoring, undo, period advancement."""

import asyncio

import pytest

from scorebook.core.controller import MatchController
from scorebook.core.errors import (
    IneligiblePosition,
    MatchAlreadyStarted,
    MatchNotActive,
    PointsMismatch,
    SequenceConflict,
    SetupIncomplete,
    StorageUnavailable,
    UnknownMatch,
    UnknownZone,
    ValidationRejected,
)
from scorebook.core.event_bus import STATE_CHANGED, EventBus
from scorebook.core.projection import project
from scorebook.core.store import InMemoryEventStore
from scorebook.models.events import (
    GoalRemovedEvent,
    MatchCreatedEvent,
    PeriodTransitionEvent,
)
from scorebook.models.templates import NETBALL_FAST5, NETBALL_STANDARD


def _sequences(controller: MatchController) -> list[int]:
    return [e.sequence for e in controller.events]


class TestStartMatch:
    async def test_emits_created_then_first_period(self, store, identity):
        controller = MatchController(store, NETBALL_STANDARD, identity=identity)
        state = await controller.start_match("Vixens", "Firebirds")

        assert state.game_state == "active"
        assert state.match_id == "match-1"
        assert state.period.index == 0
        assert state.period.label == "Q1"
        assert len(state.events) == 2
        created, first = state.events
        assert isinstance(created, MatchCreatedEvent)
        assert created.sequence == 0
        assert created.payload.template_id == NETBALL_STANDARD.id
        assert created.payload.match_name == "Vixens vs Firebirds"
        assert isinstance(first, PeriodTransitionEvent)
        assert first.sequence == 1
        assert first.payload.reason == "start"
        assert first.payload.period_index == 0

    async def test_events_are_stored(self, store, identity):
        controller = MatchController(store, NETBALL_STANDARD, identity=identity)
        await controller.start_match("Vixens", "Firebirds")
        assert await store.load_events(controller.match_id) == list(controller.events)

    @pytest.mark.parametrize(("home", "away"), [("", "Swifts"), ("Giants", ""), ("  ", "Swifts")])
    async def test_blank_team_name(self, store, identity, home: str, away: str):
        controller = MatchController(store, NETBALL_STANDARD, identity=identity)
        with pytest.raises(SetupIncomplete):
            await controller.start_match(home, away)
        assert controller.state.game_state == "setup"
        assert store.match_ids() == []

    async def test_names_are_trimmed(self, store, identity):
        controller = MatchController(store, NETBALL_STANDARD, identity=identity)
        state = await controller.start_match("  Vixens ", "Firebirds")
        assert state.teams.home.name == "Vixens"

    async def test_cannot_start_twice(self, standard_match):
        with pytest.raises(MatchAlreadyStarted):
            await standard_match.start_match("A", "B")
        assert standard_match.state.event_count == 2

    async def test_intents_before_start_rejected(self, store, identity):
        controller = MatchController(store, NETBALL_STANDARD, identity=identity)
        with pytest.raises(MatchNotActive):
            await controller.record_goal("home", "GS", "circle")
        with pytest.raises(MatchNotActive):
            await controller.advance_period()


class TestRecordGoal:
    async def test_points_default_to_zone_value(self, fast5_match):
        state = await fast5_match.record_goal("home", "GA", "super")
        assert state.score("home") == 3
        assert state.score("away") == 0
        goal = state.events[-1]
        assert goal.sequence == 2
        assert goal.payload.location_zone == "super"
        assert goal.payload.period_index == 0

    async def test_goal_without_zone_defaults_to_one_point(self, fast5_match):
        state = await fast5_match.record_goal("away", "GS")
        assert state.score("away") == 1

    async def test_ineligible_position_rejected(self, fast5_match):
        with pytest.raises(IneligiblePosition) as exc_info:
            await fast5_match.record_goal("home", "C", "inner")
        assert "C" in exc_info.value.reason
        assert "Inner Circle" in exc_info.value.reason
        assert fast5_match.state.event_count == 2

    async def test_points_mismatch_rejected(self, fast5_match, store):
        with pytest.raises(PointsMismatch) as exc_info:
            await fast5_match.record_goal("home", "GA", "outer", points=1)
        assert "Expected 2" in exc_info.value.reason
        assert "received 1" in exc_info.value.reason
        assert len(await store.load_events(fast5_match.match_id)) == 2

    async def test_unknown_zone_rejected(self, fast5_match):
        with pytest.raises(UnknownZone):
            await fast5_match.record_goal("home", "GA", "halfway")

    async def test_rejections_are_validation_rejected(self, fast5_match):
        with pytest.raises(ValidationRejected):
            await fast5_match.record_goal("home", "WD", "inner")

    async def test_retry_after_rejection(self, fast5_match):
        with pytest.raises(ValidationRejected):
            await fast5_match.record_goal("home", "GA", "outer", points=1)
        state = await fast5_match.record_goal("home", "GA", "outer")
        assert state.score("home") == 2
        assert _sequences(fast5_match) == [0, 1, 2]


class TestUndoLastGoal:
    async def test_undo_reverses_exactly_one_goal(self, fast5_match):
        assert fast5_match.state.score("home") == 0
        state = await fast5_match.record_goal("home", "GA", "outer")
        assert state.score("home") == 2

        state = await fast5_match.undo_last_goal()
        assert state.score("home") == 0

        count = state.event_count
        state = await fast5_match.undo_last_goal()
        assert state.score("home") == 0
        assert state.event_count == count

    async def test_undo_appends_compensating_event(self, fast5_match):
        await fast5_match.record_goal("home", "GA", "outer")
        goal_id = fast5_match.events[-1].event_id
        state = await fast5_match.undo_last_goal()

        removal = state.events[-1]
        assert isinstance(removal, GoalRemovedEvent)
        assert removal.payload.replaced_event_id == goal_id
        assert removal.payload.reason == "manual"
        # The goal is still in the log; nothing is deleted.
        assert any(e.event_id == goal_id for e in state.events)

    async def test_undo_walks_back_through_goals(self, fast5_match):
        await fast5_match.record_goal("home", "GA", "inner")
        await fast5_match.record_goal("away", "GS", "super")
        await fast5_match.record_goal("home", "GS", "outer")

        state = await fast5_match.undo_last_goal()
        assert (state.score("home"), state.score("away")) == (1, 3)
        state = await fast5_match.undo_last_goal()
        assert (state.score("home"), state.score("away")) == (1, 0)
        state = await fast5_match.undo_last_goal()
        assert (state.score("home"), state.score("away")) == (0, 0)

    async def test_undo_with_no_goals_is_noop(self, fast5_match):
        before = fast5_match.state
        assert await fast5_match.undo_last_goal() == before

    async def test_undo_matches_replay(self, fast5_match, store):
        await fast5_match.record_goal("home", "GA", "outer")
        await fast5_match.undo_last_goal()
        replayed = project(await store.load_events(fast5_match.match_id))
        assert replayed == fast5_match.state


class TestRemoveGoal:
    async def test_remove_specific_goal(self, fast5_match):
        await fast5_match.record_goal("home", "GA", "super")
        first_goal = fast5_match.events[-1].event_id
        await fast5_match.record_goal("home", "GA", "inner")
        state = await fast5_match.remove_goal(first_goal)
        assert state.score("home") == 1
        assert state.events[-1].payload.reason == "official_correction"

    async def test_remove_unknown_goal_rejected(self, fast5_match):
        with pytest.raises(ValidationRejected, match="evt-404"):
            await fast5_match.remove_goal("evt-404")

    async def test_remove_twice_rejected(self, fast5_match):
        await fast5_match.record_goal("home", "GA", "super")
        goal_id = fast5_match.events[-1].event_id
        await fast5_match.remove_goal(goal_id)
        with pytest.raises(ValidationRejected):
            await fast5_match.remove_goal(goal_id)


class TestAdvancePeriod:
    async def test_four_periods_end_on_fourth_call(self, standard_match, store):
        seen = []
        for _ in range(4):
            state = await standard_match.advance_period()
            seen.append((state.period.index, state.game_state))

        assert seen == [(1, "active"), (2, "active"), (3, "active"), (3, "ended")]

        # Q1 start, then end/start x3, then the final end.
        transitions = [e for e in standard_match.events if isinstance(e, PeriodTransitionEvent)]
        assert len(transitions) == 1 + 2 * 3 + 1
        assert transitions[-1].payload.reason == "end"
        assert transitions[-1].payload.period_index == 3

        count = standard_match.state.event_count
        with pytest.raises(MatchNotActive):
            await standard_match.advance_period()
        assert standard_match.state.event_count == count
        assert len(await store.load_events(standard_match.match_id)) == count

    async def test_end_precedes_start(self, standard_match):
        await standard_match.advance_period()
        end, start = standard_match.events[-2:]
        assert (end.payload.reason, end.payload.period_index) == ("end", 0)
        assert (start.payload.reason, start.payload.period_index) == ("start", 1)
        assert start.payload.period_label == "Q2"
        assert start.sequence == end.sequence + 1

    async def test_ended_state_survives_replay(self, standard_match, store):
        for _ in range(4):
            await standard_match.advance_period()
        assert project(await store.load_events(standard_match.match_id)).game_state == "ended"

    async def test_ended_match_rejects_intents(self, standard_match):
        for _ in range(4):
            await standard_match.advance_period()
        with pytest.raises(MatchNotActive):
            await standard_match.record_goal("home", "GS", "circle")
        with pytest.raises(MatchNotActive):
            await standard_match.undo_last_goal()
        with pytest.raises(MatchNotActive):
            await standard_match.add_note("too late")

    async def test_goal_records_current_period(self, standard_match):
        await standard_match.advance_period()
        state = await standard_match.record_goal("away", "GS", "circle")
        assert state.events[-1].payload.period_index == 1


class TestAuditEvents:
    async def test_audit_events_leave_score_alone(self, standard_match):
        await standard_match.record_goal("home", "GS", "circle")
        await standard_match.record_turnover("away", "intercept", clock_time_seconds=65)
        await standard_match.call_timeout("injury", "home")
        await standard_match.record_substitution(
            "home", "p-7", "p-12", position_out="WA", position_in="WA"
        )
        await standard_match.add_note("Umpire change")
        await standard_match.record_clock("stop", 300)
        state = await standard_match.checkpoint()

        assert state.score("home") == 1
        assert state.score("away") == 0
        assert [e.type for e in state.events[3:]] == [
            "turnover_recorded",
            "timeout_called",
            "substitution_made",
            "note_added",
            "clock",
            "sync_checkpoint",
        ]
        assert state.events[-1].payload.projection_version == 8

    async def test_unknown_stoppage_rejected(self, standard_match):
        with pytest.raises(ValidationRejected, match="weather"):
            await standard_match.call_timeout("weather")

    async def test_checkpoint_allowed_after_end(self, standard_match):
        for _ in range(4):
            await standard_match.advance_period()
        state = await standard_match.checkpoint()
        assert state.events[-1].type == "sync_checkpoint"
        assert state.game_state == "ended"


class TestSequencing:
    async def test_gap_free_after_mixed_operations(self, fast5_match):
        await fast5_match.record_goal("home", "GA", "outer")
        with pytest.raises(ValidationRejected):
            await fast5_match.record_goal("home", "C", "inner")
        await fast5_match.undo_last_goal()
        await fast5_match.undo_last_goal()
        await fast5_match.advance_period()
        await fast5_match.record_goal("away", "GS", "super")
        await fast5_match.add_note("Fast5 power play")
        for _ in range(3):
            await fast5_match.advance_period()

        assert _sequences(fast5_match) == list(range(fast5_match.state.event_count))

    async def test_concurrent_goals_serialise(self, fast5_match, store):
        await asyncio.gather(
            *(fast5_match.record_goal("home", "GA", "inner") for _ in range(20))
        )
        stored = await store.load_events(fast5_match.match_id)
        assert [e.sequence for e in stored] == list(range(22))
        assert fast5_match.state.score("home") == 20


class TestResume:
    async def test_resume_rebuilds_state(self, fast5_match, store, identity):
        await fast5_match.record_goal("home", "GA", "outer")
        await fast5_match.advance_period()

        resumed = await MatchController.resume(store, fast5_match.match_id, identity=identity)
        assert resumed.template is NETBALL_FAST5
        assert resumed.state == fast5_match.state

        state = await resumed.record_goal("away", "GS", "inner")
        assert state.events[-1].sequence == fast5_match.state.event_count

    async def test_resume_unknown_match(self, store):
        with pytest.raises(UnknownMatch):
            await MatchController.resume(store, "match-404")

    async def test_resume_propagates_storage_failure(self, store):
        await store.close()
        with pytest.raises(StorageUnavailable):
            await MatchController.resume(store, "match-1")


class TestUnregisteredTemplate:
    async def test_full_match_without_registry(self, store, identity, halves_template):
        controller = MatchController(store, halves_template, identity=identity)
        state = await controller.start_match("Lions", "Tigers")
        assert state.events[0].payload.period_count == 2

        state = await controller.advance_period()
        assert state.period.label == "H2"
        state = await controller.advance_period()
        assert state.game_state == "ended"

    async def test_log_replays_without_template(self, store, identity, halves_template):
        controller = MatchController(store, halves_template, identity=identity)
        await controller.start_match("Lions", "Tigers")
        await controller.record_goal("home", "PIV")
        await controller.advance_period()
        await controller.advance_period()

        replayed = project(await store.load_events(controller.match_id))
        assert replayed == controller.state
        assert replayed.game_state == "ended"

    async def test_resume_with_template(self, store, identity, halves_template):
        controller = MatchController(store, halves_template, identity=identity)
        await controller.start_match("Lions", "Tigers")
        await controller.record_goal("away", "ALA")

        resumed = await MatchController.resume(
            store, controller.match_id, template=halves_template, identity=identity
        )
        assert resumed.template is halves_template
        assert resumed.state == controller.state
        state = await resumed.advance_period()
        assert state.period.label == "H2"

    async def test_resume_rejects_other_template(self, store, identity, halves_template):
        controller = MatchController(store, halves_template, identity=identity)
        await controller.start_match("Lions", "Tigers")
        with pytest.raises(ValueError, match="futsal-halves"):
            await MatchController.resume(store, controller.match_id, template=NETBALL_FAST5)


class TestStorageFailures:
    async def test_closed_store_propagates(self, store, identity):
        controller = MatchController(store, NETBALL_STANDARD, identity=identity)
        await store.close()
        with pytest.raises(StorageUnavailable):
            await controller.start_match("Vixens", "Firebirds")
        assert controller.state.event_count == 0
        assert controller.state.game_state == "setup"

    async def test_failed_goal_leaves_state(self, fast5_match, store):
        before = fast5_match.state
        await store.close()
        with pytest.raises(StorageUnavailable):
            await fast5_match.record_goal("home", "GA", "outer")
        assert fast5_match.state == before

    async def test_second_writer_conflicts(self, fast5_match, store, identity):
        rival = await MatchController.resume(store, fast5_match.match_id, identity=identity)
        await fast5_match.record_goal("home", "GA", "outer")
        with pytest.raises(SequenceConflict):
            await rival.record_goal("away", "GS", "inner")


class TestStateBroadcast:
    async def test_each_operation_publishes_state(self, identity):
        bus = EventBus()
        async with InMemoryEventStore() as store:
            controller = MatchController(store, NETBALL_FAST5, identity=identity, event_bus=bus)
            async with bus.subscribe(None) as sub:
                await controller.start_match("Thunderbirds", "Swifts")
                await controller.record_goal("home", "GA", "super")

                started = await sub.get(timeout=1.0)
                scored = await sub.get(timeout=1.0)

        assert started["type"] == STATE_CHANGED
        assert started["match_id"] == "match-1"
        assert started["data"]["game_state"] == "active"
        assert scored["data"]["teams"]["home"]["score"] == 3

    async def test_rejection_publishes_nothing(self, identity):
        bus = EventBus()
        async with InMemoryEventStore() as store:
            controller = MatchController(store, NETBALL_FAST5, identity=identity, event_bus=bus)
            await controller.start_match("Thunderbirds", "Swifts")
            async with bus.subscribe("match-1") as sub:
                with pytest.raises(ValidationRejected):
                    await controller.record_goal("home", "C", "inner")
                assert await sub.get(timeout=0.1) is None
