"""Shared test fixtures."""

from datetime import UTC, datetime, timedelta

import pytest

from scorebook.config import Settings
from scorebook.core.controller import MatchController
from scorebook.core.store import InMemoryEventStore
from scorebook.models.events import EventSource
from scorebook.models.rules import MatchDefaults, PeriodDefinition, RuleTemplate
from scorebook.models.templates import NETBALL_FAST5, NETBALL_STANDARD


class SequentialIdentity:
    """Deterministic ids and a clock that ticks one second per call."""

    def __init__(self) -> None:
        self._matches = 0
        self._events = 0
        self._now = datetime(2025, 3, 1, 10, 0, tzinfo=UTC)

    def new_match_id(self) -> str:
        self._matches += 1
        return f"match-{self._matches}"

    def new_event_id(self) -> str:
        self._events += 1
        return f"evt-{self._events}"

    def now(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now

    def source(self) -> EventSource:
        return EventSource(device_id="test-device", platform="web")


@pytest.fixture
def settings() -> Settings:
    """Test settings with defaults."""
    return Settings(scorebook_env="development", database_url="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def identity() -> SequentialIdentity:
    return SequentialIdentity()


@pytest.fixture
async def store() -> InMemoryEventStore:
    async with InMemoryEventStore() as s:
        yield s


@pytest.fixture
async def fast5_match(store: InMemoryEventStore, identity: SequentialIdentity) -> MatchController:
    """A started Fast5 match, Thunderbirds (home) vs Swifts (away)."""
    controller = MatchController(store, NETBALL_FAST5, identity=identity)
    await controller.start_match("Thunderbirds", "Swifts")
    return controller


@pytest.fixture
async def standard_match(
    store: InMemoryEventStore, identity: SequentialIdentity
) -> MatchController:
    controller = MatchController(store, NETBALL_STANDARD, identity=identity)
    await controller.start_match("Vixens", "Firebirds")
    return controller


@pytest.fixture
def halves_template() -> RuleTemplate:
    """A two-half futsal template that is not in the built-in registry."""
    return RuleTemplate(
        id="futsal-halves",
        sport="futsal",
        name="Futsal (two halves)",
        defaults=MatchDefaults(
            periods=(
                PeriodDefinition(label="H1", duration_seconds=20 * 60, break_seconds=10 * 60),
                PeriodDefinition(label="H2", duration_seconds=20 * 60),
            )
        ),
    )
