"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from scorebook.api.deps import ControllerRegistry
from scorebook.api.events import router as events_router
from scorebook.api.matches import router as matches_router
from scorebook.api.templates import router as templates_router
from scorebook.config import Settings
from scorebook.core.event_bus import EventBus
from scorebook.core.identity import DefaultIdentity
from scorebook.db.store import SqlEventStore

logger = logging.getLogger(__name__)


def build_state(app: FastAPI, store: SqlEventStore) -> None:
    """Attach the store, bus, and controller registry to ``app.state``."""
    settings: Settings = app.state.settings
    identity = DefaultIdentity(
        device_id=settings.scorebook_device_id,
        platform=settings.scorebook_platform,
    )
    app.state.store = store
    app.state.event_bus = EventBus()
    app.state.controllers = ControllerRegistry(store, identity, app.state.event_bus)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: open the event store. Shutdown: close it."""
    settings: Settings = app.state.settings
    store = SqlEventStore.from_url(settings.database_url)
    await store.open()
    build_state(app, store)
    logger.info("scorebook_started env=%s", settings.scorebook_env)

    yield

    await store.close()
    logger.info("scorebook_stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the Scorebook FastAPI application."""
    settings = settings or Settings()

    logging.basicConfig(
        level=getattr(logging, settings.scorebook_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Scorebook",
        version="0.1.0",
        description="Event-sourced match scoring with configurable rule templates",
        docs_url="/docs" if settings.scorebook_env != "production" else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.include_router(templates_router)
    app.include_router(matches_router)
    app.include_router(events_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "env": settings.scorebook_env}

    return app


app = create_app()
