"""SSE (Server-Sent Events) endpoint streaming match state snapshots."""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from scorebook.core.event_bus import EventBus

router = APIRouter(prefix="/api/events", tags=["events"])
logger = logging.getLogger(__name__)

_HEARTBEAT_INTERVAL = 15  # seconds

# Anonymous clients can hold a stream open indefinitely; cap the pool.
_MAX_SSE_CONNECTIONS = 100
_connection_semaphore = asyncio.Semaphore(_MAX_SSE_CONNECTIONS)


def _get_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


@router.get("/stream")
async def sse_stream(request: Request, match_id: str | None = None) -> StreamingResponse:
    """Server-Sent Events stream of ``match.state_changed`` snapshots.

    Query params:
        match_id: only stream this match. If omitted, streams every match.

    Sends an initial comment to flush proxy buffers and periodic heartbeats
    to keep the connection alive.

    Errors:
        429 — global connection limit reached
    """
    if _connection_semaphore.locked():
        raise HTTPException(
            status_code=429,
            detail=(
                f"Too many concurrent SSE connections "
                f"(limit: {_MAX_SSE_CONNECTIONS}). Try again later."
            ),
        )

    bus = _get_bus(request)

    async def generate():
        async with _connection_semaphore:
            yield ": connected\n\n"

            async with bus.subscribe(match_id) as sub:
                while True:
                    if await request.is_disconnected():
                        break
                    envelope = await sub.get(timeout=_HEARTBEAT_INTERVAL)
                    if envelope is None:
                        yield ": heartbeat\n\n"
                        continue
                    data = json.dumps(envelope, default=str)
                    yield f"event: {envelope['type']}\ndata: {data}\n\n"

        logger.debug("sse_closed match=%s", match_id)

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/health")
async def events_health(request: Request) -> dict:
    """EventBus subscriber count and SSE connection stats."""
    bus = _get_bus(request)
    return {
        "status": "ok",
        "subscribers": bus.subscriber_count,
        "active_sse_connections": _MAX_SSE_CONNECTIONS - _connection_semaphore._value,  # noqa: SLF001
        "max_sse_connections": _MAX_SSE_CONNECTIONS,
    }
