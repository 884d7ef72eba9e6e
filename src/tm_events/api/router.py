"""tm_events streaming endpoint.

GET /stream — Server-Sent Events; first frame is {"type": "connected"},
then every event published on the bus.
"""

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from src.tm_events.application.schemas import ConnectedEvent
from src.tm_events.engine.bus import EventBus

router = APIRouter(tags=["events"])

KEEPALIVE_S = 15.0


def format_sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def sse_events(
    bus: EventBus,
    queue: asyncio.Queue[dict[str, Any]],
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive_s: float = KEEPALIVE_S,
) -> AsyncIterator[str]:
    """Yield SSE frames until the client goes away or the bus drops the queue."""
    try:
        yield format_sse(ConnectedEvent().model_dump(mode="json"))
        while True:
            if await is_disconnected():
                break
            try:
                payload = await asyncio.wait_for(queue.get(), timeout=keepalive_s)
            except asyncio.TimeoutError:
                if not bus.is_subscribed(queue):
                    break
                yield ": keep-alive\n\n"
                continue
            yield format_sse(payload)
    finally:
        bus.unsubscribe(queue)


@router.get("/stream")
async def stream(request: Request) -> StreamingResponse:
    bus: EventBus = request.app.state.event_bus
    queue = bus.subscribe()
    return StreamingResponse(
        sse_events(bus, queue, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
