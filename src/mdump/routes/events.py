"""SSE streaming endpoint for note change events."""

from typing import TYPE_CHECKING

from fastapi import APIRouter, Query, Request
from sse_starlette.sse import EventSourceResponse

if TYPE_CHECKING:
    from mdump.events.hub import BroadcastHub

router = APIRouter(prefix="/events", tags=["events"])


@router.get("/stream")
async def event_stream(
    request: Request,
    scope: str = Query(
        default="",
        max_length=500,
        description="Only stream changes below this folder",
    ),
) -> EventSourceResponse:
    """Stream note changes via Server-Sent Events.

    Clients receive created/modified/deleted events for notes, plus
    periodic heartbeat events to keep the connection alive.

    Args:
        request: FastAPI request object.
        scope: Folder path prefix; empty for the whole notes tree.

    Returns:
        SSE response stream with change events and heartbeats.
    """
    hub: BroadcastHub = request.app.state.broadcast_hub

    return EventSourceResponse(
        hub.create_sse_generator(scope.strip("/")),
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
