"""Server-Sent Events stream of live inbox updates."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from ..config import get_settings
from ..events import events
from ..sse_utils import stream_events

router = APIRouter(tags=["stream"])


@router.get("/api/stream")
async def stream(request: Request) -> StreamingResponse:
    """Push conversation and message updates to a connected viewer."""
    return StreamingResponse(
        stream_events(
            events,
            request.is_disconnected,
            keepalive_seconds=get_settings().sse_keepalive_seconds,
        ),
        media_type="text/event-stream; charset=utf-8",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
