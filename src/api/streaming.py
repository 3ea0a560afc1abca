"""Server-sent-event response helpers."""

import logging
from typing import AsyncIterator

from fastapi import Request
from fastapi.responses import StreamingResponse

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def stop_on_disconnect(request: Request, frames: AsyncIterator[str]) -> AsyncIterator[str]:
    """Relay frames until the client goes away, then close the source stream."""
    try:
        async for frame in frames:
            if await request.is_disconnected():
                logger.info(f"Client disconnected from {request.url.path}, stopping stream")
                break
            yield frame
    finally:
        await frames.aclose()


def sse_response(request: Request, frames: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        stop_on_disconnect(request, frames),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
