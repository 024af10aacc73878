import asyncio
import logging
from typing import AsyncIterator

from fastapi import APIRouter, WebSocket
from fastapi.responses import StreamingResponse

from snowgauge.core.channel import Channel
from snowgauge.core.event_hub import broadcaster
from snowgauge.core.models.reading import Reading
from snowgauge.schemas import ReadingMessage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reading", tags=["reading"])


async def reading_lines(subscriber: Channel[Reading]) -> AsyncIterator[str]:
    """Newline-delimited JSON, one line per Reading, until the stream ends."""
    try:
        async for reading in subscriber:
            yield ReadingMessage.from_reading(reading).model_dump_json() + "\n"
    finally:
        subscriber.close_receiver()


@router.get("/stream", response_class=StreamingResponse, responses={
    200: {
        "description": "Newline-delimited JSON stream of readings.",
        "content": {
            "application/x-ndjson": {
                "example": '{"station_name":"snowgauge","distance":1000,"system_uptime":null,"application_uptime":null}'
            }
        }
    }
})
async def stream_readings() -> StreamingResponse:
    """
    Stream every reading published from now on.
    The response stays open until the client disconnects or the service stops.
    """
    subscriber = broadcaster.subscribe()
    return StreamingResponse(reading_lines(subscriber), media_type="application/x-ndjson")


async def _forward_readings(websocket: WebSocket, subscriber: Channel[Reading]):
    async for reading in subscriber:
        await websocket.send_json(ReadingMessage.from_reading(reading).model_dump(mode="json"))


async def _wait_for_disconnect(websocket: WebSocket):
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws")
async def reading_socket(websocket: WebSocket) -> None:
    """WebSocket stream: one JSON object per reading."""
    # Registered before accepting so nothing published after the handshake is missed
    subscriber = broadcaster.subscribe()
    await websocket.accept()
    logger.info("Client connected to /reading/ws")

    forward = asyncio.create_task(_forward_readings(websocket, subscriber))
    listen = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        done, _ = await asyncio.wait({forward, listen}, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if error is not None:
                logger.warning(f"WebSocket error: {error}")
        if forward in done and forward.exception() is None:
            # Stream ended because the service is shutting down
            await websocket.close()
    finally:
        forward.cancel()
        listen.cancel()
        subscriber.close_receiver()
        logger.info("Client disconnected from /reading/ws")
