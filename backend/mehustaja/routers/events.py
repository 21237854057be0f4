"""WebSocket push of live events.

    WS  /ws/events    Frames are {"event": <name>, "data": {...}}

Each connection registers a listener on the event bus that feeds a
queue; the socket loop drains the queue.  Clients only send keepalives.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from mehustaja.deps import get_event_bus
from mehustaja.events.bus import Event, EventBus

logger = logging.getLogger(__name__)

router = APIRouter()

QUEUE_SIZE = 100


@router.websocket("/ws/events")
async def events_socket(websocket: WebSocket, bus: EventBus = Depends(get_event_bus)):
    await websocket.accept()
    queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=QUEUE_SIZE)

    async def listener(event: Event) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Event queue full for a websocket client, dropping %s", event.name)

    bus.subscribe(listener)
    logger.info("Websocket client connected (%d listeners)", bus.listener_count)

    async def drain_client() -> None:
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            return

    receiver = asyncio.create_task(drain_client())
    try:
        while not receiver.done():
            get = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({get, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if get in done:
                await websocket.send_json(get.result().to_message())
            else:
                get.cancel()
    except WebSocketDisconnect:
        pass
    finally:
        bus.unsubscribe(listener)
        receiver.cancel()
        logger.info("Websocket client disconnected")
