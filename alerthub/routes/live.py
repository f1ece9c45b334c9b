"""
Live update WebSocket.

A client joins the broadcast room, its own user room (when the X-User-Id
header identifies it, as for the REST routes) and the location room around
(lat, lng) (when given), then receives {"event", "room", "data"} messages
until it disconnects. Anonymous clients get public rooms only.
"""

import asyncio
from typing import Optional
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from alerthub.core.context import get_context
from alerthub.routes.deps import get_optional_user_id
from alerthub.services.live_feed import user_room
from alerthub.utils.geo import location_room

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/live", tags=["Live"])


@router.websocket("/ws")
async def live_updates(
    websocket: WebSocket,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    await websocket.accept()

    rooms = set()
    if user_id:
        rooms.add(user_room(user_id))
    if lat is not None and lng is not None:
        rooms.add(location_room(lat, lng))

    subscription = get_context().live_feed.subscribe(rooms)
    logger.info(f"Live client joined {sorted(subscription.rooms)}")

    async def forward_events():
        while True:
            await websocket.send_json(await subscription.next_event())

    async def wait_for_disconnect():
        # Clients don't send anything meaningful; reading detects the disconnect
        while True:
            await websocket.receive_text()

    tasks = [asyncio.create_task(forward_events()), asyncio.create_task(wait_for_disconnect())]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.warning(f"Live connection closed with error: {error}")
    finally:
        for task in tasks:
            task.cancel()
        subscription.close()
        logger.info("Live client left")
