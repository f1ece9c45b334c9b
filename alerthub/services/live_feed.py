"""
Live Update Feed - fire-and-forget events to connected clients.

Rooms:
- "broadcast": every connected client (report_verified)
- "location_<lat>_<lng>": clients watching a 1x1 degree cell (new_fraud_report)
- "user_<id>": one recipient's private room (new_alert)

Delivery is best-effort: a slow or disconnected client loses events, and
publishing never raises. Losing a live update is never a dispatch failure.
"""

import asyncio
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Set

from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

BROADCAST_ROOM = "broadcast"
QUEUE_SIZE = 100


def user_room(user_id: str) -> str:
    return f"user_{user_id}"


class Subscription:
    """One client's queue joined to a set of rooms."""

    def __init__(self, feed: "LiveFeed", rooms: Set[str]):
        self.feed = feed
        self.rooms = rooms
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        self.loop = asyncio.get_running_loop()

    async def next_event(self) -> Dict[str, Any]:
        return await self.queue.get()

    def _offer(self, message: Dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Live feed queue full, dropping {message.get('event')} event")

    def close(self) -> None:
        self.feed.unsubscribe(self)


class LiveFeed:
    def __init__(self):
        self._rooms: Dict[str, Set[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, rooms: Iterable[str]) -> Subscription:
        """Must be called from inside the event loop that will consume events."""
        room_set = set(rooms) | {BROADCAST_ROOM}
        subscription = Subscription(self, room_set)
        with self._lock:
            for room in room_set:
                self._rooms.setdefault(room, set()).add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            for room in subscription.rooms:
                members = self._rooms.get(room)
                if members is not None:
                    members.discard(subscription)
                    if not members:
                        del self._rooms[room]

    def publish(self, room: str, event: str, payload: Dict[str, Any]) -> int:
        """
        Queue an event for every subscriber of a room. Safe from any thread.

        A subscriber whose event loop has closed is dropped; the rest of the
        room still receives the event.

        Returns:
            Number of subscribers the event was offered to
        """
        try:
            message = {"event": event, "room": room, "data": jsonable_encoder(payload)}
        except Exception as e:
            logger.warning(f"Live feed publish of {event} to {room} failed: {e}")
            return 0

        with self._lock:
            targets: List[Subscription] = list(self._rooms.get(room, ()))

        offered = 0
        for subscription in targets:
            try:
                subscription.loop.call_soon_threadsafe(subscription._offer, message)
            except Exception as e:
                logger.warning(f"Dropping live subscriber of {room}, could not reach its loop: {e}")
                self.unsubscribe(subscription)
                continue
            offered += 1
        return offered

    def subscriber_count(self, room: Optional[str] = None) -> int:
        with self._lock:
            if room is not None:
                return len(self._rooms.get(room, ()))
            return len({s for members in self._rooms.values() for s in members})

    def close(self) -> None:
        with self._lock:
            self._rooms.clear()
