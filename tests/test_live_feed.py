"""Tests for the in-process live update feed."""

import asyncio
import threading

from alerthub.services.live_feed import BROADCAST_ROOM, LiveFeed, user_room


class TestLiveFeed:

    def test_publish_without_subscribers(self):
        assert LiveFeed().publish("location_37_-123", "new_fraud_report", {"id": "r1"}) == 0

    def test_subscriber_receives_room_events(self):
        feed = LiveFeed()

        async def run():
            subscription = feed.subscribe(["location_37_-123"])
            offered = feed.publish("location_37_-123", "new_fraud_report", {"id": "r1"})
            message = await asyncio.wait_for(subscription.next_event(), timeout=1)
            return offered, message

        offered, message = asyncio.run(run())

        assert offered == 1
        assert message == {"event": "new_fraud_report", "room": "location_37_-123", "data": {"id": "r1"}}

    def test_broadcast_room_joined_automatically(self):
        feed = LiveFeed()

        async def run():
            subscription = feed.subscribe([user_room("u1")])
            feed.publish(BROADCAST_ROOM, "report_verified", {"report_id": "r1"})
            return await asyncio.wait_for(subscription.next_event(), timeout=1)

        message = asyncio.run(run())

        assert message["event"] == "report_verified"
        assert feed.subscriber_count(BROADCAST_ROOM) == 1

    def test_other_rooms_not_delivered(self):
        feed = LiveFeed()

        async def run():
            subscription = feed.subscribe([user_room("u1")])
            feed.publish(user_room("u2"), "new_alert", {"id": "a1"})
            await asyncio.sleep(0.01)
            return subscription.queue.qsize()

        assert asyncio.run(run()) == 0

    def test_publish_from_worker_thread(self):
        feed = LiveFeed()

        async def run():
            subscription = feed.subscribe([user_room("u1")])
            worker = threading.Thread(target=feed.publish, args=(user_room("u1"), "new_alert", {"id": "a1"}))
            worker.start()
            message = await asyncio.wait_for(subscription.next_event(), timeout=1)
            worker.join()
            return message

        assert asyncio.run(run())["data"] == {"id": "a1"}

    def test_unsubscribe_removes_empty_rooms(self):
        feed = LiveFeed()

        async def run():
            subscription = feed.subscribe([user_room("u1")])
            subscription.close()

        asyncio.run(run())

        assert feed.subscriber_count() == 0
        assert feed.publish(user_room("u1"), "new_alert", {"id": "a1"}) == 0

    def test_subscriber_with_closed_loop_does_not_block_others(self):
        feed = LiveFeed()

        async def abandoned():
            feed.subscribe([user_room("u1")])

        asyncio.run(abandoned())

        async def run():
            subscription = feed.subscribe([user_room("u1")])
            offered = feed.publish(user_room("u1"), "new_alert", {"id": "a1"})
            message = await asyncio.wait_for(subscription.next_event(), timeout=1)
            return offered, message

        offered, message = asyncio.run(run())

        assert offered == 1
        assert message["data"] == {"id": "a1"}
        assert feed.subscriber_count(user_room("u1")) == 1
