import asyncio
import json
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time

import pytest

from callportal.models.call_log import CallStatus
from callportal.routers.webhook import receive_call_event
from callportal.schemas.call_log import CallLogEvent
from callportal.schemas.contact import ContactEvent
from callportal.services.broadcaster import (
    CONNECTED_FRAME,
    KEEPALIVE_FRAME,
    EventBroadcaster,
    Subscriber,
    encode_sse,
)
from callportal.services.exceptions import DeliveryError

from conftest import drain, subscribe


def make_call_event(employee_id: int, log_id: int = 1, status: CallStatus = CallStatus.CONNECTED) -> CallLogEvent:
    return CallLogEvent(
        id=log_id,
        employee_id=employee_id,
        call_date=date(2026, 10, 18),
        call_time=time(9, 30, 0),
        status=status,
        duration=42,
        provider_call_id=f"CA{log_id}",
        created_at=datetime(2026, 10, 18, 9, 30, 0),
    )


def parse_frame(frame: str) -> dict:
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):-2])


class FailingSubscriber(Subscriber):
    def write(self, frame: str) -> None:
        raise DeliveryError("connection reset")


class BrokenCloseSubscriber(Subscriber):
    def close(self) -> None:
        raise RuntimeError("already torn down")


class TestPublish:
    def test_frame_is_single_camel_case_data_record(self):
        broadcaster = EventBroadcaster("call_logs")
        subscriber = subscribe(broadcaster)

        broadcaster.publish(make_call_event(7))

        [frame] = drain(subscriber)
        payload = parse_frame(frame)
        assert payload["employeeId"] == 7
        assert payload["status"] == "connected"
        assert payload["providerCallId"] == "CA1"
        assert payload["callDate"] == "2026-10-18"

    def test_filter_by_employee(self):
        broadcaster = EventBroadcaster("call_logs")
        everyone = subscribe(broadcaster)
        seven = subscribe(broadcaster, employee_id=7)
        eight = subscribe(broadcaster, employee_id=8)

        delivered = broadcaster.publish(make_call_event(7))

        assert delivered == 2
        assert len(drain(everyone)) == 1
        assert len(drain(seven)) == 1
        assert drain(eight) == []

    def test_contact_events_filter_on_assigned_employee(self):
        broadcaster = EventBroadcaster("contacts")
        seven = subscribe(broadcaster, employee_id=7)
        eight = subscribe(broadcaster, employee_id=8)

        broadcaster.publish(ContactEvent(id=3, name="Acme", phone_number="+15551234567", assigned_employee_id=8))

        assert drain(seven) == []
        [frame] = drain(eight)
        assert parse_frame(frame)["assignedEmployeeId"] == 8

    def test_unassigned_event_only_reaches_unfiltered_subscribers(self):
        broadcaster = EventBroadcaster("contacts")
        everyone = subscribe(broadcaster)
        seven = subscribe(broadcaster, employee_id=7)

        broadcaster.publish(ContactEvent(id=3, name="Acme", phone_number="+15551234567"))

        assert len(drain(everyone)) == 1
        assert drain(seven) == []

    def test_events_arrive_in_publish_order(self):
        broadcaster = EventBroadcaster("call_logs")
        subscriber = subscribe(broadcaster, employee_id=7)

        for log_id in (1, 2, 3):
            broadcaster.publish(make_call_event(7, log_id=log_id))

        assert [parse_frame(f)["id"] for f in drain(subscriber)] == [1, 2, 3]

    def test_failed_subscriber_dropped_during_publish(self):
        broadcaster = EventBroadcaster("call_logs")
        healthy = subscribe(broadcaster)
        failing = FailingSubscriber()
        broadcaster.register(failing)

        delivered = broadcaster.publish(make_call_event(7))

        assert delivered == 1
        assert failing not in broadcaster
        assert healthy in broadcaster
        assert broadcaster.publish(make_call_event(7, log_id=2)) == 1
        assert len(drain(healthy)) == 2

    def test_slow_subscriber_dropped_when_queue_full(self):
        broadcaster = EventBroadcaster("call_logs")
        slow = Subscriber(queue_size=2)
        broadcaster.register(slow)

        for log_id in range(3):
            broadcaster.publish(make_call_event(7, log_id=log_id))

        assert slow not in broadcaster
        assert slow.closed

    def test_closed_subscriber_dropped(self):
        broadcaster = EventBroadcaster("call_logs")
        subscriber = subscribe(broadcaster)
        subscriber.close()

        assert broadcaster.publish(make_call_event(7)) == 0
        assert len(broadcaster) == 0


class TestUnregister:
    def test_unregister_closes_channel(self):
        broadcaster = EventBroadcaster("call_logs")
        subscriber = subscribe(broadcaster)

        broadcaster.unregister(subscriber)

        assert len(broadcaster) == 0
        assert subscriber.closed
        assert drain(subscriber) == [None]

    def test_unregister_twice_is_safe(self):
        broadcaster = EventBroadcaster("call_logs")
        subscriber = subscribe(broadcaster)

        broadcaster.unregister(subscriber)
        broadcaster.unregister(subscriber)

        assert len(broadcaster) == 0

    def test_unregister_never_raises(self):
        broadcaster = EventBroadcaster("call_logs")
        subscriber = BrokenCloseSubscriber()
        broadcaster.register(subscriber)

        broadcaster.unregister(subscriber)

        assert subscriber not in broadcaster

    def test_close_all(self):
        broadcaster = EventBroadcaster("call_logs")
        subscribers = [subscribe(broadcaster, employee_id=i) for i in range(1, 4)]

        broadcaster.close_all()

        assert len(broadcaster) == 0
        assert all(s.closed for s in subscribers)

    def test_registry_changes_from_worker_threads(self):
        broadcaster = EventBroadcaster("call_logs")
        subscribers = [Subscriber(employee_id=i) for i in range(200)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(broadcaster.register, subscribers))
        assert len(broadcaster) == 200

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(broadcaster.unregister, subscribers[:150]))
        assert len(broadcaster) == 50
        assert all(s.closed for s in subscribers[:150])

    def test_webhook_publishes_on_event_loop_thread(self):
        assert asyncio.iscoroutinefunction(receive_call_event)


class TestSubscription:
    @pytest.mark.asyncio
    async def test_connected_frame_comes_first(self):
        broadcaster = EventBroadcaster("call_logs", keepalive_interval=60)

        async with broadcaster.subscription(7) as subscriber:
            assert subscriber in broadcaster
            broadcaster.publish(make_call_event(7))
            frames = drain(subscriber)

        assert frames[0] == CONNECTED_FRAME
        assert parse_frame(frames[1])["employeeId"] == 7

    @pytest.mark.asyncio
    async def test_keepalive_frames_sent(self):
        broadcaster = EventBroadcaster("call_logs", keepalive_interval=0.01)

        async with broadcaster.subscription() as subscriber:
            await asyncio.sleep(0.1)
            frames = drain(subscriber)

        assert frames[0] == CONNECTED_FRAME
        assert KEEPALIVE_FRAME in frames[1:]

    @pytest.mark.asyncio
    async def test_exit_releases_keepalive_and_registry_entry(self):
        broadcaster = EventBroadcaster("call_logs", keepalive_interval=0.01)

        async with broadcaster.subscription() as subscriber:
            keepalive = subscriber.keepalive
            assert not keepalive.done()

        await asyncio.sleep(0.01)
        assert keepalive.cancelled()
        assert subscriber.keepalive is None
        assert len(broadcaster) == 0

    @pytest.mark.asyncio
    async def test_cancelled_reader_unregisters(self):
        broadcaster = EventBroadcaster("call_logs", keepalive_interval=60)
        opened = asyncio.Event()

        async def reader():
            async with broadcaster.subscription(7) as subscriber:
                opened.set()
                async for _ in subscriber.frames():
                    pass

        task = asyncio.create_task(reader())
        await opened.wait()
        assert len(broadcaster) == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(broadcaster) == 0

    @pytest.mark.asyncio
    async def test_keepalive_failure_drops_subscriber(self):
        broadcaster = EventBroadcaster("call_logs", keepalive_interval=0.01, queue_size=2)

        async with broadcaster.subscription() as subscriber:
            # Nobody reads: connected + one ping fill the queue, the next ping fails
            await asyncio.sleep(0.1)
            assert subscriber not in broadcaster
            assert subscriber.closed


def test_encode_sse():
    assert encode_sse('{"a": 1}') == 'data: {"a": 1}\n\n'
