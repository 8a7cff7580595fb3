"""In-process fan-out of call-log and contact events to connected dashboards.

One ``EventBroadcaster`` exists per event category. The application creates
them at startup and hands them to routers through the dependencies at the
bottom of this module.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Set

from fastapi import Request
from pydantic import BaseModel

from callportal.services.exceptions import DeliveryError

logger = logging.getLogger(__name__)

CONNECTED_FRAME = ": connected\n\n"
KEEPALIVE_FRAME = ": ping\n\n"


def encode_sse(payload: str) -> str:
    return f"data: {payload}\n\n"


class Subscriber:
    """A live output channel for one streaming client."""

    def __init__(self, employee_id: Optional[int] = None, queue_size: int = 100):
        self.employee_id = employee_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.keepalive: Optional[asyncio.Task] = None
        self.closed = False

    def wants(self, owner_id: Optional[int]) -> bool:
        return self.employee_id is None or self.employee_id == owner_id

    def write(self, frame: str) -> None:
        if self.closed:
            raise DeliveryError("Subscriber channel is closed")
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            raise DeliveryError("Subscriber is not keeping up")

    def close(self) -> None:
        """Close the channel; the reader sees end-of-stream after pending frames."""
        if self.closed:
            return
        self.closed = True
        if self.queue.full():
            # Reader is too far behind to matter, make room for the sentinel
            while not self.queue.empty():
                self.queue.get_nowait()
        self.queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[str]:
        while True:
            frame = await self.queue.get()
            if frame is None:
                return
            yield frame


class EventBroadcaster:
    """Registry of live subscribers for one event category.

    The registry itself may be changed from any thread. Writes into subscriber
    queues are not thread-safe, so ``publish`` and the keepalives must run on
    the event loop thread that serves the streams.
    """

    def __init__(self, name: str, keepalive_interval: float = 15.0, queue_size: int = 100):
        self.name = name
        self.keepalive_interval = keepalive_interval
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subscribers: Set[Subscriber] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def __contains__(self, subscriber: Subscriber) -> bool:
        with self._lock:
            return subscriber in self._subscribers

    def register(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.add(subscriber)
            total = len(self._subscribers)
        logger.info(f"[{self.name}] subscriber registered. Employee: {subscriber.employee_id}. Total: {total}")

    def unregister(self, subscriber: Subscriber) -> None:
        """Remove a subscriber, stop its keepalive and close its channel. Never raises."""
        with self._lock:
            was_registered = subscriber in self._subscribers
            self._subscribers.discard(subscriber)
            total = len(self._subscribers)

        if subscriber.keepalive is not None:
            subscriber.keepalive.cancel()
            subscriber.keepalive = None

        try:
            subscriber.close()
        except Exception as e:
            logger.error(f"[{self.name}] error closing subscriber channel: {e}")

        if was_registered:
            logger.info(f"[{self.name}] subscriber unregistered. Total: {total}")

    def publish(self, event: BaseModel) -> int:
        """
        Deliver an event to every matching subscriber.

        The event must expose ``owner_id``: subscribers filtered on an employee
        only receive events owned by that employee. Subscribers whose channel
        refuses the frame are dropped in the same pass.

        Must be called on the event loop thread; the webhook route is
        ``async def`` for this reason.

        Returns:
            Number of subscribers the frame was written to
        """
        frame = encode_sse(event.model_dump_json(by_alias=True))
        owner_id = getattr(event, "owner_id", None)

        with self._lock:
            targets: List[Subscriber] = [s for s in self._subscribers if s.wants(owner_id)]

        delivered = 0
        for subscriber in targets:
            try:
                subscriber.write(frame)
                delivered += 1
            except DeliveryError as e:
                logger.error(f"[{self.name}] dropping subscriber (employee {subscriber.employee_id}): {e}")
                self.unregister(subscriber)

        logger.debug(f"[{self.name}] published to {delivered}/{len(targets)} subscribers")
        return delivered

    async def _keepalive(self, subscriber: Subscriber) -> None:
        while True:
            await asyncio.sleep(self.keepalive_interval)
            try:
                subscriber.write(KEEPALIVE_FRAME)
            except DeliveryError as e:
                logger.error(f"[{self.name}] keepalive failed, dropping subscriber: {e}")
                self.unregister(subscriber)
                return

    @asynccontextmanager
    async def subscription(self, employee_id: Optional[int] = None) -> AsyncIterator[Subscriber]:
        """
        Open a subscriber for the lifetime of the ``async with`` block.

        The connected comment frame is queued before registration so it is
        always the first frame a client reads. The keepalive task and registry
        entry are released on every exit path, including cancellation.
        """
        subscriber = Subscriber(employee_id=employee_id, queue_size=self.queue_size)
        subscriber.write(CONNECTED_FRAME)
        self.register(subscriber)
        subscriber.keepalive = asyncio.create_task(self._keepalive(subscriber))
        try:
            yield subscriber
        finally:
            self.unregister(subscriber)

    def close_all(self) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            self.unregister(subscriber)
        logger.info(f"[{self.name}] closed {len(subscribers)} subscribers")


def get_call_log_broadcaster(request: Request) -> EventBroadcaster:
    return request.app.state.call_log_broadcaster


def get_contact_broadcaster(request: Request) -> EventBroadcaster:
    return request.app.state.contact_broadcaster
