"""
Notification Hub

Topic-based fanout of claim events to currently connected subscribers.

Delivery is best-effort and at-most-once: nothing is queued for subscribers
that are not connected, and a failed send is logged and dropped. Ordering per
claim is the job of the dispatcher that calls ``publish``.
"""
import asyncio
import logging
import threading
from typing import Dict, List, Protocol, Set

from claimflow.core.errors import NotificationDeliveryError
from claimflow.notifications.events import NotificationEvent

logger = logging.getLogger(__name__)


class SubscriberDisconnected(Exception):
    """Raised by a subscriber handle whose connection is gone."""


class Subscriber(Protocol):
    async def send(self, event: NotificationEvent) -> None:
        ...


class NotificationTransport(Protocol):
    """Any pub/sub transport the workflow service can publish through."""

    async def publish(self, topic: str, event: NotificationEvent) -> int:
        ...

    def subscribe(self, topic: str, handle: Subscriber) -> None:
        ...

    def unsubscribe(self, topic: str, handle: Subscriber) -> bool:
        ...


class QueueSubscriber:
    """In-process subscriber that collects events on an asyncio queue."""

    def __init__(self, name: str = "", maxsize: int = 0):
        self.name = name
        self.queue: asyncio.Queue = asyncio.Queue(maxsize)
        self.connected = True

    async def send(self, event: NotificationEvent) -> None:
        if not self.connected:
            raise SubscriberDisconnected(self.name)
        self.queue.put_nowait(event)

    def disconnect(self) -> None:
        self.connected = False

    def received(self) -> List[NotificationEvent]:
        """Pop everything delivered so far."""
        events = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events

    def __repr__(self) -> str:
        return f"QueueSubscriber({self.name!r})"


class _Topic:
    """Membership of one topic, guarded by its own lock."""

    def __init__(self):
        self.lock = threading.Lock()
        self.members: Set[Subscriber] = set()

    def snapshot(self) -> List[Subscriber]:
        with self.lock:
            return list(self.members)


class NotificationHub:
    """
    In-process implementation of the notification transport.

    Topics exist while they have members; the last unsubscribe removes one.
    """

    def __init__(self, send_timeout: float = 2.0):
        self.send_timeout = send_timeout
        self.delivered_count = 0
        self.failed_count = 0
        self._topics: Dict[str, _Topic] = {}
        self._topics_guard = threading.Lock()

    # Membership

    def subscribe(self, topic: str, handle: Subscriber) -> None:
        with self._topics_guard:
            entry = self._topics.get(topic)
            if entry is None:
                entry = self._topics[topic] = _Topic()
            with entry.lock:
                entry.members.add(handle)
        logger.info(f"{handle!r} joined {topic}")

    def unsubscribe(self, topic: str, handle: Subscriber) -> bool:
        with self._topics_guard:
            entry = self._topics.get(topic)
            if entry is None:
                return False
            with entry.lock:
                if handle not in entry.members:
                    return False
                entry.members.discard(handle)
                if not entry.members:
                    del self._topics[topic]
        logger.info(f"{handle!r} left {topic}")
        return True

    def topics(self) -> List[str]:
        with self._topics_guard:
            return list(self._topics)

    def subscriber_count(self, topic: str) -> int:
        with self._topics_guard:
            entry = self._topics.get(topic)
        return len(entry.snapshot()) if entry else 0

    # Delivery

    async def publish(self, topic: str, event: NotificationEvent) -> int:
        """
        Send ``event`` to everyone currently on ``topic``.

        Returns the number of subscribers that received it. Never raises for
        delivery problems.
        """
        with self._topics_guard:
            entry = self._topics.get(topic)
        members = entry.snapshot() if entry else []
        if not members:
            logger.debug(f"No subscribers on {topic} for {event.kind.value} (claim {event.claim_id})")
            return 0

        results = await asyncio.gather(*(self._deliver(topic, m, event) for m in members))
        return sum(1 for ok in results if ok)

    async def _deliver(self, topic: str, handle: Subscriber, event: NotificationEvent) -> bool:
        try:
            await asyncio.wait_for(handle.send(event), timeout=self.send_timeout)
        except SubscriberDisconnected:
            self.unsubscribe(topic, handle)
            logger.info(f"Dropped disconnected subscriber {handle!r} from {topic}")
        except Exception as e:
            failure = NotificationDeliveryError(
                f"Could not deliver {event.kind.value} for claim {event.claim_id} "
                f"to {handle!r}: {e!r}",
                topic,
                event.claim_id,
            )
            self.failed_count += 1
            logger.warning(f"{failure.kind} on {topic}: {failure.message}")
        else:
            self.delivered_count += 1
            return True
        return False
