# tests/test_hub.py
import asyncio
from datetime import date
from decimal import Decimal

from claimflow.core.models import Claim
from claimflow.core.states import ClaimStatus, Role
from claimflow.monitors.process_monitor import ProcessMonitor
from claimflow.notifications import events
from claimflow.notifications.events import EventKind, is_valid_topic, owner_topic
from claimflow.notifications.dispatch import NotificationDispatcher
from claimflow.notifications.hub import NotificationHub, QueueSubscriber


class SlowSubscriber:
    """Records what it receives, taking longer for earlier events."""

    def __init__(self):
        self.seen = []

    async def send(self, event):
        await asyncio.sleep(0.01 * max(0, 5 - event.sequence))
        self.seen.append((event.claim_id, event.sequence))


class Hanging:
    async def send(self, event):
        await asyncio.sleep(10)


def test_publish_reaches_every_member_of_a_topic(hub):
    async def scenario():
        first, second, other = QueueSubscriber("a"), QueueSubscriber("b"), QueueSubscriber("c")
        hub.subscribe("Managers", first)
        hub.subscribe("Managers", second)
        hub.subscribe("HR", other)
        delivered = await hub.publish("Managers", events.coordinator_approved(1001))
        return delivered, first.received(), second.received(), other.received()

    delivered, first, second, other = asyncio.run(scenario())
    assert delivered == 2
    assert hub.delivered_count == 2
    assert len(first) == len(second) == 1
    assert other == []


def test_publish_to_empty_topic_is_a_no_op(hub):
    assert asyncio.run(hub.publish("HR", events.manager_approved(1001))) == 0


def test_unsubscribe(hub):
    async def scenario():
        subscriber = QueueSubscriber("a")
        hub.subscribe("HR", subscriber)
        hub.subscribe("All", subscriber)
        assert hub.unsubscribe("HR", subscriber) is True
        assert hub.unsubscribe("HR", subscriber) is False
        assert hub.unsubscribe("Nobody", subscriber) is False
        return await hub.publish("HR", events.manager_approved(1001))

    assert asyncio.run(scenario()) == 0
    assert hub.subscriber_count("All") == 1


def test_empty_topics_are_removed(hub):
    first, second = QueueSubscriber("a"), QueueSubscriber("b")
    hub.subscribe("Lecturer_7", first)
    hub.subscribe("Lecturer_7", second)
    hub.subscribe("All", first)

    hub.unsubscribe("Lecturer_7", first)
    assert "Lecturer_7" in hub.topics()
    hub.unsubscribe("Lecturer_7", second)
    assert hub.topics() == ["All"]

    # A topic can be joined again after it was removed
    hub.subscribe("Lecturer_7", second)
    assert hub.subscriber_count("Lecturer_7") == 1


def test_disconnected_subscriber_is_dropped(hub):
    async def scenario():
        gone = QueueSubscriber("gone")
        hub.subscribe("Coordinators", gone)
        gone.disconnect()
        return await hub.publish("Coordinators", events.new_claim_submitted(1001, 7))

    assert asyncio.run(scenario()) == 0
    assert "Coordinators" not in hub.topics()
    assert hub.failed_count == 0
    assert hub.delivered_count == 0


def test_slow_subscriber_times_out_without_blocking_others(caplog):
    hub = NotificationHub(send_timeout=0.05)

    async def scenario():
        fast = QueueSubscriber("fast")
        hub.subscribe("HR", Hanging())
        hub.subscribe("HR", fast)
        delivered = await hub.publish("HR", events.manager_approved(1001))
        return delivered, fast.received()

    delivered, received = asyncio.run(scenario())
    assert delivered == 1
    assert len(received) == 1
    assert hub.delivered_count == 1
    assert hub.failed_count == 1
    assert "NotificationDeliveryFailure" in caplog.text


def test_lanes_keep_per_claim_order(hub):
    subscriber = SlowSubscriber()
    dispatcher = NotificationDispatcher(hub)

    async def scenario():
        hub.subscribe("All", subscriber)
        for _ in range(4):
            dispatcher.enqueue(1001, [("All", events.status_changed(1001, ClaimStatus.SUBMITTED))])
            dispatcher.enqueue(1002, [("All", events.status_changed(1002, ClaimStatus.SUBMITTED))])
        await dispatcher.drain()

    asyncio.run(scenario())
    for claim_id in (1001, 1002):
        sequences = [seq for cid, seq in subscriber.seen if cid == claim_id]
        assert sequences == [1, 2, 3, 4]
    assert hub.delivered_count == 8


def test_final_commit_forgets_the_claim_sequence(hub):
    dispatcher = NotificationDispatcher(hub)

    async def scenario():
        first = dispatcher.enqueue(1001, [])
        last = dispatcher.enqueue(1001, [], final=True)
        await dispatcher.drain()
        return first, last

    assert asyncio.run(scenario()) == (1, 2)
    assert dispatcher._sequences == {}
    assert dispatcher._lanes == {}
    assert dispatcher._workers == {}


def test_close_discards_pending_events(hub):
    dispatcher = NotificationDispatcher(hub)

    async def scenario():
        subscriber = QueueSubscriber("a")
        hub.subscribe("HR", Hanging())
        hub.subscribe("Managers", subscriber)
        dispatcher.enqueue(1001, [
            ("HR", events.manager_approved(1001)),
            ("Managers", events.coordinator_approved(1001)),
        ])
        await asyncio.sleep(0)
        await dispatcher.close()
        return subscriber.received()

    assert asyncio.run(scenario()) == []


def test_topic_names():
    assert owner_topic(7) == "Lecturer_7"
    for topic in ("Coordinators", "Managers", "HR", "All", "Lecturer_7"):
        assert is_valid_topic(topic)
    for topic in ("Lecturer_", "Lecturer_x", "Deans", ""):
        assert not is_valid_topic(topic)
    assert is_valid_topic("Everyone", broadcast_topic="Everyone")


def _claim(status: ClaimStatus) -> Claim:
    return Claim(
        claim_id=1001,
        lecturer_id=7,
        claim_month=date(2026, 9, 1),
        total_hours=Decimal("1"),
        hourly_rate=Decimal("100"),
        status=status,
    )


def test_monitor_routes_each_status_to_its_audience():
    monitor = ProcessMonitor()

    submitted = monitor.on_status_entered(_claim(ClaimStatus.SUBMITTED))
    assert [(t, e.kind) for t, e in submitted] == [
        ("Coordinators", EventKind.NEW_CLAIM_SUBMITTED),
        ("Lecturer_7", EventKind.STATUS_CHANGED),
    ]

    approved = monitor.on_status_entered(_claim(ClaimStatus.APPROVED), Role.MANAGER)
    assert [(t, e.kind) for t, e in approved] == [
        ("HR", EventKind.MANAGER_APPROVED),
        ("Lecturer_7", EventKind.STATUS_CHANGED),
        ("All", EventKind.CLAIM_STATUS_BROADCAST),
    ]

    rejected = monitor.on_status_entered(_claim(ClaimStatus.REJECTED), Role.COORDINATOR)
    assert [t for t, _ in rejected] == ["Lecturer_7", "All"]
    assert rejected[1][1].actor_role == Role.COORDINATOR

    assert monitor.on_status_entered(_claim(ClaimStatus.DRAFT)) == []
