# Notifications module - topic fanout of claim events
from .events import (
    COORDINATORS,
    MANAGERS,
    HR,
    EventKind,
    NotificationEvent,
    owner_topic,
    is_valid_topic,
)
from .dispatch import NotificationDispatcher
from .hub import (
    NotificationHub,
    NotificationTransport,
    QueueSubscriber,
    Subscriber,
    SubscriberDisconnected,
)

__all__ = [
    "COORDINATORS",
    "MANAGERS",
    "HR",
    "EventKind",
    "NotificationEvent",
    "owner_topic",
    "is_valid_topic",
    "NotificationDispatcher",
    "NotificationHub",
    "NotificationTransport",
    "QueueSubscriber",
    "Subscriber",
    "SubscriberDisconnected",
]
