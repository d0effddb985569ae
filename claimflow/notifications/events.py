"""
Notification Events and Topics

Payloads pushed to subscribers after a claim transition commits.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, Field

from claimflow.core.states import ClaimStatus, Role

COORDINATORS = "Coordinators"
MANAGERS = "Managers"
HR = "HR"

ROLE_TOPICS = {
    Role.COORDINATOR: COORDINATORS,
    Role.MANAGER: MANAGERS,
    Role.HR: HR,
}

OWNER_TOPIC_PREFIX = "Lecturer_"


def owner_topic(lecturer_id: int) -> str:
    """Topic that reaches the lecturer who owns a claim."""
    return f"{OWNER_TOPIC_PREFIX}{lecturer_id}"


def is_valid_topic(topic: str, broadcast_topic: str = "All") -> bool:
    if topic in ROLE_TOPICS.values() or topic == broadcast_topic:
        return True
    suffix = topic[len(OWNER_TOPIC_PREFIX):] if topic.startswith(OWNER_TOPIC_PREFIX) else ""
    return suffix.isdigit()


class EventKind(str, Enum):
    NEW_CLAIM_SUBMITTED = "NewClaimSubmitted"
    COORDINATOR_APPROVED = "CoordinatorApproved"
    MANAGER_APPROVED = "ManagerApproved"
    STATUS_CHANGED = "StatusChanged"
    CLAIM_STATUS_BROADCAST = "ClaimStatusBroadcast"


class NotificationEvent(BaseModel):
    """A single push to a topic."""
    kind: EventKind
    claim_id: int
    sequence: int = Field(default=0, description="Per-claim commit sequence, stamped by the hub")
    owner_id: Optional[int] = None
    new_status: Optional[ClaimStatus] = None
    actor_role: Optional[Role] = None
    occurred_at: datetime = Field(default_factory=datetime.now)


Delivery = Tuple[str, NotificationEvent]


def new_claim_submitted(claim_id: int, owner_id: int) -> NotificationEvent:
    return NotificationEvent(kind=EventKind.NEW_CLAIM_SUBMITTED, claim_id=claim_id, owner_id=owner_id)


def coordinator_approved(claim_id: int) -> NotificationEvent:
    return NotificationEvent(kind=EventKind.COORDINATOR_APPROVED, claim_id=claim_id)


def manager_approved(claim_id: int) -> NotificationEvent:
    return NotificationEvent(kind=EventKind.MANAGER_APPROVED, claim_id=claim_id)


def status_changed(claim_id: int, new_status: ClaimStatus) -> NotificationEvent:
    return NotificationEvent(kind=EventKind.STATUS_CHANGED, claim_id=claim_id, new_status=new_status)


def claim_status_broadcast(claim_id: int, new_status: ClaimStatus, actor_role: Role) -> NotificationEvent:
    return NotificationEvent(
        kind=EventKind.CLAIM_STATUS_BROADCAST,
        claim_id=claim_id,
        new_status=new_status,
        actor_role=actor_role,
    )
