"""
Workflow Errors

Every failure a transition can surface carries a ``kind`` so callers
(and the HTTP layer) can branch on it without matching class names.
"""
from typing import Optional


class WorkflowError(Exception):
    """Base class for claim workflow failures."""

    kind = "WorkflowError"

    def __init__(self, message: str, claim_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.claim_id = claim_id

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "claim_id": self.claim_id}


class InvalidTransitionError(WorkflowError):
    """The (status, role, action) combination is not in the transition table."""

    kind = "InvalidTransition"


class ConflictError(WorkflowError):
    """The caller's expected status no longer matches the stored status."""

    kind = "Conflict"


class ClaimNotFoundError(WorkflowError):
    """No claim exists with the requested id."""

    kind = "NotFound"


class StorageError(WorkflowError):
    """The claim store failed or timed out; nothing was applied."""

    kind = "StorageError"


class NotificationDeliveryError(WorkflowError):
    """A subscriber could not be reached. Logged, never raised to callers."""

    kind = "NotificationDeliveryFailure"

    def __init__(self, message: str, topic: str, claim_id: Optional[int] = None):
        super().__init__(message, claim_id)
        self.topic = topic
