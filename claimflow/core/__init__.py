# Core module - workflow vocabulary, models and errors
from .states import ClaimStatus, Role, WorkflowAction, ApprovalOutcome
from .models import Claim, ClaimCreate, ClaimUpdate, ClaimItem, ApprovalRecord, TransitionResult
from .errors import (
    WorkflowError,
    InvalidTransitionError,
    ConflictError,
    ClaimNotFoundError,
    StorageError,
    NotificationDeliveryError,
)

__all__ = [
    "ClaimStatus",
    "Role",
    "WorkflowAction",
    "ApprovalOutcome",
    "Claim",
    "ClaimCreate",
    "ClaimUpdate",
    "ClaimItem",
    "ApprovalRecord",
    "TransitionResult",
    "WorkflowError",
    "InvalidTransitionError",
    "ConflictError",
    "ClaimNotFoundError",
    "StorageError",
    "NotificationDeliveryError",
]
