"""
Claim Workflow Vocabulary

Defines the statuses, roles, actions and outcomes a claim moves through.
"""
from enum import Enum


class ClaimStatus(str, Enum):
    """
    Enum representing the possible statuses of a claim.

    Standard Flow: DRAFT -> SUBMITTED -> WITH_MANAGER -> APPROVED -> PAID
    Rejection: SUBMITTED | WITH_COORDINATOR | WITH_MANAGER -> REJECTED
    """
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    WITH_COORDINATOR = "WithCoordinator"  # Legacy alias of SUBMITTED
    WITH_MANAGER = "WithManager"
    APPROVED = "Approved"
    PAID = "Paid"
    REJECTED = "Rejected"


TERMINAL_STATUSES = frozenset({ClaimStatus.PAID, ClaimStatus.REJECTED})


class Role(str, Enum):
    """Roles an actor can hold."""
    LECTURER = "Lecturer"
    COORDINATOR = "Coordinator"
    MANAGER = "Manager"
    HR = "HR"


class WorkflowAction(str, Enum):
    """Actions an approver can take on a claim."""
    APPROVE = "Approve"
    REJECT = "Reject"
    PROCESS_PAYMENT = "ProcessPayment"


class ApprovalOutcome(str, Enum):
    """Outcome stored on an approval record."""
    APPROVED = "Approved"
    REJECTED = "Rejected"


ACTION_OUTCOMES = {
    WorkflowAction.APPROVE: ApprovalOutcome.APPROVED,
    WorkflowAction.PROCESS_PAYMENT: ApprovalOutcome.APPROVED,
    WorkflowAction.REJECT: ApprovalOutcome.REJECTED,
}
