"""
Claim Transition Table

Every legal edge of the approval workflow, keyed by
(current status, actor role, action). Anything not listed is rejected.
"""
from typing import Dict, List, Optional, Tuple

from claimflow.core.errors import InvalidTransitionError
from claimflow.core.states import ClaimStatus, Role, WorkflowAction

TransitionKey = Tuple[ClaimStatus, Role, WorkflowAction]

TRANSITIONS: Dict[TransitionKey, ClaimStatus] = {
    (ClaimStatus.SUBMITTED, Role.COORDINATOR, WorkflowAction.APPROVE): ClaimStatus.WITH_MANAGER,
    (ClaimStatus.WITH_COORDINATOR, Role.COORDINATOR, WorkflowAction.APPROVE): ClaimStatus.WITH_MANAGER,
    (ClaimStatus.WITH_MANAGER, Role.MANAGER, WorkflowAction.APPROVE): ClaimStatus.APPROVED,
    (ClaimStatus.APPROVED, Role.HR, WorkflowAction.PROCESS_PAYMENT): ClaimStatus.PAID,
    (ClaimStatus.SUBMITTED, Role.COORDINATOR, WorkflowAction.REJECT): ClaimStatus.REJECTED,
    (ClaimStatus.WITH_COORDINATOR, Role.COORDINATOR, WorkflowAction.REJECT): ClaimStatus.REJECTED,
    (ClaimStatus.WITH_MANAGER, Role.MANAGER, WorkflowAction.REJECT): ClaimStatus.REJECTED,
}


def resolve(status: ClaimStatus, role: Role, action: WorkflowAction) -> ClaimStatus:
    """
    Look up the status a transition leads to.

    Raises:
        InvalidTransitionError: If the combination is not in the table
    """
    next_status = TRANSITIONS.get((status, role, action))
    if next_status is None:
        allowed = authorized_role(status)
        waiting_on = f"waiting on {allowed.value}" if allowed else "closed"
        raise InvalidTransitionError(
            f"{role.value} cannot {action.value} a claim that is {status.value} ({waiting_on}). "
            f"Valid actions: {[a.value for a in available_actions(status)]}"
        )
    return next_status


def available_actions(status: ClaimStatus) -> List[WorkflowAction]:
    """Actions some role may take from ``status``, in table order."""
    actions: List[WorkflowAction] = []
    for (from_status, _, action) in TRANSITIONS:
        if from_status == status and action not in actions:
            actions.append(action)
    return actions


def pending_statuses(role: Role) -> List[ClaimStatus]:
    """Statuses whose claims are waiting on ``role``."""
    statuses: List[ClaimStatus] = []
    for (from_status, actor_role, _) in TRANSITIONS:
        if actor_role == role and from_status not in statuses:
            statuses.append(from_status)
    return statuses


def authorized_role(status: ClaimStatus) -> Optional[Role]:
    """The single role allowed to act on a claim in ``status``, if any."""
    for (from_status, actor_role, _) in TRANSITIONS:
        if from_status == status:
            return actor_role
    return None
