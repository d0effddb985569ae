"""
Approval Audit Trail

Append-only record of every committed transition. Records are written through
the same store transaction as the status swap, so one never exists without
the other.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from claimflow.core.errors import InvalidTransitionError
from claimflow.core.models import ApprovalRecord
from claimflow.core.states import ACTION_OUTCOMES, ApprovalOutcome, ClaimStatus, Role
from claimflow.state_machine.transitions import TRANSITIONS
from claimflow.store.base import ClaimStore, ClaimTransaction

logger = logging.getLogger(__name__)


class AuditTrail:
    """Produces and reads immutable approval records."""

    def __init__(self, store: ClaimStore):
        self.store = store

    def append(
        self,
        tx: ClaimTransaction,
        claim_id: int,
        approver_id: int,
        approver_role: Role,
        outcome: ApprovalOutcome,
        notes: str = "",
        *,
        from_status: ClaimStatus,
        to_status: ClaimStatus,
        timestamp: Optional[datetime] = None,
    ) -> ApprovalRecord:
        """
        Stage an approval record on an open transaction.

        The record only becomes visible if the transaction commits.
        """
        record = ApprovalRecord(
            approval_id=tx.next_approval_id(),
            claim_id=claim_id,
            approver_id=approver_id,
            approver_role=approver_role,
            timestamp=timestamp or datetime.now(),
            outcome=outcome,
            notes=notes,
            from_status=from_status,
            to_status=to_status,
        )
        tx.append_approval(record)
        logger.debug(f"Staged approval {record.approval_id} for claim {claim_id}: {outcome.value}")
        return record

    def history(self, claim_id: int) -> List[ApprovalRecord]:
        """
        Records for a claim in commit order.

        Approval ids are allocated inside the claim transaction, so they order
        a claim's commits even if the wall clock steps back between them.
        """
        records = self.store.approvals_for(claim_id)
        return sorted(records, key=lambda r: r.approval_id)

    @staticmethod
    def replay(
        records: Iterable[ApprovalRecord],
        start: ClaimStatus = ClaimStatus.SUBMITTED,
    ) -> ClaimStatus:
        """
        Rebuild a claim's status from its approval history.

        Args:
            records: Approval records in commit order
            start: Status the claim entered the approval flow with

        Raises:
            InvalidTransitionError: If a record does not follow a table edge
        """
        status = start
        for record in records:
            status = _replay_step(status, record)
        return status


def _replay_step(status: ClaimStatus, record: ApprovalRecord) -> ClaimStatus:
    for (from_status, role, action), next_status in TRANSITIONS.items():
        if (
            from_status == status
            and role == record.approver_role
            and ACTION_OUTCOMES[action] == record.outcome
        ):
            return next_status
    raise InvalidTransitionError(
        f"Approval {record.approval_id} ({record.approver_role.value} {record.outcome.value}) "
        f"does not follow from {status.value}",
        record.claim_id,
    )
