"""
Claim Workflow Engine

Validates status transitions against the transition table and commits them
together with their audit record.
"""
import logging
from datetime import datetime
from typing import Any, Callable

from claimflow.audit.trail import AuditTrail
from claimflow.core.errors import ConflictError, InvalidTransitionError
from claimflow.core.models import Claim, ClaimUpdate, TransitionResult
from claimflow.core.states import ACTION_OUTCOMES, ClaimStatus, Role, WorkflowAction
from claimflow.state_machine import transitions
from claimflow.store.base import ClaimStore

logger = logging.getLogger(__name__)


class WorkflowEngine:
    """
    The only component allowed to write a claim's status.

    Approval transitions run inside a per-claim store transaction:
    the expected-status check, the table lookup, the compare-and-swap and the
    audit append either all take effect or none do.
    """

    def __init__(self, store: ClaimStore, audit: AuditTrail):
        self.store = store
        self.audit = audit

    def resolve(self, status: ClaimStatus, role: Role, action: WorkflowAction) -> ClaimStatus:
        return transitions.resolve(status, role, action)

    def get_available_actions(self, status: ClaimStatus) -> list[WorkflowAction]:
        return transitions.available_actions(status)

    def commit(
        self,
        claim_id: int,
        action: WorkflowAction,
        actor_id: int,
        actor_role: Role,
        expected_status: ClaimStatus,
        notes: str = "",
        on_commit: Callable[[Claim], None] | None = None,
    ) -> TransitionResult:
        """
        Apply one approval-flow transition.

        Args:
            claim_id: Claim to act on
            action: Approve, Reject or ProcessPayment
            actor_id: Id of the approver
            actor_role: Role the approver acts under
            expected_status: Status the caller last saw

        Returns:
            TransitionResult with the new status and the audit record

        Raises:
            ClaimNotFoundError: Unknown claim
            ConflictError: The stored status differs from ``expected_status``
            InvalidTransitionError: The role/action is not allowed from this status
            StorageError: The store could not be locked or written
        """
        with self.store.transaction(claim_id) as tx:
            claim = tx.get()
            if claim.status != expected_status:
                raise ConflictError(
                    f"Claim {claim_id} is {claim.status.value}, not {expected_status.value}. "
                    f"Reload the claim and retry.",
                    claim_id,
                )

            try:
                next_status = self.resolve(claim.status, actor_role, action)
            except InvalidTransitionError as e:
                e.claim_id = claim_id
                raise

            now = datetime.now()
            updated = tx.compare_and_swap_status(
                expected_status,
                next_status,
                self._side_effects(next_status, actor_id, notes, now),
            )
            record = self.audit.append(
                tx,
                claim_id=claim_id,
                approver_id=actor_id,
                approver_role=actor_role,
                outcome=ACTION_OUTCOMES[action],
                notes=notes,
                from_status=claim.status,
                to_status=next_status,
                timestamp=now,
            )
            if on_commit is not None:
                tx.on_commit(lambda: on_commit(updated))

        logger.info(
            f"Claim {claim_id} transitioned {claim.status.value} -> {next_status.value} "
            f"by {actor_role.value} {actor_id}"
        )
        return TransitionResult(
            claim_id=claim_id,
            previous_status=claim.status,
            new_status=next_status,
            message=_describe(claim_id, next_status),
            record=record,
        )

    def _side_effects(
        self, next_status: ClaimStatus, actor_id: int, notes: str, now: datetime
    ) -> dict[str, Any]:
        if next_status == ClaimStatus.APPROVED:
            return {"approved_date": now, "approved_by": actor_id}
        if next_status == ClaimStatus.REJECTED:
            return {"notes": f"[REJECTED] {notes}".strip()}
        return {}

    def submit(
        self,
        claim_id: int,
        lecturer_id: int,
        expected_status: ClaimStatus = ClaimStatus.DRAFT,
        on_commit: Callable[[Claim], None] | None = None,
    ) -> Claim:
        """
        Move an owner's draft into the approval flow.

        Submission is not an approval, so no audit record is written.
        """
        with self.store.transaction(claim_id) as tx:
            claim = tx.get()
            if claim.lecturer_id != lecturer_id:
                raise InvalidTransitionError(
                    f"Lecturer {lecturer_id} does not own claim {claim_id}", claim_id
                )
            if claim.status != expected_status:
                raise ConflictError(
                    f"Claim {claim_id} is {claim.status.value}, not {expected_status.value}",
                    claim_id,
                )
            if claim.status != ClaimStatus.DRAFT:
                raise InvalidTransitionError(
                    f"Only draft claims can be submitted; claim {claim_id} is {claim.status.value}",
                    claim_id,
                )
            submitted = tx.compare_and_swap_status(
                ClaimStatus.DRAFT,
                ClaimStatus.SUBMITTED,
                {"submitted_date": datetime.now()},
            )
            if on_commit is not None:
                tx.on_commit(lambda: on_commit(submitted))

        logger.info(f"Claim {claim_id} submitted by lecturer {lecturer_id}")
        return submitted

    def edit_draft(self, claim_id: int, update: ClaimUpdate) -> Claim:
        """Apply an owner's edit to a draft and recompute its amount."""
        with self.store.transaction(claim_id) as tx:
            claim = tx.get()
            if claim.lecturer_id != update.lecturer_id:
                raise InvalidTransitionError(
                    f"Lecturer {update.lecturer_id} does not own claim {claim_id}", claim_id
                )
            if claim.status != ClaimStatus.DRAFT:
                raise InvalidTransitionError(
                    f"Claim {claim_id} is {claim.status.value}; only drafts can be edited",
                    claim_id,
                )

            changes = update.model_dump(exclude_unset=True, exclude={"lecturer_id"})
            for field, value in changes.items():
                if value is not None:
                    setattr(claim, field, getattr(update, field))
            claim.calculate_amount()
            claim.updated_at = datetime.now()
            edited = tx.replace(claim)

        logger.info(f"Draft claim {claim_id} edited; amount now {edited.amount}")
        return edited


def _describe(claim_id: int, next_status: ClaimStatus) -> str:
    if next_status == ClaimStatus.WITH_MANAGER:
        return f"Claim #{claim_id} approved and sent to Manager for final approval."
    if next_status == ClaimStatus.APPROVED:
        return f"Claim #{claim_id} fully approved and sent to HR for processing."
    if next_status == ClaimStatus.PAID:
        return f"Payment processed for claim #{claim_id}."
    if next_status == ClaimStatus.REJECTED:
        return f"Claim #{claim_id} has been rejected."
    return f"Claim #{claim_id} is now {next_status.value}."
