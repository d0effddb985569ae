"""
Workflow Service

The single entry point callers (HTTP handlers, scripts) use to move claims
through the approval flow. Sequences engine commit, audit and notification
fanout, and answers the read-only questions a UI needs.
"""
import asyncio
import logging
from decimal import Decimal

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from claimflow.audit.trail import AuditTrail
from claimflow.core.errors import WorkflowError
from claimflow.core.models import ApprovalRecord, Claim, ClaimCreate, ClaimUpdate, TransitionResult
from claimflow.core.states import TERMINAL_STATUSES, ClaimStatus, Role, WorkflowAction
from claimflow.monitors.process_monitor import ProcessMonitor
from claimflow.notifications.dispatch import NotificationDispatcher
from claimflow.notifications.hub import NotificationHub, NotificationTransport
from claimflow.settings import Settings
from claimflow.state_machine import transitions
from claimflow.state_machine.machine import WorkflowEngine
from claimflow.store.base import ClaimStore
from claimflow.store.memory import InMemoryClaimStore

logger = logging.getLogger(__name__)

PENDING_STAGES = (
    ClaimStatus.SUBMITTED,
    ClaimStatus.WITH_COORDINATOR,
    ClaimStatus.WITH_MANAGER,
    ClaimStatus.APPROVED,
)


class WorkflowStats(BaseModel):
    """Derived snapshot of the claim pipeline."""
    total_claims: int
    pending_by_stage: dict[ClaimStatus, int]
    approved_amount: Decimal = Field(..., description="Sum of claims approved and awaiting payment")
    paid_amount: Decimal
    rejected_claims: int
    average_processing_days: float = Field(..., description="Mean days from submission to approval")


class PaymentOutcome(BaseModel):
    claim_id: int
    success: bool
    new_status: ClaimStatus | None = None
    message: str


class PaymentBatchResult(BaseModel):
    processed: int
    total_amount: Decimal
    outcomes: list[PaymentOutcome]


class WorkflowService:
    """
    Façade over the workflow engine, audit trail and notification transport.

    Commits run in a worker thread so a contended claim lock never blocks the
    event loop. Notifications are handed to the dispatcher from inside the commit
    (still under the claim lock) via ``call_soon_threadsafe``, which keeps
    per-claim events in commit order without the transport ever holding that
    lock. Any ``NotificationTransport`` can sit behind the dispatcher.
    """

    def __init__(
        self,
        store: ClaimStore,
        transport: NotificationTransport,
        monitor: ProcessMonitor | None = None,
        broadcast_topic: str = "All",
    ):
        self.store = store
        self.transport = transport
        self.dispatcher = NotificationDispatcher(transport)
        self.audit = AuditTrail(store)
        self.engine = WorkflowEngine(store, self.audit)
        self.monitor = monitor or ProcessMonitor(broadcast_topic=broadcast_topic)
        self.broadcast_topic = self.monitor.broadcast_topic

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkflowService":
        store = InMemoryClaimStore(
            first_claim_id=settings.first_claim_id,
            lock_timeout=settings.store_lock_timeout_sec,
        )
        hub = NotificationHub(send_timeout=settings.notification_send_timeout_sec)
        return cls(store, hub, broadcast_topic=settings.broadcast_topic)

    # Mutations

    async def transition(
        self,
        claim_id: int,
        action: WorkflowAction,
        actor_id: int,
        actor_role: Role,
        expected_status: ClaimStatus,
        notes: str = "",
    ) -> TransitionResult:
        """
        Validate and commit one approval-flow step, then notify subscribers.

        Raises:
            ClaimNotFoundError, ConflictError, InvalidTransitionError, StorageError
        """
        on_commit = self._publisher(actor_role)
        try:
            result = await run_in_threadpool(
                self.engine.commit,
                claim_id,
                action,
                actor_id,
                actor_role,
                expected_status,
                notes,
                on_commit,
            )
        except WorkflowError as e:
            logger.warning(
                f"Transition {action.value} on claim {claim_id} by {actor_role.value} {actor_id} "
                f"refused: {e.kind}: {e.message}"
            )
            raise
        return result

    async def create_claim(self, data: ClaimCreate) -> Claim:
        """Create a claim for its owner, submitting it unless ``data.submit`` is False."""
        claim = Claim(
            claim_id=self.store.next_claim_id(),
            lecturer_id=data.lecturer_id,
            claim_month=data.claim_month,
            total_hours=data.total_hours,
            hourly_rate=data.hourly_rate,
            notes=data.notes,
            items=data.items,
            status=ClaimStatus.DRAFT,
        )
        claim.calculate_amount()
        claim = self.store.add_claim(claim)
        logger.info(
            f"Created claim {claim.claim_id} for lecturer {claim.lecturer_id}: "
            f"{claim.total_hours}h x {claim.hourly_rate} = {claim.amount}"
        )

        if data.submit:
            claim = await self.submit_claim(claim.claim_id, claim.lecturer_id)
        return claim

    async def submit_claim(
        self,
        claim_id: int,
        lecturer_id: int,
        expected_status: ClaimStatus = ClaimStatus.DRAFT,
    ) -> Claim:
        return await run_in_threadpool(
            self.engine.submit, claim_id, lecturer_id, expected_status, self._publisher(None)
        )

    async def update_draft(self, claim_id: int, update: ClaimUpdate) -> Claim:
        return await run_in_threadpool(self.engine.edit_draft, claim_id, update)

    async def process_payments(
        self,
        claim_ids: list[int],
        actor_id: int,
        actor_role: Role = Role.HR,
        notes: str = "",
    ) -> PaymentBatchResult:
        """
        Pay a batch of approved claims.

        Each claim is an independent transition; one failure does not stop
        the rest.
        """
        outcomes: list[PaymentOutcome] = []
        total = Decimal("0.00")
        for claim_id in claim_ids:
            try:
                result = await self.transition(
                    claim_id,
                    WorkflowAction.PROCESS_PAYMENT,
                    actor_id,
                    actor_role,
                    ClaimStatus.APPROVED,
                    notes,
                )
            except WorkflowError as e:
                outcomes.append(PaymentOutcome(claim_id=claim_id, success=False, message=f"{e.kind}: {e.message}"))
                continue

            total += self.store.get(claim_id).amount
            outcomes.append(
                PaymentOutcome(
                    claim_id=claim_id,
                    success=True,
                    new_status=result.new_status,
                    message=result.message,
                )
            )

        processed = sum(1 for o in outcomes if o.success)
        logger.info(f"Processed {processed}/{len(claim_ids)} payments, total {total}")
        return PaymentBatchResult(processed=processed, total_amount=total, outcomes=outcomes)

    # Notification boundary

    def _publisher(self, actor_role: Role | None):
        loop = asyncio.get_running_loop()

        def schedule(claim: Claim) -> None:
            # Runs in the commit thread while the claim is still locked
            loop.call_soon_threadsafe(self._publish, claim, actor_role)

        return schedule

    def _publish(self, claim: Claim, actor_role: Role | None) -> None:
        try:
            deliveries = self.monitor.on_status_entered(claim, actor_role)
            self.dispatcher.enqueue(claim.claim_id, deliveries, final=claim.status in TERMINAL_STATUSES)
        except Exception:
            logger.exception(f"Could not dispatch notifications for claim {claim.claim_id}")

    # Reads

    def get_claim(self, claim_id: int) -> Claim:
        return self.store.get(claim_id)

    def list_claims(
        self,
        status: ClaimStatus | None = None,
        lecturer_id: int | None = None,
    ) -> list[Claim]:
        claims = self.store.list_claims()
        if status is not None:
            claims = [c for c in claims if c.status == status]
        if lecturer_id is not None:
            claims = [c for c in claims if c.lecturer_id == lecturer_id]
        return sorted(claims, key=lambda c: c.claim_id)

    def pending_for_role(self, role: Role) -> list[Claim]:
        """The approval queue for ``role``."""
        statuses = set(transitions.pending_statuses(role))
        return [c for c in self.list_claims() if c.status in statuses]

    def history(self, claim_id: int) -> list[ApprovalRecord]:
        return self.audit.history(claim_id)

    def get_available_actions(self, status: ClaimStatus) -> list[WorkflowAction]:
        return self.engine.get_available_actions(status)

    def get_stats(self) -> WorkflowStats:
        claims = self.store.list_claims()

        pending = {stage: 0 for stage in PENDING_STAGES}
        for claim in claims:
            if claim.status in pending:
                pending[claim.status] += 1

        approved = [c for c in claims if c.status == ClaimStatus.APPROVED]
        paid = [c for c in claims if c.status == ClaimStatus.PAID]
        timed = [c for c in approved + paid if c.approved_date and c.submitted_date]
        if timed:
            days = sum((c.approved_date - c.submitted_date).total_seconds() for c in timed) / 86400
            average_days = round(days / len(timed), 1)
        else:
            average_days = 0.0

        return WorkflowStats(
            total_claims=len(claims),
            pending_by_stage=pending,
            approved_amount=sum((c.amount for c in approved), Decimal("0.00")),
            paid_amount=sum((c.amount for c in paid), Decimal("0.00")),
            rejected_claims=sum(1 for c in claims if c.status == ClaimStatus.REJECTED),
            average_processing_days=average_days,
        )

    async def shutdown(self) -> None:
        await self.dispatcher.close()