"""
Claim Store Port

The workflow engine only talks to storage through these two protocols.
Any adapter (in-memory, SQL, key-value) that honours them qualifies.
"""
from typing import Any, Callable, ContextManager, Dict, List, Optional, Protocol

from claimflow.core.models import ApprovalRecord, Claim
from claimflow.core.states import ClaimStatus


class ClaimTransaction(Protocol):
    """
    Unit of work scoped to a single claim.

    Writes are staged and become visible together when the owning
    ``transaction()`` block exits cleanly; an exception discards them all.
    """

    claim_id: int

    def get(self) -> Claim:
        """Return the claim as seen inside this transaction (raises ClaimNotFoundError)."""
        ...

    def compare_and_swap_status(
        self,
        expected: ClaimStatus,
        next_status: ClaimStatus,
        side_effects: Optional[Dict[str, Any]] = None,
    ) -> Claim:
        """Swap the status if it still equals ``expected`` (raises ConflictError)."""
        ...

    def replace(self, claim: Claim) -> Claim:
        """Stage a full replacement of the claim (draft edits)."""
        ...

    def next_approval_id(self) -> int:
        ...

    def append_approval(self, record: ApprovalRecord) -> ApprovalRecord:
        """Stage an approval record; it commits with the status swap."""
        ...

    def on_commit(self, callback: Callable[[], None]) -> None:
        """
        Run ``callback`` once the writes are visible, before the claim is
        released to the next transaction. Callbacks run in commit order.
        """
        ...


class ClaimStore(Protocol):
    """Durable access to claims and their approval records."""

    def next_claim_id(self) -> int:
        ...

    def add_claim(self, claim: Claim) -> Claim:
        ...

    def get(self, claim_id: int) -> Claim:
        ...

    def list_claims(self) -> List[Claim]:
        ...

    def approvals_for(self, claim_id: int) -> List[ApprovalRecord]:
        ...

    def transaction(self, claim_id: int) -> ContextManager[ClaimTransaction]:
        """Exclusive, atomic access to one claim (raises StorageError on timeout)."""
        ...
