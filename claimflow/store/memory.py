"""
In-Memory Claim Store

Process-local adapter for the claim store port. Each claim has its own lock,
so transactions on different claims never wait on each other.
"""
import itertools
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional

from claimflow.core.errors import ClaimNotFoundError, ConflictError, StorageError
from claimflow.core.models import TRANSITION_FIELDS, ApprovalRecord, Claim
from claimflow.core.states import ClaimStatus

logger = logging.getLogger(__name__)


class MemoryTransaction:
    """Staged writes against one claim, applied by ``InMemoryClaimStore.transaction``."""

    def __init__(self, store: "InMemoryClaimStore", claim_id: int):
        self._store = store
        self.claim_id = claim_id
        self._claim: Optional[Claim] = None
        self._records: List[ApprovalRecord] = []
        self._after_commit: List[Callable[[], None]] = []

    def _current(self) -> Claim:
        if self._claim is None:
            self._claim = self._store.get(self.claim_id)
        return self._claim

    def get(self) -> Claim:
        return self._current().model_copy(deep=True)

    def compare_and_swap_status(
        self,
        expected: ClaimStatus,
        next_status: ClaimStatus,
        side_effects: Optional[Dict[str, Any]] = None,
    ) -> Claim:
        current = self._current()
        if current.status != expected:
            raise ConflictError(
                f"Claim {self.claim_id} is {current.status.value}, expected {expected.value}",
                self.claim_id,
            )

        side_effects = dict(side_effects or {})
        unknown = set(side_effects) - TRANSITION_FIELDS
        if unknown:
            raise ValueError(f"Transition may not write fields: {sorted(unknown)}")

        side_effects["status"] = next_status
        side_effects["updated_at"] = datetime.now()
        self._claim = current.model_copy(update=side_effects)
        return self.get()

    def replace(self, claim: Claim) -> Claim:
        if claim.claim_id != self.claim_id:
            raise ValueError(f"Transaction is scoped to claim {self.claim_id}, got {claim.claim_id}")
        self._current()  # NotFound check
        self._claim = claim.model_copy(deep=True)
        return self.get()

    def next_approval_id(self) -> int:
        return self._store._next_approval_id()

    def append_approval(self, record: ApprovalRecord) -> ApprovalRecord:
        if record.claim_id != self.claim_id:
            raise ValueError(f"Transaction is scoped to claim {self.claim_id}, got {record.claim_id}")
        self._records.append(record)
        return record

    def on_commit(self, callback: Callable[[], None]) -> None:
        self._after_commit.append(callback)

    def _apply(self) -> None:
        self._store._apply(self.claim_id, self._claim, self._records)

    def _run_after_commit(self) -> None:
        # Writes are already visible; a failing callback must not undo them.
        for callback in self._after_commit:
            try:
                callback()
            except Exception:
                logger.exception(f"After-commit callback failed for claim {self.claim_id}")


class InMemoryClaimStore:
    """
    Dict-backed claim store.

    Reads return copies, so callers can never mutate stored state directly;
    every write goes through ``add_claim`` or a ``transaction``.
    """

    def __init__(self, first_claim_id: int = 1001, lock_timeout: float = 5.0):
        self.lock_timeout = lock_timeout
        self._claims: Dict[int, Claim] = {}
        self._approvals: Dict[int, List[ApprovalRecord]] = {}
        self._claim_ids = itertools.count(first_claim_id)
        self._approval_ids = itertools.count(1)
        self._guard = threading.Lock()
        self._claim_locks: Dict[int, threading.Lock] = {}

    def next_claim_id(self) -> int:
        with self._guard:
            return next(self._claim_ids)

    def _next_approval_id(self) -> int:
        with self._guard:
            return next(self._approval_ids)

    def add_claim(self, claim: Claim) -> Claim:
        with self._guard:
            if claim.claim_id in self._claims:
                raise StorageError(f"Claim {claim.claim_id} already exists", claim.claim_id)
            self._claims[claim.claim_id] = claim.model_copy(deep=True)
            self._approvals[claim.claim_id] = []
        logger.info(f"Stored claim {claim.claim_id} ({claim.status.value})")
        return claim.model_copy(deep=True)

    def get(self, claim_id: int) -> Claim:
        claim = self._claims.get(claim_id)
        if claim is None:
            raise ClaimNotFoundError(f"Claim {claim_id} not found", claim_id)
        return claim.model_copy(deep=True)

    def list_claims(self) -> List[Claim]:
        with self._guard:
            claims = list(self._claims.values())
        return [c.model_copy(deep=True) for c in claims]

    def approvals_for(self, claim_id: int) -> List[ApprovalRecord]:
        if claim_id not in self._claims:
            raise ClaimNotFoundError(f"Claim {claim_id} not found", claim_id)
        with self._guard:
            return list(self._approvals.get(claim_id, []))

    def _lock_for(self, claim_id: int) -> threading.Lock:
        with self._guard:
            lock = self._claim_locks.get(claim_id)
            if lock is None:
                lock = self._claim_locks[claim_id] = threading.Lock()
            return lock

    @contextmanager
    def transaction(self, claim_id: int) -> Iterator[MemoryTransaction]:
        lock = self._lock_for(claim_id)
        if not lock.acquire(timeout=self.lock_timeout):
            raise StorageError(
                f"Timed out after {self.lock_timeout}s waiting for claim {claim_id}", claim_id
            )
        try:
            tx = MemoryTransaction(self, claim_id)
            yield tx
            tx._apply()
            tx._run_after_commit()
        finally:
            lock.release()

    def _apply(self, claim_id: int, claim: Optional[Claim], records: List[ApprovalRecord]) -> None:
        with self._guard:
            if claim is not None:
                self._claims[claim_id] = claim
            if records:
                self._approvals.setdefault(claim_id, []).extend(records)
