# tests/test_store.py
from datetime import date, datetime
from decimal import Decimal

import pytest

from claimflow.core.errors import ClaimNotFoundError, ConflictError, StorageError
from claimflow.core.models import ApprovalRecord, Claim
from claimflow.core.states import ApprovalOutcome, ClaimStatus, Role


def _stored_claim(store, status=ClaimStatus.SUBMITTED) -> Claim:
    claim = Claim(
        claim_id=store.next_claim_id(),
        lecturer_id=7,
        claim_month=date(2026, 9, 1),
        total_hours=Decimal("10"),
        hourly_rate=Decimal("300"),
        status=status,
    )
    claim.calculate_amount()
    return store.add_claim(claim)


def _record(tx, claim_id) -> ApprovalRecord:
    return ApprovalRecord(
        approval_id=tx.next_approval_id(),
        claim_id=claim_id,
        approver_id=21,
        approver_role=Role.COORDINATOR,
        timestamp=datetime.now(),
        outcome=ApprovalOutcome.APPROVED,
        from_status=ClaimStatus.SUBMITTED,
        to_status=ClaimStatus.WITH_MANAGER,
    )


def test_claim_ids_start_at_configured_value(store):
    first = _stored_claim(store)
    second = _stored_claim(store)
    assert first.claim_id == 1001
    assert second.claim_id == 1002


def test_add_claim_refuses_duplicate_id(store):
    claim = _stored_claim(store)
    with pytest.raises(StorageError):
        store.add_claim(claim)


def test_get_unknown_claim_raises_not_found(store):
    with pytest.raises(ClaimNotFoundError) as exc_info:
        store.get(4242)
    assert exc_info.value.claim_id == 4242
    with pytest.raises(ClaimNotFoundError):
        store.approvals_for(4242)


def test_reads_are_copies(store):
    claim = _stored_claim(store)
    fetched = store.get(claim.claim_id)
    fetched.status = ClaimStatus.PAID
    assert store.get(claim.claim_id).status == ClaimStatus.SUBMITTED


def test_transaction_commits_status_and_record_together(store):
    claim = _stored_claim(store)
    with store.transaction(claim.claim_id) as tx:
        tx.compare_and_swap_status(ClaimStatus.SUBMITTED, ClaimStatus.WITH_MANAGER)
        tx.append_approval(_record(tx, claim.claim_id))
        # Nothing is visible before the block exits
        assert store.get(claim.claim_id).status == ClaimStatus.SUBMITTED
        assert store.approvals_for(claim.claim_id) == []

    assert store.get(claim.claim_id).status == ClaimStatus.WITH_MANAGER
    assert len(store.approvals_for(claim.claim_id)) == 1


def test_compare_and_swap_with_stale_expectation_conflicts(store):
    claim = _stored_claim(store, status=ClaimStatus.WITH_MANAGER)
    with pytest.raises(ConflictError):
        with store.transaction(claim.claim_id) as tx:
            tx.compare_and_swap_status(ClaimStatus.SUBMITTED, ClaimStatus.WITH_MANAGER)

    assert store.get(claim.claim_id).status == ClaimStatus.WITH_MANAGER


def test_failed_transaction_discards_all_staged_writes(store):
    claim = _stored_claim(store)
    with pytest.raises(RuntimeError):
        with store.transaction(claim.claim_id) as tx:
            tx.compare_and_swap_status(ClaimStatus.SUBMITTED, ClaimStatus.WITH_MANAGER)
            tx.append_approval(_record(tx, claim.claim_id))
            raise RuntimeError("audit write failed")

    assert store.get(claim.claim_id).status == ClaimStatus.SUBMITTED
    assert store.approvals_for(claim.claim_id) == []


def test_side_effects_cannot_touch_money(store):
    claim = _stored_claim(store)
    with pytest.raises(ValueError):
        with store.transaction(claim.claim_id) as tx:
            tx.compare_and_swap_status(
                ClaimStatus.SUBMITTED, ClaimStatus.WITH_MANAGER, {"amount": Decimal("1")}
            )
    assert store.get(claim.claim_id).amount == Decimal("3000.00")


def test_lock_timeout_surfaces_as_storage_error(store):
    claim = _stored_claim(store)
    with store.transaction(claim.claim_id):
        with pytest.raises(StorageError) as exc_info:
            with store.transaction(claim.claim_id):
                pass
    assert "Timed out" in exc_info.value.message

    # Lock is released again afterwards
    with store.transaction(claim.claim_id) as tx:
        assert tx.get().claim_id == claim.claim_id


def test_on_commit_runs_after_writes_and_only_on_success(store):
    claim = _stored_claim(store)
    seen = []

    with store.transaction(claim.claim_id) as tx:
        tx.compare_and_swap_status(ClaimStatus.SUBMITTED, ClaimStatus.WITH_MANAGER)
        tx.on_commit(lambda: seen.append(store.get(claim.claim_id).status))
    assert seen == [ClaimStatus.WITH_MANAGER]

    with pytest.raises(ConflictError):
        with store.transaction(claim.claim_id) as tx:
            tx.on_commit(lambda: seen.append("should not run"))
            tx.compare_and_swap_status(ClaimStatus.SUBMITTED, ClaimStatus.REJECTED)
    assert seen == [ClaimStatus.WITH_MANAGER]


def test_failing_on_commit_callback_keeps_the_commit(store, caplog):
    claim = _stored_claim(store)

    def boom():
        raise RuntimeError("subscriber exploded")

    with store.transaction(claim.claim_id) as tx:
        tx.compare_and_swap_status(ClaimStatus.SUBMITTED, ClaimStatus.WITH_MANAGER)
        tx.on_commit(boom)

    assert store.get(claim.claim_id).status == ClaimStatus.WITH_MANAGER
    assert "After-commit callback failed" in caplog.text
