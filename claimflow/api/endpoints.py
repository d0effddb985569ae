"""
FastAPI Endpoints for the Claim Workflow

Provides REST API for creating claims and moving them through approval.
"""
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from claimflow.core.errors import WorkflowError
from claimflow.core.models import ApprovalRecord, Claim, ClaimCreate, ClaimUpdate, TransitionResult
from claimflow.core.states import ClaimStatus, Role, WorkflowAction
from claimflow.services.workflow import PaymentBatchResult, WorkflowService, WorkflowStats

logger = logging.getLogger(__name__)

# Initialize router
router = APIRouter(prefix="/claims", tags=["claims"])

ERROR_STATUS_CODES = {
    "InvalidTransition": status.HTTP_400_BAD_REQUEST,
    "Conflict": status.HTTP_409_CONFLICT,
    "NotFound": status.HTTP_404_NOT_FOUND,
    "StorageError": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_service(request: Request) -> WorkflowService:
    return request.app.state.workflow_service


def _raise_http(error: WorkflowError) -> NoReturn:
    raise HTTPException(
        status_code=ERROR_STATUS_CODES.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.to_dict(),
    )


class ClaimResponse(BaseModel):
    """Response model for claim operations."""
    claim: Claim
    message: str
    available_actions: List[WorkflowAction]


class TransitionRequest(BaseModel):
    """Request model for an approver acting on a claim."""
    action: WorkflowAction
    actor_id: int = Field(..., gt=0)
    actor_role: Role
    expected_status: ClaimStatus = Field(..., description="Status the approver last saw")
    notes: str = Field(default="", max_length=1000)


class SubmitRequest(BaseModel):
    """Request model for an owner submitting a draft."""
    lecturer_id: int = Field(..., gt=0)
    expected_status: ClaimStatus = ClaimStatus.DRAFT


class PaymentRequest(BaseModel):
    """Request model for a batch of HR payments."""
    claim_ids: List[int] = Field(..., min_length=1)
    actor_id: int = Field(..., gt=0)
    actor_role: Role = Role.HR
    notes: str = Field(default="", max_length=1000)


class ApprovalHistoryResponse(BaseModel):
    """Response model for a claim's audit trail."""
    claim_id: int
    current_status: ClaimStatus
    approvals: List[ApprovalRecord]


def _claim_response(service: WorkflowService, claim: Claim, message: str) -> ClaimResponse:
    return ClaimResponse(
        claim=claim,
        message=message,
        available_actions=service.get_available_actions(claim.status),
    )


@router.post("/", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def create_claim(
    claim_data: ClaimCreate,
    service: WorkflowService = Depends(get_service),
) -> ClaimResponse:
    """
    Create a new claim.

    The amount is computed from hours and rate. Unless ``submit`` is false the
    claim is submitted straight away and coordinators are notified.
    """
    try:
        claim = await service.create_claim(claim_data)
    except WorkflowError as e:
        _raise_http(e)

    return _claim_response(service, claim, f"Claim #{claim.claim_id} created as {claim.status.value}")


@router.get("/", response_model=List[Claim])
async def list_claims(
    status_filter: Optional[ClaimStatus] = Query(default=None, alias="status"),
    lecturer_id: Optional[int] = None,
    service: WorkflowService = Depends(get_service),
) -> List[Claim]:
    """
    List claims, optionally filtered by status or owner.
    """
    return service.list_claims(status=status_filter, lecturer_id=lecturer_id)


@router.get("/stats", response_model=WorkflowStats)
async def get_stats(service: WorkflowService = Depends(get_service)) -> WorkflowStats:
    """Summary statistics across all claims."""
    return service.get_stats()


@router.get("/pending/{role}", response_model=List[Claim])
async def pending_for_role(role: Role, service: WorkflowService = Depends(get_service)) -> List[Claim]:
    """
    The approval queue for a role.
    """
    return service.pending_for_role(role)


@router.get("/workflow/{claim_status}/actions", response_model=List[WorkflowAction])
async def workflow_actions(
    claim_status: ClaimStatus,
    service: WorkflowService = Depends(get_service),
) -> List[WorkflowAction]:
    """Actions available from a status, for building UI controls."""
    return service.get_available_actions(claim_status)


@router.post("/payments", response_model=PaymentBatchResult)
async def process_payments(
    request: PaymentRequest,
    service: WorkflowService = Depends(get_service),
) -> PaymentBatchResult:
    """
    Pay a batch of approved claims. Claims that cannot be paid are reported,
    not raised.
    """
    return await service.process_payments(
        request.claim_ids, request.actor_id, request.actor_role, request.notes
    )


@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(claim_id: int, service: WorkflowService = Depends(get_service)) -> ClaimResponse:
    """
    Get details of a specific claim.
    """
    try:
        claim = service.get_claim(claim_id)
    except WorkflowError as e:
        _raise_http(e)

    return _claim_response(service, claim, f"Claim {claim_id} retrieved")


@router.patch("/{claim_id}", response_model=ClaimResponse)
async def update_draft(
    claim_id: int,
    update: ClaimUpdate,
    service: WorkflowService = Depends(get_service),
) -> ClaimResponse:
    """
    Edit a draft claim. Hours or rate changes recompute the amount.
    """
    try:
        claim = await service.update_draft(claim_id, update)
    except WorkflowError as e:
        _raise_http(e)

    return _claim_response(service, claim, f"Draft claim {claim_id} updated")


@router.post("/{claim_id}/submit", response_model=ClaimResponse)
async def submit_claim(
    claim_id: int,
    request: SubmitRequest,
    service: WorkflowService = Depends(get_service),
) -> ClaimResponse:
    """
    Submit a draft claim for coordinator review.
    """
    try:
        claim = await service.submit_claim(claim_id, request.lecturer_id, request.expected_status)
    except WorkflowError as e:
        _raise_http(e)

    return _claim_response(
        service,
        claim,
        f"Claim #{claim_id} submitted successfully! It will now be reviewed by the Coordinator.",
    )


@router.post("/{claim_id}/transitions", response_model=TransitionResult)
async def transition_claim(
    claim_id: int,
    request: TransitionRequest,
    service: WorkflowService = Depends(get_service),
) -> TransitionResult:
    """
    Approve, reject or pay a claim.

    ``expected_status`` must match the stored status, otherwise the request is
    refused with 409 and the caller should reload the claim.
    """
    try:
        return await service.transition(
            claim_id,
            request.action,
            request.actor_id,
            request.actor_role,
            request.expected_status,
            request.notes,
        )
    except WorkflowError as e:
        _raise_http(e)


@router.get("/{claim_id}/approvals", response_model=ApprovalHistoryResponse)
async def get_claim_approvals(
    claim_id: int,
    service: WorkflowService = Depends(get_service),
) -> ApprovalHistoryResponse:
    """
    Get the approval audit trail for a claim, oldest first.
    """
    try:
        claim = service.get_claim(claim_id)
        approvals = service.history(claim_id)
    except WorkflowError as e:
        _raise_http(e)

    return ApprovalHistoryResponse(
        claim_id=claim_id,
        current_status=claim.status,
        approvals=approvals,
    )
