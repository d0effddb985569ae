"""
Claim Pydantic Models

Defines the claim, its line items and its approval records with validation.
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .states import ApprovalOutcome, ClaimStatus, Role

CENTS = Decimal("0.01")

# Fields a workflow transition may write besides the status itself.
# Amount, hours and rate are never written by a transition.
TRANSITION_FIELDS = frozenset({"approved_date", "approved_by", "notes", "submitted_date"})


def compute_amount(total_hours: Decimal, hourly_rate: Decimal) -> Decimal:
    """Amount owed for a claim, rounded to cents."""
    return (total_hours * hourly_rate).quantize(CENTS, rounding=ROUND_HALF_UP)


class ClaimItem(BaseModel):
    """A single teaching session contributing hours to a claim."""
    work_date: date = Field(..., description="Day the hours were worked")
    hours_worked: Decimal = Field(..., ge=Decimal("0.5"), le=Decimal("24"))
    module: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)


class ClaimCreate(BaseModel):
    """Request model for creating a new claim."""
    lecturer_id: int = Field(..., gt=0, description="Id of the lecturer who owns the claim")
    claim_month: date = Field(..., description="Month the hours were worked in")
    total_hours: Decimal = Field(..., ge=Decimal("0.5"), le=Decimal("200"))
    hourly_rate: Decimal = Field(default=Decimal("250"), ge=Decimal("100"), le=Decimal("1000"))
    notes: str = Field(default="", max_length=500)
    items: List[ClaimItem] = Field(default_factory=list)
    submit: bool = Field(
        default=True,
        description="Submit immediately instead of keeping the claim as a draft"
    )


class ClaimUpdate(BaseModel):
    """Request model for editing a draft claim. Omitted fields are left as they are."""
    lecturer_id: int = Field(..., gt=0, description="Owner making the edit")
    total_hours: Optional[Decimal] = Field(default=None, ge=Decimal("0.5"), le=Decimal("200"))
    hourly_rate: Optional[Decimal] = Field(default=None, ge=Decimal("100"), le=Decimal("1000"))
    notes: Optional[str] = Field(default=None, max_length=500)
    items: Optional[List[ClaimItem]] = None


class Claim(BaseModel):
    """
    Lecturer Claim Model

    ``status`` is the single source of truth for the claim's workflow position.
    Approvals are not embedded; they are looked up by ``claim_id`` through the
    audit trail.
    """
    claim_id: int = Field(..., description="Store-assigned identifier")
    lecturer_id: int = Field(..., description="Owner of the claim")
    claim_month: date
    total_hours: Decimal
    hourly_rate: Decimal
    amount: Decimal = Field(default=Decimal("0.00"), description="total_hours x hourly_rate")
    notes: str = ""
    status: ClaimStatus = ClaimStatus.DRAFT
    submitted_date: Optional[datetime] = None
    approved_date: Optional[datetime] = None
    approved_by: Optional[int] = None
    items: List[ClaimItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: Optional[datetime] = None

    def calculate_amount(self) -> Decimal:
        """Recompute ``amount`` from hours and rate."""
        self.amount = compute_amount(self.total_hours, self.hourly_rate)
        return self.amount


class ApprovalRecord(BaseModel):
    """Immutable audit entry written for every committed transition."""
    model_config = ConfigDict(frozen=True)

    approval_id: int
    claim_id: int
    approver_id: int
    approver_role: Role
    timestamp: datetime
    outcome: ApprovalOutcome
    notes: str = ""
    from_status: ClaimStatus
    to_status: ClaimStatus


class TransitionResult(BaseModel):
    """What a caller gets back from a committed transition."""
    claim_id: int
    previous_status: ClaimStatus
    new_status: ClaimStatus
    message: str
    record: Optional[ApprovalRecord] = None
