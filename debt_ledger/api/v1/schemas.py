"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from debt_ledger.domain.models import EntryStatus, Frequency, TermStatus, TransactionShape


# Directory

class PersonCreate(BaseModel):
    """Request body for POST /v1/persons"""

    full_name: str = Field(..., min_length=1)


class PersonResponse(BaseModel):
    person_id: uuid.UUID
    full_name: str


class GroupCreate(BaseModel):
    """Request body for POST /v1/groups"""

    name: str = Field(..., min_length=1)
    member_ids: List[uuid.UUID] = Field(default_factory=list)


class MemberRequest(BaseModel):
    person_id: uuid.UUID


class GroupResponse(BaseModel):
    group_id: uuid.UUID
    name: str
    member_ids: List[uuid.UUID]


# Entries

class ScheduleSchema(BaseModel):
    """Recurrence rule for an installment entry"""

    start_date: date
    frequency: Frequency
    selector: int = Field(..., description="Weekday 0-6 (Monday=0) or day of month 1-28")
    term_count: int = Field(..., gt=0)


class EntryCreate(BaseModel):
    """Request body for POST /v1/entries"""

    name: str = Field(..., min_length=1)
    shape: TransactionShape
    principal_cents: int = Field(..., gt=0)
    lender_id: uuid.UUID
    borrower_person_id: Optional[uuid.UUID] = None
    borrower_group_id: Optional[uuid.UUID] = None
    payment_method: Optional[str] = None
    schedule: Optional[ScheduleSchema] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    recorded_on: Optional[date] = None
    proof_ref: Optional[str] = None


class EntryUpdate(BaseModel):
    """Request body for PATCH /v1/entries/{entry_id}; metadata fields only"""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    recorded_on: Optional[date] = None
    proof_ref: Optional[str] = None


class EntryResponse(BaseModel):
    entry_id: uuid.UUID
    reference_code: str
    name: str
    shape: TransactionShape
    principal_cents: int
    remaining_cents: int
    penalty_cents: int
    status: EntryStatus
    lender_id: uuid.UUID
    borrower_person_id: Optional[uuid.UUID] = None
    borrower_group_id: Optional[uuid.UUID] = None
    payment_method: str
    description: Optional[str] = None
    notes: Optional[str] = None
    recorded_on: Optional[date] = None
    proof_ref: Optional[str] = None
    completed: bool
    created_at: str


class TermSchema(BaseModel):
    """Single installment term"""

    term_id: uuid.UUID
    term_number: int
    due_date: date
    amount_cents: int
    penalty_cents: int
    status: TermStatus


class ScheduleResponse(BaseModel):
    entry_id: uuid.UUID
    terms: List[TermSchema]


class SummaryResponse(BaseModel):
    entry_id: uuid.UUID
    principal_cents: int
    penalty_cents: int
    total_paid_cents: int
    remaining_cents: int
    status: EntryStatus
    next_due_date: Optional[date] = None
    next_due_amount_cents: Optional[int] = None


class SweepResponse(BaseModel):
    updated: int


# Allocations

class AllocationItem(BaseModel):
    person_id: uuid.UUID
    amount_cents: int = Field(..., ge=0)
    description: str = ""


class AllocationBatch(BaseModel):
    """Request body for POST /v1/entries/{entry_id}/allocations"""

    allocations: List[AllocationItem] = Field(..., min_length=1)


class AllocationRebalance(BaseModel):
    """New amounts keyed by allocation id; unlisted allocations keep theirs"""

    amounts: Dict[uuid.UUID, int] = Field(..., min_length=1)


class AllocationUpdate(BaseModel):
    person_id: Optional[uuid.UUID] = None
    amount_cents: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None


class AllocationResponse(BaseModel):
    allocation_id: uuid.UUID
    entry_id: uuid.UUID
    person_id: uuid.UUID
    amount_cents: int
    description: Optional[str] = None
    paid_cents: int
    status: EntryStatus
    percent_of_total: float


# Payments

class PaymentCreate(BaseModel):
    """Request body for POST /v1/payments"""

    entry_id: uuid.UUID
    payer_id: uuid.UUID
    amount_cents: int = Field(..., gt=0)
    paid_on: Optional[date] = None
    allocation_id: Optional[uuid.UUID] = None
    proof_ref: Optional[str] = None
    notes: Optional[str] = None


class PaymentUpdate(BaseModel):
    amount_cents: Optional[int] = Field(default=None, gt=0)
    paid_on: Optional[date] = None
    proof_ref: Optional[str] = None
    notes: Optional[str] = None


class PaymentResult(BaseModel):
    """Response for POST /v1/payments"""

    payment_id: uuid.UUID
    applied_cents: int
    change_cents: int
    remaining_cents: int
    entry_status: EntryStatus


class PaymentResponse(BaseModel):
    payment_id: uuid.UUID
    amount_cents: int
    paid_on: date
    payer_id: uuid.UUID
    entry_ids: List[uuid.UUID]
    allocation_id: Optional[uuid.UUID] = None
    proof_ref: Optional[str] = None
    notes: Optional[str] = None


# Terms

class TermStatusUpdate(BaseModel):
    status: TermStatus


class PenaltyPreview(BaseModel):
    term_id: uuid.UUID
    penalty_cents: int
