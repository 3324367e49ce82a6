"""/v1/entries - ledger entry lifecycle endpoints"""

import uuid
from typing import List
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from debt_ledger.api.dependencies import get_acting_user, get_request_id, to_http_error
from debt_ledger.api.v1.schemas import (
    EntryCreate,
    EntryResponse,
    EntryUpdate,
    ScheduleResponse,
    SummaryResponse,
    SweepResponse,
    TermSchema,
)
from debt_ledger.domain.exceptions import DomainException
from debt_ledger.domain.models import Borrower, ScheduleRule
from debt_ledger.infrastructure.database.models import LedgerEntry
from debt_ledger.infrastructure.database.session import get_db
from debt_ledger.services.entries import EntryService

router = APIRouter()


def entry_response(entry: LedgerEntry) -> EntryResponse:
    return EntryResponse(
        entry_id=entry.id,
        reference_code=entry.reference_code,
        name=entry.name,
        shape=entry.shape,
        principal_cents=entry.principal_cents,
        remaining_cents=entry.remaining_cents,
        penalty_cents=entry.penalty_cents,
        status=entry.status,
        lender_id=entry.lender_id,
        borrower_person_id=entry.borrower_person_id,
        borrower_group_id=entry.borrower_group_id,
        payment_method=entry.payment_method,
        description=entry.description,
        notes=entry.notes,
        recorded_on=entry.recorded_on,
        proof_ref=entry.proof_ref,
        completed=entry.completed_at is not None,
        created_at=entry.created_at.isoformat(),
    )


@router.post("/entries", response_model=EntryResponse, status_code=201)
def create_entry(body: EntryCreate, request: Request, db: Session = Depends(get_db)):
    """
    Create a ledger entry.

    INSTALLMENT entries get their full term schedule in the same transaction.
    GROUP entries are split across members with a separate allocations call.
    """
    try:
        borrower = Borrower.from_ids(body.borrower_person_id, body.borrower_group_id)
        schedule = None
        if body.schedule is not None:
            schedule = ScheduleRule(
                start_date=body.schedule.start_date,
                frequency=body.schedule.frequency,
                selector=body.schedule.selector,
                term_count=body.schedule.term_count,
            )

        entry = EntryService(db).create_entry(
            name=body.name,
            shape=body.shape,
            principal_cents=body.principal_cents,
            lender_id=body.lender_id,
            borrower=borrower,
            payment_method=body.payment_method,
            schedule=schedule,
            description=body.description,
            notes=body.notes,
            recorded_on=body.recorded_on,
            proof_ref=body.proof_ref,
        )
        return entry_response(entry)
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.get("/entries", response_model=List[EntryResponse])
def list_entries(
    request: Request,
    acting_user: str = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    """Entries where the acting user is exactly one of lender, borrower or borrower-group member"""
    try:
        return [entry_response(entry) for entry in EntryService(db).list_entries(acting_user)]
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.post("/entries/reconcile", response_model=SweepResponse)
def reconcile_entries(request: Request, db: Session = Depends(get_db)):
    """Recompute every balance from payment history"""
    try:
        return SweepResponse(updated=EntryService(db).reconcile_all())
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.get("/entries/{entry_id}", response_model=EntryResponse)
def get_entry(entry_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        return entry_response(EntryService(db).get_entry(entry_id))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.patch("/entries/{entry_id}", response_model=EntryResponse)
def update_entry(entry_id: uuid.UUID, body: EntryUpdate, request: Request, db: Session = Depends(get_db)):
    try:
        entry = EntryService(db).update_entry(entry_id, body.model_dump(exclude_unset=True))
        return entry_response(entry)
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.post("/entries/{entry_id}/complete", response_model=EntryResponse)
def complete_entry(entry_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        return entry_response(EntryService(db).complete_entry(entry_id))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.delete("/entries/{entry_id}", status_code=204)
def delete_entry(entry_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        EntryService(db).delete_entry(entry_id)
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.get("/entries/{entry_id}/schedule", response_model=ScheduleResponse)
def get_schedule(entry_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        terms = EntryService(db).get_schedule(entry_id)
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))

    return ScheduleResponse(
        entry_id=entry_id,
        terms=[
            TermSchema(
                term_id=term.id,
                term_number=term.term_number,
                due_date=term.due_date,
                amount_cents=term.amount_cents,
                penalty_cents=term.penalty_cents,
                status=term.status,
            )
            for term in terms
        ],
    )


@router.get("/entries/{entry_id}/summary", response_model=SummaryResponse)
def get_summary(entry_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        summary = EntryService(db).summarize(entry_id)
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))

    return SummaryResponse(
        entry_id=summary.entry_id,
        principal_cents=summary.principal_cents,
        penalty_cents=summary.penalty_cents,
        total_paid_cents=summary.total_paid_cents,
        remaining_cents=summary.remaining_cents,
        status=summary.status,
        next_due_date=summary.next_due_date,
        next_due_amount_cents=summary.next_due_amount_cents,
    )
