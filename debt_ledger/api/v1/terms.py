"""/v1/terms - installment term endpoints"""

import uuid
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from debt_ledger.api.dependencies import get_request_id, to_http_error
from debt_ledger.api.v1.schemas import PenaltyPreview, SweepResponse, TermSchema, TermStatusUpdate
from debt_ledger.domain.exceptions import DomainException
from debt_ledger.infrastructure.database.models import InstallmentTerm
from debt_ledger.infrastructure.database.session import get_db
from debt_ledger.services.terms import TermService

router = APIRouter()


def _term(term: InstallmentTerm) -> TermSchema:
    return TermSchema(
        term_id=term.id,
        term_number=term.term_number,
        due_date=term.due_date,
        amount_cents=term.amount_cents,
        penalty_cents=term.penalty_cents,
        status=term.status,
    )


@router.post("/terms/mark-delinquent", response_model=SweepResponse)
def mark_delinquent(
    request: Request,
    as_of: Optional[date] = Query(None, description="Defaults to today"),
    db: Session = Depends(get_db),
):
    """Move overdue UNPAID terms to DELINQUENT"""
    try:
        return SweepResponse(updated=TermService(db).mark_delinquent(as_of))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.put("/terms/{term_id}/status", response_model=TermSchema)
def set_term_status(term_id: uuid.UUID, body: TermStatusUpdate, request: Request, db: Session = Depends(get_db)):
    try:
        return _term(TermService(db).set_term_status(term_id, body.status))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.get("/terms/{term_id}/skip-penalty", response_model=PenaltyPreview)
def preview_skip_penalty(term_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        return PenaltyPreview(term_id=term_id, penalty_cents=TermService(db).preview_skip_penalty(term_id))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.post("/terms/{term_id}/skip", response_model=TermSchema)
def skip_term(term_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    """Skip a term; its penalty is added to the entry balance"""
    try:
        return _term(TermService(db).skip_term(term_id))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))
