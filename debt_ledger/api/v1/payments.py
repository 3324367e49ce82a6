"""/v1/payments - payment recording endpoints"""

import uuid
from datetime import date
from typing import List
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from debt_ledger.api.dependencies import get_acting_user, get_request_id, to_http_error
from debt_ledger.api.v1.schemas import PaymentCreate, PaymentResponse, PaymentResult, PaymentUpdate
from debt_ledger.domain.exceptions import DomainException
from debt_ledger.infrastructure.database.models import Payment
from debt_ledger.infrastructure.database.session import get_db
from debt_ledger.services.payments import PaymentService

router = APIRouter()


def _payment(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=payment.id,
        amount_cents=payment.amount_cents,
        paid_on=payment.paid_on,
        payer_id=payment.payer_id,
        entry_ids=[link.entry_id for link in payment.entry_links],
        allocation_id=payment.allocation_link.allocation_id if payment.allocation_link else None,
        proof_ref=payment.proof_ref,
        notes=payment.notes,
    )


@router.post("/payments", response_model=PaymentResult, status_code=201)
def create_payment(body: PaymentCreate, request: Request, db: Session = Depends(get_db)):
    """
    Apply a payment to an entry.

    Returns the applied amount and any change; overpayment is never stored.
    """
    try:
        outcome = PaymentService(db).create_payment(
            entry_id=body.entry_id,
            amount_cents=body.amount_cents,
            paid_on=body.paid_on or date.today(),
            payer_id=body.payer_id,
            allocation_id=body.allocation_id,
            proof_ref=body.proof_ref,
            notes=body.notes,
        )
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))

    return PaymentResult(
        payment_id=outcome.payment.id,
        applied_cents=outcome.applied_cents,
        change_cents=outcome.change_cents,
        remaining_cents=outcome.remaining_cents,
        entry_status=outcome.status,
    )


@router.get("/payments", response_model=List[PaymentResponse])
def list_payments(
    request: Request,
    acting_user: str = Depends(get_acting_user),
    db: Session = Depends(get_db),
):
    try:
        return [_payment(payment) for payment in PaymentService(db).list_payments(acting_user)]
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        return _payment(PaymentService(db).get_payment(payment_id))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.patch("/payments/{payment_id}", response_model=PaymentResponse)
def update_payment(payment_id: uuid.UUID, body: PaymentUpdate, request: Request, db: Session = Depends(get_db)):
    try:
        payment = PaymentService(db).update_payment(
            payment_id,
            amount_cents=body.amount_cents,
            paid_on=body.paid_on,
            proof_ref=body.proof_ref,
            notes=body.notes,
        )
        return _payment(payment)
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.delete("/payments/{payment_id}", status_code=204)
def delete_payment(payment_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        PaymentService(db).delete_payment(payment_id)
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))
