"""/v1/entries/{entry_id}/allocations and /v1/allocations - group expense split endpoints"""

import uuid
from typing import List
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from debt_ledger.api.dependencies import get_request_id, to_http_error
from debt_ledger.api.v1.schemas import AllocationBatch, AllocationRebalance, AllocationResponse, AllocationUpdate
from debt_ledger.domain.exceptions import DomainException
from debt_ledger.domain.models import AllocationRequest
from debt_ledger.infrastructure.database.session import get_db
from debt_ledger.services.allocations import AllocationService, AllocationView

router = APIRouter()


def _allocation(view: AllocationView) -> AllocationResponse:
    allocation = view.allocation
    return AllocationResponse(
        allocation_id=allocation.id,
        entry_id=allocation.entry_id,
        person_id=allocation.person_id,
        amount_cents=allocation.amount_cents,
        description=allocation.description,
        paid_cents=view.paid_cents,
        status=view.status,
        percent_of_total=round(view.share * 100, 2),
    )


@router.post("/entries/{entry_id}/allocations", response_model=List[AllocationResponse], status_code=201)
def create_allocations(entry_id: uuid.UUID, body: AllocationBatch, request: Request, db: Session = Depends(get_db)):
    """Split a group entry; the batch is rejected as a whole unless it sums to the principal"""
    service = AllocationService(db)
    try:
        service.create_allocations(
            entry_id,
            [AllocationRequest(item.person_id, item.amount_cents, item.description) for item in body.allocations],
        )
        return [_allocation(view) for view in service.list_allocations(entry_id)]
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.get("/entries/{entry_id}/allocations", response_model=List[AllocationResponse])
def list_allocations(entry_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    """Allocations with status derived from payments at read time"""
    try:
        return [_allocation(view) for view in AllocationService(db).list_allocations(entry_id)]
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.put("/entries/{entry_id}/allocations", response_model=List[AllocationResponse])
def rebalance_allocations(
    entry_id: uuid.UUID,
    body: AllocationRebalance,
    request: Request,
    db: Session = Depends(get_db),
):
    """Change several amounts at once; the new total must still equal the principal"""
    service = AllocationService(db)
    try:
        service.rebalance_allocations(entry_id, body.amounts)
        return [_allocation(view) for view in service.list_allocations(entry_id)]
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.patch("/allocations/{allocation_id}", response_model=AllocationResponse)
def update_allocation(
    allocation_id: uuid.UUID,
    body: AllocationUpdate,
    request: Request,
    db: Session = Depends(get_db),
):
    service = AllocationService(db)
    try:
        service.update_allocation(
            allocation_id,
            amount_cents=body.amount_cents,
            description=body.description,
            person_id=body.person_id,
        )
        return _allocation(service.get_allocation(allocation_id))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.delete("/allocations/{allocation_id}", status_code=204)
def delete_allocation(allocation_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        AllocationService(db).delete_allocation(allocation_id)
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))
