"""Allocation splitter: member shares of group expenses and their derived status"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from debt_ledger.domain.balances import allocation_status, share_of_total
from debt_ledger.domain.exceptions import NotFoundError, ValidationError
from debt_ledger.domain.models import AllocationRequest, EntryStatus, TransactionShape
from debt_ledger.infrastructure.database.models import LedgerEntry, PaymentAllocation
from debt_ledger.infrastructure.database.repositories import (
    AllocationRepository,
    EntryRepository,
    GroupRepository,
)
from debt_ledger.infrastructure.database.session import atomic
from debt_ledger.services.locking import entry_locks

logger = logging.getLogger(__name__)


@dataclass
class AllocationView:
    """Allocation with its status and share computed at read time"""

    allocation: PaymentAllocation
    paid_cents: int
    status: EntryStatus
    share: float


class AllocationService:
    """Split a group expense across members and track each member's share"""

    def __init__(self, db: Session):
        self.db = db
        self.entries = EntryRepository(db)
        self.groups = GroupRepository(db)
        self.allocations = AllocationRepository(db)

    def create_allocations(self, entry_id: uuid.UUID, requests: List[AllocationRequest]) -> List[PaymentAllocation]:
        """
        Create a batch of allocations for a GROUP entry.

        Every person must be a current member of the borrower group, appear at
        most once per entry, and the entry's allocations (existing plus new)
        must add up to the principal exactly. Any failure aborts the batch.
        """
        if not requests:
            raise ValidationError("at least one allocation is required")

        with entry_locks.hold(entry_id), atomic(self.db):
            entry = self._group_entry(entry_id)
            existing = self.allocations.for_entry(entry.id)
            taken = {allocation.person_id for allocation in existing}

            for request in requests:
                if request.amount_cents < 0:
                    raise ValidationError("allocation amount cannot be negative")
                self._check_member(entry, request.person_id)
                if request.person_id in taken:
                    raise ValidationError(f"person {request.person_id} already has an allocation on this entry")
                taken.add(request.person_id)

            total = sum(a.amount_cents for a in existing) + sum(r.amount_cents for r in requests)
            self._check_total(entry, total)

            created = [
                self.allocations.create(entry.id, request.person_id, request.amount_cents, request.description)
                for request in requests
            ]

        logger.info("Allocations created", extra={"entry_id": str(entry_id), "count": len(created)})
        return created

    def list_allocations(self, entry_id: uuid.UUID) -> List[AllocationView]:
        entry = self.entries.get(entry_id)
        if entry is None:
            raise NotFoundError("Entry", entry_id)
        return [self._view(entry, allocation) for allocation in self.allocations.for_entry(entry.id)]

    def get_allocation(self, allocation_id: uuid.UUID) -> AllocationView:
        allocation = self._get(allocation_id)
        return self._view(allocation.entry, allocation)

    def compute_status(self, allocation_id: uuid.UUID) -> EntryStatus:
        """
        Status from the payments attributed to the allocation.

        Payments linked to the allocation count first; with none linked, every
        payment the member made against the owning entry counts instead.
        """
        allocation = self._get(allocation_id)
        return allocation_status(self._paid(allocation), allocation.amount_cents)

    def update_allocation(
        self,
        allocation_id: uuid.UUID,
        amount_cents: Optional[int] = None,
        description: Optional[str] = None,
        person_id: Optional[uuid.UUID] = None,
    ) -> PaymentAllocation:
        """Edit one allocation; changes that break the principal total are rejected"""
        allocation = self._get(allocation_id)
        entry_id = allocation.entry_id

        with entry_locks.hold(entry_id), atomic(self.db):
            entry = self._group_entry(entry_id)

            if person_id is not None and person_id != allocation.person_id:
                self._check_member(entry, person_id)
                others = {a.person_id for a in self.allocations.for_entry(entry.id) if a.id != allocation.id}
                if person_id in others:
                    raise ValidationError(f"person {person_id} already has an allocation on this entry")
                allocation.person_id = person_id

            if amount_cents is not None:
                if amount_cents < 0:
                    raise ValidationError("allocation amount cannot be negative")
                total = self.allocations.total_for_entry(entry.id) - allocation.amount_cents + amount_cents
                self._check_total(entry, total)
                allocation.amount_cents = amount_cents

            if description is not None:
                allocation.description = description
            self.db.flush()
        return allocation

    def rebalance_allocations(self, entry_id: uuid.UUID, amounts: Dict[uuid.UUID, int]) -> List[PaymentAllocation]:
        """Change several allocation amounts at once, keeping the principal total"""
        with entry_locks.hold(entry_id), atomic(self.db):
            entry = self._group_entry(entry_id)
            allocations = {a.id: a for a in self.allocations.for_entry(entry.id)}

            unknown = set(amounts) - set(allocations)
            if unknown:
                raise ValidationError("allocations do not belong to this entry: " + ", ".join(map(str, unknown)))
            if any(amount < 0 for amount in amounts.values()):
                raise ValidationError("allocation amount cannot be negative")

            total = sum(amounts.get(a_id, a.amount_cents) for a_id, a in allocations.items())
            self._check_total(entry, total)

            for allocation_id, amount in amounts.items():
                allocations[allocation_id].amount_cents = amount
            self.db.flush()
        return list(allocations.values())

    def delete_allocation(self, allocation_id: uuid.UUID) -> None:
        """
        Delete one allocation and its payment links.

        The remaining allocations must still add up to the principal, unless
        none remain (the entry goes back to unallocated).
        """
        allocation = self._get(allocation_id)
        entry_id = allocation.entry_id

        with entry_locks.hold(entry_id), atomic(self.db):
            entry = self._group_entry(entry_id)
            remaining = [a for a in self.allocations.for_entry(entry.id) if a.id != allocation.id]
            if remaining:
                self._check_total(entry, sum(a.amount_cents for a in remaining))
            self.allocations.delete(allocation)

        logger.info("Allocation deleted", extra={"entry_id": str(entry_id), "allocation_id": str(allocation_id)})

    def _get(self, allocation_id: uuid.UUID) -> PaymentAllocation:
        allocation = self.allocations.get(allocation_id)
        if allocation is None:
            raise NotFoundError("Allocation", allocation_id)
        return allocation

    def _group_entry(self, entry_id: uuid.UUID) -> LedgerEntry:
        entry = self.entries.get(entry_id, for_update=True)
        if entry is None:
            raise NotFoundError("Entry", entry_id)
        if entry.shape != TransactionShape.GROUP.value:
            raise ValidationError("allocations are only allowed on group entries")
        return entry

    def _check_member(self, entry: LedgerEntry, person_id: uuid.UUID) -> None:
        if not self.groups.is_member(entry.borrower_group_id, person_id):
            raise ValidationError(f"person {person_id} is not a member of the borrower group")

    def _check_total(self, entry: LedgerEntry, total_cents: int) -> None:
        if total_cents != entry.principal_cents:
            raise ValidationError(
                f"allocations must add up to the principal {entry.principal_cents}, got {total_cents}"
            )

    def _paid(self, allocation: PaymentAllocation) -> int:
        linked = self.allocations.linked_paid_total(allocation.id)
        if linked is not None:
            return linked
        return self.allocations.payer_paid_total(allocation.entry_id, allocation.person_id)

    def _view(self, entry: LedgerEntry, allocation: PaymentAllocation) -> AllocationView:
        paid = self._paid(allocation)
        return AllocationView(
            allocation=allocation,
            paid_cents=paid,
            status=allocation_status(paid, allocation.amount_cents),
            share=share_of_total(allocation.amount_cents, entry.principal_cents),
        )
