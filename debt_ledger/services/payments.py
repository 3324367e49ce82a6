"""Payment recorder: applies payments to entry balances and keeps them in sync"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from debt_ledger.domain.balances import apply_payment
from debt_ledger.domain.exceptions import NotFoundError, ValidationError
from debt_ledger.domain.models import EntryStatus
from debt_ledger.infrastructure.database.models import Payment
from debt_ledger.infrastructure.database.repositories import (
    AllocationRepository,
    EntryRepository,
    GroupRepository,
    PaymentRepository,
    PersonRepository,
)
from debt_ledger.infrastructure.database.session import atomic
from debt_ledger.infrastructure.observability.logging import log_payment_recorded
from debt_ledger.infrastructure.observability.metrics import record_payment
from debt_ledger.services.entries import EntryService, check_balance, recompute_entry
from debt_ledger.services.locking import entry_locks

logger = logging.getLogger(__name__)


@dataclass
class PaymentOutcome:
    """A recorded payment and its effect on the entry balance"""

    payment: Payment
    applied_cents: int
    change_cents: int
    remaining_cents: int
    status: EntryStatus


class PaymentService:
    """Record, edit and remove payments against ledger entries"""

    def __init__(self, db: Session):
        self.db = db
        self.entries = EntryRepository(db)
        self.persons = PersonRepository(db)
        self.groups = GroupRepository(db)
        self.payments = PaymentRepository(db)
        self.allocations = AllocationRepository(db)

    def create_payment(
        self,
        entry_id: uuid.UUID,
        amount_cents: int,
        paid_on: date,
        payer_id: uuid.UUID,
        allocation_id: Optional[uuid.UUID] = None,
        proof_ref: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PaymentOutcome:
        """
        Apply a payment to one entry.

        applied = min(amount, remaining); the rest is returned as change and
        never stored on the entry. When an allocation is given the payment is
        linked to it as well.
        """
        if amount_cents <= 0:
            raise ValidationError("payment amount must be greater than zero")

        with entry_locks.hold(entry_id), atomic(self.db):
            entry = self.entries.get(entry_id, for_update=True)
            if entry is None:
                raise NotFoundError("Entry", entry_id)
            if self.persons.get(payer_id) is None:
                raise NotFoundError("Person", payer_id)

            if allocation_id is not None:
                allocation = self.allocations.get(allocation_id)
                if allocation is None:
                    raise NotFoundError("Allocation", allocation_id)
                if allocation.entry_id != entry.id:
                    raise ValidationError("allocation does not belong to this entry")

            application = apply_payment(entry.remaining_cents, entry.total_due_cents, amount_cents)

            payment = self.payments.create(amount_cents, paid_on, payer_id, proof_ref=proof_ref, notes=notes)
            self.payments.link_entry(payment.id, entry.id, application.applied_cents)
            if allocation_id is not None:
                self.payments.link_allocation(payment.id, allocation_id)

            entry.remaining_cents = application.remaining_cents
            entry.status = application.status.value
            self.db.flush()
            check_balance(entry)

        record_payment(amount_cents, application.change_cents, application.remaining_cents)
        log_payment_recorded(
            str(payment.id),
            str(entry_id),
            application.applied_cents,
            application.change_cents,
            application.remaining_cents,
            application.status.value,
        )
        return PaymentOutcome(
            payment=payment,
            applied_cents=application.applied_cents,
            change_cents=application.change_cents,
            remaining_cents=application.remaining_cents,
            status=application.status,
        )

    def get_payment(self, payment_id: uuid.UUID) -> Payment:
        payment = self.payments.get(payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        return payment

    def list_payments(self, acting_label: str) -> List[Payment]:
        """Payments on entries visible to the acting identity"""
        visible = EntryService(self.db).list_entries(acting_label)
        return self.payments.for_entries([entry.id for entry in visible])

    def update_payment(
        self,
        payment_id: uuid.UUID,
        amount_cents: Optional[int] = None,
        paid_on: Optional[date] = None,
        proof_ref: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Payment:
        """
        Edit a payment and re-apply it to every entry it is linked to.

        The applied share is recomputed against what the other payments leave
        outstanding, then each entry's balance and status are rebuilt.
        """
        if amount_cents is not None and amount_cents <= 0:
            raise ValidationError("payment amount must be greater than zero")

        payment = self.get_payment(payment_id)
        entry_ids = self.payments.entry_ids_for_payment(payment.id)

        with entry_locks.hold_many(entry_ids), atomic(self.db):
            if amount_cents is not None:
                payment.amount_cents = amount_cents
            if paid_on is not None:
                payment.paid_on = paid_on
            if proof_ref is not None:
                payment.proof_ref = proof_ref
            if notes is not None:
                payment.notes = notes

            unapplied = payment.amount_cents
            for link in sorted(payment.entry_links, key=lambda item: item.entry_id):
                entry = self.entries.get(link.entry_id, for_update=True)
                outstanding = max(0, entry.total_due_cents - self.payments.applied_total(entry.id, payment.id))
                if entry.completed_at is not None:
                    outstanding = 0
                link.applied_cents = min(unapplied, outstanding)
                unapplied -= link.applied_cents
                self.db.flush()
                recompute_entry(self.db, entry)

        logger.info("Payment updated", extra={"payment_id": str(payment_id)})
        return payment

    def delete_payment(self, payment_id: uuid.UUID) -> None:
        """Remove a payment and its links, then rebuild every affected entry"""
        payment = self.get_payment(payment_id)
        entry_ids = self.payments.entry_ids_for_payment(payment.id)

        with entry_locks.hold_many(entry_ids), atomic(self.db):
            self.payments.delete(payment)
            for entry_id in sorted(entry_ids):
                entry = self.entries.get(entry_id, for_update=True)
                recompute_entry(self.db, entry)

        logger.info("Payment deleted", extra={"payment_id": str(payment_id)})
