"""Ledger entry lifecycle: creation, metadata updates, completion, reconciliation and deletion"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from debt_ledger.config import settings
from debt_ledger.domain import reference_codes
from debt_ledger.domain.balances import derive_status, recompute_remaining
from debt_ledger.domain.exceptions import ConsistencyError, NotFoundError, ValidationError
from debt_ledger.domain.installments import MAX_MONTHLY_SELECTOR, generate_installment_plan, split_amount
from debt_ledger.domain.models import (
    Borrower,
    EntryStatus,
    EntrySummary,
    Frequency,
    PaymentMethod,
    ScheduleRule,
    TermStatus,
    TransactionShape,
)
from debt_ledger.infrastructure.database.models import InstallmentTerm, LedgerEntry, Person
from debt_ledger.infrastructure.database.repositories import (
    AllocationRepository,
    EntryRepository,
    GroupRepository,
    PaymentRepository,
    PersonRepository,
    PlanRepository,
)
from debt_ledger.infrastructure.database.session import atomic
from debt_ledger.infrastructure.observability.logging import log_entry_created, log_sweep_completed
from debt_ledger.infrastructure.observability.metrics import record_entry_created
from debt_ledger.services.directory import DirectoryService
from debt_ledger.services.locking import entry_locks, label_locks

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"name", "description", "notes", "recorded_on", "proof_ref"})
OPEN_TERM_STATUSES = frozenset({TermStatus.NOT_STARTED.value, TermStatus.UNPAID.value})


def check_balance(entry: LedgerEntry) -> None:
    """Raise ConsistencyError if the stored balance or status is out of bounds"""
    total_due = entry.total_due_cents
    if not 0 <= entry.remaining_cents <= total_due:
        logger.critical(
            "Entry balance out of bounds",
            extra={"entry_id": str(entry.id), "remaining_cents": entry.remaining_cents, "total_due_cents": total_due},
        )
        raise ConsistencyError(f"entry {entry.id} remaining {entry.remaining_cents} outside [0, {total_due}]")

    expected = derive_status(entry.remaining_cents, total_due).value
    if entry.status != expected:
        logger.critical("Entry status out of sync", extra={"entry_id": str(entry.id), "status": entry.status})
        raise ConsistencyError(f"entry {entry.id} status {entry.status} does not match {expected}")


def recompute_entry(db: Session, entry: LedgerEntry) -> bool:
    """
    Rebuild remaining balance and status from the applied payment history.

    Completed entries stay at zero. Returns True when anything changed.
    """
    if entry.completed_at is not None:
        remaining = 0
    else:
        remaining = recompute_remaining(entry.total_due_cents, [PaymentRepository(db).applied_total(entry.id)])
    status = derive_status(remaining, entry.total_due_cents).value

    changed = (entry.remaining_cents, entry.status) != (remaining, status)
    entry.remaining_cents = remaining
    entry.status = status
    db.flush()
    check_balance(entry)
    return changed


class EntryService:
    """Create, read, update, complete, reconcile and delete ledger entries"""

    def __init__(self, db: Session):
        self.db = db
        self.entries = EntryRepository(db)
        self.persons = PersonRepository(db)
        self.groups = GroupRepository(db)
        self.plans = PlanRepository(db)
        self.payments = PaymentRepository(db)
        self.allocations = AllocationRepository(db)

    def create_entry(
        self,
        name: str,
        shape: TransactionShape,
        principal_cents: int,
        lender_id: uuid.UUID,
        borrower: Borrower,
        payment_method: Optional[str] = None,
        schedule: Optional[ScheduleRule] = None,
        description: Optional[str] = None,
        notes: Optional[str] = None,
        recorded_on: Optional[date] = None,
        proof_ref: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Create an entry together with any schedule it needs, in one transaction.

        Preconditions:
        - borrower is exactly one person or one group (enforced by Borrower)
        - borrower person differs from lender
        - STRAIGHT entries use the cash payment method
        - INSTALLMENT entries have a person borrower and a valid schedule
        - GROUP entries reference an existing group

        Raises:
            ValidationError: a precondition failed; nothing is written
            NotFoundError: lender or borrower does not exist
        """
        shape = _parse_enum(TransactionShape, shape, "transaction shape")
        name = (name or "").strip()
        if not name:
            raise ValidationError("entry name must not be empty")
        if principal_cents <= 0:
            raise ValidationError("principal must be greater than zero")

        method = self._resolve_payment_method(shape, payment_method)

        if shape is TransactionShape.INSTALLMENT:
            if borrower.is_group:
                raise ValidationError("installment entries cannot have a group borrower")
            schedule = _validate_schedule(schedule)
        elif shape is TransactionShape.GROUP and not borrower.is_group:
            raise ValidationError("group entries must have a group borrower")

        lender, borrower_label = self._resolve_parties(lender_id, borrower)
        base_code = reference_codes.generate(
            borrower_label,
            lender.full_name,
            borrower_is_group=borrower.is_group,
            group_code_length=settings.group_code_length,
        )

        # Code lookup and insert must commit before the next creation with the same base
        with label_locks.hold(("reference_code", base_code)), atomic(self.db):
            code = reference_codes.unique_code(base_code, self.entries.reference_code_exists)

            entry = self.entries.add(
                LedgerEntry(
                    name=name,
                    shape=shape.value,
                    principal_cents=principal_cents,
                    remaining_cents=principal_cents,
                    penalty_cents=0,
                    status=EntryStatus.UNPAID.value,
                    lender_id=lender.id,
                    borrower_person_id=None if borrower.is_group else borrower.id,
                    borrower_group_id=borrower.id if borrower.is_group else None,
                    payment_method=method,
                    reference_code=code,
                    description=description,
                    notes=notes,
                    recorded_on=recorded_on,
                    proof_ref=proof_ref,
                )
            )

            if shape is TransactionShape.INSTALLMENT:
                terms = generate_installment_plan(principal_cents, schedule)
                self.plans.create_plan(
                    entry_id=entry.id,
                    rule=schedule,
                    amount_per_term_cents=split_amount(principal_cents, schedule.term_count)[0],
                    terms=terms,
                )

            check_balance(entry)

        record_entry_created(shape.value)
        log_entry_created(str(entry.id), entry.reference_code, shape.value, principal_cents)
        return entry

    def get_entry(self, entry_id: uuid.UUID) -> LedgerEntry:
        entry = self.entries.get(entry_id)
        if entry is None:
            raise NotFoundError("Entry", entry_id)
        return entry

    def list_entries(self, acting_label: str) -> List[LedgerEntry]:
        """
        Entries visible to the acting identity.

        An entry is visible when the identity holds exactly one role on it:
        lender, borrower person, or member of the borrower group.
        """
        me = DirectoryService(self.db).ensure_person(acting_label)
        my_groups = set(self.groups.group_ids_for_person(me.id))

        visible = []
        for entry in self.entries.related_to(me.id, list(my_groups)):
            roles = [
                entry.lender_id == me.id,
                entry.borrower_person_id == me.id,
                entry.borrower_group_id is not None and entry.borrower_group_id in my_groups,
            ]
            if sum(roles) == 1:
                visible.append(entry)
        return visible

    def update_entry(self, entry_id: uuid.UUID, changes: Dict[str, Any]) -> LedgerEntry:
        """Update metadata only; shape, amounts, parties and schedule are fixed at creation"""
        frozen = sorted(set(changes) - EDITABLE_FIELDS)
        if frozen:
            raise ValidationError(f"fields cannot be changed after creation: {', '.join(frozen)}")
        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError("entry name must not be empty")

        with entry_locks.hold(entry_id), atomic(self.db):
            entry = self.entries.get(entry_id, for_update=True)
            if entry is None:
                raise NotFoundError("Entry", entry_id)
            for field, value in changes.items():
                setattr(entry, field, value.strip() if field == "name" else value)
            self.db.flush()
        return entry

    def complete_entry(self, entry_id: uuid.UUID) -> LedgerEntry:
        """Force an entry to PAID; open installment terms are marked PAID too"""
        with entry_locks.hold(entry_id), atomic(self.db):
            entry = self.entries.get(entry_id, for_update=True)
            if entry is None:
                raise NotFoundError("Entry", entry_id)

            entry.remaining_cents = 0
            entry.status = EntryStatus.PAID.value
            entry.completed_at = datetime.now(timezone.utc)

            if entry.shape == TransactionShape.INSTALLMENT.value:
                for term in self.plans.terms_for_entry(entry.id):
                    if term.status in OPEN_TERM_STATUSES:
                        term.status = TermStatus.PAID.value
            self.db.flush()
            check_balance(entry)

        logger.info("Entry completed", extra={"entry_id": str(entry_id)})
        return entry

    def reconcile_all(self) -> int:
        """
        Recompute every entry's balance and status from its payments.

        Idempotent; returns how many entries were corrected.
        """
        entry_ids = self.entries.all_ids()
        changed = 0
        with entry_locks.hold_many(entry_ids), atomic(self.db):
            for entry_id in entry_ids:
                entry = self.entries.get(entry_id, for_update=True)
                if entry is not None and recompute_entry(self.db, entry):
                    changed += 1

        log_sweep_completed("reconcile", len(entry_ids), changed)
        return changed

    def delete_entry(self, entry_id: uuid.UUID) -> None:
        """
        Delete an entry and everything that depends on it.

        Order: allocation payment links and allocations, installment terms and
        plan, entry payment links, payments left without any entry, the entry.
        """
        with entry_locks.hold(entry_id), atomic(self.db):
            entry = self.entries.get(entry_id, for_update=True)
            if entry is None:
                raise NotFoundError("Entry", entry_id)

            self.allocations.delete_for_entry(entry.id)
            self.plans.delete_for_entry(entry.id)
            payment_ids = self.payments.delete_entry_links(entry.id)
            for payment in self.payments.orphaned(payment_ids):
                self.payments.delete(payment)
            self.entries.delete(entry)

        entry_locks.forget(entry_id)
        logger.info("Entry deleted", extra={"entry_id": str(entry_id)})

    def get_schedule(self, entry_id: uuid.UUID) -> List[InstallmentTerm]:
        entry = self.get_entry(entry_id)
        if entry.shape != TransactionShape.INSTALLMENT.value:
            raise ValidationError("only installment entries have a schedule")
        return self.plans.terms_for_entry(entry.id)

    def summarize(self, entry_id: uuid.UUID) -> EntrySummary:
        """Balances plus the next open installment term, if any"""
        entry = self.get_entry(entry_id)
        summary = EntrySummary(
            entry_id=entry.id,
            principal_cents=entry.principal_cents,
            penalty_cents=entry.penalty_cents,
            total_paid_cents=self.payments.applied_total(entry.id),
            remaining_cents=entry.remaining_cents,
            status=EntryStatus(entry.status),
        )

        if entry.shape == TransactionShape.INSTALLMENT.value:
            open_statuses = OPEN_TERM_STATUSES | {TermStatus.DELINQUENT.value}
            next_term = next(
                (term for term in self.plans.terms_for_entry(entry.id) if term.status in open_statuses),
                None,
            )
            if next_term is not None:
                summary.next_due_date = next_term.due_date
                summary.next_due_amount_cents = next_term.amount_cents
        return summary

    def _resolve_parties(self, lender_id: uuid.UUID, borrower: Borrower) -> Tuple[Person, str]:
        """Lender record and the borrower label used for the reference code"""
        lender = self.persons.get(lender_id)
        if lender is None:
            raise NotFoundError("Person", lender_id)

        if borrower.is_group:
            group = self.groups.get(borrower.id)
            if group is None:
                raise NotFoundError("Group", borrower.id)
            return lender, group.name

        person = self.persons.get(borrower.id)
        if person is None:
            raise NotFoundError("Person", borrower.id)
        if person.id == lender.id:
            raise ValidationError("borrower and lender must be different persons")
        return lender, person.full_name

    @staticmethod
    def _resolve_payment_method(shape: TransactionShape, payment_method: Optional[str]) -> str:
        cash = settings.cash_payment_method
        if payment_method is None:
            return cash

        method = _parse_enum(PaymentMethod, payment_method, "payment method").value
        if shape is TransactionShape.STRAIGHT and method != cash:
            raise ValidationError(f"straight entries must use the {cash} payment method")
        return method


def _parse_enum(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"unknown {label}: {value}")


def _validate_schedule(schedule: Optional[ScheduleRule]) -> ScheduleRule:
    if schedule is None:
        raise ValidationError("installment entries require start date, frequency, selector and term count")
    if schedule.start_date is None or schedule.frequency is None or schedule.selector is None:
        raise ValidationError("installment entries require start date, frequency, selector and term count")
    if schedule.term_count is None or schedule.term_count <= 0:
        raise ValidationError("term count must be greater than zero")

    frequency = _parse_enum(Frequency, schedule.frequency, "frequency")
    selector = int(schedule.selector)
    if frequency is Frequency.WEEKLY and not 0 <= selector <= 6:
        raise ValidationError("weekly selector must be a weekday between 0 (Monday) and 6 (Sunday)")
    if frequency is Frequency.MONTHLY and not 1 <= selector <= MAX_MONTHLY_SELECTOR:
        raise ValidationError(f"monthly selector must be a day between 1 and {MAX_MONTHLY_SELECTOR}")

    return ScheduleRule(
        start_date=schedule.start_date,
        frequency=frequency,
        selector=selector,
        term_count=schedule.term_count,
    )
