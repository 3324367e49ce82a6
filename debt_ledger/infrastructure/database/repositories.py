"""Data access layer for ledger entities"""

import uuid
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from debt_ledger.domain.models import ScheduleRule, ScheduledTerm, TermStatus
from debt_ledger.infrastructure.database.models import (
    AllocationPayment,
    EntryPayment,
    Group,
    InstallmentPlan,
    InstallmentTerm,
    LedgerEntry,
    Payment,
    PaymentAllocation,
    Person,
    group_members,
)


class PersonRepository:
    """Repository for persons"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, full_name: str) -> Person:
        person = Person(full_name=full_name)
        self.db.add(person)
        self.db.flush()
        return person

    def get(self, person_id: uuid.UUID) -> Optional[Person]:
        return self.db.get(Person, person_id)

    def find_by_name(self, full_name: str) -> Optional[Person]:
        """Oldest person registered under this exact name"""
        return (
            self.db.query(Person)
            .filter(Person.full_name == full_name)
            .order_by(Person.created_at.asc())
            .first()
        )

    def is_referenced(self, person_id: uuid.UUID) -> bool:
        """True if any entry, payment, allocation or group still points at the person"""
        checks = [
            self.db.query(LedgerEntry.id).filter(
                or_(LedgerEntry.lender_id == person_id, LedgerEntry.borrower_person_id == person_id)
            ),
            self.db.query(Payment.id).filter(Payment.payer_id == person_id),
            self.db.query(PaymentAllocation.id).filter(PaymentAllocation.person_id == person_id),
            self.db.query(group_members.c.group_id).filter(group_members.c.person_id == person_id),
        ]
        return any(query.first() is not None for query in checks)

    def delete(self, person: Person) -> None:
        self.db.delete(person)
        self.db.flush()


class GroupRepository:
    """Repository for groups and their membership"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, name: str, members: Iterable[Person] = ()) -> Group:
        group = Group(name=name, members=list(members))
        self.db.add(group)
        self.db.flush()
        return group

    def get(self, group_id: uuid.UUID) -> Optional[Group]:
        return self.db.get(Group, group_id)

    def get_by_name(self, name: str) -> Optional[Group]:
        return self.db.query(Group).filter(Group.name == name).first()

    def is_member(self, group_id: uuid.UUID, person_id: uuid.UUID) -> bool:
        row = (
            self.db.query(group_members.c.person_id)
            .filter(group_members.c.group_id == group_id, group_members.c.person_id == person_id)
            .first()
        )
        return row is not None

    def group_ids_for_person(self, person_id: uuid.UUID) -> List[uuid.UUID]:
        rows = self.db.query(group_members.c.group_id).filter(group_members.c.person_id == person_id).all()
        return [row.group_id for row in rows]

    def has_entries(self, group_id: uuid.UUID) -> bool:
        return (
            self.db.query(LedgerEntry.id).filter(LedgerEntry.borrower_group_id == group_id).first()
            is not None
        )

    def delete(self, group: Group) -> None:
        group.members = []
        self.db.flush()
        self.db.delete(group)
        self.db.flush()


class EntryRepository:
    """Repository for ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, entry: LedgerEntry) -> LedgerEntry:
        self.db.add(entry)
        self.db.flush()
        return entry

    def get(self, entry_id: uuid.UUID, for_update: bool = False) -> Optional[LedgerEntry]:
        """Fetch an entry; `for_update` takes a row lock where the database supports it"""
        query = self.db.query(LedgerEntry).filter(LedgerEntry.id == entry_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def reference_code_exists(self, code: str) -> bool:
        return self.db.query(LedgerEntry.id).filter(LedgerEntry.reference_code == code).first() is not None

    def all_ids(self) -> List[uuid.UUID]:
        return [row.id for row in self.db.query(LedgerEntry.id).all()]

    def related_to(self, person_id: uuid.UUID, group_ids: List[uuid.UUID]) -> List[LedgerEntry]:
        """Entries where the person is lender, borrower or in the borrower group"""
        conditions = [LedgerEntry.lender_id == person_id, LedgerEntry.borrower_person_id == person_id]
        if group_ids:
            conditions.append(LedgerEntry.borrower_group_id.in_(group_ids))
        return (
            self.db.query(LedgerEntry)
            .filter(or_(*conditions))
            .order_by(LedgerEntry.created_at.desc())
            .all()
        )

    def delete(self, entry: LedgerEntry) -> None:
        self.db.delete(entry)
        self.db.flush()


class PlanRepository:
    """Repository for installment plans and their terms"""

    def __init__(self, db: Session):
        self.db = db

    def create_plan(
        self,
        entry_id: uuid.UUID,
        rule: ScheduleRule,
        amount_per_term_cents: int,
        terms: List[ScheduledTerm],
    ) -> InstallmentPlan:
        """Create plan with its full set of terms"""
        db_plan = InstallmentPlan(
            entry_id=entry_id,
            start_date=rule.start_date,
            frequency=rule.frequency.value,
            selector=int(rule.selector),
            term_count=rule.term_count,
            amount_per_term_cents=amount_per_term_cents,
        )
        self.db.add(db_plan)
        self.db.flush()

        for term in terms:
            self.db.add(
                InstallmentTerm(
                    plan_id=db_plan.id,
                    term_number=term.term_number,
                    due_date=term.due_date,
                    amount_cents=term.amount_cents,
                    penalty_cents=0,
                    status=TermStatus.NOT_STARTED.value,
                )
            )
        self.db.flush()
        return db_plan

    def get_plan_for_entry(self, entry_id: uuid.UUID) -> Optional[InstallmentPlan]:
        return self.db.query(InstallmentPlan).filter(InstallmentPlan.entry_id == entry_id).first()

    def get_term(self, term_id: uuid.UUID) -> Optional[InstallmentTerm]:
        return self.db.get(InstallmentTerm, term_id)

    def terms_for_entry(self, entry_id: uuid.UUID) -> List[InstallmentTerm]:
        return (
            self.db.query(InstallmentTerm)
            .join(InstallmentPlan, InstallmentTerm.plan_id == InstallmentPlan.id)
            .filter(InstallmentPlan.entry_id == entry_id)
            .order_by(InstallmentTerm.term_number.asc())
            .all()
        )

    def mark_overdue_delinquent(self, as_of: date) -> int:
        """
        Move UNPAID terms due before `as_of` to DELINQUENT in one statement.

        The status check is part of the UPDATE, so a term skipped or paid by a
        concurrent transaction is never overwritten. Returns the rows changed.
        """
        result = self.db.execute(
            update(InstallmentTerm)
            .where(InstallmentTerm.status == TermStatus.UNPAID.value, InstallmentTerm.due_date < as_of)
            .values(status=TermStatus.DELINQUENT.value)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def delete_for_entry(self, entry_id: uuid.UUID) -> None:
        """Terms first, then the plan"""
        plan = self.get_plan_for_entry(entry_id)
        if plan is None:
            return
        for term in self.db.query(InstallmentTerm).filter(InstallmentTerm.plan_id == plan.id).all():
            self.db.delete(term)
        self.db.flush()
        self.db.delete(plan)
        self.db.flush()


class PaymentRepository:
    """Repository for payments and their entry links"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        amount_cents: int,
        paid_on: date,
        payer_id: uuid.UUID,
        proof_ref: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Payment:
        payment = Payment(
            amount_cents=amount_cents,
            paid_on=paid_on,
            payer_id=payer_id,
            proof_ref=proof_ref,
            notes=notes,
        )
        self.db.add(payment)
        self.db.flush()
        return payment

    def get(self, payment_id: uuid.UUID) -> Optional[Payment]:
        return self.db.get(Payment, payment_id)

    def link_entry(self, payment_id: uuid.UUID, entry_id: uuid.UUID, applied_cents: int) -> EntryPayment:
        link = EntryPayment(payment_id=payment_id, entry_id=entry_id, applied_cents=applied_cents)
        self.db.add(link)
        self.db.flush()
        return link

    def link_allocation(self, payment_id: uuid.UUID, allocation_id: uuid.UUID) -> AllocationPayment:
        link = AllocationPayment(payment_id=payment_id, allocation_id=allocation_id)
        self.db.add(link)
        self.db.flush()
        return link

    def entry_links(self, entry_id: uuid.UUID) -> List[EntryPayment]:
        return (
            self.db.query(EntryPayment)
            .join(Payment, EntryPayment.payment_id == Payment.id)
            .filter(EntryPayment.entry_id == entry_id)
            .order_by(Payment.paid_on.asc(), Payment.created_at.asc())
            .all()
        )

    def applied_total(self, entry_id: uuid.UUID, exclude_payment_id: Optional[uuid.UUID] = None) -> int:
        query = self.db.query(func.coalesce(func.sum(EntryPayment.applied_cents), 0)).filter(
            EntryPayment.entry_id == entry_id
        )
        if exclude_payment_id is not None:
            query = query.filter(EntryPayment.payment_id != exclude_payment_id)
        return int(query.scalar())

    def entry_ids_for_payment(self, payment_id: uuid.UUID) -> List[uuid.UUID]:
        rows = self.db.query(EntryPayment.entry_id).filter(EntryPayment.payment_id == payment_id).all()
        return [row.entry_id for row in rows]

    def for_entries(self, entry_ids: List[uuid.UUID]) -> List[Payment]:
        if not entry_ids:
            return []
        return (
            self.db.query(Payment)
            .join(EntryPayment, EntryPayment.payment_id == Payment.id)
            .filter(EntryPayment.entry_id.in_(entry_ids))
            .distinct()
            .order_by(Payment.paid_on.desc())
            .all()
        )

    def delete_entry_links(self, entry_id: uuid.UUID) -> List[uuid.UUID]:
        """Remove all links to an entry; returns the affected payment ids"""
        payment_ids = []
        for link in self.entry_links(entry_id):
            payment_ids.append(link.payment_id)
            self.db.delete(link)
        self.db.flush()
        return payment_ids

    def orphaned(self, payment_ids: List[uuid.UUID]) -> List[Payment]:
        """Payments from the list no longer linked to any entry"""
        if not payment_ids:
            return []
        linked = select(EntryPayment.payment_id).where(EntryPayment.payment_id.in_(payment_ids))
        return self.db.query(Payment).filter(Payment.id.in_(payment_ids), Payment.id.not_in(linked)).all()

    def delete(self, payment: Payment) -> None:
        """Links first, then the payment"""
        for link in self.db.query(AllocationPayment).filter(AllocationPayment.payment_id == payment.id).all():
            self.db.delete(link)
        for link in self.db.query(EntryPayment).filter(EntryPayment.payment_id == payment.id).all():
            self.db.delete(link)
        self.db.flush()
        self.db.delete(payment)
        self.db.flush()


class AllocationRepository:
    """Repository for group expense allocations"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        entry_id: uuid.UUID,
        person_id: uuid.UUID,
        amount_cents: int,
        description: Optional[str] = None,
    ) -> PaymentAllocation:
        allocation = PaymentAllocation(
            entry_id=entry_id,
            person_id=person_id,
            amount_cents=amount_cents,
            description=description,
        )
        self.db.add(allocation)
        self.db.flush()
        return allocation

    def get(self, allocation_id: uuid.UUID) -> Optional[PaymentAllocation]:
        return self.db.get(PaymentAllocation, allocation_id)

    def for_entry(self, entry_id: uuid.UUID) -> List[PaymentAllocation]:
        return (
            self.db.query(PaymentAllocation)
            .filter(PaymentAllocation.entry_id == entry_id)
            .order_by(PaymentAllocation.created_at.asc())
            .all()
        )

    def total_for_entry(self, entry_id: uuid.UUID) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(PaymentAllocation.amount_cents), 0))
            .filter(PaymentAllocation.entry_id == entry_id)
            .scalar()
        )
        return int(total)

    def person_has_allocation_in_group(self, group_id: uuid.UUID, person_id: uuid.UUID) -> bool:
        row = (
            self.db.query(PaymentAllocation.id)
            .join(LedgerEntry, PaymentAllocation.entry_id == LedgerEntry.id)
            .filter(LedgerEntry.borrower_group_id == group_id, PaymentAllocation.person_id == person_id)
            .first()
        )
        return row is not None

    def linked_paid_total(self, allocation_id: uuid.UUID) -> Optional[int]:
        """Sum of payments linked to the allocation, None when nothing is linked"""
        count, total = (
            self.db.query(func.count(Payment.id), func.coalesce(func.sum(Payment.amount_cents), 0))
            .join(AllocationPayment, AllocationPayment.payment_id == Payment.id)
            .filter(AllocationPayment.allocation_id == allocation_id)
            .one()
        )
        return int(total) if count else None

    def payer_paid_total(self, entry_id: uuid.UUID, person_id: uuid.UUID) -> int:
        """Sum of payments made by a person against an entry"""
        total = (
            self.db.query(func.coalesce(func.sum(Payment.amount_cents), 0))
            .join(EntryPayment, EntryPayment.payment_id == Payment.id)
            .filter(EntryPayment.entry_id == entry_id, Payment.payer_id == person_id)
            .scalar()
        )
        return int(total)

    def delete(self, allocation: PaymentAllocation) -> None:
        """Payment links first, then the allocation"""
        for link in self.db.query(AllocationPayment).filter(AllocationPayment.allocation_id == allocation.id).all():
            self.db.delete(link)
        self.db.flush()
        self.db.delete(allocation)
        self.db.flush()

    def delete_for_entry(self, entry_id: uuid.UUID) -> None:
        for allocation in self.for_entry(entry_id):
            self.delete(allocation)
