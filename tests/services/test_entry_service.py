"""Tests for the entry lifecycle service"""

import pytest
import threading
import time
import uuid
from datetime import date
from sqlalchemy.orm import Session
from debt_ledger.domain.exceptions import NotFoundError, ValidationError
from debt_ledger.domain.models import Borrower, EntryStatus, Frequency, ScheduleRule, TermStatus, TransactionShape
from debt_ledger.infrastructure.database.models import EntryPayment, InstallmentTerm, LedgerEntry, Payment
from debt_ledger.infrastructure.database.repositories import EntryRepository
from debt_ledger.services.directory import DirectoryService
from debt_ledger.services.entries import EntryService
from debt_ledger.services.payments import PaymentService


def test_create_straight_entry(straight_entry: LedgerEntry):
    """New entry starts UNPAID with the full principal outstanding"""
    assert straight_entry.remaining_cents == 10000
    assert straight_entry.status == EntryStatus.UNPAID.value
    assert straight_entry.payment_method == "CASH"
    assert straight_entry.reference_code == "MSDJ"


def test_reference_code_collision_gets_suffix(db: Session, straight_entry, lender, borrower):
    service = EntryService(db)
    second = service.create_entry("Dinner", TransactionShape.STRAIGHT, 5000, lender.id, Borrower.person(borrower.id))
    third = service.create_entry("Taxi", TransactionShape.STRAIGHT, 700, lender.id, Borrower.person(borrower.id))

    assert second.reference_code == "MSDJ1"
    assert third.reference_code == "MSDJ2"


def test_concurrent_creations_get_distinct_codes(db: Session, session_factory, lender, borrower, monkeypatch):
    """Two entries for the same pair created at once, with a slow code lookup"""
    lender_id, borrower_id = lender.id, borrower.id
    db.commit()
    code_exists = EntryRepository.reference_code_exists

    def slow_code_exists(self, code):
        exists = code_exists(self, code)
        time.sleep(0.05)
        return exists

    monkeypatch.setattr(EntryRepository, "reference_code_exists", slow_code_exists)
    codes, errors = [], []

    def create():
        session = session_factory()
        try:
            entry = EntryService(session).create_entry(
                "Lunch", TransactionShape.STRAIGHT, 1000, lender_id, Borrower.person(borrower_id)
            )
            codes.append(entry.reference_code)
        except Exception as e:  # surfaced by the assertion below
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=create) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert sorted(codes) == ["MSDJ", "MSDJ1"]


def test_straight_entry_requires_cash(db: Session, lender, borrower):
    with pytest.raises(ValidationError):
        EntryService(db).create_entry(
            "Lunch", TransactionShape.STRAIGHT, 10000, lender.id, Borrower.person(borrower.id), payment_method="BANK"
        )


def test_borrower_cannot_be_lender(db: Session, lender):
    with pytest.raises(ValidationError):
        EntryService(db).create_entry("Self", TransactionShape.STRAIGHT, 10000, lender.id, Borrower.person(lender.id))


def test_principal_must_be_positive(db: Session, lender, borrower):
    with pytest.raises(ValidationError):
        EntryService(db).create_entry("Zero", TransactionShape.STRAIGHT, 0, lender.id, Borrower.person(borrower.id))


def test_unknown_lender(db: Session, borrower):
    with pytest.raises(NotFoundError):
        EntryService(db).create_entry("Ghost", TransactionShape.STRAIGHT, 100, uuid.uuid4(), Borrower.person(borrower.id))


def test_borrower_needs_exactly_one_id():
    with pytest.raises(ValidationError):
        Borrower.from_ids(None, None)


def test_installment_entry_generates_terms(db: Session, installment_entry: LedgerEntry):
    terms = EntryService(db).get_schedule(installment_entry.id)

    assert [t.term_number for t in terms] == [1, 2, 3]
    assert [t.due_date for t in terms] == [date(2024, 1, 15), date(2024, 2, 15), date(2024, 3, 15)]
    assert [t.amount_cents for t in terms] == [40000, 40000, 40000]
    assert all(t.status == TermStatus.NOT_STARTED.value for t in terms)
    assert installment_entry.plan.amount_per_term_cents == 40000


def test_installment_without_schedule_writes_nothing(db: Session, lender, borrower):
    with pytest.raises(ValidationError):
        EntryService(db).create_entry(
            "Laptop", TransactionShape.INSTALLMENT, 50000, lender.id, Borrower.person(borrower.id)
        )

    assert db.query(LedgerEntry).count() == 0


def test_installment_rejects_group_borrower(db: Session, lender, household):
    rule = ScheduleRule(date(2024, 1, 1), Frequency.WEEKLY, 0, 4)
    with pytest.raises(ValidationError):
        EntryService(db).create_entry(
            "TV", TransactionShape.INSTALLMENT, 40000, lender.id, Borrower.group(household.id), schedule=rule
        )


@pytest.mark.parametrize(
    "frequency,selector",
    [(Frequency.WEEKLY, 7), (Frequency.MONTHLY, 0), (Frequency.MONTHLY, 29)],
)
def test_installment_rejects_bad_selector(db: Session, lender, borrower, frequency, selector):
    rule = ScheduleRule(date(2024, 1, 1), frequency, selector, 4)
    with pytest.raises(ValidationError):
        EntryService(db).create_entry(
            "TV", TransactionShape.INSTALLMENT, 40000, lender.id, Borrower.person(borrower.id), schedule=rule
        )
    assert db.query(InstallmentTerm).count() == 0


def test_group_entry_needs_group_borrower(db: Session, lender, borrower):
    with pytest.raises(ValidationError):
        EntryService(db).create_entry("Trip", TransactionShape.GROUP, 1000, lender.id, Borrower.person(borrower.id))


def test_group_entry_reference_code(group_entry: LedgerEntry):
    assert group_entry.reference_code == "HOUSEDJ"


def test_update_metadata(db: Session, straight_entry: LedgerEntry):
    updated = EntryService(db).update_entry(straight_entry.id, {"name": "  Team lunch ", "notes": "Friday"})

    assert updated.name == "Team lunch"
    assert updated.notes == "Friday"


def test_update_rejects_frozen_fields(db: Session, straight_entry: LedgerEntry):
    with pytest.raises(ValidationError):
        EntryService(db).update_entry(straight_entry.id, {"shape": "GROUP"})

    db.refresh(straight_entry)
    assert straight_entry.shape == TransactionShape.STRAIGHT.value


def test_complete_entry_marks_open_terms_paid(db: Session, installment_entry: LedgerEntry):
    service = EntryService(db)
    entry = service.complete_entry(installment_entry.id)

    assert entry.remaining_cents == 0
    assert entry.status == EntryStatus.PAID.value
    assert entry.completed_at is not None
    assert all(t.status == TermStatus.PAID.value for t in service.get_schedule(entry.id))


def test_reconcile_repairs_drifted_balance(db: Session, straight_entry: LedgerEntry, borrower):
    PaymentService(db).create_payment(straight_entry.id, 4000, date(2024, 2, 1), borrower.id)

    straight_entry.remaining_cents = 10000
    straight_entry.status = EntryStatus.UNPAID.value
    db.commit()

    service = EntryService(db)
    assert service.reconcile_all() == 1
    db.refresh(straight_entry)
    assert straight_entry.remaining_cents == 6000
    assert straight_entry.status == EntryStatus.PARTIALLY_PAID.value

    # Second run has nothing to fix
    assert service.reconcile_all() == 0


def test_reconcile_keeps_completed_entries_settled(db: Session, straight_entry: LedgerEntry):
    service = EntryService(db)
    service.complete_entry(straight_entry.id)

    assert service.reconcile_all() == 0
    db.refresh(straight_entry)
    assert straight_entry.remaining_cents == 0


def test_delete_entry_cascades(db: Session, straight_entry: LedgerEntry, borrower):
    PaymentService(db).create_payment(straight_entry.id, 4000, date(2024, 2, 1), borrower.id)
    entry_id = straight_entry.id

    EntryService(db).delete_entry(entry_id)

    assert db.get(LedgerEntry, entry_id) is None
    assert db.query(EntryPayment).count() == 0
    assert db.query(Payment).count() == 0


def test_delete_installment_entry_removes_terms(db: Session, installment_entry: LedgerEntry):
    EntryService(db).delete_entry(installment_entry.id)

    assert db.query(InstallmentTerm).count() == 0


def test_delete_unknown_entry(db: Session):
    with pytest.raises(NotFoundError):
        EntryService(db).delete_entry(uuid.uuid4())


def test_list_entries_by_role(db: Session, straight_entry, group_entry, lender, household):
    service = EntryService(db)

    assert {e.id for e in service.list_entries("Dela Cruz, Juan")} == {straight_entry.id, group_entry.id}
    assert [e.id for e in service.list_entries("Maria Santos")] == [straight_entry.id]
    assert [e.id for e in service.list_entries("Ana Reyes")] == [group_entry.id]


def test_list_entries_excludes_multiple_roles(db: Session, group_entry, lender, household):
    """Lender who is also in the borrower group holds two roles"""
    DirectoryService(db).add_member(household.id, lender.id)

    assert EntryService(db).list_entries("Dela Cruz, Juan") == []


def test_list_entries_creates_self_record(db: Session):
    assert EntryService(db).list_entries("Newcomer") == []
    assert DirectoryService(db).find_person("Newcomer") is not None


def test_summarize_installment(db: Session, installment_entry: LedgerEntry, borrower):
    PaymentService(db).create_payment(installment_entry.id, 40000, date(2024, 1, 15), borrower.id)

    summary = EntryService(db).summarize(installment_entry.id)

    assert summary.total_paid_cents == 40000
    assert summary.remaining_cents == 80000
    assert summary.status == EntryStatus.PARTIALLY_PAID
    assert summary.next_due_date == date(2024, 1, 15)
    assert summary.next_due_amount_cents == 40000


def test_schedule_only_for_installments(db: Session, straight_entry: LedgerEntry):
    with pytest.raises(ValidationError):
        EntryService(db).get_schedule(straight_entry.id)
