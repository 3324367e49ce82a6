"""Tests for splitting group entries across members"""

import pytest
from datetime import date
from sqlalchemy.orm import Session
from debt_ledger.domain.exceptions import ValidationError
from debt_ledger.domain.models import AllocationRequest, EntryStatus
from debt_ledger.infrastructure.database.models import PaymentAllocation
from debt_ledger.services.allocations import AllocationService
from debt_ledger.services.payments import PaymentService


@pytest.fixture
def members(household):
    return sorted(household.members, key=lambda person: person.full_name)


@pytest.fixture
def even_split(db: Session, group_entry, members):
    """300.00 each for Ana, Ben and Carla"""
    return AllocationService(db).create_allocations(
        group_entry.id, [AllocationRequest(m.id, 30000) for m in members]
    )


def _by_person(views):
    return {view.allocation.person_id: view for view in views}


def test_even_split(db: Session, group_entry, even_split, members):
    views = AllocationService(db).list_allocations(group_entry.id)

    assert len(views) == 3
    assert all(view.status == EntryStatus.UNPAID for view in views)
    assert all(view.share == pytest.approx(1 / 3) for view in views)


def test_total_must_match_principal(db: Session, group_entry, members):
    with pytest.raises(ValidationError):
        AllocationService(db).create_allocations(
            group_entry.id, [AllocationRequest(m.id, 20000) for m in members]
        )
    assert db.query(PaymentAllocation).count() == 0


def test_non_member_rejected(db: Session, group_entry, members, borrower):
    requests = [AllocationRequest(members[0].id, 60000), AllocationRequest(borrower.id, 30000)]

    with pytest.raises(ValidationError):
        AllocationService(db).create_allocations(group_entry.id, requests)
    assert db.query(PaymentAllocation).count() == 0


def test_one_allocation_per_person(db: Session, group_entry, members):
    requests = [AllocationRequest(members[0].id, 45000), AllocationRequest(members[0].id, 45000)]

    with pytest.raises(ValidationError):
        AllocationService(db).create_allocations(group_entry.id, requests)


def test_only_group_entries(db: Session, straight_entry, borrower):
    with pytest.raises(ValidationError):
        AllocationService(db).create_allocations(straight_entry.id, [AllocationRequest(borrower.id, 10000)])


def test_linked_payment_settles_allocation(db: Session, group_entry, even_split, members):
    ana = members[0]
    ana_allocation = next(a for a in even_split if a.person_id == ana.id)

    PaymentService(db).create_payment(
        group_entry.id, 30000, date(2024, 2, 1), ana.id, allocation_id=ana_allocation.id
    )

    views = _by_person(AllocationService(db).list_allocations(group_entry.id))
    assert views[ana.id].status == EntryStatus.PAID
    assert views[ana.id].paid_cents == 30000
    assert views[members[1].id].status == EntryStatus.UNPAID


def test_unlinked_payments_by_member_count(db: Session, group_entry, even_split, members):
    """Without linked payments, the member's payments on the entry are used"""
    ben = members[1]
    PaymentService(db).create_payment(group_entry.id, 10000, date(2024, 2, 1), ben.id)

    ben_allocation = next(a for a in even_split if a.person_id == ben.id)
    assert AllocationService(db).compute_status(ben_allocation.id) == EntryStatus.PARTIALLY_PAID


def test_update_must_keep_total(db: Session, even_split):
    with pytest.raises(ValidationError):
        AllocationService(db).update_allocation(even_split[0].id, amount_cents=10000)

    db.refresh(even_split[0])
    assert even_split[0].amount_cents == 30000


def test_update_description(db: Session, even_split):
    allocation = AllocationService(db).update_allocation(even_split[0].id, description="drinks")

    assert allocation.description == "drinks"


def test_rebalance(db: Session, group_entry, even_split):
    service = AllocationService(db)
    first, second, _ = even_split

    service.rebalance_allocations(group_entry.id, {first.id: 50000, second.id: 10000})

    assert service.get_allocation(first.id).allocation.amount_cents == 50000
    assert service.get_allocation(second.id).share == pytest.approx(10000 / 90000)


def test_rebalance_rejects_wrong_total(db: Session, group_entry, even_split):
    with pytest.raises(ValidationError):
        AllocationService(db).rebalance_allocations(group_entry.id, {even_split[0].id: 50000})


def test_delete_must_keep_total(db: Session, group_entry, even_split):
    with pytest.raises(ValidationError):
        AllocationService(db).delete_allocation(even_split[0].id)
    assert db.query(PaymentAllocation).count() == 3


def test_delete_after_rebalance(db: Session, group_entry, even_split):
    service = AllocationService(db)
    first, second, third = even_split
    service.rebalance_allocations(group_entry.id, {first.id: 90000, second.id: 0, third.id: 0})

    service.delete_allocation(second.id)
    service.delete_allocation(third.id)

    assert [view.allocation.id for view in service.list_allocations(group_entry.id)] == [first.id]
