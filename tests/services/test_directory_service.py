"""Tests for persons, groups and membership"""

import pytest
import threading
import time
import uuid
from sqlalchemy.orm import Session
from debt_ledger.domain.exceptions import NotFoundError, ValidationError
from debt_ledger.domain.models import AllocationRequest
from debt_ledger.infrastructure.database.models import Person
from debt_ledger.infrastructure.database.repositories import PersonRepository
from debt_ledger.services.allocations import AllocationService
from debt_ledger.services.directory import DirectoryService


def test_ensure_person_is_idempotent(db: Session):
    service = DirectoryService(db)
    first = service.ensure_person("  Paolo Garcia ")
    second = service.ensure_person("Paolo Garcia")

    assert first.id == second.id
    assert db.query(Person).count() == 1


def test_concurrent_ensure_person_creates_one_record(db: Session, session_factory, monkeypatch):
    find_by_name = PersonRepository.find_by_name

    def slow_find_by_name(self, full_name):
        person = find_by_name(self, full_name)
        time.sleep(0.05)
        return person

    monkeypatch.setattr(PersonRepository, "find_by_name", slow_find_by_name)
    errors = []

    def resolve():
        session = session_factory()
        try:
            DirectoryService(session).ensure_person("Paolo Garcia")
        except Exception as e:  # surfaced by the assertion below
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=resolve) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert db.query(Person).filter(Person.full_name == "Paolo Garcia").count() == 1


def test_person_name_required(db: Session):
    with pytest.raises(ValidationError):
        DirectoryService(db).create_person("   ")


def test_get_unknown_person(db: Session):
    with pytest.raises(NotFoundError):
        DirectoryService(db).get_person(uuid.uuid4())


def test_group_names_are_unique(db: Session, household):
    with pytest.raises(ValidationError):
        DirectoryService(db).create_group("Household")


def test_group_members_are_unique(db: Session, make_person):
    person = make_person("Dan Cruz")

    with pytest.raises(ValidationError):
        DirectoryService(db).create_group("Office", [person.id, person.id])


def test_add_and_remove_member(db: Session, household, borrower):
    service = DirectoryService(db)

    group = service.add_member(household.id, borrower.id)
    assert borrower.id in {m.id for m in group.members}

    with pytest.raises(ValidationError):
        service.add_member(household.id, borrower.id)

    group = service.remove_member(household.id, borrower.id)
    assert borrower.id not in {m.id for m in group.members}


def test_cannot_remove_member_with_allocation(db: Session, household, group_entry):
    members = list(household.members)
    AllocationService(db).create_allocations(
        group_entry.id,
        [AllocationRequest(members[0].id, 90000)] + [AllocationRequest(m.id, 0) for m in members[1:]],
    )

    with pytest.raises(ValidationError):
        DirectoryService(db).remove_member(household.id, members[0].id)


def test_delete_referenced_person_rejected(db: Session, straight_entry, borrower):
    with pytest.raises(ValidationError):
        DirectoryService(db).delete_person(borrower.id)


def test_delete_unreferenced_person(db: Session, make_person):
    person_id = make_person("Temp User").id

    DirectoryService(db).delete_person(person_id)

    assert db.get(Person, person_id) is None


def test_delete_group_with_entries_rejected(db: Session, household, group_entry):
    with pytest.raises(ValidationError):
        DirectoryService(db).delete_group(household.id)


def test_delete_empty_group(db: Session, household):
    group_id = household.id

    DirectoryService(db).delete_group(group_id)

    with pytest.raises(NotFoundError):
        DirectoryService(db).get_group(group_id)
