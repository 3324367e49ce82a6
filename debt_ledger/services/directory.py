"""Identity directory: persons, groups and group membership"""

import logging
import uuid
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from debt_ledger.domain.exceptions import NotFoundError, ValidationError
from debt_ledger.infrastructure.database.models import Group, Person
from debt_ledger.infrastructure.database.repositories import (
    AllocationRepository,
    GroupRepository,
    PersonRepository,
)
from debt_ledger.infrastructure.database.session import atomic
from debt_ledger.services.locking import label_locks

logger = logging.getLogger(__name__)


class DirectoryService:
    """Create and resolve the persons and groups that entries refer to"""

    def __init__(self, db: Session):
        self.db = db
        self.persons = PersonRepository(db)
        self.groups = GroupRepository(db)

    # Persons

    def create_person(self, full_name: str) -> Person:
        full_name = _clean_name(full_name, "full_name")
        with atomic(self.db):
            person = self.persons.create(full_name)
        logger.info("Person created", extra={"person_id": str(person.id)})
        return person

    def ensure_person(self, full_name: str) -> Person:
        """Person with this name, created on demand (used for the acting identity's self-record)"""
        full_name = _clean_name(full_name, "full_name")
        with label_locks.hold(("person", full_name)):
            existing = self.persons.find_by_name(full_name)
            if existing is not None:
                return existing
            return self.create_person(full_name)

    def get_person(self, person_id: uuid.UUID) -> Person:
        person = self.persons.get(person_id)
        if person is None:
            raise NotFoundError("Person", person_id)
        return person

    def find_person(self, full_name: str) -> Optional[Person]:
        return self.persons.find_by_name(full_name)

    def delete_person(self, person_id: uuid.UUID) -> None:
        with atomic(self.db):
            person = self.get_person(person_id)
            if self.persons.is_referenced(person_id):
                raise ValidationError("person is still referenced by entries, payments or groups")
            self.persons.delete(person)

    # Groups

    def create_group(self, name: str, member_ids: Iterable[uuid.UUID] = ()) -> Group:
        name = _clean_name(name, "name")
        with atomic(self.db):
            if self.groups.get_by_name(name) is not None:
                raise ValidationError(f"group name '{name}' is already taken")
            member_ids = list(member_ids)
            if len(set(member_ids)) != len(member_ids):
                raise ValidationError("a person can only be added to a group once")
            members = [self.get_person(person_id) for person_id in member_ids]
            group = self.groups.create(name, members)
        logger.info("Group created", extra={"group_id": str(group.id), "member_count": len(members)})
        return group

    def get_group(self, group_id: uuid.UUID) -> Group:
        group = self.groups.get(group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        return group

    def add_member(self, group_id: uuid.UUID, person_id: uuid.UUID) -> Group:
        with atomic(self.db):
            group = self.get_group(group_id)
            person = self.get_person(person_id)
            if self.groups.is_member(group_id, person_id):
                raise ValidationError("person is already a member of this group")
            group.members.append(person)
            self.db.flush()
        return group

    def remove_member(self, group_id: uuid.UUID, person_id: uuid.UUID) -> Group:
        with atomic(self.db):
            group = self.get_group(group_id)
            person = self.get_person(person_id)
            if not self.groups.is_member(group_id, person_id):
                raise ValidationError("person is not a member of this group")
            if AllocationRepository(self.db).person_has_allocation_in_group(group_id, person_id):
                raise ValidationError("member still holds an allocation in one of the group's entries")
            group.members.remove(person)
            self.db.flush()
        return group

    def delete_group(self, group_id: uuid.UUID) -> None:
        with atomic(self.db):
            group = self.get_group(group_id)
            if self.groups.has_entries(group_id):
                raise ValidationError("group is the borrower of existing entries")
            self.groups.delete(group)


def _clean_name(value: str, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} must not be empty")
    return value
