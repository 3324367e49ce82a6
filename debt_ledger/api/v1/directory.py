"""/v1/persons and /v1/groups - identity directory endpoints"""

import uuid
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from debt_ledger.api.dependencies import get_request_id, to_http_error
from debt_ledger.api.v1.schemas import GroupCreate, GroupResponse, MemberRequest, PersonCreate, PersonResponse
from debt_ledger.domain.exceptions import DomainException
from debt_ledger.infrastructure.database.models import Group, Person
from debt_ledger.infrastructure.database.session import get_db
from debt_ledger.services.directory import DirectoryService

router = APIRouter()


def _person(person: Person) -> PersonResponse:
    return PersonResponse(person_id=person.id, full_name=person.full_name)


def _group(group: Group) -> GroupResponse:
    return GroupResponse(group_id=group.id, name=group.name, member_ids=[member.id for member in group.members])


@router.post("/persons", response_model=PersonResponse, status_code=201)
def create_person(body: PersonCreate, request: Request, db: Session = Depends(get_db)):
    try:
        return _person(DirectoryService(db).create_person(body.full_name))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.get("/persons/{person_id}", response_model=PersonResponse)
def get_person(person_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        return _person(DirectoryService(db).get_person(person_id))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.delete("/persons/{person_id}", status_code=204)
def delete_person(person_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        DirectoryService(db).delete_person(person_id)
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.post("/groups", response_model=GroupResponse, status_code=201)
def create_group(body: GroupCreate, request: Request, db: Session = Depends(get_db)):
    """Create a group; the name must be unique"""
    try:
        return _group(DirectoryService(db).create_group(body.name, body.member_ids))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.get("/groups/{group_id}", response_model=GroupResponse)
def get_group(group_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        return _group(DirectoryService(db).get_group(group_id))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.post("/groups/{group_id}/members", response_model=GroupResponse)
def add_member(group_id: uuid.UUID, body: MemberRequest, request: Request, db: Session = Depends(get_db)):
    try:
        return _group(DirectoryService(db).add_member(group_id, body.person_id))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.delete("/groups/{group_id}/members/{person_id}", response_model=GroupResponse)
def remove_member(group_id: uuid.UUID, person_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        return _group(DirectoryService(db).remove_member(group_id, person_id))
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))


@router.delete("/groups/{group_id}", status_code=204)
def delete_group(group_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        DirectoryService(db).delete_group(group_id)
    except DomainException as e:
        raise to_http_error(e, get_request_id(request))
