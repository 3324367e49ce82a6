"""Pytest fixtures for testing"""

import pytest
from datetime import date
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from debt_ledger.api.main import create_app
from debt_ledger.domain.models import Borrower, Frequency, ScheduleRule, TransactionShape
from debt_ledger.infrastructure.database.models import Base, Group, LedgerEntry, Person
from debt_ledger.infrastructure.database.session import get_db
from debt_ledger.services.directory import DirectoryService
from debt_ledger.services.entries import EntryService


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session) -> sessionmaker:
    """Factory for extra sessions on the test database, one per thread"""
    return TestingSessionLocal


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def make_person(db: Session) -> Callable[[str], Person]:
    def _make(full_name: str) -> Person:
        return DirectoryService(db).create_person(full_name)

    return _make


@pytest.fixture
def lender(make_person) -> Person:
    return make_person("Dela Cruz, Juan")


@pytest.fixture
def borrower(make_person) -> Person:
    return make_person("Maria Santos")


@pytest.fixture
def household(db: Session, make_person) -> Group:
    """Three-member group: Ana, Ben, Carla"""
    members = [make_person("Ana Reyes"), make_person("Ben Lim"), make_person("Carla Tan")]
    return DirectoryService(db).create_group("Household", [m.id for m in members])


@pytest.fixture
def straight_entry(db: Session, lender: Person, borrower: Person) -> LedgerEntry:
    """STRAIGHT entry of 100.00 owed by Maria to Juan"""
    return EntryService(db).create_entry(
        name="Lunch",
        shape=TransactionShape.STRAIGHT,
        principal_cents=10000,
        lender_id=lender.id,
        borrower=Borrower.person(borrower.id),
    )


@pytest.fixture
def installment_entry(db: Session, lender: Person, borrower: Person) -> LedgerEntry:
    """INSTALLMENT entry of 1,200.00 over three monthly terms on the 15th"""
    return EntryService(db).create_entry(
        name="Phone",
        shape=TransactionShape.INSTALLMENT,
        principal_cents=120000,
        lender_id=lender.id,
        borrower=Borrower.person(borrower.id),
        payment_method="BANK",
        schedule=ScheduleRule(
            start_date=date(2024, 1, 10),
            frequency=Frequency.MONTHLY,
            selector=15,
            term_count=3,
        ),
    )


@pytest.fixture
def group_entry(db: Session, lender: Person, household: Group) -> LedgerEntry:
    """GROUP entry of 900.00 owed by the household"""
    return EntryService(db).create_entry(
        name="Groceries",
        shape=TransactionShape.GROUP,
        principal_cents=90000,
        lender_id=lender.id,
        borrower=Borrower.group(household.id),
    )
