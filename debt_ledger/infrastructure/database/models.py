"""SQLAlchemy ORM models for the ledger records"""

import uuid
from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


group_members = Table(
    "group_member",
    Base.metadata,
    Column("group_id", Uuid(as_uuid=True), ForeignKey("person_group.id"), primary_key=True),
    Column("person_id", Uuid(as_uuid=True), ForeignKey("person.id"), primary_key=True),
)


class Person(Base):
    """Identity anchor for lenders, borrowers and group members"""

    __tablename__ = "person"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name = Column(Text, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    groups = relationship("Group", secondary=group_members, back_populates="members")


class Group(Base):
    """Named set of persons that can borrow as one"""

    __tablename__ = "person_group"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    members = relationship("Person", secondary=group_members, back_populates="groups")


class LedgerEntry(Base):
    """A tracked debt: straight expense, installment loan or group expense"""

    __tablename__ = "ledger_entry"
    __table_args__ = (
        Index("ix_ledger_entry_lender", "lender_id"),
        Index("ix_ledger_entry_borrower_person", "borrower_person_id"),
        Index("ix_ledger_entry_borrower_group", "borrower_group_id"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    shape = Column(Text, nullable=False)
    principal_cents = Column(BigInteger, nullable=False)
    remaining_cents = Column(BigInteger, nullable=False)
    penalty_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False, default="UNPAID")

    lender_id = Column(Uuid(as_uuid=True), ForeignKey("person.id"), nullable=False)
    borrower_person_id = Column(Uuid(as_uuid=True), ForeignKey("person.id"), nullable=True)
    borrower_group_id = Column(Uuid(as_uuid=True), ForeignKey("person_group.id"), nullable=True)

    payment_method = Column(Text, nullable=False)
    reference_code = Column(Text, nullable=False, unique=True)

    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    recorded_on = Column(Date, nullable=True)
    proof_ref = Column(Text, nullable=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    lender = relationship("Person", foreign_keys=[lender_id])
    borrower_person = relationship("Person", foreign_keys=[borrower_person_id])
    borrower_group = relationship("Group")

    plan = relationship("InstallmentPlan", back_populates="entry", uselist=False, passive_deletes="all")
    allocations = relationship(
        "PaymentAllocation",
        back_populates="entry",
        order_by="PaymentAllocation.created_at",
        passive_deletes="all",
    )
    payment_links = relationship("EntryPayment", back_populates="entry", passive_deletes="all")

    @property
    def total_due_cents(self) -> int:
        return self.principal_cents + (self.penalty_cents or 0)


class InstallmentPlan(Base):
    """Repayment schedule owned by an INSTALLMENT entry"""

    __tablename__ = "installment_plan"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entry_id = Column(Uuid(as_uuid=True), ForeignKey("ledger_entry.id"), nullable=False, unique=True)
    start_date = Column(Date, nullable=False)
    frequency = Column(Text, nullable=False)
    selector = Column(Integer, nullable=False)
    term_count = Column(Integer, nullable=False)
    amount_per_term_cents = Column(BigInteger, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    entry = relationship("LedgerEntry", back_populates="plan")
    terms = relationship(
        "InstallmentTerm",
        back_populates="plan",
        order_by="InstallmentTerm.term_number",
        passive_deletes="all",
    )


class InstallmentTerm(Base):
    """Individual scheduled obligation within a plan"""

    __tablename__ = "installment_term"
    __table_args__ = (
        UniqueConstraint("plan_id", "term_number", name="uq_plan_term_number"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id = Column(Uuid(as_uuid=True), ForeignKey("installment_plan.id"), nullable=False, index=True)
    term_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    penalty_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False, default="NOT_STARTED")

    plan = relationship("InstallmentPlan", back_populates="terms")


class Payment(Base):
    """Money received from a payer"""

    __tablename__ = "payment"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    amount_cents = Column(BigInteger, nullable=False)
    paid_on = Column(Date, nullable=False)
    payer_id = Column(Uuid(as_uuid=True), ForeignKey("person.id"), nullable=False, index=True)
    proof_ref = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    payer = relationship("Person")
    entry_links = relationship("EntryPayment", back_populates="payment", passive_deletes="all")
    allocation_link = relationship(
        "AllocationPayment", back_populates="payment", uselist=False, passive_deletes="all"
    )


class EntryPayment(Base):
    """Join between a payment and an entry, with the amount applied to that entry"""

    __tablename__ = "entry_payment"

    payment_id = Column(Uuid(as_uuid=True), ForeignKey("payment.id"), primary_key=True)
    entry_id = Column(Uuid(as_uuid=True), ForeignKey("ledger_entry.id"), primary_key=True)
    applied_cents = Column(BigInteger, nullable=False, default=0)

    payment = relationship("Payment", back_populates="entry_links")
    entry = relationship("LedgerEntry", back_populates="payment_links")


class PaymentAllocation(Base):
    """One group member's share of a GROUP entry"""

    __tablename__ = "payment_allocation"
    __table_args__ = (
        UniqueConstraint("entry_id", "person_id", name="uq_allocation_entry_person"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entry_id = Column(Uuid(as_uuid=True), ForeignKey("ledger_entry.id"), nullable=False, index=True)
    person_id = Column(Uuid(as_uuid=True), ForeignKey("person.id"), nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    entry = relationship("LedgerEntry", back_populates="allocations")
    person = relationship("Person")
    payment_links = relationship("AllocationPayment", back_populates="allocation", passive_deletes="all")


class AllocationPayment(Base):
    """Join between a payment and the single allocation it settles"""

    __tablename__ = "allocation_payment"

    payment_id = Column(Uuid(as_uuid=True), ForeignKey("payment.id"), primary_key=True)
    allocation_id = Column(Uuid(as_uuid=True), ForeignKey("payment_allocation.id"), nullable=False, index=True)

    payment = relationship("Payment", back_populates="allocation_link")
    allocation = relationship("PaymentAllocation", back_populates="payment_links")
