"""Domain models - pure Python dataclasses and enums representing ledger concepts"""

import uuid
from dataclasses import dataclass
from datetime import date
from enum import Enum, IntEnum
from typing import Optional

from debt_ledger.domain.exceptions import ValidationError


class TransactionShape(str, Enum):
    """How a debt is settled"""

    STRAIGHT = "STRAIGHT"
    INSTALLMENT = "INSTALLMENT"
    GROUP = "GROUP"


class EntryStatus(str, Enum):
    """Derived settlement status of an entry or allocation"""

    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"


class TermStatus(str, Enum):
    """Status of a single installment term"""

    NOT_STARTED = "NOT_STARTED"
    UNPAID = "UNPAID"
    PAID = "PAID"
    SKIPPED = "SKIPPED"
    DELINQUENT = "DELINQUENT"


TERMINAL_TERM_STATUSES = frozenset({TermStatus.PAID, TermStatus.SKIPPED})


class Frequency(str, Enum):
    """Installment recurrence"""

    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class Weekday(IntEnum):
    """Weekday selector for WEEKLY plans, aligned with date.weekday()"""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class PaymentMethod(str, Enum):
    """How money changes hands"""

    CASH = "CASH"
    BANK = "BANK"
    EWALLET = "EWALLET"
    CARD = "CARD"
    OTHER = "OTHER"


class BorrowerKind(str, Enum):
    PERSON = "PERSON"
    GROUP = "GROUP"


@dataclass(frozen=True)
class Borrower:
    """Who owes the debt: exactly one person or exactly one group"""

    kind: BorrowerKind
    id: uuid.UUID

    @classmethod
    def person(cls, person_id: uuid.UUID) -> "Borrower":
        return cls(BorrowerKind.PERSON, person_id)

    @classmethod
    def group(cls, group_id: uuid.UUID) -> "Borrower":
        return cls(BorrowerKind.GROUP, group_id)

    @classmethod
    def from_ids(cls, person_id: Optional[uuid.UUID], group_id: Optional[uuid.UUID]) -> "Borrower":
        """Build from two optional ids, exactly one of which must be set"""
        if (person_id is None) == (group_id is None):
            raise ValidationError("exactly one of borrower person or borrower group must be set")
        if person_id is not None:
            return cls.person(person_id)
        return cls.group(group_id)

    @property
    def is_group(self) -> bool:
        return self.kind is BorrowerKind.GROUP


@dataclass
class ScheduleRule:
    """Recurrence inputs for an installment plan"""

    start_date: date
    frequency: Frequency
    selector: int  # Weekday for WEEKLY, day of month (1-28) for MONTHLY
    term_count: int


@dataclass
class ScheduledTerm:
    """Single due date in a generated installment schedule"""

    term_number: int
    due_date: date
    amount_cents: int


@dataclass
class AllocationRequest:
    """One member's requested share of a group expense"""

    person_id: uuid.UUID
    amount_cents: int
    description: str = ""


@dataclass
class PaymentApplication:
    """Result of applying money to an entry balance"""

    applied_cents: int
    change_cents: int
    remaining_cents: int
    status: EntryStatus


@dataclass
class EntrySummary:
    """Read-side view of an entry's balances"""

    entry_id: uuid.UUID
    principal_cents: int
    penalty_cents: int
    total_paid_cents: int
    remaining_cents: int
    status: EntryStatus
    next_due_date: Optional[date] = None
    next_due_amount_cents: Optional[int] = None
