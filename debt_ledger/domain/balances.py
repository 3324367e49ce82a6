"""Balance arithmetic and derived status for entries and allocations"""

from typing import Iterable

from debt_ledger.domain.exceptions import ConsistencyError
from debt_ledger.domain.models import EntryStatus, PaymentApplication


def derive_status(remaining_cents: int, total_due_cents: int) -> EntryStatus:
    """
    Status is a pure function of the remaining balance.

    - remaining <= 0: PAID
    - remaining >= total due: UNPAID
    - anything in between: PARTIALLY_PAID

    Total due is the principal plus any applied penalties.
    """
    if remaining_cents <= 0:
        return EntryStatus.PAID
    if remaining_cents >= total_due_cents:
        return EntryStatus.UNPAID
    return EntryStatus.PARTIALLY_PAID


def apply_payment(remaining_cents: int, total_due_cents: int, amount_cents: int) -> PaymentApplication:
    """
    Apply a payment to a remaining balance.

    Excess over the balance is returned as change and never stored.

    Example:
        remaining 10000, payment 15000 -> applied 10000, change 5000, PAID
    """
    if amount_cents <= 0:
        raise ConsistencyError(f"payment amount must be positive, got {amount_cents}")

    applied = min(amount_cents, max(remaining_cents, 0))
    change = amount_cents - applied
    new_remaining = remaining_cents - applied

    if new_remaining < 0:
        raise ConsistencyError(f"remaining balance went negative: {new_remaining}")

    return PaymentApplication(
        applied_cents=applied,
        change_cents=change,
        remaining_cents=new_remaining,
        status=derive_status(new_remaining, total_due_cents),
    )


def recompute_remaining(total_due_cents: int, applied_cents: Iterable[int]) -> int:
    """Remaining balance from the payment history, clamped at zero"""
    return max(0, total_due_cents - sum(applied_cents))


def allocation_status(paid_cents: int, amount_cents: int) -> EntryStatus:
    """PAID once payments cover the share, UNPAID with nothing paid"""
    if paid_cents >= amount_cents:
        return EntryStatus.PAID
    if paid_cents == 0:
        return EntryStatus.UNPAID
    return EntryStatus.PARTIALLY_PAID


def share_of_total(amount_cents: int, principal_cents: int) -> float:
    """Fraction of the entry principal covered by one allocation"""
    if principal_cents <= 0:
        return 0.0
    return amount_cents / principal_cents
