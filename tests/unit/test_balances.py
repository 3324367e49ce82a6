"""Unit tests for balance arithmetic and status derivation"""

import pytest
from debt_ledger.domain.balances import (
    allocation_status,
    apply_payment,
    derive_status,
    recompute_remaining,
    share_of_total,
)
from debt_ledger.domain.exceptions import ConsistencyError
from debt_ledger.domain.models import EntryStatus


@pytest.mark.parametrize(
    "remaining,total,expected",
    [
        (0, 10000, EntryStatus.PAID),
        (10000, 10000, EntryStatus.UNPAID),
        (2500, 10000, EntryStatus.PARTIALLY_PAID),
    ],
)
def test_derive_status(remaining, total, expected):
    assert derive_status(remaining, total) == expected


def test_apply_partial_payment():
    result = apply_payment(10000, 10000, 4000)

    assert result.applied_cents == 4000
    assert result.change_cents == 0
    assert result.remaining_cents == 6000
    assert result.status == EntryStatus.PARTIALLY_PAID


def test_apply_overpayment_returns_change():
    """150.00 against 100.00 leaves 50.00 change and a settled balance"""
    result = apply_payment(10000, 10000, 15000)

    assert result.applied_cents == 10000
    assert result.change_cents == 5000
    assert result.remaining_cents == 0
    assert result.status == EntryStatus.PAID


def test_apply_to_settled_balance_is_all_change():
    result = apply_payment(0, 10000, 500)

    assert result.applied_cents == 0
    assert result.change_cents == 500


def test_apply_rejects_non_positive_amount():
    with pytest.raises(ConsistencyError):
        apply_payment(10000, 10000, 0)


def test_recompute_remaining_clamps_at_zero():
    assert recompute_remaining(10000, [4000, 3000]) == 3000
    assert recompute_remaining(10000, [8000, 8000]) == 0


def test_allocation_status():
    assert allocation_status(0, 30000) == EntryStatus.UNPAID
    assert allocation_status(10000, 30000) == EntryStatus.PARTIALLY_PAID
    assert allocation_status(30000, 30000) == EntryStatus.PAID
    assert allocation_status(35000, 30000) == EntryStatus.PAID


def test_share_of_total():
    assert share_of_total(30000, 90000) == pytest.approx(1 / 3)
    assert share_of_total(100, 0) == 0.0
