"""Installment schedule generation for scheduled loans"""

import calendar
from datetime import date, timedelta
from typing import List, Tuple

from debt_ledger.domain.models import Frequency, ScheduledTerm, ScheduleRule

MAX_MONTHLY_SELECTOR = 28


def _days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _next_month(year: int, month: int) -> Tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def _on_day(year: int, month: int, selector: int) -> date:
    """Date in the given month on `selector`, clamped to the month length"""
    return date(year, month, min(selector, _days_in_month(year, month)))


def first_monthly_due(start_date: date, selector: int) -> date:
    """
    First MONTHLY due date on or after start_date.

    If the start day is already past the selector, the first due date falls in
    the following month. The day is clamped to the month length either way.

    Example:
        2024-01-31, selector 28 -> 2024-02-28
    """
    year, month = start_date.year, start_date.month
    if start_date.day > selector:
        year, month = _next_month(year, month)
    return _on_day(year, month, selector)


def first_weekly_due(start_date: date, weekday: int) -> date:
    """First occurrence of `weekday` (Monday=0) on or after start_date"""
    return start_date + timedelta(days=(weekday - start_date.weekday()) % 7)


def generate_schedule(
    start_date: date,
    frequency: Frequency,
    selector: int,
    term_count: int,
) -> List[Tuple[int, date]]:
    """
    Generate (term_number, due_date) pairs for an installment plan.

    Pure function of its inputs: same arguments always give the same sequence.
    Term numbers are 1-based and due dates strictly increasing.

    Raises:
        ValueError: term_count is not positive. Callers validate before calling.
    """
    if term_count <= 0:
        raise ValueError("term_count must be > 0")

    frequency = Frequency(frequency)
    schedule = []

    if frequency is Frequency.WEEKLY:
        due = first_weekly_due(start_date, selector)
        for number in range(1, term_count + 1):
            schedule.append((number, due))
            due = due + timedelta(days=7)
        return schedule

    due = first_monthly_due(start_date, selector)
    for number in range(1, term_count + 1):
        schedule.append((number, due))
        year, month = _next_month(due.year, due.month)
        due = _on_day(year, month, selector)
    return schedule


def split_amount(total_cents: int, term_count: int) -> List[int]:
    """
    Split a total into equal per-term amounts.

    Last term absorbs the rounding remainder so the amounts sum to the total.

    Example:
        100000 cents / 3 -> [33333, 33333, 33334]
    """
    if term_count <= 0:
        raise ValueError("term_count must be > 0")

    base_amount = total_cents // term_count
    remainder = total_cents % term_count

    amounts = [base_amount] * term_count
    amounts[-1] += remainder
    return amounts


def generate_installment_plan(principal_cents: int, rule: ScheduleRule) -> List[ScheduledTerm]:
    """Combine due dates and per-term amounts into a full term list"""
    dates = generate_schedule(rule.start_date, rule.frequency, rule.selector, rule.term_count)
    amounts = split_amount(principal_cents, rule.term_count)

    return [
        ScheduledTerm(term_number=number, due_date=due_date, amount_cents=amount)
        for (number, due_date), amount in zip(dates, amounts)
    ]
