"""Late-skip penalty calculation for installment terms"""

from decimal import Decimal, ROUND_HALF_UP


def skip_penalty(term_amount_cents: int, rate: float, floor_cents: int) -> int:
    """
    Penalty for skipping a term: max(rate x term amount, floor).

    The rate share is rounded half-up to whole cents.

    Example:
        term 4000 cents, rate 0.05, floor 5000 -> 5000 (floor wins over 200)
    """
    rated = (Decimal(term_amount_cents) * Decimal(str(rate))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(int(rated), floor_cents, 0)
