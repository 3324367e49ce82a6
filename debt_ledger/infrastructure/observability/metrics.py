"""Prometheus metrics for monitoring entry creation, payments and penalties"""

from prometheus_client import Counter, Histogram

# Entry metrics
entry_counter = Counter(
    "ledger_entries_created_total",
    "Total ledger entries created",
    ["shape"],  # STRAIGHT | INSTALLMENT | GROUP
)

# Payment metrics
payment_counter = Counter(
    "ledger_payments_recorded_total",
    "Total payments applied to entries",
    ["outcome"],  # partial | settled | overpaid
)

payment_amount_histogram = Histogram(
    "ledger_payment_amount_cents",
    "Payment amounts in cents",
    buckets=[1_000, 5_000, 10_000, 50_000, 100_000, 500_000, 1_000_000],
)

# Installment metrics
term_skip_counter = Counter(
    "ledger_terms_skipped_total",
    "Installment terms skipped",
)

penalty_cents_counter = Counter(
    "ledger_penalty_cents_total",
    "Penalty cents added to balances by skipped terms",
)

delinquent_terms_counter = Counter(
    "ledger_delinquent_terms_marked_total",
    "Terms moved to DELINQUENT by the sweep",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_entry_created(shape: str) -> None:
    entry_counter.labels(shape=shape).inc()


def record_payment(amount_cents: int, change_cents: int, remaining_cents: int) -> None:
    """Record payment metrics, bucketed by the balance outcome"""
    if change_cents > 0:
        outcome = "overpaid"
    elif remaining_cents == 0:
        outcome = "settled"
    else:
        outcome = "partial"

    payment_counter.labels(outcome=outcome).inc()
    payment_amount_histogram.observe(amount_cents)


def record_term_skipped(penalty_cents: int) -> None:
    term_skip_counter.inc()
    penalty_cents_counter.inc(penalty_cents)
