"""Prometheus metrics for payment outcomes, auto-transfers and scheduled executions"""

from prometheus_client import Counter, Histogram

# Card payment metrics
card_payment_counter = Counter(
    "fintrack_card_payment_total",
    "Card payments processed",
    ["card_type", "outcome"],  # outcome: accepted | <failure kind>
)

auto_transfer_counter = Counter(
    "fintrack_auto_transfer_total",
    "Debit card auto-transfers",
    ["outcome"],  # completed | skipped | <failure kind>
)

# Scheduled transaction metrics
scheduled_execution_counter = Counter(
    "fintrack_scheduled_execution_total",
    "Scheduled transaction executions",
    ["outcome"],
)

overdue_marked_counter = Counter(
    "fintrack_scheduled_overdue_marked_total",
    "Scheduled transactions flagged overdue",
)

# Storage health
ledger_unavailable_counter = Counter(
    "fintrack_ledger_unavailable_total",
    "Units of work aborted by the ledger store",
    ["operation"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment(card_type: str, outcome: str) -> None:
    card_payment_counter.labels(card_type=card_type, outcome=outcome.lower()).inc()


def record_auto_transfer(outcome: str) -> None:
    auto_transfer_counter.labels(outcome=outcome.lower()).inc()


def record_execution(outcome: str) -> None:
    scheduled_execution_counter.labels(outcome=outcome.lower()).inc()
