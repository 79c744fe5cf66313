"""Prometheus metrics for purchases, accrual, withdrawals, audits and webhook performance"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Purchase metrics
purchase_counter = Counter(
    "ledger_purchases_total",
    "Contract purchase attempts",
    ["outcome"],  # committed | insufficient_funds | limit_reached | failed
)

commission_amount_counter = Counter(
    "ledger_commission_amount_total",
    "Referral commission credited to invite wallets",
    ["level"],  # A | B | C | D
)

# Accrual metrics
accrual_income_counter = Counter(
    "ledger_accrual_income_total",
    "Daily contract income credited to spendable balances",
)

contracts_completed_counter = Counter(
    "ledger_contracts_completed_total",
    "Contracts that reached the end of their term",
)

# Withdrawal metrics
withdrawal_counter = Counter(
    "ledger_withdrawals_total",
    "Withdrawal request transitions",
    ["status"],  # pending | approved | rejected | refunded | denied
)

# Atomic units
tx_conflict_counter = Counter(
    "ledger_tx_conflicts_total",
    "Atomic units re-run after losing a concurrent version race",
    ["unit"],
)

# Integrity audits
audit_counter = Counter(
    "ledger_integrity_audits_total",
    "Integrity audits run",
    ["result"],  # safe | anomaly
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Event webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_amount(counter: Counter, amount: Decimal) -> None:
    """Counters take floats; skip zero so empty syncs don't add samples"""
    if amount > 0:
        counter.inc(float(amount))
