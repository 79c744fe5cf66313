"""Contract maturity arithmetic

Pure functions over contract state; persistence and balance updates live in
the services layer.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from yield_ledger.domain.exceptions import InvalidPeriod
from yield_ledger.domain.models import AccrualResult, ContractStatus, to_money
from yield_ledger.utils.date_utils import days_between, utc_day_start


def status_for(remaining_days: int) -> str:
    return ContractStatus.COMPLETED if remaining_days <= 0 else ContractStatus.ACTIVE


def accrue(
    remaining_days: int,
    daily_income: Decimal,
    last_accrual: Optional[datetime],
    as_of: datetime,
) -> AccrualResult:
    """
    Advance a contract by the whole UTC days elapsed since last_accrual.

    Income is capped by remaining_days. When any day is credited the new
    last_accrual is the UTC midnight of as_of, so a second call on the same
    day finds zero elapsed days and changes nothing.
    """
    elapsed = days_between(last_accrual, as_of)
    credited = min(elapsed, max(remaining_days, 0))

    if credited <= 0:
        return AccrualResult(
            income_credited=to_money(0),
            days_credited=0,
            new_remaining_days=max(remaining_days, 0),
            new_status=status_for(remaining_days),
            new_last_accrual=last_accrual,
        )

    new_remaining = remaining_days - credited
    return AccrualResult(
        income_credited=to_money(daily_income * credited),
        days_credited=credited,
        new_remaining_days=new_remaining,
        new_status=status_for(new_remaining),
        new_last_accrual=utc_day_start(as_of),
    )


def period_change(contract_period: int, remaining_days: int, new_period: int) -> int:
    """
    Validate a contract period override and return the signed day delta.

    Elapsed days (period - remaining) must stay unchanged, so the new period
    may not drop below what has already been paid out.
    """
    if new_period <= 0:
        raise InvalidPeriod(f"Contract period must be positive, got {new_period}", new_period=new_period)

    days_elapsed = contract_period - remaining_days
    if new_period < days_elapsed:
        raise InvalidPeriod(
            f"Contract period {new_period} is shorter than the {days_elapsed} days already elapsed",
            new_period=new_period,
            days_elapsed=days_elapsed,
        )
    return new_period - contract_period


def clamp_bulk_delta(remaining_days: int, delta: int) -> int:
    """Effective delta for a bulk adjustment: never pushes remaining days below zero"""
    return max(delta, -remaining_days)
