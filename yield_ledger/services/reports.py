"""Platform revenue report"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import sessionmaker

from yield_ledger.domain.models import RevenueFigures, RevenueSummary
from yield_ledger.infrastructure.database.repositories import RechargeRepository, WithdrawalRepository
from yield_ledger.utils.date_utils import to_naive_utc, utc_day_start, utcnow


def revenue_summary(session_factory: sessionmaker, as_of: Optional[datetime] = None) -> RevenueSummary:
    """Approved recharges against withdrawals of any status, today (UTC) and all time"""
    today = utc_day_start(to_naive_utc(as_of) if as_of else utcnow())
    with session_factory() as db:
        recharges = RechargeRepository(db)
        withdrawals = WithdrawalRepository(db)
        return RevenueSummary(
            today=RevenueFigures(
                recharge=recharges.approved_total_all(since=today),
                withdrawal=withdrawals.total(since=today),
            ),
            all_time=RevenueFigures(
                recharge=recharges.approved_total_all(),
                withdrawal=withdrawals.total(),
            ),
        )
