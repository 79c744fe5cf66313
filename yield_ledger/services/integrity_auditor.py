"""Integrity Auditor: credits vs debits reconciliation for a single account

Diagnostic only. The result is reported to the operator and never blocks or
unblocks anything by itself.
"""

from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from yield_ledger.config import settings
from yield_ledger.domain.commissions import COMMISSION_RATES, weighted_level_total
from yield_ledger.domain.models import IntegrityCheckResult, to_money
from yield_ledger.infrastructure.database.repositories import (
    AccountRepository,
    ContractRepository,
    RechargeRepository,
    WithdrawalRepository,
)
from yield_ledger.infrastructure.observability.logging import log_audit
from yield_ledger.infrastructure.observability.metrics import audit_counter


def reconcile(
    account_id: str,
    total_rewards: Decimal,
    total_generated_income: Decimal,
    total_approved_withdrawals: Decimal,
    current_balance: Decimal,
    reward_factor: Decimal,
) -> IntegrityCheckResult:
    credits = to_money(total_rewards * reward_factor + total_generated_income)
    debits = to_money(total_approved_withdrawals + current_balance)
    return IntegrityCheckResult(
        account_id=account_id,
        total_rewards=to_money(total_rewards),
        reward_factor=reward_factor,
        total_generated_income=to_money(total_generated_income),
        total_approved_withdrawals=to_money(total_approved_withdrawals),
        current_balance=to_money(current_balance),
        credits=credits,
        debits=debits,
        is_safe=credits >= debits,
        diff=debits - credits,
    )


class IntegrityAuditor:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def audit(self, account_id: str) -> IntegrityCheckResult:
        with self.session_factory() as db:
            accounts = AccountRepository(db)
            recharges = RechargeRepository(db)
            account = accounts.get(account_id)

            level_totals = [
                recharges.approved_total(accounts.downline_ids(account_id, level))
                for level in range(len(COMMISSION_RATES))
            ]
            generated = sum(
                (to_money(c.daily_income) * c.days_elapsed for c in ContractRepository(db).by_account(account_id)),
                Decimal("0"),
            )
            result = reconcile(
                account_id,
                total_rewards=weighted_level_total(level_totals),
                total_generated_income=generated,
                total_approved_withdrawals=WithdrawalRepository(db).approved_total(account_id),
                current_balance=to_money(account.spendable_balance),
                reward_factor=settings.audit_reward_factor,
            )

        audit_counter.labels(result="safe" if result.is_safe else "anomaly").inc()
        log_audit(account_id, result.is_safe, result.credits, result.debits)
        return result
