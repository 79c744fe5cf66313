"""VIP tier upgrades and periodic salary"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import sessionmaker

from yield_ledger.config import settings
from yield_ledger.domain.models import to_money
from yield_ledger.domain.vip import eligible_level, salary_due
from yield_ledger.infrastructure.database.repositories import AccountRepository
from yield_ledger.infrastructure.database.unit_of_work import UnitOfWork, run_atomic
from yield_ledger.services.account_store import INVITE_WALLET, AccountStore
from yield_ledger.utils.date_utils import to_naive_utc, utcnow


class VipService:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def check_and_upgrade(self, account_id: str, as_of: Optional[datetime] = None) -> int:
        """Move the account to the highest level its team qualifies for. Never downgrades."""
        as_of = to_naive_utc(as_of) if as_of else utcnow()

        def unit(uow: UnitOfWork) -> int:
            accounts = AccountRepository(uow.session)
            account = accounts.get(account_id)
            team = accounts.team(account_id, valid_only=True)
            assets = to_money(sum((to_money(member.spendable_balance) for member in team), Decimal("0")))

            level = eligible_level(len(team), assets)
            if level <= account.vip_level:
                return account.vip_level

            previous = account.vip_level
            account.vip_level = level
            account.vip_entry_at = as_of
            account.last_salary_at = as_of
            AccountStore.touch(account)
            uow.on_commit(
                lambda: logging.info(
                    f"VIP upgraded to level {level}",
                    extra={
                        "account_id": account_id,
                        "step": "vip_upgrade",
                        "previous_level": previous,
                        "level": level,
                        "team_size": len(team),
                        "team_assets": str(assets),
                    },
                )
            )
            return level

        return run_atomic(self.session_factory, unit, name="vip_upgrade")

    def pay_salary(self, account_id: str, as_of: Optional[datetime] = None) -> Optional[Decimal]:
        """
        Credit the level salary to the invite wallet once per interval.

        Returns:
            Amount paid, or None when nothing was due
        """
        as_of = to_naive_utc(as_of) if as_of else utcnow()

        def unit(uow: UnitOfWork) -> Optional[Decimal]:
            store = AccountStore(uow.session)
            account = store.accounts.get(account_id)
            amount = salary_due(
                account.vip_level,
                account.last_salary_at,
                account.vip_entry_at,
                as_of,
                settings.vip_salary_interval_days,
            )
            if amount is None:
                return None
            store.apply(account, INVITE_WALLET, amount)
            account.last_salary_at = as_of
            uow.on_commit(
                lambda: logging.info(
                    "VIP salary paid",
                    extra={
                        "account_id": account_id,
                        "step": "vip_salary",
                        "level": account.vip_level,
                        "amount": str(amount),
                    },
                )
            )
            return amount

        return run_atomic(self.session_factory, unit, name="vip_salary")
