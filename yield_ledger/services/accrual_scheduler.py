"""Accrual Scheduler: turns elapsed days into credited income"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from yield_ledger.domain.events import ACCRUAL_COMMITTED
from yield_ledger.domain.exceptions import LedgerError
from yield_ledger.domain.models import ContractStatus, SyncSummary, to_money
from yield_ledger.infrastructure.database.repositories import AccountRepository, ContractRepository
from yield_ledger.infrastructure.database.unit_of_work import UnitOfWork, run_atomic
from yield_ledger.infrastructure.observability.logging import log_accrual
from yield_ledger.infrastructure.observability.metrics import (
    accrual_income_counter,
    contracts_completed_counter,
    record_amount,
)
from yield_ledger.services.account_store import SPENDABLE, AccountStore
from yield_ledger.services.contract_ledger import accrue_contract
from yield_ledger.utils.date_utils import to_naive_utc, utcnow


class AccrualScheduler:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def sync_account(self, account_id: str, as_of: Optional[datetime] = None) -> SyncSummary:
        """
        Accrue every active contract of one account and credit the sum with a
        single balance update. Safe to call any number of times per day.
        """
        as_of = to_naive_utc(as_of) if as_of else utcnow()

        def unit(uow: UnitOfWork) -> SyncSummary:
            db = uow.session
            store = AccountStore(db)
            account = store.accounts.get(account_id)

            summary = SyncSummary()
            completed = 0
            for contract in ContractRepository(db).by_account(account_id, ContractStatus.ACTIVE):
                result = accrue_contract(contract, as_of)
                if result.days_credited == 0:
                    continue
                summary.contracts += 1
                summary.income += result.income_credited
                if result.new_status == ContractStatus.COMPLETED:
                    completed += 1

            if summary.contracts == 0:
                return summary

            summary.accounts = 1
            summary.income = to_money(summary.income)
            store.apply(account, SPENDABLE, summary.income)
            uow.emit(
                ACCRUAL_COMMITTED,
                account_id,
                contracts=summary.contracts,
                income=str(summary.income),
                balance=str(account.spendable_balance),
            )
            uow.on_commit(lambda: self._record_accrual(account_id, summary, completed))
            return summary

        return run_atomic(self.session_factory, unit, name="accrual")

    @staticmethod
    def _record_accrual(account_id: str, summary: SyncSummary, completed: int) -> None:
        record_amount(accrual_income_counter, summary.income)
        if completed:
            contracts_completed_counter.inc(completed)
        log_accrual(account_id, summary.contracts, summary.income)

    def sync_all(self, as_of: Optional[datetime] = None) -> SyncSummary:
        """
        Batch accrual over every account holding an active contract.

        Each account is its own atomic unit, so one failing account never
        blocks or rolls back the others. Failures are logged and listed in the
        summary.
        """
        as_of = to_naive_utc(as_of) if as_of else utcnow()
        with self.session_factory() as db:
            account_ids = AccountRepository(db).ids_with_active_contracts()

        total = SyncSummary()
        for account_id in account_ids:
            try:
                summary = self.sync_account(account_id, as_of)
            except LedgerError as e:
                total.failures.append(account_id)
                logging.error(
                    f"Accrual failed for account {account_id}: {e}",
                    extra={"step": "accrual", "account_id": account_id},
                )
                continue
            except SQLAlchemyError:
                total.failures.append(account_id)
                logging.exception(
                    f"Accrual failed for account {account_id}",
                    extra={"step": "accrual", "account_id": account_id},
                )
                continue
            total.accounts += summary.accounts
            total.contracts += summary.contracts
            total.income += summary.income

        total.income = to_money(total.income)
        logging.info(
            f"Accrual sync complete: {total.accounts} accounts, {total.contracts} contracts, {total.income} credited",
            extra={
                "step": "accrual_batch",
                "accounts": total.accounts,
                "contracts": total.contracts,
                "income": total.income,
                "failures": len(total.failures),
            },
        )
        return total
