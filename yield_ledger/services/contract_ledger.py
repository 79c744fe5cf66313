"""Contract Ledger: purchase, daily maturity and audited period overrides"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from yield_ledger.domain.accrual import accrue, clamp_bulk_delta, period_change, status_for
from yield_ledger.domain.commissions import LEVEL_NAMES
from yield_ledger.domain.events import PURCHASE_COMMITTED
from yield_ledger.domain.exceptions import (
    InsufficientFunds,
    LedgerError,
    PurchaseLimitExceeded,
    ValidationError,
)
from yield_ledger.domain.models import AccrualResult, CommissionCredit, ContractStatus, ProductTerms, to_money
from yield_ledger.infrastructure.database.models import Contract
from yield_ledger.infrastructure.database.repositories import AccountRepository, ContractRepository, ProductRepository
from yield_ledger.infrastructure.database.unit_of_work import UnitOfWork, run_atomic
from yield_ledger.infrastructure.observability.logging import log_purchase
from yield_ledger.infrastructure.observability.metrics import (
    commission_amount_counter,
    contracts_completed_counter,
    purchase_counter,
    record_amount,
)
from yield_ledger.services.account_store import SPENDABLE, AccountStore
from yield_ledger.services.commission_distributor import CommissionDistributor
from yield_ledger.services.overrides import record_override, require_override
from yield_ledger.utils.date_utils import to_naive_utc, utcnow


@dataclass
class PurchaseResult:
    contract: Contract
    commissions: List[CommissionCredit]

    @property
    def commission_total(self) -> Decimal:
        return to_money(sum((c.amount for c in self.commissions), Decimal("0")))


def accrue_contract(contract: Contract, as_of: datetime) -> AccrualResult:
    """
    Advance one contract in place by the whole days elapsed since its last
    accrual. The caller credits the returned income to the owner's balance
    within the same unit.
    """
    since = contract.last_accrual_at or contract.purchased_at
    result = accrue(contract.remaining_days, to_money(contract.daily_income), since, as_of)
    if result.days_credited > 0:
        contract.remaining_days = result.new_remaining_days
        contract.last_accrual_at = result.new_last_accrual
    if contract.status != result.new_status:
        contract.status = result.new_status
    return result


class ContractLedger:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_contract(self, account_id: str, product_id: str, purchased_at: Optional[datetime] = None) -> PurchaseResult:
        """
        Buy a product: debit the principal, pre-credit day one, open the
        contract and pay referral commissions, all in one atomic unit.

        Raises:
            NotFound: unknown account or inactive product
            PurchaseLimitExceeded: account already holds purchase_limit contracts for the product
            InsufficientFunds: spendable balance below the price
        """
        purchased_at = to_naive_utc(purchased_at) if purchased_at else utcnow()

        def unit(uow: UnitOfWork) -> PurchaseResult:
            db = uow.session
            store = AccountStore(db)
            contracts = ContractRepository(db)

            account = store.accounts.get(account_id)
            product = ProductRepository(db).get_active(product_id)
            terms = ProductTerms(
                product_id=product.id,
                name=product.name,
                price=to_money(product.price),
                daily_income=to_money(product.daily_income),
                contract_period=product.contract_period,
                purchase_limit=product.purchase_limit,
            )

            # Counted inside the unit; the account version check below makes it race-free
            held = contracts.count_for_product(account_id, product_id)
            if held >= terms.purchase_limit:
                raise PurchaseLimitExceeded(product_id, terms.purchase_limit, held)

            balance = to_money(account.spendable_balance)
            if balance < terms.price:
                raise InsufficientFunds(balance=balance, required=terms.price)

            store.apply(account, SPENDABLE, terms.daily_income - terms.price)

            remaining = max(terms.contract_period - 1, 0)
            contract = contracts.add(
                Contract(
                    account_id=account_id,
                    product_id=terms.product_id,
                    product_name=terms.name,
                    principal=terms.price,
                    daily_income=terms.daily_income,
                    contract_period=terms.contract_period,
                    remaining_days=remaining,
                    total_profit=terms.total_profit,
                    principal_plus_income=terms.principal_plus_income,
                    status=status_for(remaining),
                    purchased_at=purchased_at,
                    last_accrual_at=purchased_at,
                )
            )

            commissions = CommissionDistributor(db).distribute(account, terms.price)

            result = PurchaseResult(contract=contract, commissions=commissions)
            uow.emit(
                PURCHASE_COMMITTED,
                account_id,
                role="purchaser",
                contract_id=contract.id,
                product_id=terms.product_id,
                principal=str(terms.price),
                first_day_income=str(terms.daily_income),
            )
            for credit in commissions:
                uow.emit(
                    PURCHASE_COMMITTED,
                    credit.ancestor_id,
                    role="inviter",
                    level=LEVEL_NAMES[credit.level],
                    contract_id=contract.id,
                    commission=str(credit.amount),
                )
            uow.on_commit(lambda: self._record_purchase(account_id, result))
            return result

        try:
            return run_atomic(self.session_factory, unit, name="purchase")
        except InsufficientFunds:
            purchase_counter.labels(outcome="insufficient_funds").inc()
            raise
        except PurchaseLimitExceeded:
            purchase_counter.labels(outcome="limit_reached").inc()
            raise
        except LedgerError as e:
            purchase_counter.labels(outcome="failed").inc()
            logging.warning(f"Purchase denied: {e}", extra={"account_id": account_id, "product_id": product_id})
            raise

    @staticmethod
    def _record_purchase(account_id: str, result: PurchaseResult) -> None:
        contract = result.contract
        purchase_counter.labels(outcome="committed").inc()
        for credit in result.commissions:
            record_amount(commission_amount_counter.labels(level=LEVEL_NAMES[credit.level]), credit.amount)
        if contract.status == ContractStatus.COMPLETED:
            contracts_completed_counter.inc()
        log_purchase(account_id, contract.id, contract.product_id, to_money(contract.principal), result.commission_total)

    def adjust_contract_period(
        self,
        contract_id: str,
        new_period: int,
        actor: Optional[str],
        reason: Optional[str],
    ) -> Contract:
        """
        Admin override of one contract's term. Remaining days and the derived
        financial fields move by the same day delta, so elapsed days never change.

        Raises:
            InvalidPeriod: new_period <= 0 or shorter than the days already elapsed
        """
        actor, reason = require_override(actor, reason, "adjust_contract_period")

        def unit(uow: UnitOfWork) -> Contract:
            contract = ContractRepository(uow.session).get(contract_id)
            previous = (contract.contract_period, contract.remaining_days, str(contract.total_profit))
            diff = period_change(contract.contract_period, contract.remaining_days, new_period)
            self._shift(contract, diff)
            record_override(
                uow,
                actor,
                "adjust_contract_period",
                "contract",
                contract_id,
                reason,
                {
                    "previous_period": previous[0],
                    "previous_remaining_days": previous[1],
                    "previous_total_profit": previous[2],
                    "new_period": contract.contract_period,
                    "new_remaining_days": contract.remaining_days,
                    "new_total_profit": str(contract.total_profit),
                },
            )
            return contract

        return run_atomic(self.session_factory, unit, name="adjust_contract_period")

    def adjust_all_contracts(self, day_delta: int, actor: Optional[str], reason: Optional[str]) -> int:
        """
        Apply one signed day delta to every active contract, all or nothing.

        Each contract's delta is clamped so remaining days stay >= 0.

        Returns:
            Number of contracts adjusted
        """
        actor, reason = require_override(actor, reason, "adjust_all_contracts")
        if day_delta == 0:
            raise ValidationError("Day delta must be non-zero")

        def unit(uow: UnitOfWork) -> int:
            active = ContractRepository(uow.session).active()
            for contract in active:
                self._shift(contract, clamp_bulk_delta(contract.remaining_days, day_delta))
            record_override(
                uow,
                actor,
                "adjust_all_contracts",
                "contract",
                None,
                reason,
                {"day_delta": day_delta, "contracts": len(active)},
            )
            return len(active)

        return run_atomic(self.session_factory, unit, name="adjust_all_contracts")

    @staticmethod
    def _shift(contract: Contract, diff: int) -> None:
        income_diff = to_money(contract.daily_income) * diff
        contract.contract_period += diff
        contract.remaining_days += diff
        contract.total_profit = to_money(to_money(contract.total_profit) + income_diff)
        contract.principal_plus_income = to_money(to_money(contract.principal_plus_income) + income_diff)
        contract.status = status_for(contract.remaining_days)

    def list_contracts(self, account_id: str, status: Optional[str] = None) -> List[Contract]:
        with self.session_factory() as db:
            AccountRepository(db).get(account_id)
            return ContractRepository(db).by_account(account_id, status)
