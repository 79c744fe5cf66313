"""Deposits: reviewed by an admin before they reach the spendable balance"""

from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import sessionmaker

from yield_ledger.domain.events import RECHARGE_APPROVED
from yield_ledger.domain.exceptions import InvalidStateTransition, ValidationError
from yield_ledger.domain.models import RechargeStatus, to_money
from yield_ledger.infrastructure.database.models import Recharge
from yield_ledger.infrastructure.database.repositories import AccountRepository, RechargeRepository
from yield_ledger.infrastructure.database.unit_of_work import UnitOfWork, run_atomic
from yield_ledger.services.account_store import SPENDABLE, AccountStore
from yield_ledger.utils.date_utils import utcnow


class RechargeService:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def request_recharge(self, account_id: str, amount: Decimal) -> Recharge:
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError(f"Recharge amount must be positive, got {amount}", amount=amount)

        def unit(uow: UnitOfWork) -> Recharge:
            AccountRepository(uow.session).get(account_id)
            return RechargeRepository(uow.session).add(
                Recharge(account_id=account_id, amount=amount, status=RechargeStatus.PENDING)
            )

        return run_atomic(self.session_factory, unit, name="recharge_request")

    def approve_recharge(self, recharge_id: str, actor: Optional[str]) -> Recharge:
        """Credit the amount and mark the account a valid member, exactly once"""
        actor = _require_actor(actor)

        def unit(uow: UnitOfWork) -> Recharge:
            recharge = RechargeRepository(uow.session).get(recharge_id)
            if recharge.status == RechargeStatus.APPROVED:
                return recharge
            _check_pending(recharge)

            recharge.status = RechargeStatus.APPROVED
            recharge.decided_at = utcnow()
            recharge.decided_by = actor
            store = AccountStore(uow.session)
            account = store.adjust_balance(recharge.account_id, SPENDABLE, to_money(recharge.amount))
            account.is_valid_member = True
            uow.emit(
                RECHARGE_APPROVED,
                recharge.account_id,
                recharge_id=recharge.id,
                amount=str(recharge.amount),
                balance=str(account.spendable_balance),
            )
            return recharge

        return run_atomic(self.session_factory, unit, name="recharge_approve")

    def reject_recharge(self, recharge_id: str, actor: Optional[str]) -> Recharge:
        actor = _require_actor(actor)

        def unit(uow: UnitOfWork) -> Recharge:
            recharge = RechargeRepository(uow.session).get(recharge_id)
            if recharge.status == RechargeStatus.REJECTED:
                return recharge
            _check_pending(recharge)
            recharge.status = RechargeStatus.REJECTED
            recharge.decided_at = utcnow()
            recharge.decided_by = actor
            return recharge

        return run_atomic(self.session_factory, unit, name="recharge_reject")


def _require_actor(actor: Optional[str]) -> str:
    actor = (actor or "").strip()
    if not actor:
        raise ValidationError("Recharge decisions require an admin actor")
    return actor


def _check_pending(recharge: Recharge) -> None:
    if recharge.status != RechargeStatus.PENDING:
        raise InvalidStateTransition(
            f"Recharge {recharge.id} is already {recharge.status}",
            recharge_id=recharge.id,
            status=recharge.status,
        )
