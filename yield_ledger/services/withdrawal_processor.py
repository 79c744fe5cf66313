"""Withdrawal Processor: reserve on request, finalize or reverse on admin decision"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from yield_ledger.config import settings
from yield_ledger.domain.events import WITHDRAWAL_STATE_CHANGED
from yield_ledger.domain.exceptions import (
    DailyLimitReached,
    InsufficientFunds,
    InvalidStateTransition,
    ProductRequirementNotMet,
    RestrictionActive,
    ValidationError,
)
from yield_ledger.domain.models import BankDetails, WithdrawalStatus, to_money
from yield_ledger.domain.withdrawals import (
    check_withdrawal_cap,
    compute_fee,
    validate_amount,
    validate_bank_details,
)
from yield_ledger.infrastructure.database.models import WithdrawalRequest
from yield_ledger.infrastructure.database.repositories import (
    AccountRepository,
    ContractRepository,
    RechargeRepository,
    RestrictionRepository,
    RuleRepository,
    WithdrawalRepository,
)
from yield_ledger.infrastructure.database.unit_of_work import UnitOfWork, run_atomic
from yield_ledger.infrastructure.observability.logging import log_withdrawal_transition
from yield_ledger.infrastructure.observability.metrics import withdrawal_counter
from yield_ledger.services.account_store import SPENDABLE, AccountStore
from yield_ledger.services.overrides import record_override, require_override
from yield_ledger.utils.date_utils import to_naive_utc, utcnow

DECISIONS = (WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED)


class WithdrawalProcessor:
    """
    pending -> approved | rejected. Both outcomes are terminal; the amount is
    reserved from the spendable balance when the request is created.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def request_withdrawal(
        self,
        account_id: str,
        amount: Decimal,
        bank_details: Optional[BankDetails],
        as_of: Optional[datetime] = None,
    ) -> WithdrawalRequest:
        """
        Validate and reserve a withdrawal.

        Raises:
            ValidationError: amount out of range or bank details incomplete
            RestrictionActive: an admin restriction is in place
            ProductRequirementNotMet: no product bought yet, or the recharge cap applies
            DailyLimitReached: a request was already made today (UTC)
            InsufficientFunds: amount above the spendable balance
        """
        amount = validate_amount(amount, settings.withdrawal_min_amount, settings.withdrawal_max_amount)
        bank_details = validate_bank_details(bank_details)
        created_at = to_naive_utc(as_of) if as_of else utcnow()
        fee_rate = settings.withdrawal_fee_rate

        def unit(uow: UnitOfWork) -> WithdrawalRequest:
            db = uow.session
            store = AccountStore(db)
            withdrawals = WithdrawalRepository(db)

            account = store.accounts.get(account_id)

            restriction = RestrictionRepository(db).get(account_id)
            if restriction is not None:
                raise RestrictionActive(account_id, restriction.reason)

            product_ids = ContractRepository(db).product_ids_for(account_id)
            if not product_ids:
                raise ProductRequirementNotMet("Buy a product before making a withdrawal")

            latest = withdrawals.latest_for(account_id)
            if latest is not None and latest.created_at.date() == created_at.date():
                raise DailyLimitReached(latest.created_at.date())

            balance = to_money(account.spendable_balance)
            if amount > balance:
                raise InsufficientFunds(balance=balance, required=amount)

            recharges = RechargeRepository(db)
            direct_invitees = AccountRepository(db).downline_ids(account_id, 0)
            check_withdrawal_cap(
                RuleRepository(db).load(),
                product_ids,
                invite_recharge=recharges.approved_total(direct_invitees),
                own_recharge=recharges.approved_total([account_id]),
                already_withdrawn=withdrawals.total(
                    account_id, statuses=[WithdrawalStatus.PENDING, WithdrawalStatus.APPROVED]
                ),
                amount=amount,
            )

            store.apply(account, SPENDABLE, -amount)
            fee, net_payout = compute_fee(amount, fee_rate)
            request = withdrawals.add(
                WithdrawalRequest(
                    account_id=account_id,
                    amount=amount,
                    fee_rate=fee_rate,
                    fee=fee,
                    net_payout=net_payout,
                    bank_name=bank_details.bank_name.strip(),
                    account_number=bank_details.account_number.strip(),
                    account_holder_name=bank_details.account_holder_name.strip(),
                    status=WithdrawalStatus.PENDING,
                    created_at=created_at,
                )
            )
            uow.emit(
                WITHDRAWAL_STATE_CHANGED,
                account_id,
                request_id=request.id,
                status=WithdrawalStatus.PENDING,
                amount=str(amount),
                net_payout=str(net_payout),
            )
            uow.on_commit(lambda: self._record_transition(request))
            return request

        try:
            return run_atomic(self.session_factory, unit, name="withdrawal_request")
        except (
            DailyLimitReached,
            InsufficientFunds,
            ProductRequirementNotMet,
            RestrictionActive,
        ) as e:
            withdrawal_counter.labels(status="denied").inc()
            logging.warning(
                f"Withdrawal denied: {e}",
                extra={"account_id": account_id, "step": "withdrawal_request", "reason": type(e).__name__},
            )
            raise

    def decide(self, request_id: str, decision: str, actor: Optional[str], refund: bool = False) -> WithdrawalRequest:
        """
        Finalize a pending request. A rejection with refund credits the
        reserved amount back in the same unit as the status change.

        Repeating the decision a request already carries is a no-op, so a
        duplicate click never refunds twice. A conflicting decision raises
        InvalidStateTransition.
        """
        if decision not in DECISIONS:
            raise ValidationError(f"Decision must be one of {', '.join(DECISIONS)}", decision=decision)
        actor = (actor or "").strip()
        if not actor:
            raise ValidationError("decide requires an admin actor")

        def unit(uow: UnitOfWork) -> WithdrawalRequest:
            db = uow.session
            request = WithdrawalRepository(db).get(request_id)

            if request.status == decision:
                return request
            if request.status != WithdrawalStatus.PENDING:
                raise InvalidStateTransition(
                    f"Withdrawal request {request_id} is already {request.status}",
                    request_id=request_id,
                    status=request.status,
                    decision=decision,
                )

            request.status = decision
            request.decided_at = utcnow()
            request.decided_by = actor
            if decision == WithdrawalStatus.REJECTED and refund and not request.refunded:
                AccountStore(db).adjust_balance(request.account_id, SPENDABLE, to_money(request.amount))
                request.refunded = True

            uow.emit(
                WITHDRAWAL_STATE_CHANGED,
                request.account_id,
                request_id=request.id,
                status=decision,
                amount=str(request.amount),
                refunded=request.refunded,
            )
            uow.on_commit(lambda: self._record_transition(request, actor))
            return request

        return run_atomic(self.session_factory, unit, name="withdrawal_decision")

    def edit_amount(
        self,
        request_id: str,
        new_amount: Decimal,
        actor: Optional[str],
        reason: Optional[str],
    ) -> WithdrawalRequest:
        """
        Correct the amount of a pending request and recompute fee and payout.

        The balance reservation made at request time is left as it was.
        """
        actor, reason = require_override(actor, reason, "edit_withdrawal_amount")
        new_amount = to_money(new_amount)
        if new_amount <= 0:
            raise ValidationError(f"Amount must be positive, got {new_amount}", amount=new_amount)

        def unit(uow: UnitOfWork) -> WithdrawalRequest:
            request = WithdrawalRepository(uow.session).get(request_id)
            if request.status != WithdrawalStatus.PENDING:
                raise InvalidStateTransition(
                    f"Only pending requests can be edited; {request_id} is {request.status}",
                    request_id=request_id,
                    status=request.status,
                )
            previous = to_money(request.amount)
            request.amount = new_amount
            request.fee, request.net_payout = compute_fee(new_amount, Decimal(str(request.fee_rate)))
            record_override(
                uow,
                actor,
                "edit_withdrawal_amount",
                "withdrawal_request",
                request_id,
                reason,
                {"previous_amount": str(previous), "new_amount": str(new_amount)},
            )
            return request

        return run_atomic(self.session_factory, unit, name="edit_withdrawal_amount")

    def delete(self, request_id: str, actor: Optional[str], reason: Optional[str] = None) -> None:
        """Permanently remove a rejected request. No balance effect."""
        actor, reason = require_override(actor, reason or "rejected request removed", "delete_withdrawal")

        def unit(uow: UnitOfWork) -> None:
            withdrawals = WithdrawalRepository(uow.session)
            request = withdrawals.get(request_id)
            if request.status != WithdrawalStatus.REJECTED:
                raise InvalidStateTransition(
                    f"Only rejected requests can be deleted; {request_id} is {request.status}",
                    request_id=request_id,
                    status=request.status,
                )
            record_override(
                uow,
                actor,
                "delete_withdrawal",
                "withdrawal_request",
                request_id,
                reason,
                {"account_id": request.account_id, "amount": str(request.amount), "refunded": request.refunded},
            )
            withdrawals.delete(request)

        run_atomic(self.session_factory, unit, name="delete_withdrawal")

    def list_requests(self, account_id: str, limit: int = 50) -> List[WithdrawalRequest]:
        with self.session_factory() as db:
            AccountRepository(db).get(account_id)
            return WithdrawalRepository(db).by_account(account_id, limit)

    @staticmethod
    def _record_transition(request: WithdrawalRequest, actor: Optional[str] = None) -> None:
        withdrawal_counter.labels(status=request.status).inc()
        if request.refunded:
            withdrawal_counter.labels(status="refunded").inc()
        log_withdrawal_transition(
            request.id,
            request.account_id,
            request.status,
            to_money(request.amount),
            actor=actor,
            refunded=request.refunded,
        )
