"""Account Store: the only code path that mutates wallet balances

Primitives are session-bound and never retry on their own; callers run them
inside an atomic unit (see infrastructure.database.unit_of_work).
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from sqlalchemy.orm import Session, sessionmaker

from yield_ledger.domain.exceptions import InsufficientFunds, ValidationError
from yield_ledger.domain.models import to_money
from yield_ledger.infrastructure.database.models import Account
from yield_ledger.infrastructure.database.repositories import AccountRepository
from yield_ledger.infrastructure.database.unit_of_work import UnitOfWork, run_atomic
from yield_ledger.services.overrides import record_override, require_override
from yield_ledger.utils.date_utils import utcnow

SPENDABLE = "spendable_balance"
INVITE_WALLET = "invite_wallet"
TASK_WALLET = "task_wallet"
BALANCE_FIELDS = (SPENDABLE, INVITE_WALLET, TASK_WALLET)


def _check_field(field: str) -> None:
    if field not in BALANCE_FIELDS:
        raise ValidationError(f"Unknown balance field {field!r}", field=field)


def parse_amount(value: Union[Decimal, int, float, str]) -> Decimal:
    try:
        amount = Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Not a number: {value!r}", value=str(value))
    if not amount.is_finite():
        raise ValidationError(f"Not a number: {value!r}", value=str(value))
    return to_money(amount)


class AccountStore:
    """Read-modify-write primitives over account rows"""

    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountRepository(db)

    def adjust_balance(self, account_id: str, field: str, delta: Decimal) -> Account:
        return self.apply(self.accounts.get(account_id), field, delta)

    def apply(self, account: Account, field: str, delta: Decimal) -> Account:
        """
        Add delta to one wallet of an already loaded account.

        The spendable balance may never go negative. Always touches the row so
        the version check serializes concurrent units on this account, even
        when delta is zero.
        """
        _check_field(field)
        current = to_money(getattr(account, field))
        updated = to_money(current + delta)
        if field == SPENDABLE and updated < 0:
            raise InsufficientFunds(balance=current, required=to_money(-delta))
        setattr(account, field, updated)
        self.touch(account)
        return account

    def set_balance(self, account_id: str, field: str, value: Union[Decimal, int, float, str]) -> Account:
        """Administrative overwrite; only numeric parsing, no business rules"""
        _check_field(field)
        account = self.accounts.get(account_id)
        setattr(account, field, parse_amount(value))
        self.touch(account)
        return account

    @staticmethod
    def touch(account: Account) -> None:
        account.updated_at = utcnow()


def override_balance(
    session_factory: sessionmaker,
    account_id: str,
    field: str,
    value: Union[Decimal, int, float, str],
    actor: Optional[str],
    reason: Optional[str],
) -> Account:
    """Admin balance edit, recorded in the override trail"""
    actor, reason = require_override(actor, reason, "set_balance")
    _check_field(field)

    def unit(uow: UnitOfWork) -> Account:
        store = AccountStore(uow.session)
        previous = to_money(getattr(store.accounts.get(account_id), field))
        account = store.set_balance(account_id, field, value)
        record_override(
            uow,
            actor,
            "set_balance",
            "account",
            account_id,
            reason,
            {"field": field, "previous": str(previous), "value": str(getattr(account, field))},
        )
        return account

    return run_atomic(session_factory, unit, name="set_balance")
