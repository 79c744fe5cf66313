"""Admin-managed withdrawal restrictions and cap rules"""

from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from sqlalchemy.orm import sessionmaker

from yield_ledger.domain.exceptions import NotFound, ValidationError
from yield_ledger.domain.models import WithdrawalRules, to_money
from yield_ledger.infrastructure.database.models import WithdrawalRestriction
from yield_ledger.infrastructure.database.repositories import AccountRepository, RestrictionRepository, RuleRepository
from yield_ledger.infrastructure.database.unit_of_work import UnitOfWork, run_atomic
from yield_ledger.services.overrides import record_override, require_override
from yield_ledger.utils.date_utils import utcnow


class WithdrawalControls:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def restrict(self, account_id: str, reason: Optional[str], actor: Optional[str]) -> WithdrawalRestriction:
        actor, reason = require_override(actor, reason, "restrict_withdrawals")

        def unit(uow: UnitOfWork) -> WithdrawalRestriction:
            AccountRepository(uow.session).get(account_id)
            restriction = RestrictionRepository(uow.session).put(
                WithdrawalRestriction(
                    account_id=account_id,
                    reason=reason,
                    restricted_by=actor,
                    restricted_at=utcnow(),
                )
            )
            record_override(uow, actor, "restrict_withdrawals", "account", account_id, reason)
            return restriction

        return run_atomic(self.session_factory, unit, name="restrict_withdrawals")

    def lift_restriction(self, account_id: str, actor: Optional[str], reason: Optional[str] = None) -> None:
        actor, reason = require_override(actor, reason or "restriction lifted", "lift_restriction")

        def unit(uow: UnitOfWork) -> None:
            if not RestrictionRepository(uow.session).delete(account_id):
                raise NotFound("Withdrawal restriction", account_id)
            record_override(uow, actor, "lift_restriction", "account", account_id, reason)

        run_atomic(self.session_factory, unit, name="lift_restriction")

    def get_restriction(self, account_id: str) -> Optional[WithdrawalRestriction]:
        with self.session_factory() as db:
            return RestrictionRepository(db).get(account_id)

    def get_rules(self) -> WithdrawalRules:
        with self.session_factory() as db:
            return RuleRepository(db).load()

    def save_rules(
        self,
        max_withdrawal_percent: Decimal,
        product_rules: Dict[str, Decimal],
        custom_message: Optional[str],
        actor: Optional[str],
        reason: Optional[str] = None,
    ) -> WithdrawalRules:
        actor, reason = require_override(actor, reason or "withdrawal rules updated", "save_withdrawal_rules")
        try:
            percent = Decimal(str(max_withdrawal_percent))
        except InvalidOperation:
            raise ValidationError(f"Not a number: {max_withdrawal_percent!r}")
        if not Decimal("0") <= percent <= Decimal("100"):
            raise ValidationError(f"max_withdrawal_percent must be within 0-100, got {percent}", value=percent)

        requirements = {}
        for product_id, required in (product_rules or {}).items():
            required = to_money(required)
            if required < 0:
                raise ValidationError(
                    f"Invite recharge requirement for {product_id} cannot be negative",
                    product_id=product_id,
                )
            requirements[product_id] = required

        rules = WithdrawalRules(
            max_withdrawal_percent=percent,
            product_rules=requirements,
            custom_message=(custom_message or "").strip() or WithdrawalRules.custom_message,
        )

        def unit(uow: UnitOfWork) -> WithdrawalRules:
            saved = RuleRepository(uow.session).save(rules, updated_at=utcnow())
            record_override(
                uow,
                actor,
                "save_withdrawal_rules",
                "withdrawal_rules",
                None,
                reason,
                {
                    "max_withdrawal_percent": str(percent),
                    "product_rules": {pid: str(amount) for pid, amount in requirements.items()},
                },
            )
            return saved

        return run_atomic(self.session_factory, unit, name="save_withdrawal_rules")
