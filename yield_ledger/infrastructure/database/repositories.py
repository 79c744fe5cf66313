"""Data access layer for ledger entities"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from yield_ledger.domain.exceptions import NotFound
from yield_ledger.domain.models import (
    ContractStatus,
    RechargeStatus,
    WithdrawalRules,
    WithdrawalStatus,
    to_money,
)
from yield_ledger.infrastructure.database.models import (
    Account,
    AdminOverride,
    Contract,
    Product,
    Recharge,
    WithdrawalRequest,
    WithdrawalRestriction,
    WithdrawalRuleSet,
)

INVITER_COLUMNS = [Account.inviter_a, Account.inviter_b, Account.inviter_c, Account.inviter_d]


class AccountRepository:
    """Repository for accounts and referral-tree lookups"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, account_id: str) -> Account:
        account = self.db.get(Account, account_id)
        if account is None:
            raise NotFound("Account", account_id)
        return account

    def find(self, account_id: Optional[str]) -> Optional[Account]:
        return self.db.get(Account, account_id) if account_id else None

    def get_by_phone(self, phone: str) -> Optional[Account]:
        return self.db.query(Account).filter(Account.phone == phone).first()

    def add(self, account: Account) -> Account:
        self.db.add(account)
        self.db.flush()
        return account

    def downline_ids(self, account_id: str, level: int) -> List[str]:
        """Accounts that have account_id as their level-`level` ancestor (0 = A)"""
        column = INVITER_COLUMNS[level]
        return [row[0] for row in self.db.query(Account.id).filter(column == account_id).all()]

    def team(self, account_id: str, valid_only: bool = True) -> List[Account]:
        """Every account holding account_id at any of the four levels"""
        query = self.db.query(Account).filter(
            (Account.inviter_a == account_id)
            | (Account.inviter_b == account_id)
            | (Account.inviter_c == account_id)
            | (Account.inviter_d == account_id)
        )
        if valid_only:
            query = query.filter(Account.is_valid_member.is_(True))
        return query.all()

    def ids_with_active_contracts(self) -> List[str]:
        rows = (
            self.db.query(Contract.account_id)
            .filter(Contract.status == ContractStatus.ACTIVE)
            .distinct()
            .all()
        )
        return [row[0] for row in rows]


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_active(self, product_id: str) -> Product:
        product = self.db.get(Product, product_id)
        if product is None or not product.is_active:
            raise NotFound("Product", product_id)
        return product

    def upsert(self, product: Product) -> Product:
        merged = self.db.merge(product)
        self.db.flush()
        return merged


class ContractRepository:
    """Repository for investment contracts"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, contract_id: str) -> Contract:
        contract = self.db.get(Contract, contract_id)
        if contract is None:
            raise NotFound("Contract", contract_id)
        return contract

    def add(self, contract: Contract) -> Contract:
        self.db.add(contract)
        self.db.flush()
        return contract

    def count_for_product(self, account_id: str, product_id: str) -> int:
        return (
            self.db.query(func.count(Contract.id))
            .filter(Contract.account_id == account_id, Contract.product_id == product_id)
            .scalar()
        )

    def by_account(self, account_id: str, status: Optional[str] = None) -> List[Contract]:
        query = self.db.query(Contract).filter(Contract.account_id == account_id)
        if status is not None:
            query = query.filter(Contract.status == status)
        return query.order_by(Contract.purchased_at.desc()).all()

    def active(self) -> List[Contract]:
        return self.db.query(Contract).filter(Contract.status == ContractStatus.ACTIVE).all()

    def product_ids_for(self, account_id: str) -> List[str]:
        rows = self.db.query(Contract.product_id).filter(Contract.account_id == account_id).distinct().all()
        return [row[0] for row in rows]


class WithdrawalRepository:
    """Repository for withdrawal requests"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, request_id: str) -> WithdrawalRequest:
        request = self.db.get(WithdrawalRequest, request_id)
        if request is None:
            raise NotFound("Withdrawal request", request_id)
        return request

    def add(self, request: WithdrawalRequest) -> WithdrawalRequest:
        self.db.add(request)
        self.db.flush()
        return request

    def delete(self, request: WithdrawalRequest) -> None:
        self.db.delete(request)

    def latest_for(self, account_id: str) -> Optional[WithdrawalRequest]:
        return (
            self.db.query(WithdrawalRequest)
            .filter(WithdrawalRequest.account_id == account_id)
            .order_by(WithdrawalRequest.created_at.desc())
            .first()
        )

    def by_account(self, account_id: str, limit: int = 50) -> List[WithdrawalRequest]:
        return (
            self.db.query(WithdrawalRequest)
            .filter(WithdrawalRequest.account_id == account_id)
            .order_by(WithdrawalRequest.created_at.desc())
            .limit(limit)
            .all()
        )

    def total(self, account_id: Optional[str] = None, statuses: Iterable[str] = (), since: Optional[datetime] = None) -> Decimal:
        query = self.db.query(func.coalesce(func.sum(WithdrawalRequest.amount), 0))
        if account_id is not None:
            query = query.filter(WithdrawalRequest.account_id == account_id)
        statuses = list(statuses)
        if statuses:
            query = query.filter(WithdrawalRequest.status.in_(statuses))
        if since is not None:
            query = query.filter(WithdrawalRequest.created_at >= since)
        return to_money(query.scalar())

    def approved_total(self, account_id: str) -> Decimal:
        return self.total(account_id, statuses=[WithdrawalStatus.APPROVED])


class RechargeRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, recharge_id: str) -> Recharge:
        recharge = self.db.get(Recharge, recharge_id)
        if recharge is None:
            raise NotFound("Recharge", recharge_id)
        return recharge

    def add(self, recharge: Recharge) -> Recharge:
        self.db.add(recharge)
        self.db.flush()
        return recharge

    def approved_total(self, account_ids: Iterable[str]) -> Decimal:
        account_ids = list(account_ids)
        if not account_ids:
            return to_money(0)
        total = (
            self.db.query(func.coalesce(func.sum(Recharge.amount), 0))
            .filter(Recharge.account_id.in_(account_ids), Recharge.status == RechargeStatus.APPROVED)
            .scalar()
        )
        return to_money(total)

    def approved_total_all(self, since: Optional[datetime] = None) -> Decimal:
        query = self.db.query(func.coalesce(func.sum(Recharge.amount), 0)).filter(
            Recharge.status == RechargeStatus.APPROVED
        )
        if since is not None:
            query = query.filter(Recharge.decided_at >= since)
        return to_money(query.scalar())


class RestrictionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, account_id: str) -> Optional[WithdrawalRestriction]:
        return self.db.get(WithdrawalRestriction, account_id)

    def put(self, restriction: WithdrawalRestriction) -> WithdrawalRestriction:
        merged = self.db.merge(restriction)
        self.db.flush()
        return merged

    def delete(self, account_id: str) -> bool:
        restriction = self.get(account_id)
        if restriction is None:
            return False
        self.db.delete(restriction)
        return True


class RuleRepository:
    """Single-row withdrawal rule configuration"""

    def __init__(self, db: Session):
        self.db = db

    def load(self) -> WithdrawalRules:
        row = self.db.get(WithdrawalRuleSet, 1)
        if row is None:
            return WithdrawalRules()
        return WithdrawalRules(
            max_withdrawal_percent=Decimal(str(row.max_withdrawal_percent)),
            product_rules={pid: Decimal(amount) for pid, amount in (row.product_rules or {}).items()},
            custom_message=row.custom_message,
        )

    def save(self, rules: WithdrawalRules, updated_at: datetime) -> WithdrawalRules:
        self.db.merge(
            WithdrawalRuleSet(
                id=1,
                max_withdrawal_percent=rules.max_withdrawal_percent,
                product_rules={pid: str(amount) for pid, amount in rules.product_rules.items()},
                custom_message=rules.custom_message,
                updated_at=updated_at,
            )
        )
        self.db.flush()
        return rules


class OverrideRepository:
    """Append-only admin override trail"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        actor: str,
        action: str,
        target_type: str,
        target_id: Optional[str],
        reason: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> AdminOverride:
        entry = AdminOverride(
            actor=actor,
            action=action,
            target_type=target_type,
            target_id=target_id,
            reason=reason,
            details=details,
        )
        self.db.add(entry)
        return entry

    def for_target(self, target_id: str) -> List[AdminOverride]:
        return (
            self.db.query(AdminOverride)
            .filter(AdminOverride.target_id == target_id)
            .order_by(AdminOverride.created_at)
            .all()
        )
