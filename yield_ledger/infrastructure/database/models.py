"""SQLAlchemy ORM models for accounts, contracts, withdrawals and their audit trail"""

import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import declarative_base, relationship

from yield_ledger.utils.date_utils import utcnow

Base = declarative_base()

Money = Numeric(18, 2)


def new_id() -> str:
    return str(uuid.uuid4())


class Account(Base):
    """User wallet record. Mutated only through the account store."""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=new_id)
    phone = Column(String(32), nullable=False, unique=True)
    spendable_balance = Column(Money, nullable=False, default=Decimal("0"))
    invite_wallet = Column(Money, nullable=False, default=Decimal("0"))
    task_wallet = Column(Money, nullable=False, default=Decimal("0"))
    vip_level = Column(Integer, nullable=False, default=0)
    vip_entry_at = Column(DateTime, nullable=True)
    last_salary_at = Column(DateTime, nullable=True)
    # Referral chain captured at registration, never rewritten
    inviter_a = Column(String(36), nullable=True, index=True)
    inviter_b = Column(String(36), nullable=True, index=True)
    inviter_c = Column(String(36), nullable=True, index=True)
    inviter_d = Column(String(36), nullable=True, index=True)
    is_valid_member = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    contracts = relationship("Contract", back_populates="account")

    __mapper_args__ = {"version_id_col": version}

    @property
    def inviter_chain(self) -> List[Optional[str]]:
        return [self.inviter_a, self.inviter_b, self.inviter_c, self.inviter_d]


class Product(Base):
    """Catalog entry fed from the admin-managed product catalog"""

    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    name = Column(Text, nullable=False)
    price = Column(Money, nullable=False)
    daily_income = Column(Money, nullable=False)
    contract_period = Column(Integer, nullable=False)
    purchase_limit = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Contract(Base):
    """A purchased product instance paying daily income"""

    __tablename__ = "contracts"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    product_id = Column(String(64), ForeignKey("products.id"), nullable=False)
    product_name = Column(Text, nullable=False)
    principal = Column(Money, nullable=False)
    daily_income = Column(Money, nullable=False)
    contract_period = Column(Integer, nullable=False)
    remaining_days = Column(Integer, nullable=False)
    total_profit = Column(Money, nullable=False)
    principal_plus_income = Column(Money, nullable=False)
    status = Column(String(16), nullable=False)
    purchased_at = Column(DateTime, nullable=False)
    last_accrual_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)

    account = relationship("Account", back_populates="contracts")

    __table_args__ = (
        Index("ix_contracts_account_status", "account_id", "status"),
        Index("ix_contracts_account_product", "account_id", "product_id"),
    )
    __mapper_args__ = {"version_id_col": version}

    @property
    def days_elapsed(self) -> int:
        return max(self.contract_period - self.remaining_days, 0)


class WithdrawalRequest(Base):
    """User withdrawal awaiting or past an admin decision"""

    __tablename__ = "withdrawal_requests"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    fee_rate = Column(Numeric(6, 4), nullable=False)
    fee = Column(Money, nullable=False)
    net_payout = Column(Money, nullable=False)
    bank_name = Column(Text, nullable=False)
    account_number = Column(Text, nullable=False)
    account_holder_name = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    refunded = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    decided_at = Column(DateTime, nullable=True)
    decided_by = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class Recharge(Base):
    """Deposit reviewed by an admin before it reaches the balance"""

    __tablename__ = "recharges"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    decided_at = Column(DateTime, nullable=True)
    decided_by = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class WithdrawalRestriction(Base):
    __tablename__ = "withdrawal_restrictions"

    account_id = Column(String(36), ForeignKey("accounts.id"), primary_key=True)
    reason = Column(Text, nullable=False)
    restricted_by = Column(Text, nullable=False)
    restricted_at = Column(DateTime, nullable=False, default=utcnow)


class WithdrawalRuleSet(Base):
    """Single-row withdrawal rule configuration"""

    __tablename__ = "withdrawal_rules"

    id = Column(Integer, primary_key=True, default=1)
    max_withdrawal_percent = Column(Numeric(5, 2), nullable=False)
    product_rules = Column(JSON, nullable=False, default=dict)  # product_id -> amount as string
    custom_message = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class AdminOverride(Base):
    """Audit trail for operations that bypass the normal state machine"""

    __tablename__ = "admin_overrides"

    id = Column(String(36), primary_key=True, default=new_id)
    actor = Column(Text, nullable=False)
    action = Column(String(64), nullable=False, index=True)
    target_type = Column(String(32), nullable=False)
    target_id = Column(String(64), nullable=True, index=True)
    reason = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
