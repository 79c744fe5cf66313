"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Union[Decimal, int, float, str, None]) -> Decimal:
    """Quantize to cents, half-up. None counts as zero."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, ROUND_HALF_UP)


class ContractStatus:
    ACTIVE = "active"
    COMPLETED = "completed"


class WithdrawalStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RechargeStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ProductTerms:
    """Catalog entry as seen by the contract ledger"""

    product_id: str
    name: str
    price: Decimal
    daily_income: Decimal
    contract_period: int
    purchase_limit: int = 1

    @property
    def total_profit(self) -> Decimal:
        return to_money(self.daily_income * self.contract_period)

    @property
    def principal_plus_income(self) -> Decimal:
        return to_money(self.price + self.total_profit)


@dataclass
class CommissionCredit:
    """One referral reward produced by a purchase"""

    level: int  # 0 = A (direct inviter) .. 3 = D
    ancestor_id: str
    rate: Decimal
    amount: Decimal


@dataclass
class AccrualResult:
    """Outcome of advancing one contract"""

    income_credited: Decimal
    days_credited: int
    new_remaining_days: int
    new_status: str
    new_last_accrual: Optional[datetime]


@dataclass
class BankDetails:
    bank_name: str
    account_number: str
    account_holder_name: str


@dataclass
class WithdrawalRules:
    """Admin-configured withdrawal cap rules"""

    max_withdrawal_percent: Decimal = Decimal("50")
    product_rules: Dict[str, Decimal] = field(default_factory=dict)  # product_id -> invite recharge required
    custom_message: str = "You need more recharge from your invited users to unlock full withdrawal."


@dataclass
class IntegrityCheckResult:
    """Credits vs debits reconciliation for one account"""

    account_id: str
    total_rewards: Decimal
    reward_factor: Decimal
    total_generated_income: Decimal
    total_approved_withdrawals: Decimal
    current_balance: Decimal
    credits: Decimal
    debits: Decimal
    is_safe: bool
    diff: Decimal  # debits - credits; negative means safe margin

    @property
    def safe_margin(self) -> Decimal:
        return -self.diff if self.is_safe else ZERO


@dataclass
class SyncSummary:
    accounts: int = 0
    contracts: int = 0
    income: Decimal = ZERO
    failures: List[str] = field(default_factory=list)


@dataclass
class RevenueFigures:
    recharge: Decimal
    withdrawal: Decimal

    @property
    def net(self) -> Decimal:
        return self.recharge - self.withdrawal


@dataclass
class RevenueSummary:
    today: RevenueFigures
    all_time: RevenueFigures
