"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Accounts

class RegisterRequest(BaseModel):
    """Request body for POST /v1/accounts"""

    phone: str = Field(..., min_length=1, description="Unique phone number")
    inviter_id: Optional[str] = Field(None, description="Account that invited this user")
    account_id: Optional[str] = Field(None, description="Use this id instead of generating one")


class AccountResponse(ORMModel):
    id: str
    phone: str
    spendable_balance: Decimal
    invite_wallet: Decimal
    task_wallet: Decimal
    vip_level: int
    is_valid_member: bool
    inviter_chain: List[Optional[str]]
    created_at: datetime


class SessionResponse(BaseModel):
    """Response for POST /v1/accounts/{id}/session"""

    account: AccountResponse
    contracts_advanced: int
    income_credited: Decimal
    vip_level: int
    salary_paid: Optional[Decimal] = None


class RechargeRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)


class RechargeResponse(ORMModel):
    id: str
    account_id: str
    amount: Decimal
    status: str
    created_at: datetime
    decided_at: Optional[datetime] = None


# Contracts

class PurchaseRequest(BaseModel):
    """Request body for POST /v1/accounts/{id}/contracts"""

    product_id: str = Field(..., min_length=1)


class ContractResponse(ORMModel):
    id: str
    account_id: str
    product_id: str
    product_name: str
    principal: Decimal
    daily_income: Decimal
    contract_period: int
    remaining_days: int
    total_profit: Decimal
    principal_plus_income: Decimal
    status: str
    purchased_at: datetime
    last_accrual_at: Optional[datetime] = None


class CommissionSchema(BaseModel):
    level: str
    ancestor_id: str
    amount: Decimal


class PurchaseResponse(BaseModel):
    contract: ContractResponse
    commissions: List[CommissionSchema]


# Withdrawals

class BankDetailsSchema(BaseModel):
    bank_name: str = ""
    account_number: str = ""
    account_holder_name: str = ""


class WithdrawalCreate(BaseModel):
    """Request body for POST /v1/accounts/{id}/withdrawals"""

    amount: Decimal
    bank_details: BankDetailsSchema


class WithdrawalResponse(ORMModel):
    id: str
    account_id: str
    amount: Decimal
    fee_rate: Decimal
    fee: Decimal
    net_payout: Decimal
    bank_name: str
    account_number: str
    account_holder_name: str
    status: str
    refunded: bool
    created_at: datetime
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None


# Cron

class SyncResponse(BaseModel):
    accounts: int
    contracts: int
    income: Decimal
    failures: List[str]


# Admin

class ProductUpsert(BaseModel):
    """Request body for PUT /v1/admin/products/{product_id}"""

    name: str = Field(..., min_length=1)
    price: Decimal
    daily_income: Decimal
    contract_period: int
    purchase_limit: int = 1
    is_active: bool = True


class ProductResponse(ORMModel):
    id: str
    name: str
    price: Decimal
    daily_income: Decimal
    contract_period: int
    purchase_limit: int
    is_active: bool


class OverrideReason(BaseModel):
    reason: Optional[str] = None


class BalanceSet(OverrideReason):
    field: str = "spendable_balance"
    value: str


class PeriodAdjust(OverrideReason):
    new_period: int


class BulkPeriodAdjust(OverrideReason):
    day_delta: int


class BulkAdjustResponse(BaseModel):
    contracts_adjusted: int


class WithdrawalDecision(BaseModel):
    decision: Literal["approved", "rejected"]
    refund: bool = False


class AmountEdit(OverrideReason):
    new_amount: Decimal


class RestrictionRequest(OverrideReason):
    pass


class RestrictionResponse(ORMModel):
    account_id: str
    reason: str
    restricted_by: str
    restricted_at: datetime


class RulesSchema(BaseModel):
    max_withdrawal_percent: Decimal = Field(Decimal("50"), ge=0, le=100)
    product_rules: Dict[str, Decimal] = Field(default_factory=dict)
    custom_message: Optional[str] = None


class AuditResponse(BaseModel):
    account_id: str
    total_rewards: Decimal
    reward_factor: Decimal
    total_generated_income: Decimal
    total_approved_withdrawals: Decimal
    current_balance: Decimal
    credits: Decimal
    debits: Decimal
    is_safe: bool
    diff: Decimal
    safe_margin: Decimal


class RevenueFiguresSchema(BaseModel):
    recharge: Decimal
    withdrawal: Decimal
    net: Decimal


class RevenueResponse(BaseModel):
    today: RevenueFiguresSchema
    all_time: RevenueFiguresSchema


class OverrideEntry(ORMModel):
    actor: str
    action: str
    target_type: str
    target_id: Optional[str] = None
    reason: str
    details: Optional[dict] = None
    created_at: datetime
