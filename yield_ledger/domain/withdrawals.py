"""Withdrawal fee arithmetic and request validation rules"""

from decimal import Decimal
from typing import Iterable, Optional, Tuple

from yield_ledger.domain.exceptions import ProductRequirementNotMet, ValidationError
from yield_ledger.domain.models import BankDetails, WithdrawalRules, to_money


def compute_fee(amount: Decimal, fee_rate: Decimal) -> Tuple[Decimal, Decimal]:
    """Return (fee, net_payout); net_payout = amount - fee so the two always sum to amount"""
    fee = to_money(amount * fee_rate)
    return fee, to_money(amount - fee)


def validate_amount(amount: Decimal, minimum: Decimal, maximum: Decimal) -> Decimal:
    amount = to_money(amount)
    if amount < minimum or amount > maximum:
        raise ValidationError(
            f"Withdrawal range is {minimum} - {maximum}, got {amount}",
            amount=amount,
            minimum=minimum,
            maximum=maximum,
        )
    return amount


def validate_bank_details(details: Optional[BankDetails]) -> BankDetails:
    if details is None:
        raise ValidationError("Bank details are required")
    missing = [
        name
        for name in ("bank_name", "account_number", "account_holder_name")
        if not (getattr(details, name) or "").strip()
    ]
    if missing:
        raise ValidationError(f"Missing bank details: {', '.join(missing)}", missing=missing)
    return details


def required_invite_recharge(rules: WithdrawalRules, product_ids: Iterable[str]) -> Optional[Decimal]:
    """Largest invite-recharge requirement among the products an account holds, if any"""
    requirements = [rules.product_rules[pid] for pid in set(product_ids) if pid in rules.product_rules]
    return max(requirements) if requirements else None


def check_withdrawal_cap(
    rules: WithdrawalRules,
    product_ids: Iterable[str],
    invite_recharge: Decimal,
    own_recharge: Decimal,
    already_withdrawn: Decimal,
    amount: Decimal,
) -> None:
    """
    Enforce the percentage-of-recharge cap for accounts whose invitees have
    not recharged enough for the products they hold.
    """
    required = required_invite_recharge(rules, product_ids)
    if required is None or invite_recharge >= required:
        return

    cap = to_money(own_recharge * rules.max_withdrawal_percent / Decimal("100"))
    if already_withdrawn + amount > cap:
        raise ProductRequirementNotMet(
            f"{rules.custom_message} Withdrawals are capped at {cap} "
            f"({rules.max_withdrawal_percent}% of your recharge) until invited users recharge "
            f"{required}; they have recharged {invite_recharge} and you have withdrawn {already_withdrawn}.",
            cap=cap,
            withdrawn=already_withdrawn,
            invite_recharge=invite_recharge,
            required=required,
        )
