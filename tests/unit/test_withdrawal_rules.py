"""Unit tests for withdrawal fee and cap rules"""

from decimal import Decimal

import pytest

from yield_ledger.domain.exceptions import ProductRequirementNotMet, ValidationError
from yield_ledger.domain.models import BankDetails, WithdrawalRules
from yield_ledger.domain.withdrawals import (
    check_withdrawal_cap,
    compute_fee,
    required_invite_recharge,
    validate_amount,
    validate_bank_details,
)


def test_fee_and_net_payout():
    fee, net = compute_fee(Decimal("1000"), Decimal("0.06"))

    assert fee == Decimal("60.00")
    assert net == Decimal("940.00")


def test_fee_and_payout_sum_to_amount():
    fee, net = compute_fee(Decimal("333.33"), Decimal("0.06"))

    assert fee + net == Decimal("333.33")


@pytest.mark.parametrize("amount", ["299.99", "40000.01", "0"])
def test_amount_out_of_range(amount):
    with pytest.raises(ValidationError):
        validate_amount(Decimal(amount), Decimal("300"), Decimal("40000"))


@pytest.mark.parametrize("amount", ["300", "40000"])
def test_amount_bounds_inclusive(amount):
    assert validate_amount(Decimal(amount), Decimal("300"), Decimal("40000")) == Decimal(amount)


def test_bank_details_required():
    with pytest.raises(ValidationError) as exc_info:
        validate_bank_details(BankDetails(bank_name="GTB", account_number=" ", account_holder_name=""))

    assert exc_info.value.context["missing"] == ["account_number", "account_holder_name"]

    with pytest.raises(ValidationError):
        validate_bank_details(None)


def test_required_invite_recharge_takes_largest():
    rules = WithdrawalRules(product_rules={"p1": Decimal("1000"), "p2": Decimal("5000")})

    assert required_invite_recharge(rules, ["p1", "p2", "p3"]) == Decimal("5000")
    assert required_invite_recharge(rules, ["p3"]) is None


def test_cap_not_applied_without_rule():
    check_withdrawal_cap(WithdrawalRules(), ["p1"], Decimal("0"), Decimal("1000"), Decimal("0"), Decimal("5000"))


def test_cap_lifted_when_invitees_recharged_enough():
    rules = WithdrawalRules(product_rules={"p1": Decimal("2000")})

    check_withdrawal_cap(rules, ["p1"], Decimal("2000"), Decimal("1000"), Decimal("0"), Decimal("5000"))


def test_cap_enforced_with_numbers():
    rules = WithdrawalRules(max_withdrawal_percent=Decimal("50"), product_rules={"p1": Decimal("2000")})

    with pytest.raises(ProductRequirementNotMet) as exc_info:
        check_withdrawal_cap(rules, ["p1"], Decimal("500"), Decimal("1000"), Decimal("300"), Decimal("300"))

    context = exc_info.value.context
    assert context["cap"] == Decimal("500.00")
    assert context["withdrawn"] == Decimal("300")
    assert context["invite_recharge"] == Decimal("500")
    assert context["required"] == Decimal("2000")
    assert rules.custom_message in exc_info.value.message


def test_cap_allows_up_to_limit():
    rules = WithdrawalRules(max_withdrawal_percent=Decimal("50"), product_rules={"p1": Decimal("2000")})

    check_withdrawal_cap(rules, ["p1"], Decimal("0"), Decimal("1000"), Decimal("200"), Decimal("300"))
