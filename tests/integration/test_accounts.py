"""Integration tests for registration, recharges, balance overrides, VIP and revenue"""

from datetime import timedelta
from decimal import Decimal

import pytest

from yield_ledger.domain.events import RECHARGE_APPROVED, event_bus
from yield_ledger.domain.exceptions import InsufficientFunds, InvalidStateTransition, NotFound, ValidationError
from yield_ledger.domain.models import BankDetails, RechargeStatus
from yield_ledger.infrastructure.database.models import AdminOverride
from yield_ledger.infrastructure.database.unit_of_work import run_atomic
from yield_ledger.services.account_store import INVITE_WALLET, SPENDABLE, AccountStore, override_balance
from yield_ledger.services.accounts import get_account, register_account, upsert_product
from yield_ledger.services.contract_ledger import ContractLedger
from yield_ledger.services.recharges import RechargeService
from yield_ledger.services.reports import revenue_summary
from yield_ledger.services.vip import VipService
from yield_ledger.services.withdrawal_processor import WithdrawalProcessor


@pytest.fixture
def recharges(session_factory):
    return RechargeService(session_factory)


def test_duplicate_phone_rejected(session_factory):
    register_account(session_factory, "+2348011111111")

    with pytest.raises(ValidationError):
        register_account(session_factory, "+2348011111111")


def test_unknown_inviter(session_factory):
    with pytest.raises(NotFound):
        register_account(session_factory, "+2348022222222", inviter_id="nobody")


def test_new_account_defaults(session_factory):
    account = register_account(session_factory, "+2348033333333", account_id="acc-1")

    assert account.id == "acc-1"
    assert account.spendable_balance == Decimal("0")
    assert account.vip_level == 0
    assert account.is_valid_member is False


def test_spendable_balance_never_negative(session_factory, make_account, balance_of):
    account = make_account(balance="100")

    with pytest.raises(InsufficientFunds):
        run_atomic(
            session_factory,
            lambda uow: AccountStore(uow.session).adjust_balance(account.id, SPENDABLE, Decimal("-100.01")),
            name="test",
        )
    # Other wallets are not guarded
    run_atomic(
        session_factory,
        lambda uow: AccountStore(uow.session).adjust_balance(account.id, INVITE_WALLET, Decimal("-5")),
        name="test",
    )

    assert balance_of(account.id) == Decimal("100.00")
    assert balance_of(account.id, INVITE_WALLET) == Decimal("-5.00")


def test_override_balance_recorded(session_factory, make_account, balance_of):
    account = make_account(balance="100")

    override_balance(session_factory, account.id, SPENDABLE, "1,250.50", actor="ops", reason="manual correction")

    assert balance_of(account.id) == Decimal("1250.50")
    with session_factory() as db:
        entry = db.query(AdminOverride).filter(AdminOverride.target_id == account.id).one()
    assert entry.action == "set_balance"
    assert entry.details == {"field": SPENDABLE, "previous": "100.00", "value": "1250.50"}


def test_override_balance_validation(session_factory, make_account):
    account = make_account()

    with pytest.raises(ValidationError):
        override_balance(session_factory, account.id, SPENDABLE, "abc", actor="ops", reason="typo")
    with pytest.raises(ValidationError):
        override_balance(session_factory, account.id, "savings", "10", actor="ops", reason="typo")
    with pytest.raises(ValidationError):
        override_balance(session_factory, account.id, SPENDABLE, "10", actor="ops", reason=None)


def test_recharge_approval_credits_once(recharges, make_account, balance_of, session_factory):
    account = make_account()
    recharge = recharges.request_recharge(account.id, Decimal("1500"))
    received = []
    event_bus.subscribe(account.id, received.append)
    try:
        approved = recharges.approve_recharge(recharge.id, actor="ops")
        recharges.approve_recharge(recharge.id, actor="ops")
    finally:
        event_bus.unsubscribe(account.id, received.append)

    assert approved.status == RechargeStatus.APPROVED
    assert balance_of(account.id) == Decimal("1500.00")
    assert [e.type for e in received] == [RECHARGE_APPROVED]
    with pytest.raises(InvalidStateTransition):
        recharges.reject_recharge(recharge.id, actor="ops")


def test_recharge_marks_valid_member(recharges, make_account, session_factory):
    account = make_account()
    recharges.approve_recharge(recharges.request_recharge(account.id, Decimal("100")).id, actor="ops")

    assert get_account(session_factory, account.id).is_valid_member is True


def test_rejected_recharge_has_no_effect(recharges, make_account, balance_of):
    account = make_account()
    recharge = recharges.request_recharge(account.id, Decimal("800"))

    rejected = recharges.reject_recharge(recharge.id, actor="ops")

    assert rejected.status == RechargeStatus.REJECTED
    assert balance_of(account.id) == Decimal("0.00")


def test_recharge_validation(recharges, make_account):
    account = make_account()

    with pytest.raises(ValidationError):
        recharges.request_recharge(account.id, Decimal("0"))
    with pytest.raises(NotFound):
        recharges.request_recharge("missing", Decimal("10"))


def test_product_upsert_updates_terms(session_factory):
    upsert_product(session_factory, "p1", "Plan", Decimal("100"), Decimal("5"), 10)
    updated = upsert_product(session_factory, "p1", "Plan v2", Decimal("120"), Decimal("6"), 12, purchase_limit=3)

    assert updated.price == Decimal("120.00")
    assert updated.purchase_limit == 3

    with pytest.raises(ValidationError):
        upsert_product(session_factory, "p2", "Broken", Decimal("100"), Decimal("5"), 0)


def test_vip_upgrade_and_salary(recharges, session_factory, make_account, balance_of, now):
    vip = VipService(session_factory)
    leader = make_account()
    for _ in range(15):
        member = make_account(inviter=leader)
        recharges.approve_recharge(recharges.request_recharge(member.id, Decimal("5000")).id, actor="ops")

    assert vip.check_and_upgrade(leader.id, as_of=now) == 1
    assert vip.pay_salary(leader.id, as_of=now + timedelta(days=29)) is None

    paid = vip.pay_salary(leader.id, as_of=now + timedelta(days=30))
    again = vip.pay_salary(leader.id, as_of=now + timedelta(days=31))

    assert paid == Decimal("1500")
    assert again is None
    assert balance_of(leader.id, INVITE_WALLET) == Decimal("1500.00")


def test_vip_never_downgrades(recharges, session_factory, make_account, fund, now):
    vip = VipService(session_factory)
    leader = make_account()
    members = []
    for _ in range(15):
        member = make_account(inviter=leader)
        recharges.approve_recharge(recharges.request_recharge(member.id, Decimal("5000")).id, actor="ops")
        members.append(member)
    vip.check_and_upgrade(leader.id, as_of=now)

    for member in members:
        fund(member.id, "0")

    assert vip.check_and_upgrade(leader.id, as_of=now + timedelta(days=1)) == 1


def test_revenue_summary(recharges, session_factory, make_account, product):
    account = make_account()
    recharges.approve_recharge(recharges.request_recharge(account.id, Decimal("2000")).id, actor="ops")
    recharges.request_recharge(account.id, Decimal("999"))
    ContractLedger(session_factory).create_contract(account.id, product.id)
    bank = BankDetails(bank_name="Zenith", account_number="0123456789", account_holder_name="Ada Obi")
    WithdrawalProcessor(session_factory).request_withdrawal(account.id, Decimal("700"), bank)

    summary = revenue_summary(session_factory)

    assert summary.all_time.recharge == Decimal("2000.00")
    assert summary.all_time.withdrawal == Decimal("700.00")
    assert summary.all_time.net == Decimal("1300.00")
    assert summary.today.recharge == Decimal("2000.00")
    assert summary.today.withdrawal == Decimal("700.00")
