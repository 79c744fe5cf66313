"""Unit tests for referral commission fan-out"""

from decimal import Decimal

from yield_ledger.domain.commissions import COMMISSION_RATES, plan_commissions, weighted_level_total


def test_full_chain_commissions():
    credits = plan_commissions(["a", "b", "c", "d"], Decimal("1000"))

    assert [(c.ancestor_id, c.amount) for c in credits] == [
        ("a", Decimal("100.00")),
        ("b", Decimal("50.00")),
        ("c", Decimal("30.00")),
        ("d", Decimal("20.00")),
    ]


def test_missing_levels_are_skipped():
    credits = plan_commissions(["a", None, "c", None], Decimal("1000"))

    assert [c.level for c in credits] == [0, 2]
    assert sum(c.amount for c in credits) == Decimal("130.00")


def test_short_chain():
    credits = plan_commissions(["a"], Decimal("500"))

    assert len(credits) == 1
    assert credits[0].amount == Decimal("50.00")


def test_no_inviter():
    assert plan_commissions([None, None, None, None], Decimal("500")) == []


def test_commission_rounding_half_up():
    credits = plan_commissions(["a", "b", "c", "d"], Decimal("333.35"))

    assert credits[0].amount == Decimal("33.34")  # 33.335
    assert credits[2].amount == Decimal("10.00")  # 10.0005


def test_weighted_level_total():
    total = weighted_level_total([Decimal("10000"), Decimal("10000"), Decimal("10000"), Decimal("10000")])

    assert total == Decimal("10000") * sum(COMMISSION_RATES)
