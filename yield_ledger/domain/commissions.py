"""Referral commission rates and fan-out calculation"""

from decimal import Decimal
from typing import List, Optional, Sequence

from yield_ledger.domain.models import CommissionCredit, to_money

# Levels A, B, C, D
COMMISSION_RATES: List[Decimal] = [Decimal("0.10"), Decimal("0.05"), Decimal("0.03"), Decimal("0.02")]
LEVEL_NAMES = ["A", "B", "C", "D"]


def plan_commissions(inviter_chain: Sequence[Optional[str]], principal: Decimal) -> List[CommissionCredit]:
    """
    Compute the referral rewards a purchase of `principal` fans out.

    inviter_chain is index-aligned with COMMISSION_RATES; missing or empty
    levels are skipped. Existence of the ancestor accounts is the caller's
    concern.
    """
    credits = []
    for level, rate in enumerate(COMMISSION_RATES):
        ancestor_id = inviter_chain[level] if level < len(inviter_chain) else None
        if not ancestor_id:
            continue
        credits.append(
            CommissionCredit(
                level=level,
                ancestor_id=ancestor_id,
                rate=rate,
                amount=to_money(principal * rate),
            )
        )
    return credits


def weighted_level_total(level_totals: Sequence[Decimal]) -> Decimal:
    """Sum of per-level amounts each multiplied by that level's rate"""
    return to_money(sum((total * rate for total, rate in zip(level_totals, COMMISSION_RATES)), Decimal("0")))
