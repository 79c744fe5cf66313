"""VIP tiers unlocked by team size and team assets"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class VipRule:
    level: int
    team_size: int
    team_assets: Decimal
    salary: Decimal


VIP_RULES = [
    VipRule(1, 15, Decimal("70000"), Decimal("1500")),
    VipRule(2, 40, Decimal("300000"), Decimal("4000")),
    VipRule(3, 80, Decimal("800000"), Decimal("15000")),
    VipRule(4, 150, Decimal("1500000"), Decimal("30000")),
    VipRule(5, 270, Decimal("3500000"), Decimal("70000")),
    VipRule(6, 400, Decimal("8000000"), Decimal("350000")),
    VipRule(7, 800, Decimal("20000000"), Decimal("1500000")),
]


def eligible_level(team_size: int, team_assets: Decimal) -> int:
    """Highest level whose size and asset thresholds are both met"""
    level = 0
    for rule in VIP_RULES:
        if team_size >= rule.team_size and team_assets >= rule.team_assets:
            level = rule.level
    return level


def rule_for(level: int) -> Optional[VipRule]:
    return next((rule for rule in VIP_RULES if rule.level == level), None)


def salary_due(
    level: int,
    last_salary: Optional[datetime],
    vip_entry: Optional[datetime],
    as_of: datetime,
    interval_days: int,
) -> Optional[Decimal]:
    """Salary owed at as_of, or None when not yet due"""
    rule = rule_for(level)
    if rule is None:
        return None
    anchor = last_salary or vip_entry
    if anchor is not None and as_of - anchor < timedelta(days=interval_days):
        return None
    return rule.salary
