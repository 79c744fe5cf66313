"""Commission Distributor: fans a purchase out to the purchaser's four-level inviter chain"""

from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from yield_ledger.domain.commissions import plan_commissions
from yield_ledger.domain.models import CommissionCredit
from yield_ledger.infrastructure.database.models import Account
from yield_ledger.services.account_store import INVITE_WALLET, AccountStore


class CommissionDistributor:
    """
    Session-bound; runs inside the purchase unit so commissions commit
    together with the order or not at all. No retry semantics of its own.
    """

    def __init__(self, db: Session):
        self.store = AccountStore(db)

    def distribute(self, purchaser: Account, principal: Decimal) -> List[CommissionCredit]:
        """Credit each existing ancestor's invite wallet; absent levels are skipped"""
        credited = []
        for credit in plan_commissions(purchaser.inviter_chain, principal):
            ancestor = self.store.accounts.find(credit.ancestor_id)
            if ancestor is None:
                continue
            self.store.apply(ancestor, INVITE_WALLET, credit.amount)
            credited.append(credit)
        return credited
