"""Post-commit notification channel

Atomic units queue events while they run; the executor publishes them only
after the transaction commits. Consumers subscribe per account.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List

from yield_ledger.utils.date_utils import utcnow

PURCHASE_COMMITTED = "purchase.committed"
ACCRUAL_COMMITTED = "accrual.committed"
WITHDRAWAL_STATE_CHANGED = "withdrawal.state_changed"
RECHARGE_APPROVED = "recharge.approved"

# Subscription key that receives every event regardless of account
ALL_ACCOUNTS = "*"


@dataclass
class LedgerEvent:
    type: str
    account_id: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.type,
            "account_id": self.account_id,
            "occurred_at": self.occurred_at.isoformat(),
            **self.payload,
        }


Handler = Callable[[LedgerEvent], None]


class EventBus:
    """In-process, per-account subscription registry. ALL_ACCOUNTS receives everything."""

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, account_id: str, handler: Handler) -> None:
        with self._lock:
            self._subscribers[account_id].append(handler)

    def unsubscribe(self, account_id: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._subscribers.get(account_id, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._subscribers.pop(account_id, None)

    def publish(self, event: LedgerEvent) -> None:
        with self._lock:
            handlers = list(self._subscribers.get(event.account_id, []))
            handlers += self._subscribers.get(ALL_ACCOUNTS, [])
        for handler in handlers:
            # A broken subscriber must not undo or block an already committed unit
            try:
                handler(event)
            except Exception:
                logging.exception(
                    "Event subscriber failed",
                    extra={"event_type": event.type, "account_id": event.account_id},
                )


event_bus = EventBus()
