"""Domain-specific exceptions

Business-rule denials carry the numbers that justify them in ``context`` so
callers can explain the refusal instead of showing a generic error.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for the ledger domain"""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class ValidationError(LedgerError):
    """Bad input shape or range. Never retried."""

    pass


class InvalidPeriod(ValidationError):
    """Contract period override out of range"""

    pass


class InvalidStateTransition(ValidationError):
    """Operation not allowed in the record's current state"""

    pass


class NotFound(LedgerError):
    """Missing account, product, contract, recharge or withdrawal request"""

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=str(entity_id))


class InsufficientFunds(LedgerError):
    def __init__(self, balance: Decimal, required: Decimal):
        super().__init__(
            f"Insufficient balance: {balance} available, {required} required",
            balance=balance,
            required=required,
        )


class PurchaseLimitExceeded(LedgerError):
    def __init__(self, product_id: str, limit: int, held: int):
        super().__init__(
            f"Purchase limit reached for product {product_id}: {held} of {limit} already held",
            product_id=product_id,
            limit=limit,
            held=held,
        )


class RestrictionActive(LedgerError):
    def __init__(self, account_id: str, reason: str):
        super().__init__(
            f"Withdrawals are restricted for account {account_id}: {reason}",
            account_id=account_id,
            reason=reason,
        )


class DailyLimitReached(LedgerError):
    def __init__(self, last_request_day: date):
        super().__init__(
            f"Only one withdrawal per day; last request was made on {last_request_day.isoformat()}",
            last_request_day=last_request_day.isoformat(),
        )


class ProductRequirementNotMet(LedgerError):
    """Raised when the account lacks a purchase or exceeds the withdrawal cap"""

    def __init__(
        self,
        message: str,
        cap: Optional[Decimal] = None,
        withdrawn: Optional[Decimal] = None,
        invite_recharge: Optional[Decimal] = None,
        required: Optional[Decimal] = None,
    ):
        super().__init__(
            message,
            cap=cap,
            withdrawn=withdrawn,
            invite_recharge=invite_recharge,
            required=required,
        )


class ConcurrencyConflict(LedgerError):
    """Atomic unit kept losing the optimistic version race"""

    def __init__(self, unit: str, attempts: int):
        super().__init__(
            f"{unit} failed after {attempts} attempts due to concurrent updates",
            unit=unit,
            attempts=attempts,
        )
