"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from yield_ledger.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        json_default=str,  # Decimal amounts
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_purchase(account_id: str, contract_id: str, product_id: str, principal: Decimal, commissions: Decimal) -> None:
    """Log a committed purchase unit"""
    logging.info(
        "Purchase committed",
        extra={
            "account_id": account_id,
            "contract_id": contract_id,
            "product_id": product_id,
            "step": "purchase_committed",
            "principal": str(principal),
            "commission_total": str(commissions),
        },
    )


def log_accrual(account_id: str, contracts: int, income: Decimal) -> None:
    logging.info(
        "Income synced",
        extra={
            "account_id": account_id,
            "step": "accrual_committed",
            "contracts_advanced": contracts,
            "income": str(income),
        },
    )


def log_withdrawal_transition(
    request_id: str,
    account_id: str,
    status: str,
    amount: Decimal,
    actor: Optional[str] = None,
    refunded: bool = False,
) -> None:
    logging.info(
        f"Withdrawal {status}",
        extra={
            "request_id": request_id,
            "account_id": account_id,
            "step": "withdrawal_transition",
            "status": status,
            "amount": str(amount),
            "actor": actor,
            "refunded": refunded,
        },
    )


def log_override(actor: str, action: str, target_type: str, target_id: Optional[str], reason: str) -> None:
    """Admin overrides are always logged with who did it and why"""
    logging.warning(
        f"Admin override: {action}",
        extra={
            "step": "admin_override",
            "actor": actor,
            "action": action,
            "target_type": target_type,
            "target_id": target_id,
            "reason": reason,
        },
    )


def log_audit(account_id: str, is_safe: bool, credits: Decimal, debits: Decimal) -> None:
    logging.log(
        logging.INFO if is_safe else logging.WARNING,
        "Integrity audit completed",
        extra={
            "account_id": account_id,
            "step": "integrity_audit",
            "outcome": "safe" if is_safe else "anomaly",
            "credits": str(credits),
            "debits": str(debits),
        },
    )
