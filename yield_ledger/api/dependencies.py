"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import sessionmaker

from yield_ledger.config import settings
from yield_ledger.infrastructure.database.session import get_session_factory
from yield_ledger.services.accrual_scheduler import AccrualScheduler
from yield_ledger.services.contract_ledger import ContractLedger
from yield_ledger.services.integrity_auditor import IntegrityAuditor
from yield_ledger.services.recharges import RechargeService
from yield_ledger.services.vip import VipService
from yield_ledger.services.withdrawal_controls import WithdrawalControls
from yield_ledger.services.withdrawal_processor import WithdrawalProcessor


def get_admin_actor(x_admin_actor: Optional[str] = Header(None)) -> str:
    """Admin identity forwarded by the operator UI"""
    actor = (x_admin_actor or "").strip()
    if not actor:
        raise HTTPException(status_code=401, detail="X-Admin-Actor header required")
    return actor


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if settings.cron_secret and authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_contract_ledger(session_factory: sessionmaker = Depends(get_session_factory)) -> ContractLedger:
    return ContractLedger(session_factory)


def get_accrual_scheduler(session_factory: sessionmaker = Depends(get_session_factory)) -> AccrualScheduler:
    return AccrualScheduler(session_factory)


def get_withdrawal_processor(session_factory: sessionmaker = Depends(get_session_factory)) -> WithdrawalProcessor:
    return WithdrawalProcessor(session_factory)


def get_withdrawal_controls(session_factory: sessionmaker = Depends(get_session_factory)) -> WithdrawalControls:
    return WithdrawalControls(session_factory)


def get_recharge_service(session_factory: sessionmaker = Depends(get_session_factory)) -> RechargeService:
    return RechargeService(session_factory)


def get_vip_service(session_factory: sessionmaker = Depends(get_session_factory)) -> VipService:
    return VipService(session_factory)


def get_integrity_auditor(session_factory: sessionmaker = Depends(get_session_factory)) -> IntegrityAuditor:
    return IntegrityAuditor(session_factory)
