"""Account endpoints: registration, lookup, session start and recharge requests"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import sessionmaker

from yield_ledger.api.dependencies import get_accrual_scheduler, get_recharge_service, get_vip_service
from yield_ledger.api.v1.schemas import (
    AccountResponse,
    RechargeRequest,
    RechargeResponse,
    RegisterRequest,
    SessionResponse,
)
from yield_ledger.infrastructure.database.session import get_session_factory
from yield_ledger.services.accounts import get_account, register_account
from yield_ledger.services.accrual_scheduler import AccrualScheduler
from yield_ledger.services.recharges import RechargeService
from yield_ledger.services.vip import VipService

router = APIRouter()


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def create_account(body: RegisterRequest, session_factory: sessionmaker = Depends(get_session_factory)):
    return register_account(session_factory, body.phone, inviter_id=body.inviter_id, account_id=body.account_id)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def read_account(account_id: str, session_factory: sessionmaker = Depends(get_session_factory)):
    return get_account(session_factory, account_id)


@router.post("/accounts/{account_id}/session", response_model=SessionResponse)
def start_session(
    account_id: str,
    session_factory: sessionmaker = Depends(get_session_factory),
    scheduler: AccrualScheduler = Depends(get_accrual_scheduler),
    vip: VipService = Depends(get_vip_service),
):
    """
    Session start hook.

    Flow:
    1. Sync income for the account (same idempotent path as the daily sweep)
    2. Re-evaluate the VIP level
    3. Pay VIP salary when due
    """
    summary = scheduler.sync_account(account_id)
    level = vip.check_and_upgrade(account_id)
    salary = vip.pay_salary(account_id)
    return SessionResponse(
        account=AccountResponse.model_validate(get_account(session_factory, account_id)),
        contracts_advanced=summary.contracts,
        income_credited=summary.income,
        vip_level=level,
        salary_paid=salary,
    )


@router.post("/accounts/{account_id}/recharges", response_model=RechargeResponse, status_code=201)
def create_recharge(
    account_id: str,
    body: RechargeRequest,
    recharges: RechargeService = Depends(get_recharge_service),
):
    return recharges.request_recharge(account_id, body.amount)
