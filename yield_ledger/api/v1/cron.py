"""POST /v1/cron/sync-income - scheduled income sweep"""

from fastapi import APIRouter, Depends

from yield_ledger.api.dependencies import get_accrual_scheduler, verify_cron_secret
from yield_ledger.api.v1.schemas import SyncResponse
from yield_ledger.services.accrual_scheduler import AccrualScheduler

router = APIRouter()


@router.post("/cron/sync-income", response_model=SyncResponse, dependencies=[Depends(verify_cron_secret)])
def sync_income(scheduler: AccrualScheduler = Depends(get_accrual_scheduler)):
    """Safe to trigger more or less often than daily"""
    summary = scheduler.sync_all()
    return SyncResponse(
        accounts=summary.accounts,
        contracts=summary.contracts,
        income=summary.income,
        failures=summary.failures,
    )
