"""User withdrawal requests"""

from typing import List

from fastapi import APIRouter, Depends, Query

from yield_ledger.api.dependencies import get_withdrawal_processor
from yield_ledger.api.v1.schemas import WithdrawalCreate, WithdrawalResponse
from yield_ledger.domain.models import BankDetails
from yield_ledger.services.withdrawal_processor import WithdrawalProcessor

router = APIRouter()


@router.post("/accounts/{account_id}/withdrawals", response_model=WithdrawalResponse, status_code=201)
def request_withdrawal(
    account_id: str,
    body: WithdrawalCreate,
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    details = BankDetails(**body.bank_details.model_dump())
    return processor.request_withdrawal(account_id, body.amount, details)


@router.get("/accounts/{account_id}/withdrawals", response_model=List[WithdrawalResponse])
def list_withdrawals(
    account_id: str,
    limit: int = Query(50, ge=1, le=200),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    return processor.list_requests(account_id, limit)
