"""Contract purchase and listing"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from yield_ledger.api.dependencies import get_contract_ledger
from yield_ledger.api.v1.schemas import CommissionSchema, ContractResponse, PurchaseRequest, PurchaseResponse
from yield_ledger.domain.commissions import LEVEL_NAMES
from yield_ledger.services.contract_ledger import ContractLedger

router = APIRouter()


@router.post("/accounts/{account_id}/contracts", response_model=PurchaseResponse, status_code=201)
def purchase(account_id: str, body: PurchaseRequest, ledger: ContractLedger = Depends(get_contract_ledger)):
    result = ledger.create_contract(account_id, body.product_id)
    return PurchaseResponse(
        contract=ContractResponse.model_validate(result.contract),
        commissions=[
            CommissionSchema(level=LEVEL_NAMES[c.level], ancestor_id=c.ancestor_id, amount=c.amount)
            for c in result.commissions
        ],
    )


@router.get("/accounts/{account_id}/contracts", response_model=List[ContractResponse])
def list_contracts(
    account_id: str,
    status: Optional[str] = Query(None, description="active or completed"),
    ledger: ContractLedger = Depends(get_contract_ledger),
):
    return ledger.list_contracts(account_id, status)
