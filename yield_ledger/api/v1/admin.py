"""Admin operator endpoints. Every call is attributed to the X-Admin-Actor header."""

from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import sessionmaker

from yield_ledger.api.dependencies import (
    get_admin_actor,
    get_contract_ledger,
    get_integrity_auditor,
    get_recharge_service,
    get_withdrawal_controls,
    get_withdrawal_processor,
)
from yield_ledger.api.v1.schemas import (
    AccountResponse,
    AmountEdit,
    AuditResponse,
    BalanceSet,
    BulkAdjustResponse,
    BulkPeriodAdjust,
    ContractResponse,
    OverrideEntry,
    PeriodAdjust,
    ProductResponse,
    ProductUpsert,
    RechargeResponse,
    RestrictionRequest,
    RestrictionResponse,
    RevenueFiguresSchema,
    RevenueResponse,
    RulesSchema,
    WithdrawalDecision,
    WithdrawalResponse,
)
from yield_ledger.infrastructure.database.session import get_session_factory
from yield_ledger.services.account_store import override_balance
from yield_ledger.services.accounts import upsert_product
from yield_ledger.services.contract_ledger import ContractLedger
from yield_ledger.services.integrity_auditor import IntegrityAuditor
from yield_ledger.services.overrides import override_history
from yield_ledger.services.recharges import RechargeService
from yield_ledger.services.reports import revenue_summary
from yield_ledger.services.withdrawal_controls import WithdrawalControls
from yield_ledger.services.withdrawal_processor import WithdrawalProcessor

router = APIRouter(prefix="/admin")


@router.put("/products/{product_id}", response_model=ProductResponse)
def put_product(
    product_id: str,
    body: ProductUpsert,
    actor: str = Depends(get_admin_actor),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    return upsert_product(session_factory, product_id, actor=actor, **body.model_dump())


@router.post("/recharges/{recharge_id}/approve", response_model=RechargeResponse)
def approve_recharge(
    recharge_id: str,
    actor: str = Depends(get_admin_actor),
    recharges: RechargeService = Depends(get_recharge_service),
):
    return recharges.approve_recharge(recharge_id, actor)


@router.post("/recharges/{recharge_id}/reject", response_model=RechargeResponse)
def reject_recharge(
    recharge_id: str,
    actor: str = Depends(get_admin_actor),
    recharges: RechargeService = Depends(get_recharge_service),
):
    return recharges.reject_recharge(recharge_id, actor)


@router.put("/accounts/{account_id}/balance", response_model=AccountResponse)
def set_balance(
    account_id: str,
    body: BalanceSet,
    actor: str = Depends(get_admin_actor),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    return override_balance(session_factory, account_id, body.field, body.value, actor, body.reason)


@router.put("/contracts/{contract_id}/period", response_model=ContractResponse)
def adjust_contract_period(
    contract_id: str,
    body: PeriodAdjust,
    actor: str = Depends(get_admin_actor),
    ledger: ContractLedger = Depends(get_contract_ledger),
):
    return ledger.adjust_contract_period(contract_id, body.new_period, actor, body.reason)


@router.post("/contracts/adjust-period", response_model=BulkAdjustResponse)
def adjust_all_contracts(
    body: BulkPeriodAdjust,
    actor: str = Depends(get_admin_actor),
    ledger: ContractLedger = Depends(get_contract_ledger),
):
    return BulkAdjustResponse(contracts_adjusted=ledger.adjust_all_contracts(body.day_delta, actor, body.reason))


@router.post("/withdrawals/{request_id}/decision", response_model=WithdrawalResponse)
def decide_withdrawal(
    request_id: str,
    body: WithdrawalDecision,
    actor: str = Depends(get_admin_actor),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    return processor.decide(request_id, body.decision, actor, refund=body.refund)


@router.put("/withdrawals/{request_id}/amount", response_model=WithdrawalResponse)
def edit_withdrawal_amount(
    request_id: str,
    body: AmountEdit,
    actor: str = Depends(get_admin_actor),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    return processor.edit_amount(request_id, body.new_amount, actor, body.reason)


@router.delete("/withdrawals/{request_id}", status_code=204)
def delete_withdrawal(
    request_id: str,
    actor: str = Depends(get_admin_actor),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    processor.delete(request_id, actor)
    return Response(status_code=204)


@router.put("/accounts/{account_id}/restriction", response_model=RestrictionResponse)
def restrict_withdrawals(
    account_id: str,
    body: RestrictionRequest,
    actor: str = Depends(get_admin_actor),
    controls: WithdrawalControls = Depends(get_withdrawal_controls),
):
    return controls.restrict(account_id, body.reason, actor)


@router.delete("/accounts/{account_id}/restriction", status_code=204)
def lift_restriction(
    account_id: str,
    actor: str = Depends(get_admin_actor),
    controls: WithdrawalControls = Depends(get_withdrawal_controls),
):
    controls.lift_restriction(account_id, actor)
    return Response(status_code=204)


@router.get("/withdrawal-rules", response_model=RulesSchema)
def get_withdrawal_rules(
    actor: str = Depends(get_admin_actor),
    controls: WithdrawalControls = Depends(get_withdrawal_controls),
):
    rules = controls.get_rules()
    return RulesSchema(
        max_withdrawal_percent=rules.max_withdrawal_percent,
        product_rules=rules.product_rules,
        custom_message=rules.custom_message,
    )


@router.put("/withdrawal-rules", response_model=RulesSchema)
def put_withdrawal_rules(
    body: RulesSchema,
    actor: str = Depends(get_admin_actor),
    controls: WithdrawalControls = Depends(get_withdrawal_controls),
):
    rules = controls.save_rules(body.max_withdrawal_percent, body.product_rules, body.custom_message, actor)
    return RulesSchema(
        max_withdrawal_percent=rules.max_withdrawal_percent,
        product_rules=rules.product_rules,
        custom_message=rules.custom_message,
    )


@router.get("/accounts/{account_id}/audit", response_model=AuditResponse)
def audit_account(
    account_id: str,
    actor: str = Depends(get_admin_actor),
    auditor: IntegrityAuditor = Depends(get_integrity_auditor),
):
    result = auditor.audit(account_id)
    return AuditResponse(
        account_id=result.account_id,
        total_rewards=result.total_rewards,
        reward_factor=result.reward_factor,
        total_generated_income=result.total_generated_income,
        total_approved_withdrawals=result.total_approved_withdrawals,
        current_balance=result.current_balance,
        credits=result.credits,
        debits=result.debits,
        is_safe=result.is_safe,
        diff=result.diff,
        safe_margin=result.safe_margin,
    )


@router.get("/revenue", response_model=RevenueResponse)
def get_revenue(
    actor: str = Depends(get_admin_actor),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    summary = revenue_summary(session_factory)
    return RevenueResponse(
        today=RevenueFiguresSchema(
            recharge=summary.today.recharge,
            withdrawal=summary.today.withdrawal,
            net=summary.today.net,
        ),
        all_time=RevenueFiguresSchema(
            recharge=summary.all_time.recharge,
            withdrawal=summary.all_time.withdrawal,
            net=summary.all_time.net,
        ),
    )


@router.get("/overrides/{target_id}", response_model=List[OverrideEntry])
def get_override_history(
    target_id: str,
    actor: str = Depends(get_admin_actor),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    return override_history(session_factory, target_id)
