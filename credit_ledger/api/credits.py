"""
Credit endpoints
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status

from .schemas import (
    GrantCreditRequest, DelinquencyAssessmentRequest,
    credit_response, payment_response, balance_response, amortization_response
)
from .system import LedgerSystem, get_ledger_system, http_error
from ..amortization import amortization_table
from ..errors import LedgerError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def grant_credit(
    request: GrantCreditRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Grant a credit and generate its payment schedule"""
    try:
        credit = system.credit_manager.grant_credit(
            client_id=request.client_id,
            amount=request.amount,
            interest_rate=request.interest_rate,
            term_months=request.term_months,
            client_name=request.client_name,
            description=request.description,
            start_date=request.start_date
        )
        schedule = system.credit_manager.get_credit_payments(credit.id)
    except LedgerError as e:
        raise http_error(e)

    return {
        "credit": credit_response(credit),
        "schedule": {
            "installments": len(schedule),
            "first_due_date": schedule[0].due_date.isoformat(),
            "last_due_date": schedule[-1].due_date.isoformat()
        },
        "message": "Credit granted successfully"
    }


@router.post("/delinquency/assess")
async def assess_delinquency(
    request: Optional[DelinquencyAssessmentRequest] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Move active credits with too many overdue installments to defaulted"""
    as_of = request.as_of if request else None
    try:
        return system.credit_manager.assess_delinquency(as_of=as_of)
    except LedgerError as e:
        raise http_error(e)


@router.get("/{credit_id}")
async def get_credit(credit_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Get credit details"""
    try:
        return credit_response(system.credit_manager.get_credit(credit_id))
    except LedgerError as e:
        raise http_error(e)


@router.get("/{credit_id}/balance")
async def get_credit_balance(
    credit_id: str,
    as_of: Optional[date] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get the balance snapshot of a credit"""
    try:
        return balance_response(system.credit_manager.get_credit_balance(credit_id, as_of=as_of))
    except LedgerError as e:
        raise http_error(e)


@router.get("/{credit_id}/schedule")
async def get_credit_schedule(
    credit_id: str,
    as_of: Optional[date] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get the installment schedule with read-time statuses"""
    try:
        payments = system.credit_manager.get_credit_payments(credit_id, as_of=as_of)
    except LedgerError as e:
        raise http_error(e)

    return {
        "credit_id": credit_id,
        "payments": [payment_response(p) for p in payments]
    }


@router.get("/{credit_id}/amortization")
async def get_amortization_table(
    credit_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get the principal/interest breakdown of every installment"""
    try:
        credit = system.credit_manager.get_credit(credit_id)
    except LedgerError as e:
        raise http_error(e)

    table = amortization_table(
        credit.amount, credit.interest_rate, credit.term_months, credit.start_date
    )
    return {
        "credit_id": credit.id,
        "entries": [amortization_response(entry) for entry in table]
    }
