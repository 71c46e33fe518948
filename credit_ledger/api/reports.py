"""
Reporting endpoints
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from .schemas import report_response
from .system import LedgerSystem, get_ledger_system, http_error
from ..credits import PaymentMethod, PaymentStatus
from ..errors import LedgerError


router = APIRouter()


@router.get("/payments")
async def payment_report(
    client_id: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    method: Optional[PaymentMethod] = None,
    status: Optional[PaymentStatus] = None,
    as_of: Optional[date] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Installments filtered by client, due date range, method and status"""
    try:
        report = system.reporting_engine.payment_report(
            client_id=client_id, start=start, end=end,
            method=method, status=status, as_of=as_of
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LedgerError as e:
        raise http_error(e)
    return report_response(report)


@router.get("/delinquency")
async def delinquency_report(
    as_of: Optional[date] = None,
    min_overdue_amount: Optional[Decimal] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Clients with overdue installments and their risk level"""
    try:
        report = system.reporting_engine.delinquency_report(
            as_of=as_of, min_overdue_amount=min_overdue_amount
        )
    except LedgerError as e:
        raise http_error(e)
    return report_response(report)


@router.get("/portfolio")
async def portfolio_summary(
    as_of: Optional[date] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Portfolio metrics for the manager dashboard"""
    try:
        report = system.reporting_engine.portfolio_summary(as_of=as_of)
    except LedgerError as e:
        raise http_error(e)
    return report_response(report)
