"""
Client endpoints
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from .schemas import credit_response, payment_response, certificate_response
from .system import LedgerSystem, get_ledger_system, http_error
from ..errors import LedgerError


router = APIRouter()


@router.get("/{client_id}/credits")
async def list_client_credits(client_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """List all credits of a client"""
    try:
        credits = system.credit_manager.list_credits_for_client(client_id)
    except LedgerError as e:
        raise http_error(e)

    return {
        "client_id": client_id,
        "credits": [credit_response(c) for c in credits]
    }


@router.get("/{client_id}/pending-payments")
async def list_client_pending_payments(
    client_id: str,
    as_of: Optional[date] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """List unpaid installments (pending or overdue) of a client"""
    try:
        payments = system.credit_manager.list_pending_payments_for_client(client_id, as_of=as_of)
    except LedgerError as e:
        raise http_error(e)

    return {
        "client_id": client_id,
        "payments": [payment_response(p) for p in payments]
    }


@router.get("/{client_id}/certificates")
async def list_client_certificates(client_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """List payment certificates issued to a client"""
    try:
        certificates = system.certificate_service.list_for_client(client_id)
    except LedgerError as e:
        raise http_error(e)

    return {
        "client_id": client_id,
        "certificates": [certificate_response(c) for c in certificates]
    }
