"""
Payment endpoints
"""

from fastapi import APIRouter, Depends

from .schemas import CardPaymentRequest, payment_response
from .system import LedgerSystem, get_ledger_system, http_error
from ..errors import LedgerError


router = APIRouter()


@router.get("/{payment_id}")
async def get_payment(payment_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Get an installment with its stored status"""
    try:
        return payment_response(system.credit_manager.get_payment(payment_id))
    except LedgerError as e:
        raise http_error(e)


@router.post("/{payment_id}/pay")
async def pay_installment(
    payment_id: str,
    request: CardPaymentRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Pay an installment by card"""
    try:
        payment = system.credit_manager.process_payment(
            payment_id=payment_id,
            instrument=request.to_instrument(),
            idempotency_key=request.idempotency_key
        )
        credit = system.credit_manager.get_credit(payment.credit_id)
    except LedgerError as e:
        raise http_error(e)

    return {
        "payment": payment_response(payment),
        "credit_status": credit.status.value,
        "remaining_balance": str(credit.remaining_balance.amount),
        "message": "Payment processed successfully"
    }
