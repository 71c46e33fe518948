"""
Certificate endpoints
"""

from fastapi import APIRouter, Depends, status

from .schemas import CertificateRequest, certificate_response
from .system import LedgerSystem, get_ledger_system, http_error
from ..errors import LedgerError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def generate_certificate(
    request: CertificateRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Issue a certificate for paid installments"""
    try:
        certificate = system.certificate_service.generate(request.payment_ids)
    except LedgerError as e:
        raise http_error(e)
    return certificate_response(certificate)


@router.get("/{certificate_id}")
async def get_certificate(certificate_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Get a previously issued certificate"""
    try:
        return certificate_response(system.certificate_service.get(certificate_id))
    except LedgerError as e:
        raise http_error(e)
