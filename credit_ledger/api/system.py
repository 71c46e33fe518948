"""
Ledger system wiring and shared API dependencies
"""

from typing import Optional

from fastapi import HTTPException

from ..audit import AuditTrail
from ..certificates import CertificateService
from ..config import LedgerConfig, get_config, create_storage
from ..credits import CreditManager
from ..errors import LedgerError, ValidationError, NotFoundError, ConflictError, StorageError
from ..reporting import ReportingEngine
from ..storage import StorageInterface


class LedgerSystem:
    """Credit ledger with all components initialized"""

    def __init__(self, config: Optional[LedgerConfig] = None,
                 storage: Optional[StorageInterface] = None):
        self.config = config or get_config()

        # Initialize storage
        self.storage = storage or create_storage(self.config.database_url)

        # Initialize components
        self.audit_trail = AuditTrail(self.storage)
        self.credit_manager = CreditManager(
            self.storage, self.audit_trail,
            currency=self.config.ledger_currency,
            default_after_overdue_installments=self.config.default_after_overdue_installments
        )
        self.certificate_service = CertificateService(
            self.storage, self.credit_manager, self.audit_trail
        )
        self.reporting_engine = ReportingEngine(
            self.credit_manager,
            risk_high_days=self.config.risk_high_days,
            risk_critical_days=self.config.risk_critical_days
        )

    def close(self) -> None:
        self.storage.close()


# Global ledger system instance, built on first use
ledger_system: Optional[LedgerSystem] = None


# Dependency to get ledger system
def get_ledger_system() -> LedgerSystem:
    global ledger_system
    if ledger_system is None:
        ledger_system = LedgerSystem()
    return ledger_system


def http_error(error: LedgerError) -> HTTPException:
    """Map a ledger error to its HTTP status"""
    if isinstance(error, ValidationError):
        detail = {"message": str(error), "field": error.field}
        return HTTPException(status_code=400, detail=detail)
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ConflictError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, StorageError):
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
