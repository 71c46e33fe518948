"""
Ledger Error Kinds

All errors raised by the credit ledger derive from LedgerError so callers
can catch the whole family or a specific kind.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for all credit ledger errors"""
    retryable = False


class ValidationError(LedgerError):
    """Bad principal, term or rate, malformed payment instrument, duplicate active credit"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(LedgerError):
    """Unknown credit, payment or certificate id"""


class ConflictError(LedgerError):
    """Operation conflicts with current state (e.g. installment already paid)"""


class StorageError(LedgerError):
    """Persistence failure; safe to retry"""
    retryable = True
