"""
Pydantic schemas for API requests, plus response serializers
"""

from decimal import Decimal
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Any
from pydantic import BaseModel, Field

from ..amortization import AmortizationEntry
from ..certificates import PaymentCertificate
from ..credits import Credit, Payment, CreditBalance
from ..currency import Money
from ..instruments import CardInstrument
from ..reporting import ReportResult


class MoneyModel(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    currency: str = Field(..., description="Currency code (USD, EUR, etc.)")

    @classmethod
    def from_money(cls, money: Money) -> 'MoneyModel':
        return cls(amount=str(money.amount), currency=money.currency.code)


# Credit schemas
class GrantCreditRequest(BaseModel):
    client_id: str
    amount: str = Field(..., description="Principal as decimal string")
    interest_rate: str = Field(..., description="Nominal annual rate in percent, e.g. \"12\"")
    term_months: int
    client_name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None


class DelinquencyAssessmentRequest(BaseModel):
    as_of: Optional[date] = None


# Payment schemas
class CardPaymentRequest(BaseModel):
    card_number: str
    expiry_date: str = Field(..., description="MM/YY")
    cvv: str
    card_holder_name: str
    address: str
    idempotency_key: Optional[str] = None

    def to_instrument(self) -> CardInstrument:
        return CardInstrument(
            card_number=self.card_number,
            expiry_date=self.expiry_date,
            cvv=self.cvv,
            card_holder_name=self.card_holder_name,
            address=self.address
        )


# Certificate schemas
class CertificateRequest(BaseModel):
    payment_ids: List[str]


def _money(money: Optional[Money]) -> Optional[Dict[str, str]]:
    if money is None:
        return None
    return MoneyModel.from_money(money).model_dump()


def to_json_value(value: Any) -> Any:
    """Decimals become strings so amounts survive JSON untouched"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_value(v) for v in value]
    return value


def credit_response(credit: Credit) -> Dict[str, Any]:
    return {
        "credit_id": credit.id,
        "client_id": credit.client_id,
        "client_name": credit.client_name,
        "description": credit.description,
        "amount": _money(credit.amount),
        "interest_rate": str(credit.interest_rate),
        "term_months": credit.term_months,
        "monthly_payment": str(credit.monthly_payment),
        "start_date": credit.start_date.isoformat(),
        "status": credit.status.value,
        "total_paid": _money(credit.total_paid),
        "remaining_balance": _money(credit.remaining_balance),
        "progress_percent": str(credit.progress_percent),
        "created_at": credit.created_at.isoformat()
    }


def payment_response(payment: Payment) -> Dict[str, Any]:
    return {
        "payment_id": payment.id,
        "credit_id": payment.credit_id,
        "client_id": payment.client_id,
        "installment_number": payment.installment_number,
        "amount": _money(payment.amount),
        "due_date": payment.due_date.isoformat(),
        "status": payment.status.value,
        "method": payment.method.value,
        "paid_date": payment.paid_date.isoformat() if payment.paid_date else None,
        "transaction_id": payment.transaction_id,
        "applied_amount": _money(payment.applied_amount)
    }


def balance_response(balance: CreditBalance) -> Dict[str, Any]:
    return {
        "credit_id": balance.credit_id,
        "client_id": balance.client_id,
        "status": balance.status.value,
        "amount": _money(balance.amount),
        "total_paid": _money(balance.total_paid),
        "remaining_balance": _money(balance.remaining_balance),
        "monthly_payment": _money(balance.monthly_payment),
        "paid_installments": balance.paid_installments,
        "outstanding_installments": balance.outstanding_installments,
        "overdue_installments": balance.overdue_installments,
        "next_due_date": balance.next_due_date.isoformat() if balance.next_due_date else None,
        "progress_percent": str(balance.progress_percent)
    }


def amortization_response(entry: AmortizationEntry) -> Dict[str, Any]:
    return {
        "payment_number": entry.payment_number,
        "due_date": entry.due_date.isoformat(),
        "payment_amount": _money(entry.payment_amount),
        "principal_amount": _money(entry.principal_amount),
        "interest_amount": _money(entry.interest_amount),
        "remaining_balance": _money(entry.remaining_balance)
    }


def certificate_response(certificate: PaymentCertificate) -> Dict[str, Any]:
    return {
        "certificate_id": certificate.id,
        "client_id": certificate.client_id,
        "generated_at": certificate.generated_at.isoformat(),
        "total_amount": _money(certificate.total_amount),
        "payments": [
            {
                "payment_id": p.payment_id,
                "credit_id": p.credit_id,
                "installment_number": p.installment_number,
                "amount": _money(p.amount),
                "paid_date": p.paid_date.isoformat(),
                "transaction_id": p.transaction_id
            }
            for p in certificate.payments
        ]
    }


def report_response(report: ReportResult) -> Dict[str, Any]:
    return {
        "report_id": report.report_id,
        "generated_at": report.generated_at.isoformat(),
        "as_of": report.as_of.isoformat(),
        "data": to_json_value(report.data),
        "totals": to_json_value(report.totals),
        "metadata": to_json_value(report.metadata)
    }
