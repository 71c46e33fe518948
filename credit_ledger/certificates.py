"""
Payment Certificates

Issues certificates attesting that a set of installments was paid.
Rendering (PDF, print) is left to callers.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List
import uuid

from .audit import AuditTrail, AuditEventType
from .credits import CreditManager, Payment
from .currency import Money, Currency, sum_money
from .errors import ValidationError, NotFoundError
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


@dataclass
class CertifiedPayment:
    """Line of a certificate"""
    payment_id: str
    credit_id: str
    installment_number: int
    amount: Money
    paid_date: datetime
    transaction_id: str


@dataclass
class PaymentCertificate(StorageRecord):
    """Certificate over paid installments of one client"""
    client_id: str
    total_amount: Money
    payments: List[CertifiedPayment] = field(default_factory=list)

    @property
    def generated_at(self) -> datetime:
        return self.created_at


class CertificateService:
    """Builds and stores payment certificates"""

    def __init__(self, storage: StorageInterface, credit_manager: CreditManager,
                 audit_trail: AuditTrail):
        self.storage = storage
        self.credit_manager = credit_manager
        self.audit_trail = audit_trail
        self.logger = get_logger("granito.certificates")
        self.certificates_table = "certificates"

    def generate(self, payment_ids: List[str]) -> PaymentCertificate:
        """
        Certify the paid installments among `payment_ids`

        Unknown or unpaid IDs are skipped; the certificate lists only paid
        installments.

        Raises:
            ValidationError: No paid installment given, or installments
                belong to different clients
        """
        paid: List[Payment] = []
        for payment_id in dict.fromkeys(payment_ids):
            try:
                payment = self.credit_manager.get_payment(payment_id)
            except NotFoundError:
                continue
            if payment.is_paid:
                paid.append(payment)

        if not paid:
            raise ValidationError("No paid installments to certify", field="payment_ids")

        clients = {p.client_id for p in paid}
        if len(clients) > 1:
            raise ValidationError("Installments belong to different clients", field="payment_ids")

        paid.sort(key=lambda p: (p.paid_date, p.installment_number))
        currency = paid[0].amount.currency
        now = datetime.now(timezone.utc)

        certificate = PaymentCertificate(
            id=f"CERT-{uuid.uuid4().hex[:12].upper()}",
            created_at=now,
            updated_at=now,
            client_id=paid[0].client_id,
            total_amount=sum_money((p.amount for p in paid), currency),
            payments=[
                CertifiedPayment(
                    payment_id=p.id,
                    credit_id=p.credit_id,
                    installment_number=p.installment_number,
                    amount=p.amount,
                    paid_date=p.paid_date,
                    transaction_id=p.transaction_id
                )
                for p in paid
            ]
        )

        with self.storage.atomic():
            self.storage.save(self.certificates_table, certificate.id,
                              self._certificate_to_dict(certificate))
            self.audit_trail.log_event(
                event_type=AuditEventType.CERTIFICATE_ISSUED,
                entity_type="certificate",
                entity_id=certificate.id,
                metadata={
                    "client_id": certificate.client_id,
                    "payment_ids": [p.payment_id for p in certificate.payments],
                    "total_amount": certificate.total_amount.to_string()
                }
            )

        log_action(
            self.logger, "info", "Payment certificate issued",
            action="generate_certificate", resource=f"certificate:{certificate.id}",
            extra={"client_id": certificate.client_id, "payments": len(certificate.payments)}
        )
        return certificate

    def get(self, certificate_id: str) -> PaymentCertificate:
        data = self.storage.load(self.certificates_table, certificate_id)
        if not data:
            raise NotFoundError(f"Certificate {certificate_id} not found")
        return self._certificate_from_dict(data)

    def list_for_client(self, client_id: str) -> List[PaymentCertificate]:
        data = self.storage.find(self.certificates_table, {"client_id": client_id})
        certificates = [self._certificate_from_dict(d) for d in data]
        certificates.sort(key=lambda c: c.created_at)
        return certificates

    def _certificate_to_dict(self, certificate: PaymentCertificate) -> Dict:
        return {
            'id': certificate.id,
            'created_at': certificate.created_at.isoformat(),
            'updated_at': certificate.updated_at.isoformat(),
            'client_id': certificate.client_id,
            'currency': certificate.total_amount.currency.code,
            'total_amount': str(certificate.total_amount.amount),
            'payments': [
                {
                    'payment_id': p.payment_id,
                    'credit_id': p.credit_id,
                    'installment_number': p.installment_number,
                    'amount': str(p.amount.amount),
                    'paid_date': p.paid_date.isoformat(),
                    'transaction_id': p.transaction_id
                }
                for p in certificate.payments
            ]
        }

    def _certificate_from_dict(self, data: Dict) -> PaymentCertificate:
        currency = Currency[data['currency']]
        return PaymentCertificate(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            client_id=data['client_id'],
            total_amount=Money(Decimal(data['total_amount']), currency),
            payments=[
                CertifiedPayment(
                    payment_id=p['payment_id'],
                    credit_id=p['credit_id'],
                    installment_number=p['installment_number'],
                    amount=Money(Decimal(p['amount']), currency),
                    paid_date=datetime.fromisoformat(p['paid_date']),
                    transaction_id=p['transaction_id']
                )
                for p in data['payments']
            ]
        )
