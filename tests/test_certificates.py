"""
Tests for payment certificates
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone, date

from credit_ledger.audit import AuditTrail, AuditEventType
from credit_ledger.certificates import CertificateService
from credit_ledger.credits import CreditManager
from credit_ledger.currency import Money, Currency
from credit_ledger.errors import ValidationError, NotFoundError
from credit_ledger.instruments import CardInstrument
from credit_ledger.storage import InMemoryStorage


START = date(2025, 1, 15)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_trail(storage):
    return AuditTrail(storage)


@pytest.fixture
def manager(storage, audit_trail):
    return CreditManager(storage, audit_trail)


@pytest.fixture
def service(storage, manager, audit_trail):
    return CertificateService(storage, manager, audit_trail)


@pytest.fixture
def card():
    return CardInstrument("4111111111111111", "12/29", "123", "Maria Lopez", "Calle 10")


@pytest.fixture
def client_payments(manager, card):
    """Installments of a 600 / 0% / 6 month credit with the first two paid"""
    credit = manager.grant_credit("client-1", "600", "0", 6, start_date=START)
    payments = manager.get_credit_payments(credit.id, as_of=START)
    manager.process_payment(payments[0].id, card, paid_at=datetime(2025, 2, 10, tzinfo=timezone.utc))
    manager.process_payment(payments[1].id, card, paid_at=datetime(2025, 3, 12, tzinfo=timezone.utc))
    return payments


class TestGenerateCertificate:
    """Test certificate issuance"""

    def test_certifies_paid_installments(self, service, client_payments):
        ids = [p.id for p in client_payments[:2]]
        certificate = service.generate(ids)

        assert certificate.id.startswith("CERT-")
        assert certificate.client_id == "client-1"
        assert certificate.total_amount == Money(Decimal('200'), Currency.USD)
        assert [p.payment_id for p in certificate.payments] == ids
        assert all(p.transaction_id.startswith("TRX-") for p in certificate.payments)
        assert certificate.generated_at is not None

    def test_skips_unpaid_and_unknown(self, service, client_payments):
        ids = [p.id for p in client_payments] + ["PAY-unknown-1"]
        certificate = service.generate(ids)

        assert len(certificate.payments) == 2
        assert certificate.total_amount == Money(Decimal('200'), Currency.USD)

    def test_duplicate_ids_counted_once(self, service, client_payments):
        paid_id = client_payments[0].id
        certificate = service.generate([paid_id, paid_id])

        assert len(certificate.payments) == 1
        assert certificate.total_amount == Money(Decimal('100'), Currency.USD)

    def test_no_paid_installments(self, service, client_payments):
        with pytest.raises(ValidationError) as exc_info:
            service.generate([p.id for p in client_payments[2:]])
        assert exc_info.value.field == "payment_ids"

    def test_empty_request(self, service):
        with pytest.raises(ValidationError):
            service.generate([])

    def test_mixed_clients_rejected(self, service, manager, card, client_payments):
        other = manager.grant_credit("client-2", "300", "0", 3, start_date=START)
        other_payment = manager.get_credit_payments(other.id, as_of=START)[0]
        manager.process_payment(other_payment.id, card)

        with pytest.raises(ValidationError):
            service.generate([client_payments[0].id, other_payment.id])

    def test_issuance_is_audited(self, service, audit_trail, client_payments):
        certificate = service.generate([client_payments[0].id])

        events = audit_trail.get_events_by_type(AuditEventType.CERTIFICATE_ISSUED)
        assert len(events) == 1
        assert events[0].entity_id == certificate.id
        assert events[0].metadata["payment_ids"] == [client_payments[0].id]


class TestCertificateLookup:
    """Test stored certificates"""

    def test_get_round_trip(self, service, client_payments):
        issued = service.generate([p.id for p in client_payments[:2]])
        loaded = service.get(issued.id)

        assert loaded.client_id == issued.client_id
        assert loaded.total_amount == issued.total_amount
        assert [p.paid_date for p in loaded.payments] == [p.paid_date for p in issued.payments]

    def test_unknown_certificate(self, service):
        with pytest.raises(NotFoundError):
            service.get("CERT-MISSING")

    def test_list_for_client(self, service, client_payments):
        service.generate([client_payments[0].id])
        service.generate([client_payments[1].id])

        assert len(service.list_for_client("client-1")) == 2
        assert service.list_for_client("client-2") == []
