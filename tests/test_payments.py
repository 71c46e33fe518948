"""
Test suite for installment payments

Tests the pending -> paid state machine, card validation, balance updates,
credit completion, duplicate submissions, idempotent replays and
concurrent settlement of the same installment.
"""

import logging
import random
import threading
import pytest
from decimal import Decimal
from datetime import datetime, timezone, date

from credit_ledger.audit import AuditTrail, AuditEventType
from credit_ledger.credits import CreditManager, CreditStatus, PaymentStatus, PaymentMethod
from credit_ledger.currency import Money, Currency
from credit_ledger.errors import ValidationError, ConflictError, NotFoundError
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
def card():
    return CardInstrument(
        card_number="4111 1111 1111 1111",
        expiry_date="12/29",
        cvv="123",
        card_holder_name="Maria Lopez",
        address="Calle 10 #4-21, Bogota"
    )


@pytest.fixture
def reference_credit(manager):
    """50,000 at 12% over 24 months"""
    return manager.grant_credit("client-1", "50000", "12", 24, start_date=START)


def usd(amount) -> Money:
    return Money(Decimal(amount), Currency.USD)


def installment_ids(manager, credit):
    return [p.id for p in manager.get_credit_payments(credit.id, as_of=START)]


class TestPayInstallment:
    """Test a successful payment"""

    def test_first_installment(self, manager, reference_credit, card):
        payment_id = installment_ids(manager, reference_credit)[0]
        paid_at = datetime(2025, 2, 10, 14, 30, tzinfo=timezone.utc)

        payment = manager.process_payment(payment_id, card, paid_at=paid_at)

        assert payment.status == PaymentStatus.PAID
        assert payment.method == PaymentMethod.CARD
        assert payment.paid_date == paid_at
        assert payment.transaction_id.startswith("TRX-")
        assert payment.applied_amount == usd('2353.67')

        credit = manager.get_credit(reference_credit.id)
        assert credit.total_paid == usd('2353.67')
        assert credit.remaining_balance == usd('47646.33')
        assert credit.status == CreditStatus.ACTIVE

    def test_payment_is_persisted(self, manager, reference_credit, card):
        payment_id = installment_ids(manager, reference_credit)[0]
        paid = manager.process_payment(payment_id, card)

        stored = manager.get_payment(payment_id)
        assert stored.status == PaymentStatus.PAID
        assert stored.transaction_id == paid.transaction_id
        assert stored.applied_amount == paid.applied_amount

    def test_payment_is_audited(self, manager, reference_credit, card, audit_trail):
        payment_id = installment_ids(manager, reference_credit)[0]
        manager.process_payment(payment_id, card)

        events = audit_trail.get_events_for_entity("payment", payment_id)
        assert len(events) == 1
        assert events[0].event_type == AuditEventType.INSTALLMENT_PAID
        assert events[0].metadata["card_last_four"] == "1111"
        assert "4111111111111111" not in str(events[0].metadata)

    def test_overdue_installment_can_be_paid(self, manager, reference_credit, card):
        payment_id = installment_ids(manager, reference_credit)[0]
        before = manager.get_credit_payments(reference_credit.id, as_of=date(2025, 3, 1))[0]
        assert before.status == PaymentStatus.OVERDUE

        payment = manager.process_payment(payment_id, card)
        assert payment.status == PaymentStatus.PAID

    def test_out_of_order_payment(self, manager, reference_credit, card):
        """Installments need not be paid in sequence"""
        payment_id = installment_ids(manager, reference_credit)[5]
        manager.process_payment(payment_id, card)

        credit = manager.get_credit(reference_credit.id)
        assert credit.total_paid == usd('2353.67')

    def test_unknown_payment(self, manager, card):
        with pytest.raises(NotFoundError):
            manager.process_payment("PAY-missing-1", card)


class TestCardRejection:
    """Test that invalid card data leaves the installment untouched"""

    @pytest.mark.parametrize("overrides,field", [
        ({"card_number": "4111 1111 1111"}, "card_number"),
        ({"expiry_date": "13/29"}, "expiry_date"),
        ({"cvv": "12"}, "cvv"),
        ({"card_holder_name": " "}, "card_holder_name"),
        ({"address": ""}, "address"),
    ])
    def test_rejected_card(self, manager, reference_credit, audit_trail, overrides, field):
        payment_id = installment_ids(manager, reference_credit)[0]
        values = dict(
            card_number="4111111111111111", expiry_date="01/30", cvv="999",
            card_holder_name="Maria Lopez", address="Calle 10"
        )
        values.update(overrides)
        events_before = audit_trail.count_events()

        with pytest.raises(ValidationError) as exc_info:
            manager.process_payment(payment_id, CardInstrument(**values))

        assert exc_info.value.field == field
        assert manager.get_payment(payment_id).status == PaymentStatus.PENDING
        assert manager.get_credit(reference_credit.id).total_paid == usd('0')
        assert audit_trail.count_events() == events_before

    def test_rejection_is_logged(self, manager, reference_credit, caplog):
        payment_id = installment_ids(manager, reference_credit)[0]
        bad_card = CardInstrument("1234", "12/29", "123", "Maria Lopez", "Calle 10")

        with caplog.at_level(logging.WARNING, logger="granito"):
            with pytest.raises(ValidationError):
                manager.process_payment(payment_id, bad_card)

        assert any("Payment rejected" in r.getMessage() for r in caplog.records)


class TestDuplicatePayment:
    """Test already-paid installments"""

    def test_second_payment_conflicts(self, manager, reference_credit, card):
        payment_id = installment_ids(manager, reference_credit)[0]
        first = manager.process_payment(payment_id, card)

        with pytest.raises(ConflictError):
            manager.process_payment(payment_id, card)

        credit = manager.get_credit(reference_credit.id)
        assert credit.total_paid == usd('2353.67')
        assert manager.get_payment(payment_id).transaction_id == first.transaction_id

    def test_idempotent_replay(self, manager, reference_credit, card, audit_trail):
        payment_id = installment_ids(manager, reference_credit)[0]
        first = manager.process_payment(payment_id, card, idempotency_key="req-1")
        events = audit_trail.count_events()

        replay = manager.process_payment(payment_id, card, idempotency_key="req-1")

        assert replay.transaction_id == first.transaction_id
        assert manager.get_credit(reference_credit.id).total_paid == usd('2353.67')
        assert audit_trail.count_events() == events

    def test_different_key_conflicts(self, manager, reference_credit, card):
        payment_id = installment_ids(manager, reference_credit)[0]
        manager.process_payment(payment_id, card, idempotency_key="req-1")

        with pytest.raises(ConflictError):
            manager.process_payment(payment_id, card, idempotency_key="req-2")

    def test_concurrent_submissions_apply_once(self, manager, reference_credit, card):
        payment_id = installment_ids(manager, reference_credit)[0]
        outcomes = []
        outcomes_lock = threading.Lock()
        barrier = threading.Barrier(8)

        def submit():
            barrier.wait()
            try:
                manager.process_payment(payment_id, card)
                result = "paid"
            except ConflictError:
                result = "conflict"
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=submit) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("paid") == 1
        assert outcomes.count("conflict") == 7
        assert manager.get_credit(reference_credit.id).total_paid == usd('2353.67')


class TestBalanceInvariant:
    """Test total_paid + remaining_balance == amount"""

    def test_invariant_in_any_payment_order(self, manager, reference_credit, card):
        ids = installment_ids(manager, reference_credit)
        random.Random(7).shuffle(ids)

        for payment_id in ids:
            manager.process_payment(payment_id, card)
            credit = manager.get_credit(reference_credit.id)
            assert credit.total_paid + credit.remaining_balance == credit.amount
            assert not credit.remaining_balance.is_negative()

    def test_zero_rate_credit_pays_exactly(self, manager, card):
        credit = manager.grant_credit("client-2", "1000", "0", 3, start_date=START)
        for payment_id in installment_ids(manager, credit):
            manager.process_payment(payment_id, card)

        credit = manager.get_credit(credit.id)
        assert credit.total_paid == usd('1000')
        assert credit.remaining_balance.is_zero()
        assert credit.status == CreditStatus.COMPLETED


class TestCompletion:
    """Test the active -> completed transition"""

    def test_balance_reaches_zero_before_last_installment(self, manager, reference_credit, card):
        """Applied amounts are capped by the balance, so the principal is retired at installment 22"""
        ids = installment_ids(manager, reference_credit)
        for payment_id in ids[:21]:
            manager.process_payment(payment_id, card)

        credit = manager.get_credit(reference_credit.id)
        assert credit.total_paid == usd('49427.07')
        assert credit.remaining_balance == usd('572.93')
        assert credit.status == CreditStatus.ACTIVE

        payment = manager.process_payment(ids[21], card)
        assert payment.applied_amount == usd('572.93')

        credit = manager.get_credit(reference_credit.id)
        assert credit.remaining_balance.is_zero()
        assert credit.status == CreditStatus.COMPLETED

    def test_all_installments_leave_credit_completed(self, manager, reference_credit, card, audit_trail):
        for payment_id in installment_ids(manager, reference_credit):
            manager.process_payment(payment_id, card)

        credit = manager.get_credit(reference_credit.id)
        assert credit.remaining_balance.is_zero()
        assert credit.total_paid == usd('50000')
        assert credit.status == CreditStatus.COMPLETED
        assert len(audit_trail.get_events_by_type(AuditEventType.CREDIT_COMPLETED)) == 1

    def test_installments_after_completion_apply_nothing(self, manager, reference_credit, card):
        ids = installment_ids(manager, reference_credit)
        for payment_id in ids[:22]:
            manager.process_payment(payment_id, card)

        payment = manager.process_payment(ids[22], card)
        assert payment.status == PaymentStatus.PAID
        assert payment.applied_amount == usd('0')
        assert manager.get_credit(reference_credit.id).total_paid == usd('50000')

    def test_defaulted_credit_completes_when_paid(self, manager, card):
        credit = manager.grant_credit("client-3", "300", "0", 3, start_date=START)
        manager.assess_delinquency(as_of=date(2025, 6, 1))
        assert manager.get_credit(credit.id).status == CreditStatus.DEFAULTED

        for payment_id in installment_ids(manager, credit):
            manager.process_payment(payment_id, card)

        assert manager.get_credit(credit.id).status == CreditStatus.COMPLETED
