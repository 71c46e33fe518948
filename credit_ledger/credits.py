"""
Credit Module

Handles credit granting, installment schedule persistence, the installment
payment state machine, balance tracking, and delinquency/default assessment.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Any
from enum import Enum
import threading
import uuid

from .amortization import calculate_monthly_payment, build_installment_schedule
from .audit import AuditTrail, AuditEventType
from .currency import Money, Currency, parse_decimal
from .errors import ValidationError, NotFoundError, ConflictError
from .instruments import CardInstrument, validate_card
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


class CreditStatus(Enum):
    """Credit lifecycle states"""
    ACTIVE = "active"          # Granted, balance outstanding
    COMPLETED = "completed"    # Remaining balance reached zero
    DEFAULTED = "defaulted"    # Too many overdue installments


class PaymentStatus(Enum):
    """Installment states; OVERDUE is derived on read, never stored"""
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentMethod(Enum):
    """How an installment was settled"""
    CARD = "card"
    TRANSFER = "transfer"
    CASH = "cash"
    PENDING = "pending"        # Not settled yet


def _today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass
class Credit(StorageRecord):
    """Credit granted to a client and repaid in fixed monthly installments"""
    client_id: str
    amount: Money
    interest_rate: Decimal              # Nominal annual rate in percent, e.g. 12 for 12%
    term_months: int
    monthly_payment: Decimal            # Full precision, never rounded
    start_date: date
    status: CreditStatus = CreditStatus.ACTIVE
    total_paid: Money = None
    remaining_balance: Money = None
    client_name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        if self.total_paid is None:
            self.total_paid = Money.zero(self.amount.currency)
        if self.remaining_balance is None:
            self.remaining_balance = self.amount

    @property
    def currency(self) -> Currency:
        return self.amount.currency

    @property
    def is_open(self) -> bool:
        """Active or defaulted credits still carry a balance"""
        return self.status in (CreditStatus.ACTIVE, CreditStatus.DEFAULTED)

    @property
    def progress_percent(self) -> Decimal:
        return (self.total_paid.amount / self.amount.amount * Decimal('100')).quantize(Decimal('0.01'))


@dataclass
class Payment(StorageRecord):
    """One scheduled installment of a credit"""
    credit_id: str
    client_id: str
    installment_number: int
    amount: Money
    due_date: date
    status: PaymentStatus = PaymentStatus.PENDING
    method: PaymentMethod = PaymentMethod.PENDING
    paid_date: Optional[datetime] = None
    transaction_id: Optional[str] = None
    idempotency_key: Optional[str] = None
    applied_amount: Optional[Money] = None  # Part credited against the principal balance

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID

    def days_overdue(self, as_of: date) -> int:
        if derive_status(self, as_of) != PaymentStatus.OVERDUE:
            return 0
        return (as_of - self.due_date).days


def derive_status(payment: Payment, as_of: date, credit_completed: bool = False) -> PaymentStatus:
    """
    Read-time status: unpaid installments past their due date are overdue.

    Unpaid installments of a completed credit stay pending. Its balance is
    already zero, so they are payable but never delinquent.
    """
    if payment.status == PaymentStatus.PAID:
        return PaymentStatus.PAID
    if credit_completed:
        return PaymentStatus.PENDING
    if payment.due_date < as_of:
        return PaymentStatus.OVERDUE
    return PaymentStatus.PENDING


@dataclass(frozen=True)
class CreditBalance:
    """Balance snapshot of a credit for dashboards and certificates"""
    credit_id: str
    client_id: str
    status: CreditStatus
    amount: Money
    total_paid: Money
    remaining_balance: Money
    monthly_payment: Money
    paid_installments: int
    outstanding_installments: int
    overdue_installments: int
    next_due_date: Optional[date]
    progress_percent: Decimal


class CreditManager:
    """
    Manages the credit lifecycle from grant through completion or default
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        currency: Currency = Currency.USD,
        default_after_overdue_installments: int = 3
    ):
        if default_after_overdue_installments < 1:
            raise ValueError("default_after_overdue_installments must be at least 1")

        self.storage = storage
        self.audit_trail = audit_trail
        self.currency = currency
        self.default_after_overdue_installments = default_after_overdue_installments
        self.logger = get_logger("granito.credits")

        self.credits_table = "credits"
        self.payments_table = "payments"

        # Serialises grant and payment compound effects
        self._lock = threading.RLock()

    def grant_credit(
        self,
        client_id: str,
        amount,
        interest_rate,
        term_months: int,
        client_name: Optional[str] = None,
        description: Optional[str] = None,
        start_date: Optional[date] = None
    ) -> Credit:
        """
        Grant a credit and create its full installment schedule

        Args:
            client_id: Borrower client ID
            amount: Principal (Decimal, int or numeric string)
            interest_rate: Nominal annual rate in percent
            term_months: Number of monthly installments
            client_name: Display name of the borrower
            description: Purpose of the credit
            start_date: Grant date (defaults to today, UTC)

        Returns:
            Created Credit

        Raises:
            ValidationError: Bad terms, or the client already has an open credit
        """
        if not client_id or not str(client_id).strip():
            raise ValidationError("client_id is required", field="client_id")

        try:
            principal = parse_decimal(amount, "amount")
            rate = parse_decimal(interest_rate, "interest_rate")
        except ValueError as e:
            field = "amount" if str(e).startswith("amount") else "interest_rate"
            raise ValidationError(str(e), field=field) from e

        monthly_payment = calculate_monthly_payment(principal, rate, term_months)
        principal_money = Money(principal, self.currency)
        if not principal_money.is_positive():
            raise ValidationError(f"amount rounds to zero in {self.currency.code}", field="amount")

        start_date = start_date or _today()
        now = datetime.now(timezone.utc)

        with self._lock, self.storage.atomic():
            existing = [
                c for c in self.list_credits_for_client(client_id) if c.is_open
            ]
            if existing:
                raise ValidationError(
                    f"Client {client_id} already has an open credit ({existing[0].id})",
                    field="client_id"
                )

            credit = Credit(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                client_id=client_id,
                amount=principal_money,
                interest_rate=rate,
                term_months=term_months,
                monthly_payment=monthly_payment,
                start_date=start_date,
                client_name=client_name,
                description=description
            )
            self._save_credit(credit)

            schedule = build_installment_schedule(
                principal_money, monthly_payment, term_months, start_date
            )
            for installment in schedule:
                self._save_payment(Payment(
                    id=f"PAY-{credit.id}-{installment.installment_number}",
                    created_at=now,
                    updated_at=now,
                    credit_id=credit.id,
                    client_id=client_id,
                    installment_number=installment.installment_number,
                    amount=installment.amount,
                    due_date=installment.due_date
                ))

            self.audit_trail.log_event(
                event_type=AuditEventType.CREDIT_GRANTED,
                entity_type="credit",
                entity_id=credit.id,
                metadata={
                    "client_id": client_id,
                    "amount": principal_money.to_string(),
                    "interest_rate": str(rate),
                    "term_months": term_months,
                    "monthly_payment": str(monthly_payment),
                    "start_date": start_date.isoformat()
                }
            )

        log_action(
            self.logger, "info", "Credit granted",
            action="grant_credit", resource=f"credit:{credit.id}",
            extra={
                "client_id": client_id,
                "amount": principal_money.to_string(),
                "term_months": term_months,
                "installments": len(schedule)
            }
        )
        return credit

    def process_payment(
        self,
        payment_id: str,
        instrument: CardInstrument,
        idempotency_key: Optional[str] = None,
        paid_at: Optional[datetime] = None
    ) -> Payment:
        """
        Settle an installment by card and apply it to the credit balance

        Args:
            payment_id: Installment ID
            instrument: Card details
            idempotency_key: Client-chosen key; replaying a successful
                submission with the same key returns the recorded payment
            paid_at: Settlement time (defaults to now, UTC)

        Returns:
            The paid installment

        Raises:
            NotFoundError: Unknown installment
            ConflictError: Installment already paid
            ValidationError: Card data rejected
        """
        paid_at = paid_at or datetime.now(timezone.utc)

        with self._lock:
            payment = self.get_payment(payment_id)
            if payment.is_paid:
                if idempotency_key and payment.idempotency_key == idempotency_key:
                    return payment
                raise ConflictError(f"Payment {payment_id} is already paid")

            try:
                validate_card(instrument)
            except ValidationError as e:
                log_action(
                    self.logger, "warning", f"Payment rejected: {e}",
                    action="process_payment", resource=f"payment:{payment_id}",
                    extra={"field": e.field}
                )
                raise

            with self.storage.atomic():
                # Re-read inside the transaction so a concurrent settle cannot apply twice
                payment = self.get_payment(payment_id)
                if payment.is_paid:
                    raise ConflictError(f"Payment {payment_id} is already paid")
                credit = self.get_credit(payment.credit_id)

                applied = min(payment.amount, credit.remaining_balance)

                payment.status = PaymentStatus.PAID
                payment.method = PaymentMethod.CARD
                payment.paid_date = paid_at
                payment.transaction_id = f"TRX-{uuid.uuid4().hex[:12].upper()}"
                payment.idempotency_key = idempotency_key
                payment.applied_amount = applied
                payment.updated_at = paid_at

                credit.total_paid = credit.total_paid + applied
                credit.remaining_balance = credit.remaining_balance - applied
                completed_now = credit.remaining_balance.is_zero() and credit.is_open
                if completed_now:
                    credit.status = CreditStatus.COMPLETED
                credit.updated_at = paid_at

                self._save_payment(payment)
                self._save_credit(credit)

                self.audit_trail.log_event(
                    event_type=AuditEventType.INSTALLMENT_PAID,
                    entity_type="payment",
                    entity_id=payment.id,
                    metadata={
                        "credit_id": credit.id,
                        "installment_number": payment.installment_number,
                        "amount": payment.amount.to_string(),
                        "applied_amount": applied.to_string(),
                        "transaction_id": payment.transaction_id,
                        "card_last_four": instrument.last_four,
                        "remaining_balance": credit.remaining_balance.to_string()
                    }
                )
                if completed_now:
                    self.audit_trail.log_event(
                        event_type=AuditEventType.CREDIT_COMPLETED,
                        entity_type="credit",
                        entity_id=credit.id,
                        metadata={"total_paid": credit.total_paid.to_string()}
                    )

        log_action(
            self.logger, "info", "Installment paid",
            action="process_payment", resource=f"payment:{payment.id}",
            extra={
                "credit_id": credit.id,
                "transaction_id": payment.transaction_id,
                "remaining_balance": credit.remaining_balance.to_string(),
                "credit_status": credit.status.value
            }
        )
        return payment

    def assess_delinquency(self, as_of: Optional[date] = None) -> Dict[str, Any]:
        """
        Default active credits with too many overdue installments

        Args:
            as_of: Assessment date (defaults to today, UTC)

        Returns:
            Counts and the IDs of credits moved to DEFAULTED
        """
        as_of = as_of or _today()
        results = {"credits_scanned": 0, "credits_defaulted": 0, "defaulted_credit_ids": []}

        with self._lock, self.storage.atomic():
            for credit in self.list_credits(status=CreditStatus.ACTIVE):
                results["credits_scanned"] += 1
                overdue = [
                    p for p in self._load_credit_payments(credit.id)
                    if derive_status(p, as_of) == PaymentStatus.OVERDUE
                ]
                if len(overdue) < self.default_after_overdue_installments:
                    continue

                credit.status = CreditStatus.DEFAULTED
                credit.updated_at = datetime.now(timezone.utc)
                self._save_credit(credit)

                self.audit_trail.log_event(
                    event_type=AuditEventType.CREDIT_DEFAULTED,
                    entity_type="credit",
                    entity_id=credit.id,
                    metadata={
                        "overdue_installments": len(overdue),
                        "oldest_due_date": min(p.due_date for p in overdue).isoformat(),
                        "as_of": as_of.isoformat()
                    }
                )
                results["credits_defaulted"] += 1
                results["defaulted_credit_ids"].append(credit.id)

        if results["credits_defaulted"]:
            log_action(
                self.logger, "warning", "Credits defaulted",
                action="assess_delinquency", resource="credits",
                extra=results
            )
        return results

    def get_credit(self, credit_id: str) -> Credit:
        """Get credit by ID"""
        credit_dict = self.storage.load(self.credits_table, credit_id)
        if not credit_dict:
            raise NotFoundError(f"Credit {credit_id} not found")
        return self._credit_from_dict(credit_dict)

    def get_payment(self, payment_id: str) -> Payment:
        """Get installment by ID with its stored status"""
        payment_dict = self.storage.load(self.payments_table, payment_id)
        if not payment_dict:
            raise NotFoundError(f"Payment {payment_id} not found")
        return self._payment_from_dict(payment_dict)

    def list_credits(self, status: Optional[CreditStatus] = None) -> List[Credit]:
        """All credits, optionally filtered by status, oldest first"""
        if status:
            data = self.storage.find(self.credits_table, {"status": status.value})
        else:
            data = self.storage.load_all(self.credits_table)
        credits = [self._credit_from_dict(d) for d in data]
        credits.sort(key=lambda c: (c.start_date, c.created_at))
        return credits

    def list_credits_for_client(self, client_id: str) -> List[Credit]:
        """Get all credits of a client, oldest first"""
        data = self.storage.find(self.credits_table, {"client_id": client_id})
        credits = [self._credit_from_dict(d) for d in data]
        credits.sort(key=lambda c: (c.start_date, c.created_at))
        return credits

    def get_credit_payments(self, credit_id: str, as_of: Optional[date] = None) -> List[Payment]:
        """Installment schedule of a credit with read-time statuses"""
        credit = self.get_credit(credit_id)
        as_of = as_of or _today()
        completed = {credit.id} if credit.status == CreditStatus.COMPLETED else set()
        return [self._as_of_view(p, as_of, completed) for p in self._load_credit_payments(credit_id)]

    def list_payments(self, as_of: Optional[date] = None) -> List[Payment]:
        """Every installment with read-time statuses, ordered by due date"""
        as_of = as_of or _today()
        payments = [self._payment_from_dict(d) for d in self.storage.load_all(self.payments_table)]
        payments.sort(key=lambda p: (p.due_date, p.credit_id, p.installment_number))
        completed = self._completed_credit_ids()
        return [self._as_of_view(p, as_of, completed) for p in payments]

    def list_pending_payments_for_client(self, client_id: str,
                                         as_of: Optional[date] = None) -> List[Payment]:
        """Unpaid installments (pending or overdue) of a client's credits, by due date"""
        as_of = as_of or _today()
        data = self.storage.find(self.payments_table, {
            "client_id": client_id,
            "status": PaymentStatus.PENDING.value
        })
        payments = [self._payment_from_dict(d) for d in data]
        payments.sort(key=lambda p: (p.due_date, p.installment_number))
        completed = self._completed_credit_ids()
        return [self._as_of_view(p, as_of, completed) for p in payments]

    def get_credit_balance(self, credit_id: str, as_of: Optional[date] = None) -> CreditBalance:
        """Balance snapshot of a credit"""
        as_of = as_of or _today()
        credit = self.get_credit(credit_id)
        payments = self._load_credit_payments(credit_id)
        completed = credit.status == CreditStatus.COMPLETED
        statuses = [derive_status(p, as_of, completed) for p in payments]
        unpaid = [p for p in payments if not p.is_paid]

        return CreditBalance(
            credit_id=credit.id,
            client_id=credit.client_id,
            status=credit.status,
            amount=credit.amount,
            total_paid=credit.total_paid,
            remaining_balance=credit.remaining_balance,
            monthly_payment=Money(credit.monthly_payment, credit.currency),
            paid_installments=statuses.count(PaymentStatus.PAID),
            outstanding_installments=len(unpaid),
            overdue_installments=statuses.count(PaymentStatus.OVERDUE),
            next_due_date=min((p.due_date for p in unpaid), default=None),
            progress_percent=credit.progress_percent
        )

    def _as_of_view(self, payment: Payment, as_of: date, completed_credit_ids) -> Payment:
        completed = payment.credit_id in completed_credit_ids
        return replace(payment, status=derive_status(payment, as_of, completed))

    def _completed_credit_ids(self) -> set:
        return {c.id for c in self.list_credits(status=CreditStatus.COMPLETED)}

    def _load_credit_payments(self, credit_id: str) -> List[Payment]:
        data = self.storage.find(self.payments_table, {"credit_id": credit_id})
        payments = [self._payment_from_dict(d) for d in data]
        payments.sort(key=lambda p: p.installment_number)
        return payments

    def _save_credit(self, credit: Credit) -> None:
        self.storage.save(self.credits_table, credit.id, self._credit_to_dict(credit))

    def _save_payment(self, payment: Payment) -> None:
        if payment.status == PaymentStatus.OVERDUE:
            raise ValueError("OVERDUE is a read-time status and is never stored")
        self.storage.save(self.payments_table, payment.id, self._payment_to_dict(payment))

    def _credit_to_dict(self, credit: Credit) -> Dict:
        return {
            'id': credit.id,
            'created_at': credit.created_at.isoformat(),
            'updated_at': credit.updated_at.isoformat(),
            'client_id': credit.client_id,
            'client_name': credit.client_name,
            'description': credit.description,
            'currency': credit.currency.code,
            'amount': str(credit.amount.amount),
            'interest_rate': str(credit.interest_rate),
            'term_months': credit.term_months,
            'monthly_payment': str(credit.monthly_payment),
            'start_date': credit.start_date.isoformat(),
            'status': credit.status.value,
            'total_paid': str(credit.total_paid.amount),
            'remaining_balance': str(credit.remaining_balance.amount)
        }

    def _credit_from_dict(self, data: Dict) -> Credit:
        currency = Currency[data['currency']]
        return Credit(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            client_id=data['client_id'],
            client_name=data.get('client_name'),
            description=data.get('description'),
            amount=Money(Decimal(data['amount']), currency),
            interest_rate=Decimal(data['interest_rate']),
            term_months=data['term_months'],
            monthly_payment=Decimal(data['monthly_payment']),
            start_date=date.fromisoformat(data['start_date']),
            status=CreditStatus(data['status']),
            total_paid=Money(Decimal(data['total_paid']), currency),
            remaining_balance=Money(Decimal(data['remaining_balance']), currency)
        )

    def _payment_to_dict(self, payment: Payment) -> Dict:
        return {
            'id': payment.id,
            'created_at': payment.created_at.isoformat(),
            'updated_at': payment.updated_at.isoformat(),
            'credit_id': payment.credit_id,
            'client_id': payment.client_id,
            'installment_number': payment.installment_number,
            'currency': payment.amount.currency.code,
            'amount': str(payment.amount.amount),
            'due_date': payment.due_date.isoformat(),
            'status': payment.status.value,
            'method': payment.method.value,
            'paid_date': payment.paid_date.isoformat() if payment.paid_date else None,
            'transaction_id': payment.transaction_id,
            'idempotency_key': payment.idempotency_key,
            'applied_amount': str(payment.applied_amount.amount) if payment.applied_amount else None
        }

    def _payment_from_dict(self, data: Dict) -> Payment:
        currency = Currency[data['currency']]
        applied = data.get('applied_amount')
        return Payment(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            credit_id=data['credit_id'],
            client_id=data['client_id'],
            installment_number=data['installment_number'],
            amount=Money(Decimal(data['amount']), currency),
            due_date=date.fromisoformat(data['due_date']),
            status=PaymentStatus(data['status']),
            method=PaymentMethod(data['method']),
            paid_date=datetime.fromisoformat(data['paid_date']) if data.get('paid_date') else None,
            transaction_id=data.get('transaction_id'),
            idempotency_key=data.get('idempotency_key'),
            applied_amount=Money(Decimal(applied), currency) if applied else None
        )
