"""
Reporting Module

Payment, delinquency and portfolio reports over the credit ledger. Every
report evaluates installment status as of a given date, so overdue figures
match what the dashboards show for that day.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

from .credits import CreditManager, CreditStatus, PaymentStatus, PaymentMethod, Payment


class RiskLevel(Enum):
    """Collection risk of a delinquent client"""
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ReportResult:
    """Result of a report execution"""
    report_id: str
    generated_at: datetime
    as_of: date
    data: List[Dict[str, Any]] = field(default_factory=list)
    totals: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if not whole:
        return Decimal('0.00')
    return (Decimal(part) / Decimal(whole) * Decimal('100')).quantize(Decimal('0.01'))


class ReportingEngine:
    """
    Read-only reports for the manager and assistant dashboards
    """

    def __init__(self, credit_manager: CreditManager, risk_high_days: int = 15,
                 risk_critical_days: int = 30):
        if risk_high_days > risk_critical_days:
            raise ValueError("risk_high_days cannot exceed risk_critical_days")
        self.credit_manager = credit_manager
        self.risk_high_days = risk_high_days
        self.risk_critical_days = risk_critical_days

    def risk_level(self, days_overdue: int) -> RiskLevel:
        if days_overdue >= self.risk_critical_days:
            return RiskLevel.CRITICAL
        if days_overdue >= self.risk_high_days:
            return RiskLevel.HIGH
        return RiskLevel.MEDIUM

    def payment_report(
        self,
        client_id: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        method: Optional[PaymentMethod] = None,
        status: Optional[PaymentStatus] = None,
        as_of: Optional[date] = None
    ) -> ReportResult:
        """
        Installments filtered by client, due date range (inclusive), settlement
        method and read-time status
        """
        as_of = as_of or datetime.now(timezone.utc).date()
        if start and end and start > end:
            raise ValueError("start must not be after end")

        payments = self.credit_manager.list_payments(as_of=as_of)
        selected: List[Payment] = [
            p for p in payments
            if (client_id is None or p.client_id == client_id)
            and (start is None or p.due_date >= start)
            and (end is None or p.due_date <= end)
            and (method is None or p.method == method)
            and (status is None or p.status == status)
        ]

        data = [
            {
                'payment_id': p.id,
                'credit_id': p.credit_id,
                'client_id': p.client_id,
                'installment_number': p.installment_number,
                'amount': p.amount.amount,
                'due_date': p.due_date,
                'status': p.status.value,
                'method': p.method.value,
                'paid_date': p.paid_date,
                'transaction_id': p.transaction_id
            }
            for p in selected
        ]

        totals = {
            'total_amount': sum((p.amount.amount for p in selected), Decimal('0')),
            'payment_count': len(selected),
            'paid_count': sum(1 for p in selected if p.status == PaymentStatus.PAID),
            'pending_count': sum(1 for p in selected if p.status == PaymentStatus.PENDING),
            'overdue_count': sum(1 for p in selected if p.status == PaymentStatus.OVERDUE)
        }

        return ReportResult(
            report_id="payments",
            generated_at=datetime.now(timezone.utc),
            as_of=as_of,
            data=data,
            totals=totals,
            metadata={
                'row_count': len(data),
                'currency': self.credit_manager.currency.code,
                'filters': {
                    'client_id': client_id,
                    'start': start.isoformat() if start else None,
                    'end': end.isoformat() if end else None,
                    'method': method.value if method else None,
                    'status': status.value if status else None
                }
            }
        )

    def delinquency_report(
        self,
        as_of: Optional[date] = None,
        min_overdue_amount: Optional[Decimal] = None
    ) -> ReportResult:
        """
        One row per client with overdue installments, most delinquent first
        """
        as_of = as_of or datetime.now(timezone.utc).date()

        by_client: Dict[str, List[Payment]] = {}
        for payment in self.credit_manager.list_payments(as_of=as_of):
            if payment.status == PaymentStatus.OVERDUE:
                by_client.setdefault(payment.client_id, []).append(payment)

        data = []
        for client_id, overdue in by_client.items():
            overdue_amount = sum((p.amount.amount for p in overdue), Decimal('0'))
            if min_overdue_amount is not None and overdue_amount < Decimal(min_overdue_amount):
                continue

            days_overdue = max(p.days_overdue(as_of) for p in overdue)
            data.append({
                'client_id': client_id,
                'credit_ids': sorted({p.credit_id for p in overdue}),
                'overdue_amount': overdue_amount,
                'overdue_installments': len(overdue),
                'oldest_due_date': min(p.due_date for p in overdue),
                'days_overdue': days_overdue,
                'risk_level': self.risk_level(days_overdue).value
            })

        data.sort(key=lambda row: (-row['days_overdue'], row['client_id']))

        totals = {
            'clients': len(data),
            'total_overdue_amount': sum((row['overdue_amount'] for row in data), Decimal('0')),
            'total_overdue_installments': sum(row['overdue_installments'] for row in data),
            'by_risk_level': {
                level.value: sum(1 for row in data if row['risk_level'] == level.value)
                for level in RiskLevel
            }
        }

        return ReportResult(
            report_id="delinquency",
            generated_at=datetime.now(timezone.utc),
            as_of=as_of,
            data=data,
            totals=totals,
            metadata={
                'row_count': len(data),
                'currency': self.credit_manager.currency.code,
                'risk_thresholds': {
                    'high_days': self.risk_high_days,
                    'critical_days': self.risk_critical_days
                }
            }
        )

    def portfolio_summary(self, as_of: Optional[date] = None) -> ReportResult:
        """
        Key portfolio metrics for the manager dashboard
        """
        as_of = as_of or datetime.now(timezone.utc).date()
        credits = self.credit_manager.list_credits()
        payments = self.credit_manager.list_payments(as_of=as_of)

        open_credits = [c for c in credits if c.is_open]
        delinquent_credit_ids = {
            p.credit_id for p in payments if p.status == PaymentStatus.OVERDUE
        }
        collected_this_month = sum(
            (
                p.amount.amount for p in payments
                if p.status == PaymentStatus.PAID and p.paid_date
                and p.paid_date.year == as_of.year and p.paid_date.month == as_of.month
            ),
            Decimal('0')
        )

        summary = {
            'total_credits': len(credits),
            'active_credits': sum(1 for c in credits if c.status == CreditStatus.ACTIVE),
            'completed_credits': sum(1 for c in credits if c.status == CreditStatus.COMPLETED),
            'defaulted_credits': sum(1 for c in credits if c.status == CreditStatus.DEFAULTED),
            'total_lent': sum((c.amount.amount for c in credits), Decimal('0')),
            'outstanding_balance': sum((c.remaining_balance.amount for c in open_credits), Decimal('0')),
            'pending_payments': sum(1 for p in payments if p.status == PaymentStatus.PENDING),
            'overdue_payments': sum(1 for p in payments if p.status == PaymentStatus.OVERDUE),
            'collected_this_month': collected_this_month,
            'delinquency_rate': _percent(
                Decimal(sum(1 for c in open_credits if c.id in delinquent_credit_ids)),
                Decimal(len(open_credits))
            ),
            'currency': self.credit_manager.currency.code
        }

        return ReportResult(
            report_id="portfolio_summary",
            generated_at=datetime.now(timezone.utc),
            as_of=as_of,
            data=[summary],
            totals=summary,
            metadata={'row_count': 1, 'currency': self.credit_manager.currency.code}
        )
