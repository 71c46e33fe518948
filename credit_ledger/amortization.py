"""
Amortization Module

Fixed-payment (French method) amortization: the monthly payment formula,
calendar month arithmetic, the installment schedule a credit is granted
with, and the principal/interest breakdown shown on schedule screens.
"""

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List

from .currency import Money
from .errors import ValidationError


MONTHS_PER_YEAR = Decimal('12')
HUNDRED = Decimal('100')

# Largest accepted credit terms
MAX_PRINCIPAL = Decimal('1000000000000')
MAX_INTEREST_RATE = Decimal('1000')
MAX_TERM_MONTHS = 600


@dataclass(frozen=True)
class ScheduledInstallment:
    """One installment of a freshly generated payment schedule"""
    installment_number: int
    due_date: date
    amount: Money


@dataclass
class AmortizationEntry:
    """Single row of an amortization table"""
    payment_number: int
    due_date: date
    payment_amount: Money
    principal_amount: Money
    interest_amount: Money
    remaining_balance: Money

    def __post_init__(self):
        calculated_payment = self.principal_amount + self.interest_amount
        if abs(calculated_payment.amount - self.payment_amount.amount) > Decimal('0.01'):
            raise ValueError(f"Payment amount {self.payment_amount.to_string()} does not equal "
                             f"principal {self.principal_amount.to_string()} + "
                             f"interest {self.interest_amount.to_string()}")


def validate_terms(principal: Decimal, annual_rate_percent: Decimal, term_months: int) -> None:
    """
    Reject terms the payment formula is undefined for

    Raises:
        ValidationError: naming the offending field
    """
    if isinstance(term_months, bool) or not isinstance(term_months, int):
        raise ValidationError(f"term_months must be an integer, got {term_months!r}", field="term_months")
    if term_months <= 0:
        raise ValidationError(f"term_months must be positive, got {term_months}", field="term_months")
    if term_months > MAX_TERM_MONTHS:
        raise ValidationError(f"term_months cannot exceed {MAX_TERM_MONTHS}, got {term_months}",
                              field="term_months")
    if principal <= 0:
        raise ValidationError(f"amount must be positive, got {principal}", field="amount")
    if principal > MAX_PRINCIPAL:
        raise ValidationError(f"amount cannot exceed {MAX_PRINCIPAL}, got {principal}", field="amount")
    if annual_rate_percent < 0:
        raise ValidationError(f"interest_rate cannot be negative, got {annual_rate_percent}",
                              field="interest_rate")
    if annual_rate_percent > MAX_INTEREST_RATE:
        raise ValidationError(f"interest_rate cannot exceed {MAX_INTEREST_RATE}, got {annual_rate_percent}",
                              field="interest_rate")


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    """Convert a nominal annual percentage rate to a monthly fraction"""
    return Decimal(annual_rate_percent) / HUNDRED / MONTHS_PER_YEAR


def calculate_monthly_payment(principal: Decimal, annual_rate_percent: Decimal,
                              term_months: int) -> Decimal:
    """
    Fixed monthly payment that amortizes `principal` over `term_months`.

    Standard annuity formula P * [r(1+r)^n] / [(1+r)^n - 1] with r the
    monthly rate; straight-line P / n when the rate is zero. The result is
    NOT rounded: cent rounding happens when installments are built.

    Args:
        principal: Amount lent, > 0
        annual_rate_percent: Nominal annual rate in percent (12 means 12%), >= 0
        term_months: Number of monthly installments, > 0

    Returns:
        Monthly payment at full Decimal precision
    """
    principal = Decimal(principal)
    annual_rate_percent = Decimal(annual_rate_percent)
    validate_terms(principal, annual_rate_percent, term_months)

    rate = monthly_rate(annual_rate_percent)
    if rate == 0:
        return principal / Decimal(term_months)

    factor = (Decimal('1') + rate) ** term_months
    return principal * (rate * factor) / (factor - Decimal('1'))


def add_months(start_date: date, months: int) -> date:
    """Add calendar months to a date, clamping the day to the target month's length"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def build_installment_schedule(principal: Money, monthly_payment: Decimal, term_months: int,
                               start_date: date) -> List[ScheduledInstallment]:
    """
    Generate the `term_months` installments of a credit.

    Every installment is the monthly payment rounded to the currency's minor
    unit, except the last, which absorbs the rounding residual so the
    schedule sums to exactly round(monthly_payment * term_months).
    """
    currency = principal.currency
    regular = Money(monthly_payment, currency)
    scheduled_total = (Decimal(monthly_payment) * Decimal(term_months)).quantize(
        currency.quantum, rounding=ROUND_HALF_UP
    )
    last = Money(scheduled_total - regular.amount * (term_months - 1), currency)

    schedule = []
    for number in range(1, term_months + 1):
        schedule.append(ScheduledInstallment(
            installment_number=number,
            due_date=add_months(start_date, number),
            amount=last if number == term_months else regular
        ))
    return schedule


def amortization_table(principal: Money, annual_rate_percent: Decimal, term_months: int,
                       start_date: date) -> List[AmortizationEntry]:
    """
    Principal/interest split of each installment on the outstanding principal.

    Informational view only: ledger balances are driven by installment
    payments, not by this breakdown.
    """
    rate = monthly_rate(annual_rate_percent)
    payment = calculate_monthly_payment(principal.amount, annual_rate_percent, term_months)
    installments = build_installment_schedule(principal, payment, term_months, start_date)

    table = []
    remaining = principal
    for installment in installments:
        interest = Money(remaining.amount * rate, principal.currency)

        if installment.installment_number == term_months:
            # Final row retires whatever principal is left
            principal_part = remaining
        else:
            principal_part = installment.amount - interest
            if principal_part > remaining:
                principal_part = remaining

        remaining = remaining - principal_part
        table.append(AmortizationEntry(
            payment_number=installment.installment_number,
            due_date=installment.due_date,
            payment_amount=principal_part + interest,
            principal_amount=principal_part,
            interest_amount=interest,
            remaining_balance=remaining
        ))

    return table
