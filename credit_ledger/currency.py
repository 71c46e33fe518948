"""
Money Module

ISO 4217 currency codes and an immutable Money value rounded to the
currency's minor unit. Ledger arithmetic NEVER uses float.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from dataclasses import dataclass
from typing import Iterable
from enum import Enum

# High precision for amortization factors (1 + r) ** n
getcontext().prec = 28


class Currency(Enum):
    """ISO 4217 currency codes with minor-unit precision"""
    USD = ("USD", 2)  # US Dollar (El Granito operates in USD)
    EUR = ("EUR", 2)  # Euro
    COP = ("COP", 2)  # Colombian Peso
    PEN = ("PEN", 2)  # Peruvian Sol
    JPY = ("JPY", 0)  # Japanese Yen

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def quantum(self) -> Decimal:
        return Decimal('0.1') ** self.precision

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        try:
            return cls[code.upper()]
        except KeyError:
            raise ValueError(f"Unsupported currency code: {code}")


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation with currency and proper precision.
    The amount is always rounded half-up to the currency's minor unit.
    """
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))

        rounded = self.amount.quantize(self.currency.quantum, rounding=ROUND_HALF_UP)
        object.__setattr__(self, 'amount', rounded)

    @classmethod
    def zero(cls, currency: Currency) -> 'Money':
        return cls(Decimal('0'), currency)

    def _check_currency(self, other: 'Money', verb: str) -> None:
        if self.currency != other.currency:
            raise ValueError(f"Cannot {verb} {self.currency.code} and {other.currency.code}")

    def __add__(self, other: 'Money') -> 'Money':
        self._check_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        self._check_currency(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, multiplier: Decimal) -> 'Money':
        if not isinstance(multiplier, Decimal):
            multiplier = Decimal(str(multiplier))
        return Money(self.amount * multiplier, self.currency)

    def __neg__(self) -> 'Money':
        return Money(-self.amount, self.currency)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return False
        return self.amount == other.amount and self.currency == other.currency

    def __lt__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.amount < Decimal('0')

    def to_string(self) -> str:
        """Format for display"""
        return f"{self.currency.code} {self.amount:,.{self.currency.precision}f}"


def sum_money(values: Iterable[Money], currency: Currency) -> Money:
    """Sum Money values, returning zero in `currency` for an empty iterable"""
    total = Money.zero(currency)
    for value in values:
        total = total + value
    return total


def parse_decimal(value, field: str = "value") -> Decimal:
    """
    Convert user input (str, int or Decimal) to Decimal

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, AttributeError):
        raise ValueError(f"{field} must be a number, got {value!r}")
    if not result.is_finite():
        raise ValueError(f"{field} must be finite, got {value!r}")
    return result
