"""
Payment Instrument Validation

Format checks applied to card data before an installment is marked paid.
"""

import re
from dataclasses import dataclass

from .errors import ValidationError


CARD_NUMBER_PATTERN = re.compile(r'[0-9]{16}')
EXPIRY_PATTERN = re.compile(r'(0[1-9]|1[0-2])/[0-9]{2}')
CVV_PATTERN = re.compile(r'[0-9]{3,4}')


@dataclass(frozen=True)
class CardInstrument:
    """Card details submitted with a payment"""
    card_number: str
    expiry_date: str   # MM/YY
    cvv: str
    card_holder_name: str
    address: str

    @property
    def normalized_number(self) -> str:
        return re.sub(r'\s', '', self.card_number or '')

    @property
    def last_four(self) -> str:
        return self.normalized_number[-4:]


def validate_card(instrument: CardInstrument) -> None:
    """
    Check card fields, stopping at the first failure

    Raises:
        ValidationError: with `field` set to the failing attribute
    """
    if not CARD_NUMBER_PATTERN.fullmatch(instrument.normalized_number):
        raise ValidationError("Card number must have 16 digits", field="card_number")
    if not EXPIRY_PATTERN.fullmatch(instrument.expiry_date or ''):
        raise ValidationError("Expiry date must be MM/YY with month 01-12", field="expiry_date")
    if not CVV_PATTERN.fullmatch(instrument.cvv or ''):
        raise ValidationError("CVV must have 3 or 4 digits", field="cvv")
    if not (instrument.card_holder_name or '').strip():
        raise ValidationError("Card holder name is required", field="card_holder_name")
    if not (instrument.address or '').strip():
        raise ValidationError("Billing address is required", field="address")
