"""
Tests for card validation
"""

import pytest

from credit_ledger.errors import ValidationError
from credit_ledger.instruments import CardInstrument, validate_card


def card(**overrides) -> CardInstrument:
    values = dict(
        card_number="4111 1111 1111 1111",
        expiry_date="08/27",
        cvv="123",
        card_holder_name="Maria Lopez",
        address="Calle 10 #4-21, Bogota"
    )
    values.update(overrides)
    return CardInstrument(**values)


class TestValidateCard:
    """Test card format checks"""

    def test_valid_card(self):
        validate_card(card())

    def test_number_whitespace_is_ignored(self):
        instrument = card(card_number=" 4111\t1111 1111 1111 ")
        validate_card(instrument)
        assert instrument.normalized_number == "4111111111111111"
        assert instrument.last_four == "1111"

    def test_four_digit_cvv(self):
        validate_card(card(cvv="1234"))

    @pytest.mark.parametrize("number", ["4111", "41111111111111112", "4111-1111-1111-1111", "", "abcd efgh ijkl mnop"])
    def test_bad_number(self, number):
        with pytest.raises(ValidationError) as exc_info:
            validate_card(card(card_number=number))
        assert exc_info.value.field == "card_number"

    @pytest.mark.parametrize("expiry", ["00/27", "13/27", "1/27", "08/2027", "0827", "", "08/27\n"])
    def test_bad_expiry(self, expiry):
        with pytest.raises(ValidationError) as exc_info:
            validate_card(card(expiry_date=expiry))
        assert exc_info.value.field == "expiry_date"

    @pytest.mark.parametrize("cvv", ["12", "12345", "12a", "", "123\n", "\u0661\u0662\u0663"])
    def test_bad_cvv(self, cvv):
        with pytest.raises(ValidationError) as exc_info:
            validate_card(card(cvv=cvv))
        assert exc_info.value.field == "cvv"

    def test_missing_holder_name(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_card(card(card_holder_name="   "))
        assert exc_info.value.field == "card_holder_name"

    def test_missing_address(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_card(card(address=""))
        assert exc_info.value.field == "address"

    def test_first_failure_reported(self):
        """Number is checked before the other fields"""
        with pytest.raises(ValidationError) as exc_info:
            validate_card(card(card_number="1", cvv="1", address=""))
        assert exc_info.value.field == "card_number"
