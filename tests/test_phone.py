"""
Tests for phone normalization and validation
"""
import pytest

from app.core.errors import InvalidIdentity
from app.core.phone import (
    is_valid_identity,
    is_valid_login_phone,
    normalize_phone,
    require_identity,
    to_whatsapp_number,
)


class TestNormalizePhone:

    @pytest.mark.parametrize("raw", ["9876543210", "+91 98765 43210", "919876543210", "98765-43210"])
    def test_strips_formatting_and_country_code(self, raw):
        assert normalize_phone(raw) == "9876543210"

    def test_keeps_ten_digit_number_starting_with_91(self):
        assert normalize_phone("9123456789") == "9123456789"

    def test_empty_input(self):
        assert normalize_phone("") == ""
        assert normalize_phone(None) == ""


class TestValidation:

    def test_valid_identity(self):
        assert is_valid_identity("6000000000")
        assert is_valid_identity("9999999999")

    @pytest.mark.parametrize("phone", ["5876543210", "987654321", "98765432100", "abcdefghij"])
    def test_invalid_identity(self, phone):
        assert not is_valid_identity(phone)

    def test_require_identity_raises(self):
        with pytest.raises(InvalidIdentity) as exc:
            require_identity("12345")
        assert exc.value.code == "INVALID_PHONE"

    def test_login_phone_accepts_plus91(self):
        assert is_valid_login_phone("+919876543210")
        assert is_valid_login_phone("9876543210")
        assert not is_valid_login_phone("919876543210")


def test_whatsapp_number_gets_country_code():
    assert to_whatsapp_number("9876543210") == "919876543210"
    assert to_whatsapp_number("9123456789") == "919123456789"
    assert to_whatsapp_number("919876543210") == "919876543210"
