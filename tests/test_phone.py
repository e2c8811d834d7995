"""Tests for phone normalization."""

import pytest

from app.core.phone import normalize_phone_e164, normalize_phone_with_fallbacks


def test_already_e164_is_unchanged():
    assert normalize_phone_e164("+85291234567") == "+85291234567"


def test_formatting_characters_are_stripped():
    assert normalize_phone_e164("+852 9123-4567") == "+85291234567"
    assert normalize_phone_e164("(+852) 9123 4567") == "+85291234567"


def test_double_zero_prefix():
    assert normalize_phone_e164("00852 9123 4567") == "+85291234567"


def test_short_local_numbers_get_default_code():
    assert normalize_phone_e164("912345678", "852") == "+852912345678"
    assert normalize_phone_e164("9123 4567") == "+85291234567"
    assert normalize_phone_e164("91234567", "44") == "+4491234567"


def test_ten_digits_keep_home_code():
    assert normalize_phone_e164("2125550100", "852") == "+8522125550100"


def test_ten_digits_assume_us_for_other_defaults():
    assert normalize_phone_e164("212-555-0100", "44") == "+12125550100"
    assert normalize_phone_e164("2125550100", "1") == "+12125550100"


def test_eleven_digits_with_leading_one():
    assert normalize_phone_e164("1 212 555 0100") == "+12125550100"


def test_long_numbers_get_default_code():
    assert normalize_phone_e164("447911123456", "852") == "+852447911123456"


@pytest.mark.parametrize("raw", [None, "", "123", "abc", "+12"])
def test_unrecognized_input_returns_none(raw):
    assert normalize_phone_e164(raw) is None


def test_fallbacks_use_default_first():
    assert normalize_phone_with_fallbacks("91234567") == "+85291234567"


def test_fallbacks_return_none_when_nothing_matches():
    assert normalize_phone_with_fallbacks("12") is None
    assert normalize_phone_with_fallbacks(None) is None
