import pytest

from guess_game.errors import InvalidAmount, PreconditionViolation
from guess_game.units import (
    bps_to_percent,
    format_ether,
    format_units,
    from_scaled_price,
    parse_ether,
    parse_units,
    to_scaled_price,
)


def test_price_round_trip():
    scaled = to_scaled_price("65000.12345678")
    assert scaled == 6_500_012_345_678
    assert from_scaled_price(scaled) == "65000.12345678"


@pytest.mark.parametrize("text,expected", [
    ("65000", 6_500_000_000_000),
    ("64999.99", 6_499_999_000_000),
    ("0", 0),
    ("0.00000001", 1),
    (".5", 50_000_000),
    ("7.", 700_000_000),
    (" 12.5 ", 1_250_000_000),
])
def test_to_scaled_price(text, expected):
    assert to_scaled_price(text) == expected


def test_extra_digits_round_toward_zero():
    assert to_scaled_price("1.123456789") == 112_345_678
    assert to_scaled_price("0.000000009") == 0


@pytest.mark.parametrize("text", ["", ".", "-1", "abc", "1e5", "1,000", "1.2.3", "+3", "NaN"])
def test_malformed_input_is_invalid(text):
    with pytest.raises(InvalidAmount) as exc:
        to_scaled_price(text)
    assert isinstance(exc.value, PreconditionViolation)
    assert isinstance(exc.value, ValueError)
    assert exc.value.code == "invalid_amount"


def test_format_units_trims_trailing_zeros():
    assert format_units(6_500_000_000_000, 8) == "65000"
    assert format_units(6_499_999_000_000, 8) == "64999.99"
    assert format_units(0, 8) == "0"
    assert format_units(-150, 2) == "-1.5"
    assert format_units(42, 0) == "42"


def test_ether():
    assert format_ether(1_100_000_000_000_000_000) == "1.1"
    assert format_ether(110_000_000_000_000_000) == "0.11"
    assert parse_ether("1") == 10 ** 18
    assert parse_ether("0.11") == 110_000_000_000_000_000
    assert parse_units("2", 0) == 2


def test_bps_to_percent():
    assert bps_to_percent(2) == "0.02"
    assert bps_to_percent(250) == "2.50"
