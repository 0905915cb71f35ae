"""Fixed-point conversions between user-facing decimals and on-chain integers.

Prices use an 8-decimal scale; native currency amounts use 18 decimals.
Parsing truncates extra fractional digits (rounds toward zero).
"""
import re
from typing import Union

from guess_game.config import NATIVE_DECIMALS, PRICE_DECIMALS
from guess_game.errors import InvalidAmount


_DECIMAL_RE = re.compile(r"^(\d*)(?:\.(\d*))?$")


def parse_units(value: Union[str, int], decimals: int) -> int:
    text = str(value).strip()
    m = _DECIMAL_RE.match(text)
    if not m or not (m.group(1) or m.group(2)):
        raise InvalidAmount(text)
    whole = m.group(1) or "0"
    frac = (m.group(2) or "")[:decimals].ljust(decimals, "0")
    return int(whole) * 10 ** decimals + int(frac or "0")


def format_units(value: int, decimals: int) -> str:
    negative = value < 0
    whole, frac = divmod(abs(int(value)), 10 ** decimals)
    frac_text = str(frac).rjust(decimals, "0").rstrip("0") if decimals else ""
    text = f"{whole}.{frac_text}" if frac_text else str(whole)
    return f"-{text}" if negative else text


def to_scaled_price(value: Union[str, int]) -> int:
    return parse_units(value, PRICE_DECIMALS)


def from_scaled_price(value: int) -> str:
    return format_units(value, PRICE_DECIMALS)


def parse_ether(value: Union[str, int]) -> int:
    return parse_units(value, NATIVE_DECIMALS)


def format_ether(value: int) -> str:
    return format_units(value, NATIVE_DECIMALS)


def bps_to_percent(bps: int) -> str:
    """Render basis points as a percentage string, e.g. 250 -> '2.50'."""
    return f"{bps / 100:.2f}"
