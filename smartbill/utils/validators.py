from __future__ import annotations

import math
import re
from typing import Any, Optional

from smartbill.constants import MAX_RATE, MIN_RATE
from smartbill.errors import InvalidQuantity, InvalidRate

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_int(value: Any) -> Optional[int]:
    """Integer prefix of ``value`` ("3", 3.9, " 12 pcs" -> 3, 3, 12), None if there is none."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    m = _LEADING_INT.match(str(value))
    return int(m.group(1)) if m else None


def parse_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    m = _LEADING_NUMBER.match(str(value).replace(",", "."))
    if not m:
        return None
    number = float(m.group(1))
    # "1e999" overflows to inf, which JSON cannot round-trip
    return number if math.isfinite(number) else None


def looks_numeric(value: Any) -> bool:
    """True when ``value`` starts with a number, even one too large to represent."""
    if isinstance(value, bool) or value is None:
        return False
    if isinstance(value, (int, float)):
        return True
    return _LEADING_NUMBER.match(str(value).replace(",", ".")) is not None


def normalize_quantity(value: Any) -> int:
    qty = parse_int(value)
    if qty is None:
        raise InvalidQuantity(f"Quantity must be a whole number, got {value!r}.")
    if qty <= 0:
        raise InvalidQuantity("Please enter a valid quantity.")
    return qty


def clamp_rate(rate: float) -> float:
    return min(MAX_RATE, max(MIN_RATE, rate))


def normalize_rate(value: Any, name: str = "rate") -> float:
    rate = parse_number(value)
    if rate is None:
        raise InvalidRate(f"{name} must be a number, got {value!r}.")
    return clamp_rate(rate)


def normalize_stock(value: Any) -> int:
    # negative or non-numeric stock becomes 0
    stock = parse_int(value)
    if stock is None or stock < 0:
        return 0
    return stock
