from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional
import re

import pandas as pd

_LEADING_NUMBER = re.compile(r'^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')
_WHITESPACE = re.compile(r'\s+')


def is_blank(value: Any) -> bool:
    """True for None, NaN/NaT and the empty string."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ''
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def cell_text(value: Any) -> str:
    """Stringify a cell the way headers and keys compare it.

    Integral floats lose their trailing '.0' so invoice 2364 read as a number
    equals '2364' typed as text.
    """
    if is_blank(value):
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def to_amount(value: Any) -> float:
    """Parse an amount cell; blanks and non-numeric text become 0."""
    if is_blank(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    match = _LEADING_NUMBER.match(str(value).replace(',', ''))
    if not match:
        return 0.0
    return float(match.group(1))


def column_amount(record: Dict[str, Any], header: Optional[str]) -> float:
    """Amount under header, 0 when the column is unresolved or empty."""
    if not header:
        return 0.0
    return to_amount(record.get(header))


def clean_gstin(gstin: Any) -> str:
    """GSTIN with all whitespace removed, uppercased"""
    return _WHITESPACE.sub('', cell_text(gstin)).upper()


def build_match_key(gstin: Any, invoice: Any) -> str:
    return _WHITESPACE.sub('', cell_text(gstin) + cell_text(invoice)).upper()


def is_within_tolerance(value1: float, value2: float, tolerance: float = 2.0) -> bool:
    """Check if two values are within tolerance"""
    return abs(value1 - value2) <= tolerance


def format_difference(diff: float, tolerance: float = 2.0) -> str:
    """Difference rounded half away from zero to 2 decimals, '0.00' inside the tolerance band."""
    if abs(diff) <= tolerance:
        return '0.00'
    return str(Decimal(diff).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))
