"""Utility functions for the loan simulator.

This module provides helpers for parsing user input into Python data types:
amounts with ``k``/``m`` shorthand, secondary fee rules written as
``NAME:KIND:VALUE`` and rate changes written as ``PERIOD:RATE``. Every helper
raises ``ValueError`` with a readable message when the input is malformed.
"""

from __future__ import annotations

from typing import Tuple

from .data_models import FeeKind, SecondaryFee

_FEE_KIND_ALIASES = {
    "percentage": FeeKind.PERCENTAGE,
    "percent": FeeKind.PERCENTAGE,
    "porcentaje": FeeKind.PERCENTAGE,
    "%": FeeKind.PERCENTAGE,
    "disbursement": FeeKind.FIXED_DISBURSEMENT,
    "desembolso": FeeKind.FIXED_DISBURSEMENT,
    "fixed": FeeKind.FIXED_DISBURSEMENT,
}


def parse_amount(value: str) -> float:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("500000"), thousands separators ("500,000") and
    shorthand with ``k``/``m`` suffixes (e.g. "500k" meaning 500_000).
    """
    cleaned = str(value).strip().lower().replace(",", "")
    factor = 1.0
    if cleaned.endswith("k"):
        factor = 1_000.0
        cleaned = cleaned[:-1]
    elif cleaned.endswith("m"):
        factor = 1_000_000.0
        cleaned = cleaned[:-1]
    try:
        return float(cleaned) * factor
    except ValueError as exc:
        raise ValueError(f"Invalid amount: {value}") from exc


def parse_fee_kind(value: str) -> FeeKind:
    """Map a fee kind name (English or Spanish) to ``FeeKind``."""
    try:
        return _FEE_KIND_ALIASES[str(value).strip().lower()]
    except KeyError:
        raise ValueError(
            f"Fee kind must be 'percentage' or 'disbursement'; got {value}"
        ) from None


def parse_fee(value: str) -> SecondaryFee:
    """Parse a ``NAME:KIND:VALUE`` string into a ``SecondaryFee``.

    Examples: ``"Insurance:percentage:1.5"``, ``"Paperwork:disbursement:120"``.
    """
    parts = value.split(":")
    if len(parts) != 3:
        raise ValueError(f"Fee must be in NAME:KIND:VALUE format; got {value}")
    name, kind, amount = (p.strip() for p in parts)
    if not name:
        raise ValueError(f"Fee name is required; got {value}")
    return SecondaryFee(name=name, kind=parse_fee_kind(kind), value=parse_amount(amount))


def parse_rate_change(value: str) -> Tuple[int, float]:
    """Parse a ``PERIOD:RATE`` string, e.g. ``"13:7.5"``."""
    parts = value.split(":")
    if len(parts) != 2:
        raise ValueError(f"Rate change must be in PERIOD:RATE format; got {value}")
    period_str, rate_str = parts
    try:
        period = int(period_str)
        rate = float(rate_str.strip().rstrip("%"))
    except ValueError as exc:
        raise ValueError(f"Invalid rate change: {value}") from exc
    if period < 1:
        raise ValueError(f"Rate change period must be 1 or later; got {period}")
    return period, rate
