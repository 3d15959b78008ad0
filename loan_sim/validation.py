"""Amount and term range checks against a selected product.

These helpers never raise for out-of-range values; they return a
``ValidationResult`` whose ``reason`` can be shown next to the offending form
field.
"""

from __future__ import annotations

import math
from typing import Union

from .data_models import InvestmentProduct, LoanProduct, ValidationResult

Product = Union[LoanProduct, InvestmentProduct]


def _months(value: int) -> str:
    return f"{value} month" if value == 1 else f"{value} months"


def check_amount(product: InvestmentProduct, amount: float) -> ValidationResult:
    """Check ``amount`` against the product's ``min_amount``/``max_amount``."""
    if not math.isfinite(amount) or amount <= 0:
        return ValidationResult(False, "Amount must be greater than 0")
    if amount < product.min_amount:
        return ValidationResult(False, f"Minimum amount is ${product.min_amount:,.2f}")
    if amount > product.max_amount:
        return ValidationResult(False, f"Maximum amount is ${product.max_amount:,.2f}")
    return ValidationResult(True)


def check_term(product: Product, term_months: int) -> ValidationResult:
    """Check ``term_months`` against the product's ``min_term``/``max_term``."""
    if term_months <= 0:
        return ValidationResult(False, "Term must be greater than 0")
    if term_months < product.min_term:
        return ValidationResult(False, f"Minimum term is {_months(product.min_term)}")
    if term_months > product.max_term:
        return ValidationResult(False, f"Maximum term is {_months(product.max_term)}")
    return ValidationResult(True)
