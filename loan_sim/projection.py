"""Investment projection engine.

Projects the growth of an initial investment month by month. Interest is
compounded monthly by default; products can instead pay simple interest on
the initial amount. The annual rate can step up or down at given periods.
There are no withdrawals and no fees on the investment side.
"""

from __future__ import annotations

import math
from typing import Dict, List, Mapping, Optional, Union

from .data_models import InterestMode, InvestmentProduct, InvestmentResult, ProjectionRow
from .engine import monthly_rate
from .errors import InvalidPrincipalError, InvalidRateError, InvalidTermError


def _prepare_rate_changes(rate_changes: Optional[Mapping[int, float]]) -> Dict[int, float]:
    """Return a copy of the rate change mapping after validating it.

    Keys are 1-based periods from which the new annual rate applies.
    """
    mapping: Dict[int, float] = {}
    for period, rate in (rate_changes or {}).items():
        if not math.isfinite(rate):
            raise InvalidRateError(rate, "must be a finite number")
        if rate < 0:
            raise InvalidRateError(rate)
        mapping[int(period)] = rate
    return mapping


def project_investment(
    initial_amount: float,
    annual_rate: float,
    term_months: int,
    rate_changes: Optional[Mapping[int, float]] = None,
    interest_mode: Union[str, InterestMode] = InterestMode.COMPOUND,
) -> InvestmentResult:
    """Project an investment over ``term_months``.

    Parameters
    ----------
    initial_amount: float
        Capital invested at the start.
    annual_rate: float
        Annual nominal rate in percent.
    term_months: int
        Number of months to project.
    rate_changes: Mapping[int, float], optional
        Variable rate: ``{13: 7.0}`` means 7 % a year applies from month 13
        onwards.
    interest_mode: InterestMode
        ``COMPOUND`` earns interest on the running balance; ``SIMPLE`` earns
        it on the initial amount only.

    Returns
    -------
    InvestmentResult
        One ``ProjectionRow`` per month plus the final amount and return.
    """
    if not math.isfinite(initial_amount) or initial_amount <= 0:
        raise InvalidPrincipalError(initial_amount)
    if not math.isfinite(annual_rate):
        raise InvalidRateError(annual_rate, "must be a finite number")
    if annual_rate < 0:
        raise InvalidRateError(annual_rate)
    if term_months <= 0:
        raise InvalidTermError(term_months)
    changes = _prepare_rate_changes(rate_changes)
    mode = InterestMode(interest_mode)

    schedule: List[ProjectionRow] = []
    current_rate = annual_rate
    balance = initial_amount
    for period in range(1, term_months + 1):
        if period in changes:
            current_rate = changes[period]
        rate_per_month = monthly_rate(current_rate)
        if mode == InterestMode.SIMPLE:
            interest = initial_amount * rate_per_month
        else:
            interest = balance * rate_per_month
        closing = balance + interest
        if not math.isfinite(closing):
            raise InvalidRateError(current_rate, f"is too high for a {term_months}-month term")
        schedule.append(
            ProjectionRow(
                period=period,
                opening_balance=balance,
                interest_earned=interest,
                closing_balance=closing,
                cumulative_balance=closing,
                annual_rate=current_rate,
            )
        )
        balance = closing

    final_amount = schedule[-1].cumulative_balance
    return InvestmentResult(
        initial_amount=initial_amount,
        final_amount=final_amount,
        total_return=final_amount - initial_amount,
        schedule=schedule,
    )


def project_product_investment(
    product: InvestmentProduct,
    initial_amount: float,
    term_months: int,
    rate_changes: Optional[Mapping[int, float]] = None,
) -> InvestmentResult:
    """Project an investment using a catalog product's rate and modality."""
    return project_investment(
        initial_amount,
        product.annual_rate,
        term_months,
        rate_changes=rate_changes,
        interest_mode=product.interest_mode,
    )


def investment_summary(result: InvestmentResult) -> Dict[str, object]:
    return {
        "initial_amount": result.initial_amount,
        "final_amount": result.final_amount,
        "total_return": result.total_return,
        "return_percentage": result.return_percentage,
        "term_months": len(result.schedule),
    }
