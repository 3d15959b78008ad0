"""Core calculation engine for the loan simulator.

This module implements the financial logic required to build amortization
schedules for constant-installment (French) and constant-principal (German)
loans. Secondary fees ("cobros indirectos") are blended into a single monthly
surcharge and added on top of each installment; they never accrue interest.
Results are returned as ``SimulationResult`` objects carrying the full
schedule together with the aggregate totals.

All arithmetic is done with floats and nothing is rounded here; rounding is a
presentation concern.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from .data_models import (
    AmortizationMethod,
    AmortizationRow,
    FeeKind,
    LoanProduct,
    SecondaryFee,
    SimulationResult,
)
from .errors import (
    InvalidFeeError,
    InvalidPrincipalError,
    InvalidRateError,
    InvalidTermError,
    UnknownMethodError,
)

logger = logging.getLogger(__name__)

_METHOD_ALIASES = {
    "french": AmortizationMethod.FRENCH,
    "frances": AmortizationMethod.FRENCH,
    "annuity": AmortizationMethod.FRENCH,
    "german": AmortizationMethod.GERMAN,
    "aleman": AmortizationMethod.GERMAN,
    "decreasing": AmortizationMethod.GERMAN,
}


def normalize_method(method: Union[str, AmortizationMethod]) -> AmortizationMethod:
    """Return the ``AmortizationMethod`` for a method name or enum member.

    Besides the canonical ``"french"`` and ``"german"`` names, the Spanish
    (``"frances"``, ``"aleman"``) and annuity/decreasing spellings are
    accepted.
    """
    if isinstance(method, AmortizationMethod):
        return method
    if not method:
        raise UnknownMethodError(str(method))
    try:
        return _METHOD_ALIASES[method.strip().lower()]
    except KeyError:
        raise UnknownMethodError(method) from None


def monthly_rate(annual_rate: float) -> float:
    # Annual nominal percent -> monthly decimal, e.g. 12 % => 0.01
    return annual_rate / 100 / 12


def _calculate_annuity_payment(principal: float, rate_per_month: float, term: int) -> float:
    """Return the constant installment of a French loan.

    The formula is:

        payment = P * (i * (1 + i)^n) / ((1 + i)^n - 1)

    where ``P`` is the principal, ``i`` is the monthly interest rate and
    ``n`` is the number of payments. When the interest rate is zero the
    formula divides by zero, so the payment becomes ``P / n``.
    """
    if term <= 0:
        raise InvalidTermError(term)
    if rate_per_month == 0:
        return principal / term
    try:
        factor = (1 + rate_per_month) ** term
    except OverflowError:
        factor = math.inf
    payment = principal * (rate_per_month * factor) / (factor - 1)
    if not math.isfinite(payment):
        raise InvalidRateError(rate_per_month * 1200, f"is too high for a {term}-month term")
    return payment


def fee_contribution(fee: SecondaryFee, principal: float) -> float:
    """Total amount a single fee adds over the life of the loan."""
    if not math.isfinite(fee.value) or fee.value < 0:
        raise InvalidFeeError(fee.name, fee.value)
    if fee.kind == FeeKind.PERCENTAGE:
        return principal * fee.value / 100
    return fee.value


def blend_secondary_fees(
    principal: float, term_months: int, fees: Optional[Iterable[SecondaryFee]] = None
) -> float:
    """Collapse a list of secondary fees into one monthly surcharge.

    Each fee contributes either its flat value (fixed disbursement) or
    ``principal * value / 100`` (percentage). Every contribution is spread
    evenly over ``term_months`` and the results are summed.

    Parameters
    ----------
    principal: float
        Loan amount the percentage fees are computed against.
    term_months: int
        Number of installments; must be positive.
    fees: Iterable[SecondaryFee], optional
        The fee rules. ``None`` or an empty list yields ``0``.
    """
    if term_months <= 0:
        raise InvalidTermError(term_months)
    total = 0.0
    for fee in fees or ():
        total += fee_contribution(fee, principal) / term_months
    return total


def french_schedule(
    principal: float,
    rate_per_month: float,
    term_months: int,
    monthly_secondary_fee: float = 0.0,
) -> SimulationResult:
    """Build a constant-installment (French) amortization schedule.

    The interest portion shrinks and the principal portion grows every month
    while the installment stays the same. The closing balance is clamped at
    zero so floating point residue on the last period never shows up as a
    negative balance.
    """
    base_installment = _calculate_annuity_payment(principal, rate_per_month, term_months)
    final_installment = base_installment + monthly_secondary_fee

    schedule: List[AmortizationRow] = []
    total_interest = 0.0
    balance = principal
    for period in range(1, term_months + 1):
        interest = balance * rate_per_month
        principal_portion = base_installment - interest
        closing = max(balance - principal_portion, 0.0)
        total_interest += interest
        schedule.append(
            AmortizationRow(
                period=period,
                opening_balance=balance,
                installment=base_installment,
                interest=interest,
                principal=principal_portion,
                closing_balance=closing,
                secondary_fee=monthly_secondary_fee,
                total_payment=base_installment + monthly_secondary_fee,
            )
        )
        balance = closing

    return SimulationResult(
        method=AmortizationMethod.FRENCH,
        principal=principal,
        monthly_rate=rate_per_month,
        term_months=term_months,
        base_installment=base_installment,
        final_installment=final_installment,
        total_interest=total_interest,
        total_payable=principal + total_interest,
        monthly_secondary_fee=monthly_secondary_fee,
        schedule=schedule,
    )


def german_schedule(
    principal: float,
    rate_per_month: float,
    term_months: int,
    monthly_secondary_fee: float = 0.0,
) -> SimulationResult:
    """Build a constant-principal (German) amortization schedule.

    The same slice of principal, ``principal / term_months``, is repaid every
    month, so the installment falls as the interest on the balance falls.

    ``base_installment`` reports the first period's installment and
    ``final_installment`` adds the monthly secondary fee to it. Both are
    first-period snapshots rather than averages; the per-period amounts live
    in ``schedule[i].total_payment``.
    """
    if term_months <= 0:
        raise InvalidTermError(term_months)
    constant_principal = principal / term_months

    schedule: List[AmortizationRow] = []
    total_interest = 0.0
    balance = principal
    for period in range(1, term_months + 1):
        interest = balance * rate_per_month
        installment = interest + constant_principal
        closing = max(balance - constant_principal, 0.0)
        total_interest += interest
        schedule.append(
            AmortizationRow(
                period=period,
                opening_balance=balance,
                installment=installment,
                interest=interest,
                principal=constant_principal,
                closing_balance=closing,
                secondary_fee=monthly_secondary_fee,
                total_payment=installment + monthly_secondary_fee,
            )
        )
        balance = closing

    if not math.isfinite(total_interest):
        raise InvalidRateError(rate_per_month * 1200, f"is too high for a {term_months}-month term")
    base_installment = schedule[0].installment
    return SimulationResult(
        method=AmortizationMethod.GERMAN,
        principal=principal,
        monthly_rate=rate_per_month,
        term_months=term_months,
        base_installment=base_installment,
        final_installment=base_installment + monthly_secondary_fee,
        total_interest=total_interest,
        total_payable=principal + total_interest,
        monthly_secondary_fee=monthly_secondary_fee,
        schedule=schedule,
    )


_SCHEDULE_BUILDERS: Dict[AmortizationMethod, Callable[[float, float, int, float], SimulationResult]] = {
    AmortizationMethod.FRENCH: french_schedule,
    AmortizationMethod.GERMAN: german_schedule,
}


def validate_loan_inputs(principal: float, annual_rate: float, term_months: int) -> None:
    if not math.isfinite(principal) or principal <= 0:
        raise InvalidPrincipalError(principal)
    if not math.isfinite(annual_rate):
        raise InvalidRateError(annual_rate, "must be a finite number")
    if annual_rate < 0:
        raise InvalidRateError(annual_rate)
    if term_months <= 0:
        raise InvalidTermError(term_months)


def simulate_loan(
    principal: float,
    annual_rate: float,
    term_months: int,
    method: Union[str, AmortizationMethod] = AmortizationMethod.FRENCH,
    secondary_fees: Optional[Iterable[SecondaryFee]] = None,
) -> SimulationResult:
    """Simulate a loan and return its schedule and totals.

    Parameters
    ----------
    principal: float
        Amount borrowed.
    annual_rate: float
        Annual nominal interest rate in percent (``12`` means 12 %).
    term_months: int
        Number of monthly installments.
    method: str or AmortizationMethod
        ``"french"`` (constant installment) or ``"german"`` (constant
        principal). Aliases accepted by ``normalize_method`` work too.
    secondary_fees: Iterable[SecondaryFee], optional
        Fees blended into a monthly surcharge on top of each installment.

    Raises
    ------
    InvalidPrincipalError, InvalidRateError, InvalidTermError,
    InvalidFeeError, UnknownMethodError
    """
    validate_loan_inputs(principal, annual_rate, term_months)
    resolved = normalize_method(method)
    monthly_fee = blend_secondary_fees(principal, term_months, secondary_fees)
    rate_per_month = monthly_rate(annual_rate)
    logger.debug(
        "Simulating %s loan: principal=%s rate=%s%% term=%s fee=%s",
        resolved.value,
        principal,
        annual_rate,
        term_months,
        monthly_fee,
    )
    return _SCHEDULE_BUILDERS[resolved](principal, rate_per_month, term_months, monthly_fee)


def simulate_product_loan(
    product: LoanProduct,
    principal: float,
    term_months: int,
    method: Union[str, AmortizationMethod] = AmortizationMethod.FRENCH,
) -> SimulationResult:
    """Simulate a loan using a catalog product's rate and secondary fees."""
    return simulate_loan(
        principal,
        product.annual_rate,
        term_months,
        method,
        product.secondary_fees,
    )


def compare_methods(
    principal: float,
    annual_rate: float,
    term_months: int,
    secondary_fees: Optional[Iterable[SecondaryFee]] = None,
) -> Tuple[SimulationResult, SimulationResult]:
    """Return the French and German results for the same loan inputs."""
    fees = list(secondary_fees or [])
    french = simulate_loan(principal, annual_rate, term_months, AmortizationMethod.FRENCH, fees)
    german = simulate_loan(principal, annual_rate, term_months, AmortizationMethod.GERMAN, fees)
    return french, german


def loan_summary(result: SimulationResult) -> Dict[str, object]:
    """Aggregate metrics for a simulation, ready for printing or JSON."""
    effective_annual_rate = (1 + result.monthly_rate) ** 12 - 1
    # For German loans the first payment is the largest; for French loans all
    # payments are equal.
    highest_payment = max((row.total_payment for row in result.schedule), default=0.0)
    return {
        "method": result.method.value,
        "principal": result.principal,
        "term_months": result.term_months,
        "base_installment": result.base_installment,
        "final_installment": result.final_installment,
        "monthly_secondary_fee": result.monthly_secondary_fee,
        "total_secondary_fees": result.monthly_secondary_fee * result.term_months,
        "total_interest": result.total_interest,
        "total_payable": result.total_payable,
        "highest_payment": highest_payment,
        "effective_annual_rate": effective_annual_rate,
    }


def yearly_totals(schedule: Iterable[AmortizationRow]) -> List[Dict[str, float]]:
    """Group a schedule by loan year (periods 1-12 are year 1, and so on).

    Each entry holds the year number and the interest, principal, secondary
    fees and total payments of that year, plus the balance at its end.
    """
    totals: Dict[int, Dict[str, float]] = {}
    for row in schedule:
        year = (row.period - 1) // 12 + 1
        bucket = totals.setdefault(
            year,
            {"year": year, "interest": 0.0, "principal": 0.0, "secondary_fees": 0.0, "payments": 0.0},
        )
        bucket["interest"] += row.interest
        bucket["principal"] += row.principal
        bucket["secondary_fees"] += row.secondary_fee
        bucket["payments"] += row.total_payment
        bucket["ending_balance"] = row.closing_balance
    return [totals[year] for year in sorted(totals)]
