"""Data models for the loan and investment simulator.

This module defines dataclasses for the entities handled by the engine:
catalog products (loans with their secondary fees, investment products), the
rows of an amortization or projection schedule and the aggregate results.
Products are reference data and are never mutated by the engine; schedules
and results are created fresh for every simulation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class AmortizationMethod(str, Enum):
    """Schedule type for a loan.

    ``FRENCH`` keeps the installment constant; ``GERMAN`` keeps the principal
    portion constant so the installment decreases every month.
    """

    FRENCH = "french"
    GERMAN = "german"


class FeeKind(str, Enum):
    """How the value of a secondary fee is interpreted."""

    PERCENTAGE = "percentage"  # percent of the principal
    FIXED_DISBURSEMENT = "disbursement"  # flat amount


class InterestMode(str, Enum):
    COMPOUND = "compound"
    SIMPLE = "simple"


@dataclass(frozen=True)
class SecondaryFee:
    """An additional charge layered onto a loan ("cobro indirecto").

    Attributes
    ----------
    name: str
        Display name of the fee, e.g. ``"Insurance"``.
    kind: FeeKind
        ``PERCENTAGE`` means ``value`` percent of the principal;
        ``FIXED_DISBURSEMENT`` means ``value`` is a flat amount.
    value: float
        Non-negative fee value.
    """

    name: str
    kind: FeeKind
    value: float


@dataclass(frozen=True)
class LoanProduct:
    """A loan type offered by the institution."""

    name: str
    annual_rate: float  # nominal, in percent
    min_term: int  # months
    max_term: int  # months
    secondary_fees: List[SecondaryFee] = field(default_factory=list)
    description: str = ""
    active: bool = True


@dataclass(frozen=True)
class InvestmentProduct:
    """An investment product with amount and term bounds."""

    name: str
    annual_rate: float  # nominal, in percent
    min_term: int
    max_term: int
    min_amount: float
    max_amount: float
    interest_mode: InterestMode = InterestMode.COMPOUND
    description: str = ""
    active: bool = True


@dataclass
class AmortizationRow:
    """One month of a loan schedule.

    ``installment`` excludes secondary fees; ``total_payment`` is the cash the
    borrower actually pays that month (installment plus secondary fee).
    """

    period: int
    opening_balance: float
    installment: float
    interest: float
    principal: float
    closing_balance: float
    secondary_fee: float
    total_payment: float


@dataclass
class SimulationResult:
    """Outcome of a loan simulation.

    For the German method ``base_installment`` is the installment of the first
    period, and ``final_installment`` is that same first-period value plus the
    monthly secondary fee. Later periods pay less; their exact amounts are in
    ``schedule[i].total_payment``.
    """

    method: AmortizationMethod
    principal: float
    monthly_rate: float  # decimal, e.g. 0.01 for 12 % a year
    term_months: int
    base_installment: float
    final_installment: float
    total_interest: float
    total_payable: float
    monthly_secondary_fee: float
    schedule: List[AmortizationRow]


@dataclass
class ProjectionRow:
    """One month of an investment projection."""

    period: int
    opening_balance: float
    interest_earned: float
    closing_balance: float
    cumulative_balance: float
    annual_rate: float  # rate applied this month, in percent


@dataclass
class InvestmentResult:
    initial_amount: float
    final_amount: float
    total_return: float
    schedule: List[ProjectionRow]

    @property
    def return_percentage(self) -> float:
        return self.total_return / self.initial_amount * 100


@dataclass(frozen=True)
class ValidationResult:
    """Verdict of an amount or term range check.

    ``reason`` is a human-readable message, present only when ``valid`` is
    False.
    """

    valid: bool
    reason: Optional[str] = None
