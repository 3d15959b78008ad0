"""Exceptions raised by the simulation engine.

All of them derive from ``SimulationError``, which is itself a ``ValueError``
so callers that only care about "bad input" can keep catching ``ValueError``.
"""


class SimulationError(ValueError):
    """Base class for invalid simulation inputs."""


class InvalidTermError(SimulationError):
    """The term in months is zero or negative."""

    def __init__(self, term_months: int) -> None:
        super().__init__(f"Term must be a positive number of months; got {term_months}")
        self.term_months = term_months


class InvalidPrincipalError(SimulationError):
    """The principal (or initial investment amount) is not a positive number."""

    def __init__(self, amount: float) -> None:
        super().__init__(f"Amount must be a finite number greater than 0; got {amount}")
        self.amount = amount


class InvalidRateError(SimulationError):
    """The annual rate is negative, not finite or too high to compute with."""

    def __init__(self, annual_rate: float, reason: str = "cannot be negative") -> None:
        super().__init__(f"Annual rate {reason}; got {annual_rate}")
        self.annual_rate = annual_rate


class InvalidFeeError(SimulationError):
    """A secondary fee carries a negative or non-finite value."""

    def __init__(self, name: str, value: float) -> None:
        super().__init__(f"Secondary fee '{name}' must be a finite non-negative value; got {value}")
        self.name = name
        self.value = value


class UnknownMethodError(SimulationError):
    """The amortization method name is not recognised."""

    def __init__(self, method: str) -> None:
        super().__init__(f"Unsupported amortization method: {method}")
        self.method = method
