"""Shared fixtures.

Canonical loan: 10,000 at 12 % a year (1 % a month) over 12 months.
Canonical investment: 5,000 at 6 % a year over 24 months.
"""

import pytest

from loan_sim.data_models import FeeKind, InterestMode, InvestmentProduct, LoanProduct, SecondaryFee
from loan_sim_web.app import create_app
from loan_sim_web.catalog_store import CatalogStore


@pytest.fixture
def fees() -> list:
    """1.5 % of principal plus a flat 120: 22.50 a month on the canonical loan."""
    return [
        SecondaryFee(name="Insurance", kind=FeeKind.PERCENTAGE, value=1.5),
        SecondaryFee(name="Paperwork", kind=FeeKind.FIXED_DISBURSEMENT, value=120.0),
    ]


@pytest.fixture
def loan_product(fees) -> LoanProduct:
    return LoanProduct(
        name="Personal loan",
        annual_rate=12.0,
        min_term=6,
        max_term=24,
        secondary_fees=fees,
    )


@pytest.fixture
def investment_product() -> InvestmentProduct:
    return InvestmentProduct(
        name="Fixed term deposit",
        annual_rate=6.0,
        min_term=3,
        max_term=36,
        min_amount=1000.0,
        max_amount=50000.0,
        interest_mode=InterestMode.COMPOUND,
    )


@pytest.fixture
def store(tmp_path) -> CatalogStore:
    return CatalogStore(f"sqlite:///{tmp_path / 'catalog.sqlite3'}")


@pytest.fixture
def app(tmp_path):
    return create_app({"DATABASE_URL": f"sqlite:///{tmp_path / 'api.sqlite3'}", "TESTING": True})


@pytest.fixture
def client(app):
    return app.test_client()
