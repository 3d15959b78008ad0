import math

import pytest

from loan_sim.data_models import InterestMode
from loan_sim.errors import InvalidPrincipalError, InvalidRateError, InvalidTermError
from loan_sim.projection import investment_summary, project_investment, project_product_investment


class TestCompoundProjection:
    def test_reference_scenario(self):
        result = project_investment(5000, 6, 24)
        assert result.final_amount == pytest.approx(5000 * 1.005 ** 24)
        assert result.final_amount == pytest.approx(5635.80, abs=0.01)
        assert result.total_return == result.final_amount - result.initial_amount

    def test_rows_chain(self):
        schedule = project_investment(5000, 6, 24).schedule
        assert len(schedule) == 24
        assert schedule[0].opening_balance == 5000
        for row in schedule:
            assert row.closing_balance == row.opening_balance + row.interest_earned
            assert row.cumulative_balance == row.closing_balance
            assert row.annual_rate == 6
        for previous, current in zip(schedule, schedule[1:]):
            assert current.opening_balance == previous.closing_balance
            assert current.interest_earned > previous.interest_earned

    def test_zero_rate_keeps_capital(self):
        result = project_investment(5000, 0, 12)
        assert result.final_amount == 5000
        assert result.total_return == 0

    def test_return_percentage(self):
        result = project_investment(1000, 12, 12)
        assert result.return_percentage == pytest.approx((1.01 ** 12 - 1) * 100)


class TestVariableRate:
    def test_rate_steps_from_given_period(self):
        result = project_investment(1000, 12, 3, rate_changes={2: 24})
        rates = [row.annual_rate for row in result.schedule]
        assert rates == [12, 24, 24]
        # 1000 -> 1010 at 1 %; 1010 -> 1030.20 at 2 %
        assert result.schedule[1].closing_balance == pytest.approx(1030.2)

    def test_negative_rate_change_rejected(self):
        with pytest.raises(InvalidRateError):
            project_investment(1000, 12, 3, rate_changes={2: -1})


class TestSimpleInterest:
    def test_interest_on_initial_amount_only(self):
        result = project_investment(5000, 6, 24, interest_mode=InterestMode.SIMPLE)
        assert all(row.interest_earned == pytest.approx(25.0) for row in result.schedule)
        # Matches the amount * rate/100 * months/12 estimate
        assert result.total_return == pytest.approx(5000 * 0.06 * 24 / 12)

    def test_mode_accepts_string(self):
        result = project_investment(5000, 6, 12, interest_mode="simple")
        assert result.final_amount == pytest.approx(5300)


class TestProjectionInputs:
    def test_initial_amount(self):
        with pytest.raises(InvalidPrincipalError):
            project_investment(0, 6, 12)

    def test_rate(self):
        with pytest.raises(InvalidRateError):
            project_investment(5000, -0.5, 12)

    def test_term(self):
        with pytest.raises(InvalidTermError):
            project_investment(5000, 6, 0)

    @pytest.mark.parametrize("amount", [math.nan, math.inf])
    def test_non_finite_amount(self, amount):
        with pytest.raises(InvalidPrincipalError):
            project_investment(amount, 6, 12)

    @pytest.mark.parametrize("rate", [math.nan, math.inf])
    def test_non_finite_rate(self, rate):
        with pytest.raises(InvalidRateError, match="finite"):
            project_investment(5000, rate, 12)
        with pytest.raises(InvalidRateError, match="finite"):
            project_investment(5000, 6, 12, rate_changes={3: rate})

    def test_growth_beyond_float_range(self):
        with pytest.raises(InvalidRateError, match="too high for a 600-month term"):
            project_investment(5000, 100000, 600)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            project_investment(5000, 6, 12, interest_mode="daily")


def test_product_projection_and_summary(investment_product):
    result = project_product_investment(investment_product, 5000, 24)
    summary = investment_summary(result)
    assert summary["final_amount"] == pytest.approx(5635.80, abs=0.01)
    assert summary["term_months"] == 24
    assert summary["return_percentage"] == pytest.approx(summary["total_return"] / 50)
