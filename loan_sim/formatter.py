"""Output helpers for the loan simulator.

This module renders amortization schedules, investment projections and
summaries as plain text tables, and converts results into JSON-serialisable
dictionaries for file export and the web API. Values are only rounded here,
at presentation time.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from .data_models import AmortizationRow, InvestmentResult, ProjectionRow, SimulationResult
from .engine import loan_summary, yearly_totals
from .projection import investment_summary


def schedule_to_dicts(schedule: Iterable[AmortizationRow]) -> List[Dict[str, Any]]:
    """Convert amortization rows into plain dictionaries."""
    return [
        {
            "period": row.period,
            "opening_balance": row.opening_balance,
            "installment": row.installment,
            "interest": row.interest,
            "principal": row.principal,
            "secondary_fee": row.secondary_fee,
            "total_payment": row.total_payment,
            "closing_balance": row.closing_balance,
        }
        for row in schedule
    ]


def projection_to_dicts(schedule: Iterable[ProjectionRow]) -> List[Dict[str, Any]]:
    return [
        {
            "period": row.period,
            "opening_balance": row.opening_balance,
            "interest_earned": row.interest_earned,
            "closing_balance": row.closing_balance,
            "cumulative_balance": row.cumulative_balance,
            "annual_rate": row.annual_rate,
        }
        for row in schedule
    ]


def loan_result_to_dict(result: SimulationResult) -> Dict[str, Any]:
    return {
        "summary": loan_summary(result),
        "yearly": yearly_totals(result.schedule),
        "schedule": schedule_to_dicts(result.schedule),
    }


def investment_result_to_dict(result: InvestmentResult) -> Dict[str, Any]:
    return {"summary": investment_summary(result), "schedule": projection_to_dicts(result.schedule)}


def print_loan_summary(result: SimulationResult) -> None:
    """Print a summary of loan metrics in a human-readable format."""
    summary = loan_summary(result)
    print("Summary")
    print("-" * 72)
    print(f"Method             : {summary['method']}")
    print(f"Principal          : {summary['principal']:.2f}")
    print(f"Term               : {summary['term_months']} months")
    print(f"Base installment   : {summary['base_installment']:.2f}")
    if summary["monthly_secondary_fee"]:
        print(f"Secondary fees     : {summary['monthly_secondary_fee']:.2f} / month")
    print(f"Final installment  : {summary['final_installment']:.2f}")
    if summary["method"] == "german":
        # The German installment falls every month; the figure above is period 1.
        print(f"Highest payment    : {summary['highest_payment']:.2f} (first period)")
    print(f"Total interest     : {summary['total_interest']:.2f}")
    print(f"Total payable      : {summary['total_payable']:.2f}")
    print(f"Effective rate     : {summary['effective_annual_rate'] * 100:.2f}%")
    print("-" * 72)


def print_schedule(schedule: Iterable[AmortizationRow]) -> None:
    """Print the amortization schedule as a simple tab-separated table."""
    headers = [
        "Period",
        "OpenBal",
        "Installment",
        "Interest",
        "Principal",
        "Fees",
        "TotalPay",
        "CloseBal",
    ]
    print("\t".join(headers))
    for row in schedule:
        print(
            "\t".join(
                [
                    str(row.period),
                    f"{row.opening_balance:.2f}",
                    f"{row.installment:.2f}",
                    f"{row.interest:.2f}",
                    f"{row.principal:.2f}",
                    f"{row.secondary_fee:.2f}",
                    f"{row.total_payment:.2f}",
                    f"{row.closing_balance:.2f}",
                ]
            )
        )


def print_investment_summary(result: InvestmentResult) -> None:
    summary = investment_summary(result)
    print("Summary")
    print("-" * 72)
    print(f"Initial amount     : {summary['initial_amount']:.2f}")
    print(f"Final amount       : {summary['final_amount']:.2f}")
    print(f"Total return       : {summary['total_return']:.2f}")
    print(f"Return             : {summary['return_percentage']:.2f}%")
    print(f"Term               : {summary['term_months']} months")
    print("-" * 72)


def print_projection(schedule: Iterable[ProjectionRow]) -> None:
    print("\t".join(["Period", "Rate", "OpenBal", "Interest", "CloseBal"]))
    for row in schedule:
        print(
            "\t".join(
                [
                    str(row.period),
                    f"{row.annual_rate:.2f}%",
                    f"{row.opening_balance:.2f}",
                    f"{row.interest_earned:.2f}",
                    f"{row.closing_balance:.2f}",
                ]
            )
        )


def print_comparison(french: SimulationResult, german: SimulationResult) -> None:
    """Print the French and German results for one loan side by side.

    The difference column is German minus French; a negative value means the
    German schedule is cheaper for that metric.
    """
    s1 = loan_summary(french)
    s2 = loan_summary(german)
    print("Comparison")
    print("=" * 72)
    keys = [
        "base_installment",
        "final_installment",
        "highest_payment",
        "total_interest",
        "total_payable",
    ]
    print(f"{'Metric':20s} {'French':>15s} {'German':>15s} {'Difference':>15s}")
    for key in keys:
        v1 = s1[key]
        v2 = s2[key]
        print(f"{key:20s} {v1:15.2f} {v2:15.2f} {v2 - v1:15.2f}")
    print("=" * 72)


def print_yearly_totals(result: SimulationResult) -> None:
    """Print interest, principal and payments grouped by loan year."""
    print("\t".join(["Year", "Interest", "Principal", "Fees", "Payments", "EndBal"]))
    for year in yearly_totals(result.schedule):
        print(
            "\t".join(
                [
                    str(year["year"]),
                    f"{year['interest']:.2f}",
                    f"{year['principal']:.2f}",
                    f"{year['secondary_fees']:.2f}",
                    f"{year['payments']:.2f}",
                    f"{year['ending_balance']:.2f}",
                ]
            )
        )
