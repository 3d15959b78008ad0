"""Command-line interface for the loan simulator.

This module uses the ``click`` library to implement a multi-command
interface. Users can simulate a loan under the French or German method with
optional secondary fees, project an investment, or compare both loan methods
for the same inputs. Results can be printed to the terminal or exported to
JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from .data_models import InterestMode, SecondaryFee
from .engine import compare_methods, simulate_loan
from .errors import SimulationError
from .formatter import (
    investment_result_to_dict,
    loan_result_to_dict,
    print_comparison,
    print_investment_summary,
    print_loan_summary,
    print_projection,
    print_schedule,
    print_yearly_totals,
)
from .projection import project_investment
from .utils import parse_amount, parse_fee, parse_rate_change

MAX_PRINTED_ROWS = 120


def _amount_option(value: str, name: str) -> float:
    try:
        return parse_amount(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint=name)


def parse_fee_strings(values: Tuple[str, ...]) -> List[SecondaryFee]:
    fees: List[SecondaryFee] = []
    for item in values:
        try:
            fees.append(parse_fee(item))
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--fee")
    return fees


def parse_rate_change_strings(values: Tuple[str, ...]) -> Dict[int, float]:
    changes: Dict[int, float] = {}
    for item in values:
        try:
            period, rate = parse_rate_change(item)
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--rate-change")
        changes[period] = rate
    return changes


def export_to_json(path: Path, payload: Dict[str, Any]) -> None:
    """Export a summary and schedule to a JSON file."""
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)


def export_to_csv(path: Path, rows: List[Dict[str, Any]]) -> None:
    """Export schedule rows to a CSV file, one column per row key."""
    if not rows:
        return
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)


def _export(output: str, payload: Dict[str, Any]) -> None:
    path = Path(output)
    suffix = path.suffix.lower()
    if suffix == ".json":
        export_to_json(path, payload)
    elif suffix == ".csv":
        export_to_csv(path, payload["schedule"])
    else:
        raise click.BadParameter("Unsupported output format; use .json or .csv", param_hint="--output")
    click.echo(f"Schedule exported to {path}")


def _print_truncated(rows: List[Any], printer) -> None:
    # Limit schedule length printed to avoid flooding the terminal
    if len(rows) > MAX_PRINTED_ROWS:
        click.echo(f"Schedule has {len(rows)} rows; showing first {MAX_PRINTED_ROWS} rows.")
        printer(rows[:MAX_PRINTED_ROWS])
    else:
        printer(rows)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """A command-line loan and investment simulator."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--principal", "-p", "principal", required=True, help="Loan amount (accepts 10k, 1.5m)")
@click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)")
@click.option("--term", "-t", "term", required=True, type=int, help="Loan term in months")
@click.option(
    "--method",
    "method",
    type=click.Choice(["french", "german"], case_sensitive=False),
    default="french",
    help="Amortization method",
)
@click.option("--fee", "fee", multiple=True, help="Secondary fee in NAME:KIND:VALUE format, KIND is percentage or disbursement")
@click.option("--yearly", "yearly", is_flag=True, help="Show totals per loan year instead of the monthly schedule")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def loan(
    principal: str,
    rate: float,
    term: int,
    method: str,
    fee: Tuple[str, ...],
    yearly: bool,
    output: Optional[str],
) -> None:
    """Simulate a loan and print its amortization schedule."""
    amount = _amount_option(principal, "--principal")
    fees = parse_fee_strings(fee)
    try:
        result = simulate_loan(amount, rate, term, method, fees)
    except SimulationError as exc:
        raise click.ClickException(str(exc))
    if output:
        _export(output, loan_result_to_dict(result))
        return
    print_loan_summary(result)
    if yearly:
        print_yearly_totals(result)
        return
    _print_truncated(result.schedule, print_schedule)


@cli.command()
@click.option("--amount", "-a", "amount", required=True, help="Initial investment (accepts 5k, 1m)")
@click.option("--rate", "-r", "rate", required=True, type=float, help="Annual rate (percent)")
@click.option("--term", "-t", "term", required=True, type=int, help="Investment term in months")
@click.option("--rate-change", "rate_change", multiple=True, help="Variable rate in PERIOD:RATE format, e.g. 13:7.5")
@click.option("--simple", "simple", is_flag=True, help="Pay simple interest on the initial amount")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def invest(
    amount: str,
    rate: float,
    term: int,
    rate_change: Tuple[str, ...],
    simple: bool,
    output: Optional[str],
) -> None:
    """Project the growth of an investment."""
    initial = _amount_option(amount, "--amount")
    changes = parse_rate_change_strings(rate_change)
    mode = InterestMode.SIMPLE if simple else InterestMode.COMPOUND
    try:
        result = project_investment(initial, rate, term, rate_changes=changes, interest_mode=mode)
    except SimulationError as exc:
        raise click.ClickException(str(exc))
    if output:
        _export(output, investment_result_to_dict(result))
        return
    print_investment_summary(result)
    _print_truncated(result.schedule, print_projection)


@cli.command()
@click.option("--principal", "-p", "principal", required=True, help="Loan amount (accepts 10k, 1.5m)")
@click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)")
@click.option("--term", "-t", "term", required=True, type=int, help="Loan term in months")
@click.option("--fee", "fee", multiple=True, help="Secondary fee in NAME:KIND:VALUE format")
def compare(principal: str, rate: float, term: int, fee: Tuple[str, ...]) -> None:
    """Compare the French and German methods for the same loan.

        loan-sim compare -p 10k -r 12 -t 12 --fee "Insurance:percentage:1"
    """
    amount = _amount_option(principal, "--principal")
    fees = parse_fee_strings(fee)
    try:
        french, german = compare_methods(amount, rate, term, fees)
    except SimulationError as exc:
        raise click.ClickException(str(exc))
    print_comparison(french, german)


if __name__ == "__main__":
    cli()
