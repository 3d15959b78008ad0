import os
from typing import Any, Dict, Mapping, Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from loan_sim.data_models import SecondaryFee
from loan_sim.engine import simulate_loan, simulate_product_loan
from loan_sim.errors import SimulationError
from loan_sim.formatter import investment_result_to_dict, loan_result_to_dict
from loan_sim.projection import project_investment, project_product_investment
from loan_sim.utils import parse_fee_kind
from loan_sim.validation import check_amount, check_term
from loan_sim_web.catalog_store import RecordNotFound, WorkflowError, create_store_from_env

DEFAULT_MAX_SCHEDULE_ROWS = 600


class InvalidPayload(ValueError):
    """The request body is missing or malformed."""


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidPayload("Request body must be a JSON object")
    return data


def _number(data: Mapping[str, Any], key: str, cast=float):
    value = data.get(key)
    if value in (None, ""):
        raise InvalidPayload(f"'{key}' is required")
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise InvalidPayload(f"'{key}' must be a number; got {value!r}") from None


def _fees_from_payload(items) -> list:
    """Parse ``[{"name": ..., "kind": ..., "value": ...}]`` into fee rules."""
    fees = []
    for item in items or []:
        if not isinstance(item, dict):
            raise InvalidPayload("Each secondary fee must be an object")
        fees.append(
            SecondaryFee(
                name=str(item.get("name") or "fee"),
                kind=parse_fee_kind(item.get("kind", "")),
                value=_number(item, "value"),
            )
        )
    return fees


def _rate_changes_from_payload(raw, term_months: int) -> Dict[int, float]:
    """Parse ``{"13": 7.5}`` into rate changes, each period within the term."""
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise InvalidPayload("'rate_changes' must map periods to annual rates")
    try:
        changes = {int(period): float(rate) for period, rate in raw.items()}
    except (TypeError, ValueError):
        raise InvalidPayload("'rate_changes' must map periods to annual rates") from None
    for period in changes:
        if not 1 <= period <= term_months:
            raise InvalidPayload(f"Rate change period must be between 1 and {term_months}; got {period}")
    return changes


def _check(result) -> None:
    if not result.valid:
        raise InvalidPayload(result.reason)


def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """Build the Flask application.

    Configuration comes from ``LOAN_SIM_*`` environment variables; tests pass
    ``overrides`` (e.g. a throwaway ``DATABASE_URL``).
    """
    app = Flask(__name__)
    app.config.from_mapping(
        DATABASE_URL=os.environ.get("LOAN_SIM_DATABASE_URL"),
        MAX_SCHEDULE_ROWS=int(os.environ.get("LOAN_SIM_MAX_SCHEDULE_ROWS", DEFAULT_MAX_SCHEDULE_ROWS)),
    )
    if overrides:
        app.config.update(overrides)
    store = create_store_from_env(app.config["DATABASE_URL"])
    app.extensions["catalog_store"] = store

    def _check_term_cap(term_months: int) -> None:
        cap = app.config["MAX_SCHEDULE_ROWS"]
        if term_months > cap:
            raise InvalidPayload(f"Term cannot exceed {cap} months")

    @app.errorhandler(SimulationError)
    @app.errorhandler(ValueError)
    def _bad_request(exc):
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(RecordNotFound)
    def _not_found(exc):
        return jsonify({"error": str(exc)}), 404

    @app.errorhandler(WorkflowError)
    def _conflict(exc):
        return jsonify({"error": str(exc)}), 409

    @app.errorhandler(Exception)
    def _internal_error(exc):
        # 404 on unknown routes, 405 and friends
        if isinstance(exc, HTTPException):
            return jsonify({"error": exc.description}), exc.code
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    # Simulations ------------------------------------------------------------

    @app.post("/api/simulations/loan")
    def simulate_loan_route():
        data = _json_body()
        principal = _number(data, "principal")
        term_months = _number(data, "term_months", int)
        method = data.get("method", "french")
        _check_term_cap(term_months)
        if data.get("product_id") is not None:
            product = store.to_loan_product(_number(data, "product_id", int))
            _check(check_term(product, term_months))
            result = simulate_product_loan(product, principal, term_months, method)
        else:
            result = simulate_loan(
                principal,
                _number(data, "annual_rate"),
                term_months,
                method,
                _fees_from_payload(data.get("secondary_fees")),
            )
        app.logger.info(
            "Loan simulation: method=%s principal=%s term=%s", result.method.value, principal, term_months
        )
        return jsonify(loan_result_to_dict(result))

    @app.post("/api/simulations/investment")
    def simulate_investment_route():
        data = _json_body()
        amount = _number(data, "initial_amount")
        term_months = _number(data, "term_months", int)
        rate_changes = _rate_changes_from_payload(data.get("rate_changes"), term_months)
        _check_term_cap(term_months)
        if data.get("product_id") is not None:
            product = store.to_investment_product(_number(data, "product_id", int))
            _check(check_amount(product, amount))
            _check(check_term(product, term_months))
            result = project_product_investment(product, amount, term_months, rate_changes)
        else:
            result = project_investment(
                amount,
                _number(data, "annual_rate"),
                term_months,
                rate_changes=rate_changes,
                interest_mode=data.get("interest_mode") or "compound",
            )
        return jsonify(investment_result_to_dict(result))

    # Public catalog ---------------------------------------------------------

    @app.get("/api/loan-types")
    def public_loan_types():
        return jsonify(store.list_loan_products(active_only=True))

    @app.get("/api/investment-products")
    def public_investment_products():
        return jsonify(store.list_investment_products(active_only=True))

    # Admin: loan types ------------------------------------------------------

    @app.get("/api/admin/loan-types")
    def list_loan_types():
        return jsonify(store.list_loan_products())

    @app.post("/api/admin/loan-types")
    def create_loan_type():
        return jsonify(store.create_loan_product(_json_body())), 201

    @app.get("/api/admin/loan-types/<int:product_id>")
    def get_loan_type(product_id: int):
        return jsonify(store.get_loan_product(product_id))

    @app.put("/api/admin/loan-types/<int:product_id>")
    def update_loan_type(product_id: int):
        return jsonify(store.update_loan_product(product_id, _json_body()))

    @app.delete("/api/admin/loan-types/<int:product_id>")
    def delete_loan_type(product_id: int):
        store.delete_loan_product(product_id)
        return jsonify({"success": True})

    # Admin: secondary fees --------------------------------------------------

    @app.get("/api/admin/indirects")
    def list_indirects():
        return jsonify(store.list_fees())

    @app.post("/api/admin/indirects")
    def create_indirect():
        return jsonify(store.create_fee(_json_body())), 201

    @app.put("/api/admin/indirects/<int:fee_id>")
    def update_indirect(fee_id: int):
        return jsonify(store.update_fee(fee_id, _json_body()))

    @app.delete("/api/admin/indirects/<int:fee_id>")
    def delete_indirect(fee_id: int):
        store.delete_fee(fee_id)
        return jsonify({"success": True})

    # Admin: investment products ---------------------------------------------

    @app.get("/api/admin/investment-products")
    def list_investment_products():
        return jsonify(store.list_investment_products())

    @app.post("/api/admin/investment-products")
    def create_investment_product():
        return jsonify(store.create_investment_product(_json_body())), 201

    @app.get("/api/admin/investment-products/<int:product_id>")
    def get_investment_product(product_id: int):
        return jsonify(store.get_investment_product(product_id))

    @app.put("/api/admin/investment-products/<int:product_id>")
    def update_investment_product(product_id: int):
        return jsonify(store.update_investment_product(product_id, _json_body()))

    @app.delete("/api/admin/investment-products/<int:product_id>")
    def delete_investment_product(product_id: int):
        store.delete_investment_product(product_id)
        return jsonify({"success": True})

    # Investment requests ----------------------------------------------------

    @app.post("/api/investment-requests")
    def create_investment_request():
        data = _json_body()
        product_id = _number(data, "product_id", int)
        amount = _number(data, "amount")
        term_months = _number(data, "term_months", int)
        product = store.to_investment_product(product_id)
        if not product.active:
            raise InvalidPayload("Investment product is not available")
        _check(check_amount(product, amount))
        _check(check_term(product, term_months))
        projection = project_product_investment(product, amount, term_months)
        record = store.create_request(product_id, amount, term_months, projection.final_amount)
        return jsonify(record), 201

    @app.get("/api/admin/investment-requests")
    def list_investment_requests():
        return jsonify(store.list_requests(request.args.get("status")))

    @app.get("/api/admin/investment-requests/stats")
    def investment_request_stats():
        return jsonify(store.request_stats())

    @app.post("/api/admin/investment-requests/<int:request_id>/decision")
    def decide_investment_request(request_id: int):
        data = _json_body()
        status = str(data.get("status", "")).lower()
        record = store.decide_request(request_id, status, data.get("note") or "")
        return jsonify({"message": f"Request {status} successfully", "request": record})

    return app


if __name__ == "__main__":
    print("Starting loan simulator API...")
    create_app().run(host="0.0.0.0", port=8710, debug=True)
