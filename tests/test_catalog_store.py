import pytest

from loan_sim.data_models import FeeKind, InterestMode
from loan_sim.errors import InvalidFeeError, InvalidRateError
from loan_sim_web.catalog_store import RecordNotFound, WorkflowError


def _deposit(**extra) -> dict:
    data = {
        "name": "Fixed term deposit",
        "annual_rate": 6,
        "min_term": 3,
        "max_term": 36,
        "min_amount": 1000,
        "max_amount": 50000,
    }
    data.update(extra)
    return data


class TestSecondaryFees:
    def test_create_and_list(self, store):
        store.create_fee({"name": "Paperwork", "kind": "desembolso", "value": 120})
        store.create_fee({"name": "Insurance", "kind": "percentage", "value": 1.5})
        fees = store.list_fees()
        assert [f["name"] for f in fees] == ["Insurance", "Paperwork"]
        assert fees[1]["kind"] == FeeKind.FIXED_DISBURSEMENT.value

    def test_update(self, store):
        fee = store.create_fee({"name": "Insurance", "kind": "percentage", "value": 1.5})
        updated = store.update_fee(fee["id"], {"name": "Insurance", "kind": "percentage", "value": 2})
        assert updated["value"] == 2

    def test_negative_value_rejected(self, store):
        with pytest.raises(InvalidFeeError):
            store.create_fee({"name": "Bad", "kind": "percentage", "value": -1})

    def test_missing_fields(self, store):
        with pytest.raises(ValueError, match="Missing required fields: kind"):
            store.create_fee({"name": "Insurance", "value": 1})

    def test_unknown_id(self, store):
        with pytest.raises(RecordNotFound):
            store.delete_fee(99)


class TestLoanProducts:
    def test_create_with_fees(self, store):
        fee = store.create_fee({"name": "Insurance", "kind": "percentage", "value": 1.5})
        product = store.create_loan_product(
            {"name": "Personal", "annual_rate": 12, "min_term": 6, "max_term": 24, "fee_ids": [fee["id"]]}
        )
        assert product["secondary_fees"] == [fee]
        assert store.get_loan_product(product["id"]) == product

    def test_defaults(self, store):
        product = store.create_loan_product({"name": "Micro", "annual_rate": 20})
        assert (product["min_term"], product["max_term"]) == (1, 12)
        assert product["active"] is True
        assert product["secondary_fees"] == []

    def test_fee_ids_replace_links(self, store):
        a = store.create_fee({"name": "A", "kind": "percentage", "value": 1})
        b = store.create_fee({"name": "B", "kind": "disbursement", "value": 50})
        product = store.create_loan_product({"name": "Personal", "annual_rate": 12, "fee_ids": [a["id"]]})
        updated = store.update_loan_product(
            product["id"], {"name": "Personal", "annual_rate": 12, "fee_ids": [b["id"]]}
        )
        assert [f["id"] for f in updated["secondary_fees"]] == [b["id"]]

    def test_update_without_fee_ids_keeps_links(self, store):
        fee = store.create_fee({"name": "A", "kind": "percentage", "value": 1})
        product = store.create_loan_product({"name": "Personal", "annual_rate": 12, "fee_ids": [fee["id"]]})
        updated = store.update_loan_product(product["id"], {"name": "Renamed", "annual_rate": 14})
        assert updated["name"] == "Renamed"
        assert len(updated["secondary_fees"]) == 1

    def test_unknown_fee_id(self, store):
        with pytest.raises(RecordNotFound):
            store.create_loan_product({"name": "Personal", "annual_rate": 12, "fee_ids": [42]})

    def test_deleting_fee_unlinks_it(self, store):
        fee = store.create_fee({"name": "A", "kind": "percentage", "value": 1})
        product = store.create_loan_product({"name": "Personal", "annual_rate": 12, "fee_ids": [fee["id"]]})
        store.delete_fee(fee["id"])
        assert store.get_loan_product(product["id"])["secondary_fees"] == []

    def test_delete(self, store):
        product = store.create_loan_product({"name": "Personal", "annual_rate": 12})
        store.delete_loan_product(product["id"])
        with pytest.raises(RecordNotFound):
            store.get_loan_product(product["id"])

    def test_active_only(self, store):
        store.create_loan_product({"name": "Live", "annual_rate": 12})
        store.create_loan_product({"name": "Retired", "annual_rate": 12, "active": False})
        assert [p["name"] for p in store.list_loan_products(active_only=True)] == ["Live"]
        assert len(store.list_loan_products()) == 2

    def test_explicit_zero_min_term_rejected(self, store):
        with pytest.raises(ValueError, match="at least 1 month"):
            store.create_loan_product({"name": "Bad", "annual_rate": 12, "min_term": 0})

    @pytest.mark.parametrize("raw, expected", [("false", False), ("true", True), (0, False), (True, True)])
    def test_active_flag_parsing(self, store, raw, expected):
        product = store.create_loan_product({"name": "Personal", "annual_rate": 12, "active": raw})
        assert product["active"] is expected

    def test_invalid_active_flag(self, store):
        with pytest.raises(ValueError):
            store.create_loan_product({"name": "Personal", "annual_rate": 12, "active": "maybe"})

    def test_non_finite_rate_rejected(self, store):
        with pytest.raises(InvalidRateError, match="finite"):
            store.create_loan_product({"name": "Bad", "annual_rate": "nan"})

    def test_invalid_bounds(self, store):
        with pytest.raises(ValueError):
            store.create_loan_product({"name": "Bad", "annual_rate": 12, "min_term": 12, "max_term": 6})
        with pytest.raises(InvalidRateError):
            store.create_loan_product({"name": "Bad", "annual_rate": -1})

    def test_to_loan_product(self, store):
        fee = store.create_fee({"name": "Paperwork", "kind": "disbursement", "value": 120})
        record = store.create_loan_product(
            {"name": "Personal", "annual_rate": 12, "min_term": 6, "max_term": 24, "fee_ids": [fee["id"]]}
        )
        product = store.to_loan_product(record["id"])
        assert product.annual_rate == 12
        assert product.max_term == 24
        assert product.secondary_fees[0].kind == FeeKind.FIXED_DISBURSEMENT
        assert product.secondary_fees[0].value == 120


class TestInvestmentProducts:
    def test_create_and_convert(self, store):
        record = store.create_investment_product(_deposit(interest_mode="simple"))
        product = store.to_investment_product(record["id"])
        assert product.interest_mode == InterestMode.SIMPLE
        assert product.min_amount == 1000

    def test_interest_mode_defaults_to_compound(self, store):
        record = store.create_investment_product(_deposit())
        assert record["interest_mode"] == "compound"

    def test_invalid_amount_bounds(self, store):
        with pytest.raises(ValueError):
            store.create_investment_product(_deposit(min_amount=5000, max_amount=100))

    def test_string_false_deactivates(self, store):
        record = store.create_investment_product(_deposit(active="false"))
        assert record["active"] is False

    def test_update(self, store):
        record = store.create_investment_product(_deposit())
        updated = store.update_investment_product(record["id"], _deposit(annual_rate=7.5, active=False))
        assert updated["annual_rate"] == 7.5
        assert store.list_investment_products(active_only=True) == []

    def test_delete_blocked_by_requests(self, store):
        record = store.create_investment_product(_deposit())
        store.create_request(record["id"], 5000, 24, 5635.8)
        with pytest.raises(WorkflowError):
            store.delete_investment_product(record["id"])

    def test_delete(self, store):
        record = store.create_investment_product(_deposit())
        store.delete_investment_product(record["id"])
        assert store.list_investment_products() == []


class TestInvestmentRequests:
    @pytest.fixture
    def product_id(self, store) -> int:
        return store.create_investment_product(_deposit())["id"]

    def test_create(self, store, product_id):
        record = store.create_request(product_id, 5000, 24, 5635.8)
        assert record["status"] == "pending"
        assert record["product_name"] == "Fixed term deposit"
        assert record["estimated_gain"] == pytest.approx(635.8)

    def test_unknown_product(self, store):
        with pytest.raises(RecordNotFound):
            store.create_request(7, 5000, 24, 5635.8)

    def test_decide_once(self, store, product_id):
        record = store.create_request(product_id, 5000, 24, 5635.8)
        approved = store.decide_request(record["id"], "approved", "Documents verified")
        assert approved["status"] == "approved"
        assert approved["admin_note"] == "Documents verified"
        with pytest.raises(WorkflowError):
            store.decide_request(record["id"], "rejected")

    def test_invalid_status(self, store, product_id):
        record = store.create_request(product_id, 5000, 24, 5635.8)
        with pytest.raises(ValueError):
            store.decide_request(record["id"], "pending")

    def test_filter_and_stats(self, store, product_id):
        first = store.create_request(product_id, 5000, 24, 5635.8)
        store.create_request(product_id, 2000, 12, 2123.36)
        third = store.create_request(product_id, 1000, 6, 1030.38)
        store.decide_request(first["id"], "approved")
        store.decide_request(third["id"], "rejected")

        assert [r["amount"] for r in store.list_requests("pending")] == [2000]
        assert len(store.list_requests()) == 3
        stats = store.request_stats()
        assert stats == {
            "total": 3,
            "pending": 1,
            "approved": 1,
            "rejected": 1,
            "total_amount": 8000.0,
        }
