import pytest

from loan_sim.data_models import FeeKind
from loan_sim.utils import parse_amount, parse_fee, parse_fee_kind, parse_rate_change


class TestParseAmount:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("500000", 500000.0),
            ("500,000", 500000.0),
            ("10k", 10000.0),
            ("1.5M", 1500000.0),
            (" 250.75 ", 250.75),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_amount(raw) == expected

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid amount"):
            parse_amount("ten")


class TestParseFee:
    def test_percentage(self):
        fee = parse_fee("Insurance:percentage:1.5")
        assert fee.name == "Insurance"
        assert fee.kind == FeeKind.PERCENTAGE
        assert fee.value == 1.5

    def test_disbursement_with_suffix(self):
        fee = parse_fee("Notary:desembolso:1k")
        assert fee.kind == FeeKind.FIXED_DISBURSEMENT
        assert fee.value == 1000

    @pytest.mark.parametrize("raw", ["Insurance:1.5", ":percentage:1", "A:weekly:3"])
    def test_malformed(self, raw):
        with pytest.raises(ValueError):
            parse_fee(raw)

    def test_kind_aliases(self):
        assert parse_fee_kind("PORCENTAJE") == FeeKind.PERCENTAGE
        assert parse_fee_kind("fixed") == FeeKind.FIXED_DISBURSEMENT


class TestParseRateChange:
    def test_valid(self):
        assert parse_rate_change("13:7.5%") == (13, 7.5)

    @pytest.mark.parametrize("raw", ["13", "0:5", "x:5", "3:abc"])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_rate_change(raw)
