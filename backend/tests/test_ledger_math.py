"""Balance arithmetic, status classification and tolerance checks."""

from decimal import Decimal

import pytest

import ledger_settings
from utils.ledger_math import PAID, UNPAID, classify_status, compute_closing_balance, to_decimal, within_tolerance


class TestComputeClosingBalance:

    def test_formula(self):
        closing = compute_closing_balance(
            Decimal("100"), Decimal("1000"), Decimal("300"), Decimal("50"), Decimal("25")
        )
        assert closing == Decimal("725")

    def test_none_counts_as_zero(self):
        assert compute_closing_balance(None, Decimal("10"), None, None, None) == Decimal("10")

    def test_negative_adjustment_increases_balance(self):
        assert compute_closing_balance(0, 0, 0, 0, Decimal("-40")) == Decimal("40")

    def test_decimal_exactness(self):
        # 0.1 + 0.2 is not 0.3 in floats
        assert compute_closing_balance("0.1", "0.2", 0, 0, 0) == Decimal("0.3")


class TestToDecimal:

    @pytest.mark.parametrize("value, expected", [
        (None, Decimal(0)),
        (5, Decimal(5)),
        ("12.500", Decimal("12.5")),
        (0.1, Decimal("0.1")),
        (Decimal("7.25"), Decimal("7.25")),
    ])
    def test_normalizes(self, value, expected):
        assert to_decimal(value) == expected


class TestClassifyStatus:

    def test_threshold_is_inclusive(self):
        assert classify_status(Decimal("1000")) == PAID
        assert classify_status(Decimal("1000.001")) == UNPAID

    def test_zero_and_credit_balances_are_paid(self):
        assert classify_status(Decimal(0)) == PAID
        assert classify_status(Decimal("-5000")) == PAID

    def test_uses_configured_threshold(self, monkeypatch):
        monkeypatch.setattr(ledger_settings, "PAID_THRESHOLD", Decimal("0"))
        assert classify_status(Decimal("1")) == UNPAID

    def test_explicit_threshold(self):
        assert classify_status(Decimal("50"), threshold=Decimal("100")) == PAID


class TestWithinTolerance:

    def test_default_tolerance_is_ten(self):
        assert within_tolerance(Decimal("100"), Decimal("110"))
        assert not within_tolerance(Decimal("100"), Decimal("110.5"))

    def test_symmetric(self):
        assert within_tolerance(Decimal("110"), Decimal("100"))

    def test_independent_of_paid_threshold(self, monkeypatch):
        monkeypatch.setattr(ledger_settings, "PAID_THRESHOLD", Decimal("0"))
        assert within_tolerance(Decimal("0"), Decimal("10"))
