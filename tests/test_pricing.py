"""
Tests for the cart pricing summary
"""

import itertools
from decimal import Decimal

import pytest

from storefront.checkout.pricing import EMPTY_SUMMARY, compute_summary, round_money
from tests.conftest import make_cart


class TestComputeSummary:
    """Test compute_summary"""

    def test_two_line_cart_below_free_shipping(self):
        summary = compute_summary(make_cart(("a", "29.99", 2), ("b", "15.00", 1)).lines)
        shown = summary.rounded()

        assert summary.subtotal == Decimal("74.98")
        assert shown.shipping_fee == Decimal("10.00")
        assert shown.tax_amount == Decimal("6.00")
        assert shown.total == Decimal("90.98")
        assert shown.amount_to_free_shipping == Decimal("25.02")
        assert summary.item_count == 3

    def test_single_line_cart_with_free_shipping(self):
        summary = compute_summary(make_cart(("a", "120.00", 1)).lines)

        assert summary.subtotal == Decimal("120.00")
        assert summary.shipping_fee == Decimal("0")
        assert summary.tax_amount == Decimal("9.6000")
        assert summary.total == Decimal("129.6000")
        assert summary.free_shipping
        assert summary.amount_to_free_shipping is None

    def test_empty_cart_is_all_zero(self):
        summary = compute_summary([])

        assert summary is EMPTY_SUMMARY
        assert summary.subtotal == summary.shipping_fee == summary.tax_amount == summary.total == Decimal("0")
        assert summary.amount_to_free_shipping is None
        assert not summary.free_shipping

    @pytest.mark.parametrize(
        "price,expected_fee",
        [
            ("100.00", Decimal("10.00")),
            ("100.01", Decimal("0")),
            ("99.99", Decimal("10.00")),
        ],
    )
    def test_free_shipping_threshold_is_strict(self, price, expected_fee):
        summary = compute_summary(make_cart(("a", price, 1)).lines)
        assert summary.shipping_fee == expected_fee

    def test_exactly_at_threshold_has_nothing_left_to_free_shipping(self):
        summary = compute_summary(make_cart(("a", "100.00", 1)).lines)
        # the hint is omitted from the threshold up, even though shipping is still charged
        assert summary.amount_to_free_shipping is None

    def test_subtotal_independent_of_line_order(self):
        lines = make_cart(("a", "0.10", 3), ("b", "19.99", 1), ("c", "7.35", 4)).lines
        subtotals = {compute_summary(list(order)).subtotal for order in itertools.permutations(lines)}
        assert subtotals == {Decimal("49.69")}

    @pytest.mark.parametrize(
        "lines",
        [
            [("a", "0.01", 1)],
            [("a", "33.33", 3)],
            [("a", "12.345", 7), ("b", "0.005", 1)],
            [("a", "250.00", 2), ("b", "0", 5)],
        ],
    )
    def test_total_and_tax_identities(self, lines):
        summary = compute_summary(make_cart(*lines).lines)

        assert summary.tax_amount == summary.subtotal * Decimal("0.08")
        assert summary.total == summary.subtotal + summary.shipping_fee + summary.tax_amount

    def test_no_float_drift(self):
        summary = compute_summary(make_cart(("a", "0.10", 1), ("b", "0.20", 1)).lines)
        assert summary.subtotal == Decimal("0.30")


class TestRounding:
    """Test display rounding"""

    @pytest.mark.parametrize(
        "amount,expected",
        [
            ("5.9984", "6.00"),
            ("0.005", "0.01"),
            ("2.675", "2.68"),
            ("1.004", "1.00"),
        ],
    )
    def test_round_half_up(self, amount, expected):
        assert round_money(Decimal(amount)) == Decimal(expected)
