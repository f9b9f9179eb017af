"""
test_quantity_engine.py — Unit tests for the dimensional quantity resolver.

Tests cover:
  - Most-dimensional-rule-first derivation (count × L × W × H)
  - Defaulting of count to 1 and coercion of junk input
  - Amount derivation and display rounding (3 dp / 2 dp)
"""

import math
import pytest

from app.services.quantity_engine import (
    coerce_count,
    coerce_positive,
    coerce_rate,
    compute_amount,
    format_money,
    format_quantity,
    resolve_quantity,
    round_money,
    round_quantity,
)


class TestResolveQuantity:

    def test_all_three_dimensions(self):
        assert resolve_quantity(2, 3, 4, 5) == pytest.approx(120.0)

    def test_length_and_width(self):
        assert resolve_quantity(2, 3, 4, None) == pytest.approx(24.0)

    def test_length_only(self):
        assert resolve_quantity(3, 2.5) == pytest.approx(7.5)

    def test_count_only(self):
        assert resolve_quantity(4) == 4.0

    def test_nothing_given_defaults_to_one(self):
        assert resolve_quantity() == 1.0

    def test_zero_height_falls_back_to_area(self):
        # nr=2, l=3, w=4, h=0
        assert resolve_quantity(2, 3, 4, 0) == pytest.approx(24.0)

    def test_height_without_width_is_ignored(self):
        assert resolve_quantity(1, 5, None, 7) == pytest.approx(5.0)

    def test_width_without_length_is_ignored(self):
        assert resolve_quantity(2, None, 9) == 2.0

    def test_zero_count_defaults_to_one(self):
        assert resolve_quantity(0, 3) == pytest.approx(3.0)

    def test_numeric_strings_accepted(self):
        assert resolve_quantity("2", " 3 ", "4", "") == pytest.approx(24.0)

    @pytest.mark.parametrize("junk", ["abc", "", None, -2, float("nan"), float("inf"), True])
    def test_junk_count_never_produces_nan(self, junk):
        q = resolve_quantity(junk, 3)
        assert math.isfinite(q)
        assert q == pytest.approx(3.0)

    def test_result_is_always_positive(self):
        assert resolve_quantity(-5, -3, -4, -1) == 1.0


class TestCoercion:

    def test_coerce_positive_rejects_zero_and_negative(self):
        assert coerce_positive(0) is None
        assert coerce_positive(-1.5) is None

    def test_coerce_positive_rejects_bool(self):
        assert coerce_positive(True) is None

    def test_coerce_count_default(self):
        assert coerce_count(None) == 1.0
        assert coerce_count("7") == 7.0

    def test_rate_may_be_zero(self):
        assert coerce_rate(0) == 0.0
        assert coerce_rate("0") == 0.0

    def test_rate_rejects_negative_and_junk(self):
        assert coerce_rate(-10) is None
        assert coerce_rate("ten") is None
        assert coerce_rate(None) is None


class TestAmount:

    def test_amount_from_area_row(self):
        q = resolve_quantity(2, 3, 4, 0)
        assert compute_amount(q, 10) == pytest.approx(240.0)

    def test_missing_rate_gives_zero(self):
        assert compute_amount(12.0, None) == 0.0
        assert compute_amount(12.0, "") == 0.0

    def test_display_rounding(self):
        q = resolve_quantity(2, 3, 4, 0)
        assert format_quantity(q) == "24.000"
        assert format_money(compute_amount(q, 10)) == "240.00"

    def test_round_helpers(self):
        assert round_quantity(1.23456) == 1.235
        assert round_money(2.345678) == 2.35
