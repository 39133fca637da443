"""Tests for currency rounding and discount conversion."""
from __future__ import annotations

from decimal import Decimal

import pytest

from livraria.app.core.money import (
    DiscountKind,
    amount_to_percentage,
    clamp_amount,
    clamp_percentage,
    discount_to_amount,
    floor_to_cent,
    format_brl,
    percentage_to_amount,
    to_currency,
)


class TestRounding:
    def test_to_currency_rounds_half_up(self) -> None:
        assert to_currency(Decimal("2.345")) == Decimal("2.35")
        assert to_currency(Decimal("2.344")) == Decimal("2.34")

    def test_floor_to_cent_never_rounds_up(self) -> None:
        assert floor_to_cent(Decimal("3.339")) == Decimal("3.33")

    def test_float_input_has_no_binary_noise(self) -> None:
        assert to_currency(0.1 + 0.2) == Decimal("0.30")


class TestClamping:
    @pytest.mark.parametrize(
        "value, expected",
        [(Decimal("-5"), Decimal("0")), (Decimal("42"), Decimal("42")), (Decimal("150"), Decimal("100"))],
    )
    def test_clamp_percentage(self, value: Decimal, expected: Decimal) -> None:
        assert clamp_percentage(value) == expected

    def test_clamp_amount_to_base(self) -> None:
        assert clamp_amount(Decimal("120"), Decimal("100")) == Decimal("100")
        assert clamp_amount(Decimal("-1"), Decimal("100")) == Decimal("0")

    def test_non_positive_base_clamps_to_zero(self) -> None:
        assert clamp_amount(Decimal("10"), Decimal("0")) == Decimal("0")


class TestConversion:
    def test_percentage_to_amount(self) -> None:
        assert percentage_to_amount(Decimal("200"), Decimal("10")) == Decimal("20")

    def test_percentage_above_hundred_is_whole_base(self) -> None:
        assert percentage_to_amount(Decimal("80"), Decimal("150")) == Decimal("80")

    def test_amount_to_percentage(self) -> None:
        assert amount_to_percentage(Decimal("200"), Decimal("50")) == Decimal("25")

    def test_amount_to_percentage_on_zero_base(self) -> None:
        assert amount_to_percentage(Decimal("0"), Decimal("50")) == Decimal("0")

    def test_discount_to_amount_by_kind(self) -> None:
        assert discount_to_amount(Decimal("100"), Decimal("15"), DiscountKind.PERCENTAGE) == Decimal("15")
        assert discount_to_amount(Decimal("100"), Decimal("15"), "fixed") == Decimal("15")
        assert discount_to_amount(Decimal("100"), Decimal("500"), DiscountKind.FIXED) == Decimal("100")


class TestFormatBRL:
    def test_thousands_and_decimal_separators(self) -> None:
        assert format_brl(Decimal("1234.5")) == "R$ 1.234,50"

    def test_small_amount(self) -> None:
        assert format_brl(Decimal("10")) == "R$ 10,00"

    def test_negative_amount(self) -> None:
        assert format_brl(Decimal("-3.456")) == "-R$ 3,46"
