"""
Unit tests for Money, Quantity, Currency and the clock.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from garment_kernel.domain.clock import DeterministicClock
from garment_kernel.domain.currency import CurrencyRegistry
from garment_kernel.domain.values import Currency, Money, Quantity, to_decimal
from garment_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidCurrencyError,
    UnitMismatchError,
)


class TestToDecimal:
    def test_int_and_str(self):
        assert to_decimal(3) == Decimal("3")
        assert to_decimal("2.50") == Decimal("2.50")

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("bad", ["abc", "NaN", "Infinity"])
    def test_rejects_non_finite(self, bad):
        with pytest.raises(ValueError):
            to_decimal(bad, "quantity")


class TestCurrency:
    def test_normalized_to_upper(self):
        assert Currency(" usd ").code == "USD"

    def test_unknown_code(self):
        with pytest.raises(InvalidCurrencyError) as exc_info:
            Currency("XYZ")
        assert exc_info.value.code == "INVALID_CURRENCY"

    def test_decimal_places(self):
        assert CurrencyRegistry.get_decimal_places("JPY") == 0
        assert CurrencyRegistry.get_decimal_places("KWD") == 3
        assert Currency("BDT").decimal_places == 2

    def test_registry_lists_codes(self):
        codes = CurrencyRegistry.all_codes()
        assert {"USD", "EUR", "BDT"} <= codes
        assert "XYZ" not in codes


class TestMoney:
    def test_addition_same_currency(self):
        total = Money.of("10.00", "USD") + Money.of("6.00", "USD")
        assert total == Money.of("16.00", "USD")

    def test_addition_mixed_currency_rejected(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "USD") + Money.of("1", "EUR")

    def test_multiply_by_quantity_value(self):
        assert (Money.of("5.00", "USD") * Decimal("22")).amount == Decimal("110.00")
        assert (Decimal("2") * Money.of("1.50", "USD")).amount == Decimal("3.00")

    def test_multiply_by_float_not_supported(self):
        with pytest.raises(TypeError):
            Money.of("1", "USD") * 1.5

    def test_division(self):
        average = Money.of("16.00", "USD") / 7
        assert average.amount.quantize(Decimal("0.0001")) == Decimal("2.2857")

    def test_round_to_minor_unit(self):
        assert Money.of("2.285714", "USD").round().amount == Decimal("2.29")
        assert Money.of("1234.5", "JPY").round().amount == Decimal("1235")

    def test_comparison(self):
        assert Money.of("1", "USD") < Money.of("2", "USD")
        assert Money.zero("USD").is_zero
        assert Money.of("-1", "USD").is_negative


class TestQuantity:
    def test_arithmetic_same_unit(self):
        assert Quantity.of(5, "m") + Quantity.of(2, "m") == Quantity.of(7, "m")
        assert Quantity.of(5, "m") - Quantity.of(2, "m") == Quantity.of(3, "m")

    def test_unit_mismatch(self):
        with pytest.raises(UnitMismatchError) as exc_info:
            Quantity.of(5, "m") + Quantity.of(1, "kg")
        assert exc_info.value.expected == "m"
        assert exc_info.value.actual == "kg"

    def test_unit_required(self):
        with pytest.raises(ValueError):
            Quantity.of(1, " ")

    def test_sign_properties(self):
        assert Quantity.zero("pcs").is_zero
        assert Quantity.of("0.5", "kg").is_positive
        assert Quantity.of("-1", "kg").is_negative


class TestDeterministicClock:
    def test_fixed_until_advanced(self):
        clock = DeterministicClock(datetime(2024, 1, 1, tzinfo=UTC))
        assert clock.now() == clock.now()
        clock.advance(seconds=5)
        assert clock.now() == datetime(2024, 1, 1, 0, 0, 5, tzinfo=UTC)

    def test_auto_advance(self):
        clock = DeterministicClock(
            datetime(2024, 1, 1, tzinfo=UTC), auto_advance=timedelta(seconds=1)
        )
        first, second = clock.now(), clock.now()
        assert second - first == timedelta(seconds=1)

    def test_naive_time_treated_as_utc(self):
        clock = DeterministicClock(datetime(2024, 1, 1))
        assert clock.now().tzinfo is UTC
        assert clock.today().isoformat() == "2024-01-01"

    def test_set_time(self):
        clock = DeterministicClock(datetime(2024, 1, 1, tzinfo=UTC))
        clock.set_time(datetime(2024, 6, 30, 12))
        assert clock.now() == datetime(2024, 6, 30, 12, tzinfo=UTC)
