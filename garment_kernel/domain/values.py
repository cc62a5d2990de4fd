"""
Values -- Immutable, self-validating value objects for costs and quantities.

Responsibility:
    Provides Currency, Money and Quantity.  Material costs, layer unit costs,
    line costs and BOM totals are Money; consumption amounts, layer balances
    and requirements are Quantity.  Raw floats never enter these types.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Imported by engines and services.

Invariants enforced:
    - Decimal-only arithmetic: float inputs are converted through ``str``
      so that 0.1 stays 0.1.
    - Money never mixes currencies; Quantity never mixes units.  Mixing
      raises ``CurrencyMismatchError`` / ``UnitMismatchError``.
    - No implicit rounding.  ``Money.round()`` is explicit and uses the
      currency's ISO 4217 precision.

Failure modes:
    - InvalidCurrencyError for unknown currency codes.
    - ValueError for amounts that are not numbers (NaN, garbage strings).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from garment_kernel.domain.currency import CurrencyRegistry
from garment_kernel.exceptions import CurrencyMismatchError, UnitMismatchError


def to_decimal(value: Any, label: str = "value") -> Decimal:
    """Convert ``value`` to a finite Decimal without going through binary float."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid {label}: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Invalid {label}: {value!r}")
    return result


@dataclass(frozen=True, slots=True)
class Currency:
    """ISO 4217 currency code, normalized to upper case."""

    code: str

    def __post_init__(self) -> None:
        normalized = (self.code or "").strip().upper()
        CurrencyRegistry.get_info(normalized)
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    def __str__(self) -> str:
        return self.code


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount paired with its currency.

    Used for material cost-per-unit, layer unit cost and every derived cost.
    Arithmetic between two Money values requires the same currency;
    multiplication and division take plain Decimal scalars (for example a
    quantity value), so ``unit_cost * quantity.value`` yields a line cost.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount, "amount"))
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        return cls(amount=to_decimal(amount, "amount"), currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        return cls(amount=Decimal("0"), currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Round to the currency's minor unit."""
        quantum = Decimal(1).scaleb(-self.currency.decimal_places)
        return Money(self.amount.quantize(quantum, rounding=rounding), self.currency)

    def _same_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency.code, other.currency.code)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._same_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> Money:
        return Money(-self.amount, self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        if isinstance(factor, (Money, float)) or not isinstance(factor, (Decimal, int, str)):
            return NotImplemented
        return Money(self.amount * to_decimal(factor, "factor"), self.currency)

    __rmul__ = __mul__

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        if isinstance(divisor, (Money, float)) or not isinstance(divisor, (Decimal, int, str)):
            return NotImplemented
        return Money(self.amount / to_decimal(divisor, "divisor"), self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._same_currency(other)
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._same_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._same_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._same_currency(other)
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"


@dataclass(frozen=True, slots=True)
class Quantity:
    """
    Decimal amount of material in a unit of measure (m, kg, pcs, ...).

    Units are compared as normalized strings; conversion between a
    material's purchase unit and base unit lives in ``garment_engines.units``.
    """

    value: Decimal
    unit: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", to_decimal(self.value, "quantity"))
        if not self.unit or not self.unit.strip():
            raise ValueError("Quantity unit is required")
        object.__setattr__(self, "unit", self.unit.strip())

    @classmethod
    def of(cls, value: Decimal | str | int, unit: str) -> Quantity:
        return cls(value=to_decimal(value, "quantity"), unit=unit)

    @classmethod
    def zero(cls, unit: str) -> Quantity:
        return cls(value=Decimal("0"), unit=unit)

    @property
    def is_zero(self) -> bool:
        return self.value == 0

    @property
    def is_positive(self) -> bool:
        return self.value > 0

    @property
    def is_negative(self) -> bool:
        return self.value < 0

    def _same_unit(self, other: Quantity) -> None:
        if self.unit != other.unit:
            raise UnitMismatchError(expected=self.unit, actual=other.unit)

    def __add__(self, other: Quantity) -> Quantity:
        if not isinstance(other, Quantity):
            return NotImplemented
        self._same_unit(other)
        return Quantity(self.value + other.value, self.unit)

    def __sub__(self, other: Quantity) -> Quantity:
        if not isinstance(other, Quantity):
            return NotImplemented
        self._same_unit(other)
        return Quantity(self.value - other.value, self.unit)

    def __mul__(self, factor: Decimal | int | str) -> Quantity:
        if isinstance(factor, (Quantity, float)) or not isinstance(factor, (Decimal, int, str)):
            return NotImplemented
        return Quantity(self.value * to_decimal(factor, "factor"), self.unit)

    __rmul__ = __mul__

    def __truediv__(self, divisor: Decimal | int | str) -> Quantity:
        if isinstance(divisor, (Quantity, float)) or not isinstance(divisor, (Decimal, int, str)):
            return NotImplemented
        return Quantity(self.value / to_decimal(divisor, "divisor"), self.unit)

    def __lt__(self, other: Quantity) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        self._same_unit(other)
        return self.value < other.value

    def __le__(self, other: Quantity) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        self._same_unit(other)
        return self.value <= other.value

    def __gt__(self, other: Quantity) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        self._same_unit(other)
        return self.value > other.value

    def __ge__(self, other: Quantity) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        self._same_unit(other)
        return self.value >= other.value

    def __str__(self) -> str:
        return f"{self.value} {self.unit}"
