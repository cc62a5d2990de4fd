"""
garment_engines.units -- purchase-unit / base-unit conversion.

Materials are bought in one unit (rolls, cones, boxes) and consumed in
another (metres, pieces).  ``conversion_factor`` is the number of base units
in one purchase unit: a roll of 50 m has factor 50, so 2 rolls are 100 m and
a roll price of 250.00 is 5.00 per metre.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from garment_kernel.domain.values import Money, to_decimal
from garment_kernel.exceptions import InvalidConversionFactorError

# Factors above this are accepted but reported as suspicious.
SUSPICIOUS_FACTOR = Decimal("10000")


class UnitCategory(str, Enum):
    WEIGHT = "weight"
    LENGTH = "length"
    AREA = "area"
    VOLUME = "volume"
    COUNT = "count"


UNIT_CATEGORIES: dict[UnitCategory, frozenset[str]] = {
    UnitCategory.WEIGHT: frozenset({"kg", "g", "lb", "oz", "ton"}),
    UnitCategory.LENGTH: frozenset({"m", "cm", "mm", "yard", "yd", "inch", "ft"}),
    UnitCategory.AREA: frozenset({"sqm", "sqft", "sqyd"}),
    UnitCategory.VOLUME: frozenset({"l", "ml", "gal"}),
    UnitCategory.COUNT: frozenset(
        {"pcs", "pc", "dozen", "gross", "box", "pack", "roll", "cone", "set", "pair"}
    ),
}


def unit_category(unit: str) -> UnitCategory | None:
    """Category of ``unit``, or None for units outside the known lists."""
    normalized = unit.strip().lower()
    for category, units in UNIT_CATEGORIES.items():
        if normalized in units:
            return category
    return None


@dataclass(frozen=True, slots=True)
class ConversionCheck:
    """Outcome of validating a conversion factor."""

    factor: Decimal
    warnings: tuple[str, ...] = ()


def validate_conversion_factor(
    purchase_unit: str | None,
    base_unit: str,
    factor: Decimal | int | str,
) -> ConversionCheck:
    """
    Reject unusable factors and flag suspicious ones.

    Raises:
        InvalidConversionFactorError: factor <= 0, or factor != 1 when the
            purchase unit equals the base unit.
    """
    value = to_decimal(factor, "conversion factor")
    if value <= 0:
        raise InvalidConversionFactorError(value, "must be greater than zero")

    if purchase_unit is None or purchase_unit.strip().lower() == base_unit.strip().lower():
        if value != 1:
            raise InvalidConversionFactorError(
                value, "must be 1 when purchase and base units are the same"
            )
        return ConversionCheck(factor=value)

    warnings: list[str] = []
    if value > SUSPICIOUS_FACTOR:
        warnings.append(f"conversion factor {value} is unusually large")
    purchase_category = unit_category(purchase_unit)
    base_category = unit_category(base_unit)
    if (
        purchase_category is not None
        and base_category is not None
        and purchase_category != base_category
        and purchase_category != UnitCategory.COUNT
    ):
        warnings.append(
            f"{purchase_unit} ({purchase_category.value}) converts to "
            f"{base_unit} ({base_category.value})"
        )
    return ConversionCheck(factor=value, warnings=tuple(warnings))


def convert_to_base_unit(quantity: Decimal, factor: Decimal) -> Decimal:
    """Purchase-unit quantity expressed in base units."""
    return quantity * factor


def convert_to_purchase_unit(quantity: Decimal, factor: Decimal) -> Decimal:
    """Base-unit quantity expressed in purchase units."""
    if factor <= 0:
        raise InvalidConversionFactorError(factor, "must be greater than zero")
    return quantity / factor


def cost_per_base_unit(purchase_unit_cost: Money, factor: Decimal) -> Money:
    """Price of one base unit given the price of one purchase unit."""
    if factor <= 0:
        raise InvalidConversionFactorError(factor, "must be greater than zero")
    return purchase_unit_cost / factor
