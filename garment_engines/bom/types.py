"""
garment_engines.bom.types -- immutable BOM snapshots consumed by the engines.

Responsibility:
    Define the frozen input types of the BOM expander and the requirement
    calculator: Material, BOMHeader, BOMLine, the ConsumptionSpec variants,
    ProductVariant, VariantConsumption and WastePolicy.

Architecture position:
    Engines -- pure, zero I/O.  Services build these snapshots from the ORM
    models; the engines never see a session.

Invariants enforced:
    - effective quantity = quantity * (1 + waste_percentage / 100).
    - WastePolicy rejects negative waste and, unless explicitly allowed,
      waste above the configured maximum (100 by default).
    - A BOMLine whose material is None is *unresolved*; it still carries the
      referenced material_id so it can be reported.
    - Variant selection is deterministic: the most specific matching spec
      wins (size, then color, then category, then general), ties resolved
      by declaration order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import ClassVar
from uuid import UUID

from garment_kernel.domain.values import Money, to_decimal
from garment_kernel.exceptions import UnitMismatchError, WastePercentageError
from garment_engines.units import convert_to_base_unit

HUNDRED = Decimal("100")


def effective_quantity(quantity: Decimal, waste_percentage: Decimal) -> Decimal:
    """Nominal quantity grossed up by the waste allowance."""
    return quantity * (1 + waste_percentage / HUNDRED)


@dataclass(frozen=True, slots=True)
class WastePolicy:
    """Bounds on BOM waste percentages."""

    max_waste_percentage: Decimal = HUNDRED
    allow_above_max: bool = False

    def validate(self, waste_percentage: Decimal, bom_id: UUID | None = None) -> Decimal:
        waste = to_decimal(waste_percentage, "waste percentage")
        if waste < 0 or (waste > self.max_waste_percentage and not self.allow_above_max):
            raise WastePercentageError(waste, self.max_waste_percentage, bom_id)
        return waste


DEFAULT_WASTE_POLICY = WastePolicy()


@dataclass(frozen=True, slots=True)
class Material:
    """Snapshot of a material master record."""

    material_id: UUID
    name: str
    base_unit: str
    cost_per_unit: Money | None = None
    purchase_unit: str | None = None
    conversion_factor: Decimal = Decimal("1")
    code: str | None = None

    def to_base_quantity(self, value: Decimal, unit: str) -> Decimal:
        """Express ``value`` ``unit`` in the material's base unit."""
        if unit == self.base_unit:
            return value
        if self.purchase_unit is not None and unit == self.purchase_unit:
            return convert_to_base_unit(value, self.conversion_factor)
        raise UnitMismatchError(
            expected=self.base_unit, actual=unit, material_id=self.material_id
        )

    def cost_of(self, base_quantity: Decimal, currency: str) -> Money:
        """Cost of ``base_quantity``; unpriced materials cost zero."""
        if self.cost_per_unit is None:
            return Money.zero(currency)
        return self.cost_per_unit * base_quantity

    @property
    def label(self) -> str:
        return f"{self.code} {self.name}" if self.code else self.name


# ---------------------------------------------------------------------------
# Variant consumption
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProductVariant:
    """A concrete variant being produced (size / color / category)."""

    product_id: UUID | str | None = None
    size: str | None = None
    color: str | None = None
    category_id: str | None = None


@dataclass(frozen=True, slots=True)
class General:
    """Applies to every variant."""

    specificity: ClassVar[int] = 0
    kind: ClassVar[str] = "general"

    def matches(self, variant: ProductVariant) -> bool:
        return True

    @property
    def value(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class ByCategory:
    category_id: str

    specificity: ClassVar[int] = 1
    kind: ClassVar[str] = "category"

    def matches(self, variant: ProductVariant) -> bool:
        return variant.category_id is not None and str(variant.category_id) == self.category_id

    @property
    def value(self) -> str:
        return self.category_id


@dataclass(frozen=True, slots=True)
class ByColor:
    color: str

    specificity: ClassVar[int] = 2
    kind: ClassVar[str] = "color"

    def matches(self, variant: ProductVariant) -> bool:
        return variant.color is not None and variant.color.lower() == self.color.lower()

    @property
    def value(self) -> str:
        return self.color


@dataclass(frozen=True, slots=True)
class BySize:
    size: str

    specificity: ClassVar[int] = 3
    kind: ClassVar[str] = "size"

    def matches(self, variant: ProductVariant) -> bool:
        return variant.size is not None and variant.size.upper() == self.size.upper()

    @property
    def value(self) -> str:
        return self.size


ConsumptionSpec = General | BySize | ByColor | ByCategory

_SPEC_TYPES: dict[str, type] = {
    spec.kind: spec for spec in (General, BySize, ByColor, ByCategory)
}


def consumption_spec(kind: str, value: str | None = None) -> ConsumptionSpec:
    """Build a spec from its stored (kind, value) pair."""
    try:
        spec_type = _SPEC_TYPES[kind]
    except KeyError:
        raise ValueError(f"Unknown consumption spec kind: {kind!r}") from None
    if spec_type is General:
        return General()
    if not value:
        raise ValueError(f"Consumption spec {kind!r} requires a value")
    return spec_type(value)


@dataclass(frozen=True, slots=True)
class VariantConsumption:
    """Per-variant override of a BOM line's quantity and waste."""

    spec: ConsumptionSpec
    quantity: Decimal
    waste_percentage: Decimal = Decimal("0")

    @property
    def effective_quantity(self) -> Decimal:
        return effective_quantity(self.quantity, self.waste_percentage)


# ---------------------------------------------------------------------------
# BOM snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BOMLine:
    """
    One consumption line: ``quantity`` ``unit`` of a material per BOM
    header quantity, plus a waste allowance.
    """

    material_id: UUID
    material: Material | None
    quantity: Decimal
    unit: str
    waste_percentage: Decimal = Decimal("0")
    line_id: UUID | None = None
    notes: str | None = None
    sort_order: int = 0
    variants: tuple[VariantConsumption, ...] = ()

    @property
    def is_resolved(self) -> bool:
        return self.material is not None

    @property
    def effective_quantity(self) -> Decimal:
        return effective_quantity(self.quantity, self.waste_percentage)

    def consumption_for(self, variant: ProductVariant) -> tuple[Decimal, Decimal]:
        """(quantity, waste_percentage) that applies to ``variant``."""
        best: VariantConsumption | None = None
        for candidate in self.variants:
            if not candidate.spec.matches(variant):
                continue
            if best is None or candidate.spec.specificity > best.spec.specificity:
                best = candidate
        if best is None:
            return self.quantity, self.waste_percentage
        return best.quantity, best.waste_percentage


@dataclass(frozen=True, slots=True)
class BOMHeader:
    """BOM producing ``quantity`` ``unit`` of output from its lines."""

    bom_id: UUID
    name: str
    quantity: Decimal
    unit: str
    version: str = "1.0"
    is_active: bool = True
    description: str | None = None
    lines: tuple[BOMLine, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class UnresolvedLine:
    """A BOM line whose material could not be resolved."""

    line_id: UUID | None
    material_id: UUID
    quantity: Decimal
    unit: str
