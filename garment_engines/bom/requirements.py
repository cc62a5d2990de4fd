"""
garment_engines.bom.requirements -- material requirements for a production run.

Responsibility:
    Scale a BOM's per-output-unit consumption to a target production quantity
    and aggregate the result per material.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - per_unit = effective_quantity / bom.quantity;
      required = per_unit * target_quantity.
    - Exactly one MaterialRequirement per material: lines that repeat a
      material (body fabric and trim from the same roll, say) are summed.
      Goods issues built from the result therefore never request the same
      material twice.
    - Requirement order is the order in which each material first appears
      on the BOM; aggregation itself is order-independent.

Failure modes:
    - InvalidBOMError if bom.quantity <= 0.
    - InvalidQuantityError if the target quantity is negative.
    - UnresolvedMaterialError (strict mode) for unresolved lines.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from garment_kernel.domain.values import Money, Quantity, to_decimal
from garment_kernel.exceptions import InvalidQuantityError, UnresolvedMaterialError
from garment_kernel.logging_config import get_logger
from garment_engines.bom.expander import check_bom_quantity, partition_lines
from garment_engines.bom.types import (
    DEFAULT_WASTE_POLICY,
    BOMHeader,
    BOMLine,
    Material,
    ProductVariant,
    UnresolvedLine,
    WastePolicy,
    effective_quantity,
)
from garment_engines.tracer import traced_engine

logger = get_logger("engines.bom.requirements")


@dataclass(frozen=True, slots=True)
class MaterialRequirement:
    """Total quantity and cost of one material for a production run."""

    material: Material
    required_quantity: Quantity
    total_cost: Money
    line_count: int

    @property
    def material_id(self) -> UUID:
        return self.material.material_id


@dataclass(frozen=True, slots=True)
class RequirementCalculation:
    """
    Aggregated requirements plus any lines that could not be resolved.

    In lenient mode a calculation may be incomplete; callers decide what to
    do with ``unresolved`` or call ``raise_for_unresolved``.
    """

    bom_id: UUID
    target_quantity: Decimal
    requirements: tuple[MaterialRequirement, ...]
    total_cost: Money
    unresolved: tuple[UnresolvedLine, ...] = ()

    @property
    def is_complete(self) -> bool:
        return not self.unresolved

    def raise_for_unresolved(self) -> None:
        if self.unresolved:
            raise UnresolvedMaterialError(
                self.bom_id, [u.material_id for u in self.unresolved]
            )

    def for_material(self, material_id: UUID) -> MaterialRequirement | None:
        for requirement in self.requirements:
            if requirement.material_id == material_id:
                return requirement
        return None


class _Accumulator:
    """Sums quantity and cost per material, remembering first-seen order."""

    def __init__(self, currency: str):
        self._currency = currency
        self._materials: dict[UUID, Material] = {}
        self._quantities: dict[UUID, Decimal] = {}
        self._line_counts: dict[UUID, int] = {}

    def add(self, material: Material, base_quantity: Decimal) -> None:
        key = material.material_id
        if key not in self._materials:
            self._materials[key] = material
            self._quantities[key] = Decimal("0")
            self._line_counts[key] = 0
        self._quantities[key] += base_quantity
        self._line_counts[key] += 1

    def build(self) -> tuple[tuple[MaterialRequirement, ...], Money]:
        requirements = []
        total = Money.zero(self._currency)
        for key, material in self._materials.items():
            quantity = self._quantities[key]
            cost = material.cost_of(quantity, self._currency)
            total = total + cost
            requirements.append(
                MaterialRequirement(
                    material=material,
                    required_quantity=Quantity(quantity, material.base_unit),
                    total_cost=cost,
                    line_count=self._line_counts[key],
                )
            )
        return tuple(requirements), total


def _check_target(target_quantity: Decimal | int | str) -> Decimal:
    target = to_decimal(target_quantity, "target quantity")
    if target < 0:
        raise InvalidQuantityError("target quantity", target, "must not be negative")
    return target


def _scaled(
    bom: BOMHeader,
    line: BOMLine,
    quantity: Decimal,
    waste: Decimal,
    target: Decimal,
    waste_policy: WastePolicy,
) -> Decimal:
    material = line.material
    waste = waste_policy.validate(waste, bom.bom_id)
    base = material.to_base_quantity(quantity, line.unit)
    per_unit = effective_quantity(base, waste) / bom.quantity
    return per_unit * target


@traced_engine(
    "material_requirements", "1.0", fingerprint_fields=("bom", "target_quantity")
)
def calculate_requirements(
    bom: BOMHeader,
    target_quantity: Decimal | int | str,
    currency: str = "USD",
    waste_policy: WastePolicy = DEFAULT_WASTE_POLICY,
    strict: bool = True,
) -> RequirementCalculation:
    """Requirements for producing ``target_quantity`` units with ``bom``."""
    check_bom_quantity(bom)
    target = _check_target(target_quantity)
    resolved, unresolved = partition_lines(bom, strict)

    accumulator = _Accumulator(currency)
    for line in resolved:
        accumulator.add(
            line.material,
            _scaled(bom, line, line.quantity, line.waste_percentage, target, waste_policy),
        )
    requirements, total = accumulator.build()

    logger.info(
        "requirements_calculated",
        extra={
            "bom_id": str(bom.bom_id),
            "target_quantity": str(target),
            "material_count": len(requirements),
            "unresolved_count": len(unresolved),
        },
    )
    return RequirementCalculation(
        bom_id=bom.bom_id,
        target_quantity=target,
        requirements=requirements,
        total_cost=total,
        unresolved=unresolved,
    )


@traced_engine(
    "variant_requirements", "1.0", fingerprint_fields=("bom", "production")
)
def calculate_variant_requirements(
    bom: BOMHeader,
    production: Mapping[ProductVariant, Decimal | int | str]
    | Iterable[tuple[ProductVariant, Decimal | int | str]],
    currency: str = "USD",
    waste_policy: WastePolicy = DEFAULT_WASTE_POLICY,
    strict: bool = True,
) -> RequirementCalculation:
    """
    Requirements for a mixed production run.

    ``production`` maps each variant (size / color / category) to the
    quantity to produce.  Each line uses its most specific matching variant
    consumption for every variant; results are aggregated per material
    across all variants.
    """
    check_bom_quantity(bom)
    items = list(production.items() if isinstance(production, Mapping) else production)
    targets = [(variant, _check_target(quantity)) for variant, quantity in items]
    resolved, unresolved = partition_lines(bom, strict)

    accumulator = _Accumulator(currency)
    for line in resolved:
        line_total = Decimal("0")
        for variant, target in targets:
            quantity, waste = line.consumption_for(variant)
            line_total += _scaled(bom, line, quantity, waste, target, waste_policy)
        accumulator.add(line.material, line_total)
    requirements, total = accumulator.build()

    total_target = sum((target for _, target in targets), Decimal("0"))
    logger.info(
        "variant_requirements_calculated",
        extra={
            "bom_id": str(bom.bom_id),
            "variant_count": len(targets),
            "target_quantity": str(total_target),
            "material_count": len(requirements),
        },
    )
    return RequirementCalculation(
        bom_id=bom.bom_id,
        target_quantity=total_target,
        requirements=requirements,
        total_cost=total,
        unresolved=unresolved,
    )
