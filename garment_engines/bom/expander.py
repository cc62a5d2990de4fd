"""
garment_engines.bom.expander -- BOM costing.

Responsibility:
    Expand a BOM snapshot into per-line effective quantities and costs, the
    total material cost and the cost per unit of output.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``bom.quantity > 0``; otherwise cost per output unit is undefined and
      InvalidBOMError is raised.
    - effective_quantity >= quantity for every line (waste is never negative).
    - total_cost is exactly the sum of the line costs; it does not depend on
      line order.
    - Materials without a price contribute zero cost, not an error.

Failure modes:
    - InvalidBOMError if the header quantity is not positive.
    - WastePercentageError if a line's waste violates the WastePolicy.
    - UnresolvedMaterialError (strict mode) if any line's material is missing.
    - UnitMismatchError if a line unit is neither the material's base unit
      nor its purchase unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from garment_kernel.domain.values import Money, Quantity
from garment_kernel.exceptions import InvalidBOMError, UnresolvedMaterialError
from garment_kernel.logging_config import get_logger
from garment_engines.bom.types import (
    DEFAULT_WASTE_POLICY,
    BOMHeader,
    BOMLine,
    Material,
    UnresolvedLine,
    WastePolicy,
    effective_quantity,
)
from garment_engines.tracer import traced_engine

logger = get_logger("engines.bom.expander")


@dataclass(frozen=True, slots=True)
class ExpandedLine:
    """Costed BOM line.  Quantities are in the material's base unit."""

    line_id: UUID | None
    material: Material
    quantity: Quantity
    effective_quantity: Quantity
    waste_percentage: Decimal
    unit_cost: Money
    line_cost: Money


@dataclass(frozen=True, slots=True)
class BOMExpansion:
    """Result of :func:`expand_bom`."""

    bom_id: UUID
    output_quantity: Quantity
    lines: tuple[ExpandedLine, ...]
    total_cost: Money
    cost_per_output_unit: Money
    unresolved: tuple[UnresolvedLine, ...] = ()

    @property
    def is_complete(self) -> bool:
        return not self.unresolved


def check_bom_quantity(bom: BOMHeader) -> None:
    if bom.quantity <= 0:
        raise InvalidBOMError(
            bom.bom_id, f"output quantity must be positive, got {bom.quantity}"
        )


def partition_lines(
    bom: BOMHeader,
    strict: bool,
) -> tuple[list[BOMLine], tuple[UnresolvedLine, ...]]:
    """
    Split lines into resolved ones and unresolved references.

    Strict mode raises UnresolvedMaterialError naming every unresolved
    material; lenient mode returns them and logs a warning.
    """
    resolved: list[BOMLine] = []
    unresolved: list[UnresolvedLine] = []
    for line in bom.lines:
        if line.is_resolved:
            resolved.append(line)
        else:
            unresolved.append(
                UnresolvedLine(
                    line_id=line.line_id,
                    material_id=line.material_id,
                    quantity=line.quantity,
                    unit=line.unit,
                )
            )

    if unresolved:
        if strict:
            raise UnresolvedMaterialError(bom.bom_id, [u.material_id for u in unresolved])
        logger.warning(
            "unresolved_bom_lines",
            extra={
                "bom_id": str(bom.bom_id),
                "material_ids": [str(u.material_id) for u in unresolved],
            },
        )
    return resolved, tuple(unresolved)


@traced_engine("bom_expander", "1.0", fingerprint_fields=("bom", "currency"))
def expand_bom(
    bom: BOMHeader,
    currency: str = "USD",
    waste_policy: WastePolicy = DEFAULT_WASTE_POLICY,
    strict: bool = True,
) -> BOMExpansion:
    """
    Cost every line of ``bom`` and aggregate to a total.

    Args:
        bom: BOM snapshot with resolved (or unresolved) materials.
        currency: Currency of the result; material costs must be in it.
        waste_policy: Bounds applied to every line's waste percentage.
        strict: Raise on unresolved materials instead of reporting them.
    """
    check_bom_quantity(bom)
    resolved, unresolved = partition_lines(bom, strict)

    lines: list[ExpandedLine] = []
    total = Money.zero(currency)
    for line in resolved:
        material = line.material
        waste = waste_policy.validate(line.waste_percentage, bom.bom_id)
        base_quantity = material.to_base_quantity(line.quantity, line.unit)
        gross = effective_quantity(base_quantity, waste)
        line_cost = material.cost_of(gross, currency)
        unit_cost = material.cost_per_unit or Money.zero(currency)
        lines.append(
            ExpandedLine(
                line_id=line.line_id,
                material=material,
                quantity=Quantity(base_quantity, material.base_unit),
                effective_quantity=Quantity(gross, material.base_unit),
                waste_percentage=waste,
                unit_cost=unit_cost,
                line_cost=line_cost,
            )
        )
        total = total + line_cost

    expansion = BOMExpansion(
        bom_id=bom.bom_id,
        output_quantity=Quantity(bom.quantity, bom.unit),
        lines=tuple(lines),
        total_cost=total,
        cost_per_output_unit=total / bom.quantity,
        unresolved=unresolved,
    )

    logger.info(
        "bom_expanded",
        extra={
            "bom_id": str(bom.bom_id),
            "line_count": len(lines),
            "unresolved_count": len(unresolved),
            "total_cost": str(total.amount),
            "currency": currency,
        },
    )
    return expansion
