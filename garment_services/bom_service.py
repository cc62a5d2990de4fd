"""
BOMService -- bill of materials maintenance, costing and requirements.

Responsibility:
    Persist BOM headers, lines and variant consumptions; build immutable
    ``BOMHeader`` snapshots with resolved materials; and run the pure BOM
    expander and requirement calculator over them.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  Materials are
    resolved through the injected MaterialService.

Invariants enforced:
    - BOMs are never hard-deleted.  ``deactivate_bom`` and ``revise_bom``
      flip ``is_active``; revisions record ``superseded_by_id``.
    - Header quantity must be positive and line waste must satisfy the
      WastePolicy when written, so stored BOMs always expand.
    - Lines whose material no longer resolves stay stored; they surface as
      UnresolvedMaterialError (strict) or in ``unresolved`` (lenient).

Failure modes:
    - BOMNotFoundError for unknown BOM or line ids.
    - InvalidBOMError / WastePercentageError on invalid header or line data.
    - MaterialNotFoundError when adding a line for an unknown material.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from garment_kernel.domain.clock import Clock, SystemClock
from garment_kernel.domain.values import to_decimal
from garment_kernel.exceptions import BOMNotFoundError, InvalidBOMError
from garment_kernel.logging_config import LogContext, get_logger
from garment_kernel.models.bom import BOMHeaderModel, BOMLineModel, BOMLineVariantModel
from garment_engines.bom.expander import BOMExpansion, expand_bom
from garment_engines.bom.requirements import (
    RequirementCalculation,
    calculate_requirements,
    calculate_variant_requirements,
)
from garment_engines.bom.types import (
    DEFAULT_WASTE_POLICY,
    BOMHeader,
    BOMLine,
    ProductVariant,
    VariantConsumption,
    WastePolicy,
    consumption_spec,
)
from garment_services.material_service import MaterialService

logger = get_logger("services.bom")


@dataclass(frozen=True)
class BOMLineInput:
    """Line data for creating or extending a BOM."""

    material_id: UUID
    quantity: Decimal | int | str
    unit: str
    waste_percentage: Decimal | int | str = Decimal("0")
    notes: str | None = None
    sort_order: int | None = None
    variants: tuple[VariantConsumption, ...] = field(default_factory=tuple)


class BOMService:
    """
    BOM repository plus costing entry points.

    Contract:
        Receives Session, MaterialService and Clock by constructor
        injection.  Flushes but never commits.
    """

    def __init__(
        self,
        session: Session,
        materials: MaterialService,
        clock: Clock | None = None,
        currency: str = "USD",
        waste_policy: WastePolicy = DEFAULT_WASTE_POLICY,
        strict: bool = True,
    ):
        self._session = session
        self._materials = materials
        self._clock = clock or SystemClock()
        self._currency = currency
        self._waste_policy = waste_policy
        self._strict = strict

    # =========================================================================
    # Persistence helpers
    # =========================================================================

    def _header_row(self, bom_id: UUID) -> BOMHeaderModel:
        row = self._session.get(BOMHeaderModel, bom_id)
        if row is None:
            raise BOMNotFoundError(bom_id)
        return row

    def _line_row(self, line_id: UUID) -> BOMLineModel:
        row = self._session.get(BOMLineModel, line_id)
        if row is None:
            raise BOMNotFoundError(line_id)
        return row

    def _validated_line(self, bom_id: UUID | None, line: BOMLineInput) -> tuple[Decimal, Decimal]:
        quantity = to_decimal(line.quantity, "line quantity")
        if quantity <= 0:
            raise InvalidBOMError(bom_id, f"line quantity must be positive, got {quantity}")
        waste = self._waste_policy.validate(line.waste_percentage, bom_id)
        for variant in line.variants:
            if variant.quantity <= 0:
                raise InvalidBOMError(
                    bom_id, f"variant quantity must be positive, got {variant.quantity}"
                )
            self._waste_policy.validate(variant.waste_percentage, bom_id)
        material = self._materials.get_material(line.material_id)
        material.to_base_quantity(quantity, line.unit)
        return quantity, waste

    def _new_line_row(self, header: BOMHeaderModel, line: BOMLineInput, sort_order: int) -> BOMLineModel:
        quantity, waste = self._validated_line(header.id, line)
        row = BOMLineModel(
            material_id=line.material_id,
            quantity=quantity,
            unit=line.unit,
            waste_percentage=waste,
            notes=line.notes,
            sort_order=line.sort_order if line.sort_order is not None else sort_order,
        )
        row.variants = [
            BOMLineVariantModel(
                spec_type=variant.spec.kind,
                spec_value=variant.spec.value,
                quantity=variant.quantity,
                waste_percentage=variant.waste_percentage,
                sort_order=index,
            )
            for index, variant in enumerate(line.variants)
        ]
        return row

    def _snapshot(self, header: BOMHeaderModel) -> BOMHeader:
        resolved = self._materials.resolve_many(line.material_id for line in header.lines)
        lines = tuple(
            BOMLine(
                material_id=line.material_id,
                material=resolved.get(line.material_id),
                quantity=line.quantity,
                unit=line.unit,
                waste_percentage=line.waste_percentage,
                line_id=line.id,
                notes=line.notes,
                sort_order=line.sort_order,
                variants=tuple(
                    VariantConsumption(
                        spec=consumption_spec(v.spec_type, v.spec_value),
                        quantity=v.quantity,
                        waste_percentage=v.waste_percentage,
                    )
                    for v in line.variants
                ),
            )
            for line in sorted(header.lines, key=lambda row: (row.sort_order, str(row.id)))
        )
        return BOMHeader(
            bom_id=header.id,
            name=header.name,
            quantity=header.quantity,
            unit=header.unit,
            version=header.version,
            is_active=header.is_active,
            description=header.description,
            lines=lines,
        )

    # =========================================================================
    # Maintenance
    # =========================================================================

    def create_bom(
        self,
        name: str,
        quantity: Decimal | int | str,
        unit: str,
        lines: Sequence[BOMLineInput] = (),
        version: str = "1.0",
        description: str | None = None,
    ) -> BOMHeader:
        output_quantity = to_decimal(quantity, "BOM quantity")
        if output_quantity <= 0:
            raise InvalidBOMError(name, f"output quantity must be positive, got {output_quantity}")

        header = BOMHeaderModel(
            name=name,
            version=version,
            description=description,
            quantity=output_quantity,
            unit=unit,
            is_active=True,
            created_at=self._clock.now(),
        )
        # Lines are validated before anything is added to the session
        header.lines = [
            self._new_line_row(header, line, index) for index, line in enumerate(lines)
        ]
        self._session.add(header)
        self._session.flush()

        logger.info(
            "bom_created",
            extra={
                "bom_id": str(header.id),
                "bom_name": name,
                "version": version,
                "line_count": len(lines),
            },
        )
        return self._snapshot(header)

    def get_bom(self, bom_id: UUID) -> BOMHeader:
        return self._snapshot(self._header_row(bom_id))

    def list_boms(self, include_inactive: bool = False) -> list[BOMHeader]:
        stmt = select(BOMHeaderModel).order_by(BOMHeaderModel.name, BOMHeaderModel.version)
        if not include_inactive:
            stmt = stmt.where(BOMHeaderModel.is_active.is_(True))
        return [self._snapshot(row) for row in self._session.scalars(stmt)]

    def add_line(self, bom_id: UUID, line: BOMLineInput) -> BOMHeader:
        header = self._header_row(bom_id)
        next_order = max((row.sort_order for row in header.lines), default=-1) + 1
        header.lines.append(self._new_line_row(header, line, next_order))
        self._session.flush()
        logger.info(
            "bom_line_added",
            extra={"bom_id": str(bom_id), "material_id": str(line.material_id)},
        )
        return self._snapshot(header)

    def update_line(self, line_id: UUID, **changes: Any) -> BOMHeader:
        """
        Change quantity, unit, waste_percentage, notes or sort_order of a line.
        """
        allowed = {"quantity", "unit", "waste_percentage", "notes", "sort_order"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Cannot update BOM line fields: {sorted(unknown)}")

        row = self._line_row(line_id)
        current = BOMLineInput(
            material_id=row.material_id,
            quantity=changes.get("quantity", row.quantity),
            unit=changes.get("unit", row.unit),
            waste_percentage=changes.get("waste_percentage", row.waste_percentage),
        )
        quantity, waste = self._validated_line(row.bom_id, current)
        row.quantity = quantity
        row.unit = current.unit
        row.waste_percentage = waste
        if "notes" in changes:
            row.notes = changes["notes"]
        if "sort_order" in changes:
            row.sort_order = changes["sort_order"]
        self._session.flush()
        logger.info(
            "bom_line_updated",
            extra={"bom_id": str(row.bom_id), "line_id": str(line_id), "fields": sorted(changes)},
        )
        return self._snapshot(row.bom)

    def remove_line(self, line_id: UUID) -> BOMHeader:
        row = self._line_row(line_id)
        header = row.bom
        header.lines.remove(row)
        self._session.flush()
        logger.info(
            "bom_line_removed",
            extra={"bom_id": str(header.id), "line_id": str(line_id)},
        )
        return self._snapshot(header)

    def deactivate_bom(self, bom_id: UUID) -> None:
        header = self._header_row(bom_id)
        header.is_active = False
        self._session.flush()
        logger.info("bom_deactivated", extra={"bom_id": str(bom_id)})

    def copy_bom(
        self,
        bom_id: UUID,
        new_name: str | None = None,
        version: str = "1.0",
    ) -> BOMHeader:
        """Independent copy of a BOM, lines and variants included."""
        source = self.get_bom(bom_id)
        copy = self.create_bom(
            name=new_name or f"{source.name} (copy)",
            quantity=source.quantity,
            unit=source.unit,
            version=version,
            description=source.description,
            lines=[
                BOMLineInput(
                    material_id=line.material_id,
                    quantity=line.quantity,
                    unit=line.unit,
                    waste_percentage=line.waste_percentage,
                    notes=line.notes,
                    sort_order=line.sort_order,
                    variants=line.variants,
                )
                for line in source.lines
            ],
        )
        logger.info(
            "bom_copied",
            extra={"source_bom_id": str(bom_id), "bom_id": str(copy.bom_id)},
        )
        return copy

    def revise_bom(self, bom_id: UUID, version: str) -> BOMHeader:
        """New version of a BOM; the source is deactivated and points to it."""
        source = self._header_row(bom_id)
        revision = self.copy_bom(bom_id, new_name=source.name, version=version)
        source.is_active = False
        source.superseded_by_id = revision.bom_id
        self._session.flush()
        logger.info(
            "bom_revised",
            extra={
                "bom_id": str(revision.bom_id),
                "superseded_bom_id": str(bom_id),
                "version": version,
            },
        )
        return revision

    # =========================================================================
    # Costing
    # =========================================================================

    def expand(self, bom_id: UUID, strict: bool | None = None) -> BOMExpansion:
        with LogContext.bind(bom_id=bom_id):
            return expand_bom(
                self.get_bom(bom_id),
                currency=self._currency,
                waste_policy=self._waste_policy,
                strict=self._strict if strict is None else strict,
            )

    def calculate_requirements(
        self,
        bom_id: UUID,
        target_quantity: Decimal | int | str,
        strict: bool | None = None,
    ) -> RequirementCalculation:
        with LogContext.bind(bom_id=bom_id):
            return calculate_requirements(
                self.get_bom(bom_id),
                target_quantity,
                currency=self._currency,
                waste_policy=self._waste_policy,
                strict=self._strict if strict is None else strict,
            )

    def calculate_variant_requirements(
        self,
        bom_id: UUID,
        production: Mapping[ProductVariant, Decimal | int | str]
        | Iterable[tuple[ProductVariant, Decimal | int | str]],
        strict: bool | None = None,
    ) -> RequirementCalculation:
        with LogContext.bind(bom_id=bom_id):
            return calculate_variant_requirements(
                self.get_bom(bom_id),
                production,
                currency=self._currency,
                waste_policy=self._waste_policy,
                strict=self._strict if strict is None else strict,
            )
