"""
MaterialService -- material master maintenance and lookup.

Responsibility:
    Create materials, update their cost, deactivate them, and turn ORM rows
    into immutable ``Material`` snapshots for the engines.

Architecture position:
    Services -- stateful, operates on the caller's Session.  Never commits.

Failure modes:
    - MaterialNotFoundError from ``get_material`` for unknown ids.
    - InvalidConversionFactorError for unusable purchase-unit factors.
    - InvalidCurrencyError / CurrencyMismatchError for costs not in the
      service currency.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from garment_kernel.domain.clock import Clock, SystemClock
from garment_kernel.domain.values import Money, to_decimal
from garment_kernel.exceptions import CurrencyMismatchError, MaterialNotFoundError
from garment_kernel.logging_config import get_logger
from garment_kernel.models.material import MaterialModel
from garment_engines.bom.types import Material
from garment_engines.units import validate_conversion_factor

logger = get_logger("services.materials")


def to_material(row: MaterialModel) -> Material:
    """Immutable snapshot of a material row."""
    cost = Money.of(row.cost_per_unit, row.currency) if row.cost_per_unit is not None else None
    return Material(
        material_id=row.id,
        name=row.name,
        base_unit=row.base_unit,
        cost_per_unit=cost,
        purchase_unit=row.purchase_unit,
        conversion_factor=row.conversion_factor,
        code=row.code,
    )


class MaterialService:
    """Material master repository."""

    def __init__(self, session: Session, clock: Clock | None = None, currency: str = "USD"):
        self._session = session
        self._clock = clock or SystemClock()
        self._currency = currency

    def _cost_amount(self, cost_per_unit: Money | Decimal | int | str | None) -> Decimal | None:
        if cost_per_unit is None:
            return None
        if isinstance(cost_per_unit, Money):
            if cost_per_unit.currency.code != self._currency:
                raise CurrencyMismatchError(self._currency, cost_per_unit.currency.code)
            amount = cost_per_unit.amount
        else:
            amount = to_decimal(cost_per_unit, "cost per unit")
        if amount < 0:
            raise ValueError(f"cost per unit cannot be negative, got {amount}")
        return amount

    def create_material(
        self,
        name: str,
        base_unit: str,
        cost_per_unit: Money | Decimal | int | str | None = None,
        purchase_unit: str | None = None,
        conversion_factor: Decimal | int | str = Decimal("1"),
        code: str | None = None,
    ) -> Material:
        if not name or not name.strip():
            raise ValueError("material name is required")
        check = validate_conversion_factor(purchase_unit, base_unit, conversion_factor)

        row = MaterialModel(
            code=code,
            name=name.strip(),
            base_unit=base_unit,
            purchase_unit=purchase_unit,
            conversion_factor=check.factor,
            cost_per_unit=self._cost_amount(cost_per_unit),
            currency=self._currency,
            is_active=True,
            created_at=self._clock.now(),
        )
        self._session.add(row)
        self._session.flush()

        if check.warnings:
            logger.warning(
                "conversion_factor_suspicious",
                extra={"material_id": str(row.id), "warnings": list(check.warnings)},
            )
        logger.info(
            "material_created",
            extra={
                "material_id": str(row.id),
                "code": code,
                "base_unit": base_unit,
                "priced": row.cost_per_unit is not None,
            },
        )
        return to_material(row)

    def _row(self, material_id: UUID) -> MaterialModel:
        row = self._session.get(MaterialModel, material_id)
        if row is None:
            raise MaterialNotFoundError(material_id)
        return row

    def get_material(self, material_id: UUID) -> Material:
        return to_material(self._row(material_id))

    def find_material(self, material_id: UUID) -> Material | None:
        row = self._session.get(MaterialModel, material_id)
        return to_material(row) if row is not None else None

    def list_materials(self, include_inactive: bool = False) -> list[Material]:
        stmt = select(MaterialModel).order_by(MaterialModel.name, MaterialModel.id)
        if not include_inactive:
            stmt = stmt.where(MaterialModel.is_active.is_(True))
        return [to_material(row) for row in self._session.scalars(stmt)]

    def resolve_many(self, material_ids: Iterable[UUID]) -> dict[UUID, Material]:
        """Snapshots for the ids that exist; unknown ids are simply absent."""
        ids = set(material_ids)
        if not ids:
            return {}
        rows = self._session.scalars(select(MaterialModel).where(MaterialModel.id.in_(ids)))
        return {row.id: to_material(row) for row in rows}

    def update_cost(
        self,
        material_id: UUID,
        cost_per_unit: Money | Decimal | int | str | None,
    ) -> Material:
        row = self._row(material_id)
        previous = row.cost_per_unit
        row.cost_per_unit = self._cost_amount(cost_per_unit)
        self._session.flush()
        logger.info(
            "material_cost_updated",
            extra={
                "material_id": str(material_id),
                "previous_cost": str(previous) if previous is not None else None,
                "new_cost": str(row.cost_per_unit) if row.cost_per_unit is not None else None,
            },
        )
        return to_material(row)

    def deactivate(self, material_id: UUID) -> None:
        row = self._row(material_id)
        row.is_active = False
        self._session.flush()
        logger.info("material_deactivated", extra={"material_id": str(material_id)})
