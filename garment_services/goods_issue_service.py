"""
GoodsIssueService -- material withdrawals with FIFO costing.

Responsibility:
    Create goods issues, edit their lines while pending, and post them:
    consume every line from the inventory ledger, stamp each line with the
    FIFO average unit cost and record the layers it drew from.  Also builds
    issues from BOM requirements and previews whether stock covers a run.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  Inventory
    goes through the injected InventoryLedger, which must share this
    service's Session.

Invariants enforced:
    - State machine pending -> issued | cancelled (garment_engines.issue_workflow).
      The header is read FOR UPDATE before any transition, so an issue is
      posted at most once.
    - Availability is validated for every line, aggregated per material,
      before the first layer is consumed.
    - Per-issue atomicity: all lines are planned by ``consume_many`` before
      any layer is written.  A later database failure propagates and the
      caller's transaction rolls back.
    - Line quantities are stored in the material's base unit.

Failure modes:
    - EmptyIssueError for issues without lines.
    - InvalidQuantityError for non-positive line quantities.
    - MaterialNotFoundError for unknown materials.
    - InsufficientInventoryError naming the short material.
    - IssueStateError when posting, cancelling or editing a non-pending issue.
    - IssueNotFoundError / IssueLineNotFoundError for unknown ids.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from garment_config.schema import IssueSettings
from garment_kernel.db.base import as_utc
from garment_kernel.domain.clock import Clock, SystemClock
from garment_kernel.domain.values import Money, Quantity, to_decimal
from garment_kernel.exceptions import (
    EmptyIssueError,
    InvalidQuantityError,
    IssueLineNotFoundError,
    IssueNotFoundError,
)
from garment_kernel.logging_config import LogContext, get_logger
from garment_kernel.models.goods_issue import (
    GoodsIssueLayerTakeModel,
    GoodsIssueLineModel,
    GoodsIssueModel,
)
from garment_kernel.services.sequence_service import SequenceService
from garment_engines.bom.requirements import RequirementCalculation
from garment_engines.bom.types import Material, ProductVariant
from garment_engines.issue_workflow import (
    STOCK_AVAILABLE,
    IssueStatus,
    IssueType,
    Transition,
    require_editable,
    require_transition,
)
from garment_engines.valuation.fifo import FifoConsumption, LayerTake
from garment_services.bom_service import BOMService
from garment_services.inventory_ledger import InventoryLedger
from garment_services.material_service import MaterialService

logger = get_logger("services.goods_issue")

# Numeric(38, 9) storage precision for line quantities
QUANTITY_QUANTUM = Decimal("0.000000001")


@dataclass(frozen=True)
class IssueLineRequest:
    """
    One material to withdraw.

    ``unit`` defaults to the material's base unit; a purchase unit is
    converted on the way in.
    """

    material_id: UUID
    quantity: Decimal | int | str
    unit: str | None = None
    notes: str | None = None
    batch_number: str | None = None


@dataclass(frozen=True, slots=True)
class RecordedTake:
    """Layer draw stored against a posted issue line."""

    layer_id: UUID
    quantity_taken: Decimal
    unit_cost: Money

    @property
    def cost(self) -> Money:
        return self.unit_cost * self.quantity_taken


@dataclass(frozen=True, slots=True)
class GoodsIssueLine:
    line_id: UUID
    material_id: UUID
    quantity: Quantity
    unit_cost: Money | None
    layers_consumed: tuple[RecordedTake, ...]
    notes: str | None = None
    batch_number: str | None = None

    @property
    def line_cost(self) -> Money | None:
        if self.unit_cost is None:
            return None
        return self.unit_cost * self.quantity.value


@dataclass(frozen=True, slots=True)
class GoodsIssue:
    """Snapshot of a goods issue and its lines."""

    issue_id: UUID
    issue_number: str
    issue_date: date
    issue_type: IssueType
    status: IssueStatus
    lines: tuple[GoodsIssueLine, ...]
    reference_number: str | None = None
    notes: str | None = None
    bom_id: UUID | None = None
    created_at: datetime | None = None
    posted_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def total_cost(self) -> Money | None:
        """Sum of line costs; None until the issue is posted."""
        costs = [line.line_cost for line in self.lines]
        if not costs or any(cost is None for cost in costs):
            return None
        total = Money.zero(costs[0].currency)
        for cost in costs:
            total = total + cost
        return total


@dataclass(frozen=True, slots=True)
class PostedIssueLine:
    """Cost outcome of one posted line."""

    line_id: UUID
    material_id: UUID
    quantity: Quantity
    unit_cost: Money
    line_cost: Money
    layers_consumed: tuple[LayerTake, ...]


@dataclass(frozen=True, slots=True)
class PostedIssue:
    issue_id: UUID
    issue_number: str
    status: IssueStatus
    posted_at: datetime
    lines: tuple[PostedIssueLine, ...]
    total_cost: Money

    def line_for(self, material_id: UUID) -> PostedIssueLine | None:
        for line in self.lines:
            if line.material_id == material_id:
                return line
        return None


@dataclass(frozen=True, slots=True)
class MaterialAvailability:
    """Required versus available stock of one material."""

    material_id: UUID
    material_name: str
    required: Quantity
    available: Decimal

    @property
    def is_sufficient(self) -> bool:
        return self.available >= self.required.value

    @property
    def shortfall(self) -> Decimal:
        return max(self.required.value - self.available, Decimal("0"))


def _aggregate(pairs: Iterable[tuple[UUID, Decimal]]) -> dict[UUID, Decimal]:
    """Quantity per material in first-seen order."""
    totals: dict[UUID, Decimal] = {}
    for material_id, quantity in pairs:
        totals[material_id] = totals.get(material_id, Decimal("0")) + quantity
    return totals


class GoodsIssueService:
    """
    Goods issue lifecycle.

    Contract:
        Receives Session, InventoryLedger, MaterialService, BOMService,
        SequenceService, Clock and IssueSettings through the constructor.
        Flushes but never commits.
    Guarantees:
        - ``post_issue`` either consumes every line or none.
        - A posted issue records, per line, the FIFO average unit cost and
          the layer takes that produced it.
    """

    def __init__(
        self,
        session: Session,
        ledger: InventoryLedger,
        materials: MaterialService,
        boms: BOMService,
        sequences: SequenceService,
        clock: Clock | None = None,
        settings: IssueSettings | None = None,
    ):
        self._session = session
        self._ledger = ledger
        self._materials = materials
        self._boms = boms
        self._sequences = sequences
        self._clock = clock or SystemClock()
        self._settings = settings or IssueSettings()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _header_row(self, issue_id: UUID, for_update: bool = False) -> GoodsIssueModel:
        stmt = select(GoodsIssueModel).where(GoodsIssueModel.id == issue_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        row = self._session.scalars(stmt).first()
        if row is None:
            raise IssueNotFoundError(issue_id)
        return row

    def _line_quantity(self, request: IssueLineRequest, material: Material) -> Decimal:
        value = to_decimal(request.quantity, "issue quantity")
        if value <= 0:
            raise InvalidQuantityError("issue quantity", value, "must be positive")
        base = material.to_base_quantity(value, request.unit or material.base_unit)
        return base.quantize(QUANTITY_QUANTUM, rounding=ROUND_HALF_UP)

    def _validate_availability(
        self,
        required: Mapping[UUID, Decimal],
        materials: Mapping[UUID, Material],
    ) -> None:
        for material_id, quantity in required.items():
            material = materials[material_id]
            self._ledger.check_availability(
                material_id,
                Quantity(quantity, material.base_unit),
                material_name=material.name,
            )

    def _check_guard(self, transition: Transition, lines: Sequence[GoodsIssueLineModel]) -> None:
        if transition.guard is None:
            return
        if transition.guard == STOCK_AVAILABLE:
            materials = self._resolve(line.material_id for line in lines)
            self._validate_availability(
                _aggregate((line.material_id, line.quantity) for line in lines), materials
            )
            return
        raise ValueError(f"No check registered for guard {transition.guard.name!r}")

    def _resolve(self, material_ids: Iterable[UUID]) -> dict[UUID, Material]:
        return {
            material_id: self._materials.get_material(material_id)
            for material_id in dict.fromkeys(material_ids)
        }

    def _snapshot(self, row: GoodsIssueModel) -> GoodsIssue:
        lines = []
        for line in row.lines:
            unit_cost = (
                Money.of(line.unit_cost, line.currency) if line.unit_cost is not None else None
            )
            lines.append(
                GoodsIssueLine(
                    line_id=line.id,
                    material_id=line.material_id,
                    quantity=Quantity(line.quantity, line.unit),
                    unit_cost=unit_cost,
                    layers_consumed=tuple(
                        RecordedTake(
                            layer_id=take.layer_id,
                            quantity_taken=take.quantity_taken,
                            unit_cost=Money.of(take.unit_cost, line.currency),
                        )
                        for take in line.layer_takes
                    ),
                    notes=line.notes,
                    batch_number=line.batch_number,
                )
            )
        return GoodsIssue(
            issue_id=row.id,
            issue_number=row.issue_number,
            issue_date=row.issue_date,
            issue_type=IssueType(row.issue_type),
            status=IssueStatus(row.status),
            lines=tuple(lines),
            reference_number=row.reference_number,
            notes=row.notes,
            bom_id=row.bom_id,
            created_at=as_utc(row.created_at) if row.created_at else None,
            posted_at=as_utc(row.posted_at) if row.posted_at else None,
            cancelled_at=as_utc(row.cancelled_at) if row.cancelled_at else None,
        )

    # =========================================================================
    # Create and edit
    # =========================================================================

    def create_issue(
        self,
        lines: Sequence[IssueLineRequest],
        issue_date: date | None = None,
        issue_type: IssueType | str = IssueType.PRODUCTION,
        reference_number: str | None = None,
        notes: str | None = None,
        bom_id: UUID | None = None,
    ) -> GoodsIssue:
        """Create a pending issue; nothing is consumed until it is posted."""
        if not lines:
            raise EmptyIssueError()
        issue_type = IssueType(issue_type)
        materials = self._resolve(request.material_id for request in lines)
        quantities = [
            self._line_quantity(request, materials[request.material_id]) for request in lines
        ]
        if self._settings.validate_on_create:
            self._validate_availability(
                _aggregate(
                    (request.material_id, quantity)
                    for request, quantity in zip(lines, quantities)
                ),
                materials,
            )

        issue_number = self._sequences.next_document_number(
            SequenceService.GOODS_ISSUE,
            self._settings.number_prefix,
            self._settings.number_width,
        )
        header = GoodsIssueModel(
            issue_number=issue_number,
            issue_date=issue_date or self._clock.today(),
            issue_type=issue_type.value,
            status=IssueStatus.PENDING.value,
            reference_number=reference_number,
            notes=notes,
            bom_id=bom_id,
            created_at=self._clock.now(),
        )
        header.lines = [
            GoodsIssueLineModel(
                material_id=request.material_id,
                quantity=quantity,
                unit=materials[request.material_id].base_unit,
                notes=request.notes,
                batch_number=request.batch_number,
                line_seq=seq,
            )
            for seq, (request, quantity) in enumerate(zip(lines, quantities))
        ]
        self._session.add(header)
        self._session.flush()

        logger.info(
            "goods_issue_created",
            extra={
                "issue_id": str(header.id),
                "issue_number": issue_number,
                "issue_type": issue_type.value,
                "line_count": len(lines),
                "bom_id": str(bom_id) if bom_id else None,
            },
        )
        return self._snapshot(header)

    def get_issue(self, issue_id: UUID) -> GoodsIssue:
        return self._snapshot(self._header_row(issue_id))

    def list_issues(
        self,
        status: IssueStatus | str | None = None,
        issue_type: IssueType | str | None = None,
    ) -> list[GoodsIssue]:
        stmt = select(GoodsIssueModel).order_by(GoodsIssueModel.issue_number)
        if status is not None:
            stmt = stmt.where(GoodsIssueModel.status == IssueStatus(status).value)
        if issue_type is not None:
            stmt = stmt.where(GoodsIssueModel.issue_type == IssueType(issue_type).value)
        return [self._snapshot(row) for row in self._session.scalars(stmt)]

    def add_line(self, issue_id: UUID, request: IssueLineRequest) -> GoodsIssue:
        header = self._header_row(issue_id, for_update=True)
        require_editable(header.status, "add_line", issue_id)
        material = self._materials.get_material(request.material_id)
        quantity = self._line_quantity(request, material)
        if self._settings.validate_on_create:
            existing = sum(
                (line.quantity for line in header.lines if line.material_id == material.material_id),
                Decimal("0"),
            )
            self._validate_availability(
                {material.material_id: existing + quantity},
                {material.material_id: material},
            )

        next_seq = max((line.line_seq for line in header.lines), default=-1) + 1
        header.lines.append(
            GoodsIssueLineModel(
                material_id=material.material_id,
                quantity=quantity,
                unit=material.base_unit,
                notes=request.notes,
                batch_number=request.batch_number,
                line_seq=next_seq,
            )
        )
        self._session.flush()
        logger.info(
            "goods_issue_line_added",
            extra={"issue_id": str(issue_id), "material_id": str(material.material_id)},
        )
        return self._snapshot(header)

    def update_line(
        self,
        issue_id: UUID,
        line_id: UUID,
        quantity: Decimal | int | str | None = None,
        unit: str | None = None,
        notes: str | None = None,
        batch_number: str | None = None,
    ) -> GoodsIssue:
        """
        Edit a line of a pending issue.

        Arguments left as None keep their stored value.  A new quantity is
        converted to the base unit like a new line, and the material's
        availability is checked again for the issue's total after the edit.
        """
        header = self._header_row(issue_id, for_update=True)
        require_editable(header.status, "update_line", issue_id)
        line = next((line for line in header.lines if line.id == line_id), None)
        if line is None:
            raise IssueLineNotFoundError(issue_id, line_id)

        if quantity is not None:
            material = self._materials.get_material(line.material_id)
            new_quantity = self._line_quantity(
                IssueLineRequest(line.material_id, quantity, unit=unit), material
            )
            if self._settings.validate_on_create:
                others = sum(
                    (
                        other.quantity
                        for other in header.lines
                        if other.material_id == line.material_id and other.id != line_id
                    ),
                    Decimal("0"),
                )
                self._validate_availability(
                    {material.material_id: others + new_quantity},
                    {material.material_id: material},
                )
            line.quantity = new_quantity
        elif unit is not None:
            raise InvalidQuantityError(
                "issue quantity", line.quantity, f"unit {unit!r} given without a new quantity"
            )
        if notes is not None:
            line.notes = notes
        if batch_number is not None:
            line.batch_number = batch_number
        self._session.flush()

        logger.info(
            "goods_issue_line_updated",
            extra={
                "issue_id": str(issue_id),
                "line_id": str(line_id),
                "quantity": str(line.quantity),
            },
        )
        return self._snapshot(header)

    def remove_line(self, issue_id: UUID, line_id: UUID) -> GoodsIssue:
        header = self._header_row(issue_id, for_update=True)
        require_editable(header.status, "remove_line", issue_id)
        line = next((line for line in header.lines if line.id == line_id), None)
        if line is None:
            raise IssueLineNotFoundError(issue_id, line_id)
        header.lines.remove(line)
        self._session.flush()
        logger.info(
            "goods_issue_line_removed",
            extra={"issue_id": str(issue_id), "line_id": str(line_id)},
        )
        return self._snapshot(header)

    # =========================================================================
    # Transitions
    # =========================================================================

    def post_issue(self, issue_id: UUID) -> PostedIssue:
        """
        Consume every line FIFO and move the issue to ``issued``.

        Nothing is consumed unless every line is covered.
        """
        with LogContext.bind(issue_id=issue_id):
            header = self._header_row(issue_id, for_update=True)
            transition = require_transition(header.status, "post", issue_id)
            new_status = transition.to_state
            lines = list(header.lines)
            if not lines:
                raise EmptyIssueError(issue_id)

            self._check_guard(transition, lines)

            consumptions: list[FifoConsumption] = self._ledger.consume_many(
                [(line.material_id, Quantity(line.quantity, line.unit)) for line in lines]
            )

            posted_lines = []
            total = None
            for line, consumption in zip(lines, consumptions):
                average = consumption.average_unit_cost
                line.unit_cost = average.amount
                line.currency = average.currency.code
                line.layer_takes = [
                    GoodsIssueLayerTakeModel(
                        layer_id=take.layer_id,
                        quantity_taken=take.quantity_taken,
                        unit_cost=take.unit_cost.amount,
                        take_seq=seq,
                    )
                    for seq, take in enumerate(consumption.layers_consumed)
                ]
                posted_lines.append(
                    PostedIssueLine(
                        line_id=line.id,
                        material_id=line.material_id,
                        quantity=consumption.required,
                        unit_cost=average,
                        line_cost=consumption.total_cost,
                        layers_consumed=consumption.layers_consumed,
                    )
                )
                total = consumption.total_cost if total is None else total + consumption.total_cost

            posted_at = self._clock.now()
            header.status = new_status.value
            header.posted_at = posted_at
            self._session.flush()

            logger.info(
                "goods_issue_posted",
                extra={
                    "issue_number": header.issue_number,
                    "line_count": len(posted_lines),
                    "total_cost": str(total.amount),
                    "currency": total.currency.code,
                },
            )
            return PostedIssue(
                issue_id=header.id,
                issue_number=header.issue_number,
                status=new_status,
                posted_at=posted_at,
                lines=tuple(posted_lines),
                total_cost=total,
            )

    def cancel_issue(self, issue_id: UUID) -> GoodsIssue:
        with LogContext.bind(issue_id=issue_id):
            header = self._header_row(issue_id, for_update=True)
            transition = require_transition(header.status, "cancel", issue_id)
            self._check_guard(transition, list(header.lines))
            header.status = transition.to_state.value
            header.cancelled_at = self._clock.now()
            self._session.flush()
            logger.info("goods_issue_cancelled", extra={"issue_number": header.issue_number})
            return self._snapshot(header)

    def issue_goods(
        self,
        lines: Sequence[IssueLineRequest],
        issue_date: date | None = None,
        issue_type: IssueType | str = IssueType.PRODUCTION,
        reference_number: str | None = None,
        notes: str | None = None,
    ) -> PostedIssue:
        """Create and immediately post an issue."""
        issue = self.create_issue(
            lines,
            issue_date=issue_date,
            issue_type=issue_type,
            reference_number=reference_number,
            notes=notes,
        )
        return self.post_issue(issue.issue_id)

    # =========================================================================
    # BOM-driven issues
    # =========================================================================

    def _requirements(
        self,
        bom_id: UUID,
        quantity_to_produce: Decimal | int | str,
        production: Mapping[ProductVariant, Decimal | int | str] | None,
    ) -> RequirementCalculation:
        if production:
            return self._boms.calculate_variant_requirements(bom_id, production)
        return self._boms.calculate_requirements(bom_id, quantity_to_produce)

    def create_bom_issue(
        self,
        bom_id: UUID,
        quantity_to_produce: Decimal | int | str,
        issue_date: date | None = None,
        issue_type: IssueType | str = IssueType.PRODUCTION,
        production: Mapping[ProductVariant, Decimal | int | str] | None = None,
        reference_number: str | None = None,
        notes: str | None = None,
    ) -> GoodsIssue:
        """
        Pending issue with one line per material required by the BOM.

        With ``production`` the per-variant consumptions are used and
        ``quantity_to_produce`` is only used in the default note.
        """
        calculation = self._requirements(bom_id, quantity_to_produce, production)
        calculation.raise_for_unresolved()
        lines = [
            IssueLineRequest(
                material_id=requirement.material_id,
                quantity=requirement.required_quantity.value,
            )
            for requirement in calculation.requirements
            if requirement.required_quantity.is_positive
        ]
        if not lines:
            raise EmptyIssueError()
        if notes is None:
            bom = self._boms.get_bom(bom_id)
            notes = f"BOM-based issue for {bom.name} x {quantity_to_produce}"
        return self.create_issue(
            lines,
            issue_date=issue_date,
            issue_type=issue_type,
            reference_number=reference_number,
            notes=notes,
            bom_id=bom_id,
        )

    def preview_bom_consumption(
        self,
        bom_id: UUID,
        quantity_to_produce: Decimal | int | str,
        production: Mapping[ProductVariant, Decimal | int | str] | None = None,
    ) -> list[MaterialAvailability]:
        """Required vs available stock per material; nothing is written."""
        calculation = self._requirements(bom_id, quantity_to_produce, production)
        return [
            MaterialAvailability(
                material_id=requirement.material_id,
                material_name=requirement.material.name,
                required=requirement.required_quantity,
                available=self._ledger.available_quantity(requirement.material_id),
            )
            for requirement in calculation.requirements
        ]
