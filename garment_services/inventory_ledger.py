"""
garment_services.inventory_ledger -- FIFO inventory layers per material.

Responsibility:
    Record receipts as inventory layers, answer availability and valuation
    queries, and consume layers first-in first-out, returning the layer takes
    and the weighted average unit cost of every consumption.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    The FIFO arithmetic lives in ``garment_engines.valuation.fifo``; this
    module owns locking, snapshots and persistence.  Runs against a
    SQLAlchemy Session, or against an in-memory ``layers_by_material``
    mapping when constructed without one.

Invariants enforced:
    - Single writer per material: consumption holds the material's lock from
      the ``MaterialLockRegistry`` for the whole read-plan-write pass, and in
      database mode reads the layer rows ``SELECT ... FOR UPDATE``.
    - Snapshot ordering: layers are read once at the start of a pass, sorted
      by (created_at, layer_id) and never re-read mid-pass.
    - No partial mutation: every consumption in a ``consume_many`` call is
      planned before any layer is written; a shortfall on any material leaves
      all layers untouched.
    - Not idempotent: calling ``consume`` twice consumes twice.  Goods issues
      guarantee at-most-once per issue through their state machine.

Failure modes:
    - InsufficientInventoryError when available < required.
    - MaterialLockTimeoutError when a lock is not acquired within the timeout.
    - MaterialNotFoundError when receiving into an unknown material.
    - UnitMismatchError when quantities are not in the layers' unit.

Usage:
    ledger = InventoryLedger(session, clock=clock, locks=locks)
    ledger.receive(fabric_id, Quantity.of(500, "m"), Money.of("2.00", "USD"))
    consumption = ledger.consume(fabric_id, Quantity.of(120, "m"))
    consumption.average_unit_cost
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from garment_kernel.db.base import as_utc
from garment_kernel.domain.clock import Clock, SystemClock
from garment_kernel.domain.values import Money, Quantity
from garment_kernel.exceptions import (
    CurrencyMismatchError,
    InsufficientInventoryError,
    InsufficientStockAtCostError,
    InvalidQuantityError,
    MaterialLockTimeoutError,
    MaterialNotFoundError,
    UnitMismatchError,
)
from garment_kernel.logging_config import get_logger
from garment_kernel.models.inventory import InventoryLayerModel
from garment_kernel.models.material import MaterialModel
from garment_engines.units import cost_per_base_unit
from garment_engines.valuation.fifo import (
    FifoConsumption,
    InventoryLayer,
    apply_consumption,
    fifo_order,
    plan_fifo_consumption,
    total_available,
)

logger = get_logger("services.inventory_ledger")


class MaterialLockRegistry:
    """
    One mutex per material, shared by every ledger in the process.

    Multi-material acquisitions take locks in sorted id order, so two
    issues touching overlapping materials cannot deadlock each other.
    """

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[UUID, threading.Lock] = {}

    def _lock_for(self, material_id: UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(material_id)
            if lock is None:
                lock = self._locks[material_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, material_ids: Iterable[UUID]) -> Iterator[None]:
        acquired: list[threading.Lock] = []
        try:
            for material_id in sorted(set(material_ids), key=str):
                lock = self._lock_for(material_id)
                ok = lock.acquire() if self._timeout is None else lock.acquire(timeout=self._timeout)
                if not ok:
                    raise MaterialLockTimeoutError(material_id, self._timeout)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


@dataclass(frozen=True, slots=True)
class InventoryValuation:
    """On-hand value of one material at layer cost."""

    material_id: UUID
    quantity: Decimal
    value: Money
    layer_count: int

    @property
    def average_unit_cost(self) -> Money:
        if self.quantity == 0:
            return Money.zero(self.value.currency)
        return self.value / self.quantity


@dataclass(frozen=True, slots=True)
class StockAdjustment:
    """
    Signed change to the stock held at one unit cost.

    A positive ``delta`` adds a new layer at ``unit_cost``; a negative one
    reduces existing layers carrying exactly that cost, oldest first.
    """

    unit_cost: Money
    delta: Quantity


@dataclass(frozen=True, slots=True)
class StockAdjustmentResult:
    material_id: UUID
    layers_created: tuple[InventoryLayer, ...]
    reductions: tuple[FifoConsumption, ...]

    @property
    def net_change(self) -> Decimal:
        added = sum((layer.quantity_available for layer in self.layers_created), Decimal("0"))
        removed = sum((r.quantity_taken for r in self.reductions), Decimal("0"))
        return added - removed


def _to_layer(row: InventoryLayerModel) -> InventoryLayer:
    return InventoryLayer(
        layer_id=row.id,
        material_id=row.material_id,
        created_at=as_utc(row.created_at),
        quantity_on_hand=row.quantity_on_hand,
        quantity_available=row.quantity_available,
        unit_cost=Money.of(row.unit_cost, row.currency),
        unit=row.unit,
        transaction_ref=row.transaction_ref,
    )


class InventoryLedger:
    """
    FIFO inventory layers per material.

    Contract:
        Receives its Session, Clock and MaterialLockRegistry through the
        constructor.  Flushes but never commits.
    Guarantees:
        - ``receive`` appends a new layer; existing layers never grow.
        - ``consume`` / ``consume_many`` draw oldest layers first and
          return one ``FifoConsumption`` per request.
        - Layer quantities never go negative.
    """

    def __init__(
        self,
        session: Session | None = None,
        clock: Clock | None = None,
        locks: MaterialLockRegistry | None = None,
        currency: str = "USD",
        layers_by_material: dict[UUID, list[InventoryLayer]] | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._locks = locks or MaterialLockRegistry()
        self._currency = currency
        # In-memory mode when there is no session
        self._memory: dict[UUID, list[InventoryLayer]] | None = None
        if session is None:
            self._memory = layers_by_material if layers_by_material is not None else {}

    @property
    def locks(self) -> MaterialLockRegistry:
        return self._locks

    # =========================================================================
    # Receipts
    # =========================================================================

    def receive(
        self,
        material_id: UUID,
        quantity: Quantity,
        unit_cost: Money,
        transaction_ref: str | None = None,
        transaction_type: str = "receipt",
        received_at: datetime | None = None,
    ) -> InventoryLayer:
        """
        Add a layer of ``quantity`` at ``unit_cost``.

        In database mode a quantity stated in the material's purchase unit is
        converted to the base unit, and the unit cost with it.
        """
        if not quantity.is_positive:
            raise InvalidQuantityError("receipt quantity", quantity.value, "must be positive")
        self._check_cost(unit_cost)

        created_at = as_utc(received_at) if received_at is not None else self._clock.now()
        quantity, unit_cost = self._in_base_unit(material_id, quantity, unit_cost)
        with self._locks.hold([material_id]):
            layer = self._insert_layer(
                material_id, quantity, unit_cost, created_at, transaction_ref, transaction_type
            )

        logger.info(
            "inventory_layer_received",
            extra={
                "material_id": str(material_id),
                "layer_id": str(layer.layer_id),
                "quantity": str(layer.quantity_available),
                "unit": layer.unit,
                "unit_cost": str(layer.unit_cost.amount),
                "transaction_ref": transaction_ref,
            },
        )
        return layer

    def _check_cost(self, unit_cost: Money) -> None:
        if unit_cost.is_negative:
            raise InvalidQuantityError("unit cost", unit_cost.amount, "must not be negative")
        if unit_cost.currency.code != self._currency:
            raise CurrencyMismatchError(self._currency, unit_cost.currency.code)

    def _in_base_unit(
        self, material_id: UUID, quantity: Quantity, unit_cost: Money
    ) -> tuple[Quantity, Money]:
        """Restate a purchase-unit quantity and cost in the material's base unit."""
        if self._memory is not None:
            return quantity, unit_cost
        material = self._session.get(MaterialModel, material_id)
        if material is None:
            raise MaterialNotFoundError(material_id)
        if quantity.unit == material.base_unit:
            return quantity, unit_cost
        if quantity.unit != material.purchase_unit:
            raise UnitMismatchError(material.base_unit, quantity.unit, material_id)
        return (
            Quantity(quantity.value * material.conversion_factor, material.base_unit),
            cost_per_base_unit(unit_cost, material.conversion_factor),
        )

    def _insert_layer(
        self,
        material_id: UUID,
        quantity: Quantity,
        unit_cost: Money,
        created_at: datetime,
        transaction_ref: str | None,
        transaction_type: str,
    ) -> InventoryLayer:
        """Append one layer.  The caller holds the material's lock."""
        layer_id = uuid4()
        if self._session is not None:
            row = InventoryLayerModel(
                material_id=material_id,
                created_at=created_at,
                quantity_on_hand=quantity.value,
                quantity_available=quantity.value,
                unit=quantity.unit,
                unit_cost=unit_cost.amount,
                currency=unit_cost.currency.code,
                transaction_type=transaction_type,
                transaction_ref=transaction_ref,
            )
            self._session.add(row)
            self._session.flush()
            layer_id = row.id

        layer = InventoryLayer(
            layer_id=layer_id,
            material_id=material_id,
            created_at=created_at,
            quantity_on_hand=quantity.value,
            quantity_available=quantity.value,
            unit_cost=unit_cost,
            unit=quantity.unit,
            transaction_ref=transaction_ref,
        )
        if self._memory is not None:
            self._memory.setdefault(material_id, []).append(layer)
        return layer

    # =========================================================================
    # Queries
    # =========================================================================

    def _snapshot(
        self,
        material_ids: Iterable[UUID],
        for_update: bool = False,
        include_depleted: bool = False,
    ) -> tuple[dict[UUID, list[InventoryLayer]], dict[UUID, InventoryLayerModel]]:
        """Layers per material in FIFO order, plus the ORM rows by layer id."""
        ids = set(material_ids)
        if self._memory is not None:
            layers = {
                material_id: fifo_order(
                    layer
                    for layer in self._memory.get(material_id, [])
                    if include_depleted or not layer.is_depleted
                )
                for material_id in ids
            }
            return layers, {}

        stmt = (
            select(InventoryLayerModel)
            .where(InventoryLayerModel.material_id.in_(ids))
            .order_by(InventoryLayerModel.created_at, InventoryLayerModel.id)
        )
        if not include_depleted:
            stmt = stmt.where(InventoryLayerModel.quantity_available > 0)
        if for_update:
            stmt = stmt.with_for_update()
        rows = list(self._session.scalars(stmt))

        layers: dict[UUID, list[InventoryLayer]] = {material_id: [] for material_id in ids}
        for row in rows:
            layers[row.material_id].append(_to_layer(row))
        return (
            {material_id: fifo_order(items) for material_id, items in layers.items()},
            {row.id: row for row in rows},
        )

    def get_layers(self, material_id: UUID, include_depleted: bool = False) -> list[InventoryLayer]:
        """Layers of ``material_id`` in FIFO order."""
        layers, _ = self._snapshot([material_id], include_depleted=include_depleted)
        return layers[material_id]

    def available_quantity(self, material_id: UUID) -> Decimal:
        return total_available(self.get_layers(material_id))

    def check_availability(
        self,
        material_id: UUID,
        required: Quantity,
        material_name: str | None = None,
    ) -> None:
        """Raise InsufficientInventoryError if ``required`` is not covered."""
        available = self.available_quantity(material_id)
        if available < required.value:
            raise InsufficientInventoryError(
                material_id=material_id,
                available=available,
                required=required.value,
                unit=required.unit,
                material_name=material_name,
            )

    def inventory_valuation(self, material_id: UUID) -> InventoryValuation:
        layers = self.get_layers(material_id)
        value = Money.zero(self._currency)
        for layer in layers:
            value = value + layer.value
        return InventoryValuation(
            material_id=material_id,
            quantity=total_available(layers),
            value=value,
            layer_count=len(layers),
        )

    # =========================================================================
    # Consumption
    # =========================================================================

    def consume(self, material_id: UUID, required: Quantity) -> FifoConsumption:
        """Draw ``required`` from the oldest layers of ``material_id``."""
        return self.consume_many([(material_id, required)])[0]

    def consume_many(
        self,
        requests: Sequence[tuple[UUID, Quantity]],
    ) -> list[FifoConsumption]:
        """
        Consume several (material, quantity) requests as one unit.

        All affected materials are locked, snapshotted once and planned in
        request order (repeated materials draw from the already-planned
        state).  Layers are written only after every plan succeeded.
        """
        if not requests:
            return []

        material_ids = [material_id for material_id, _ in requests]
        with self._locks.hold(material_ids):
            working, rows = self._snapshot(material_ids, for_update=True)

            plans: list[FifoConsumption] = []
            for material_id, required in requests:
                plan = plan_fifo_consumption(
                    material_id, working[material_id], required, currency=self._currency
                )
                working[material_id] = apply_consumption(working[material_id], plan)
                plans.append(plan)

            self._write(working, rows)

        for plan in plans:
            logger.info(
                "inventory_consumed",
                extra={
                    "material_id": str(plan.material_id),
                    "quantity": str(plan.required.value),
                    "unit": plan.required.unit,
                    "layers_touched": len(plan.layers_consumed),
                    "total_cost": str(plan.total_cost.amount),
                    "average_unit_cost": str(plan.average_unit_cost.amount),
                },
            )
        return plans

    # =========================================================================
    # Adjustments
    # =========================================================================

    def adjust(
        self,
        material_id: UUID,
        adjustments: Sequence[StockAdjustment],
        new_layer: StockAdjustment | None = None,
        transaction_ref: str = "ADJ",
    ) -> StockAdjustmentResult:
        """
        Correct the stock of one material after a count.

        Positive deltas, and ``new_layer`` if given, become new layers of
        transaction type ``adjustment``.  Negative deltas reduce the layers
        held at their unit cost in FIFO order.  Every reduction is planned
        against one snapshot before anything is written, so a shortfall at
        any cost leaves the material untouched.

        Raises:
            InsufficientStockAtCostError: a reduction exceeds the stock held
                at its unit cost.
        """
        if new_layer is not None and not new_layer.delta.is_positive:
            raise InvalidQuantityError("new layer quantity", new_layer.delta.value, "must be positive")

        additions: list[tuple[Quantity, Money]] = []
        removals: list[tuple[Quantity, Money]] = []
        for adjustment in [*adjustments, *([new_layer] if new_layer is not None else [])]:
            self._check_cost(adjustment.unit_cost)
            if adjustment.delta.is_zero:
                continue
            target = additions if adjustment.delta.is_positive else removals
            magnitude = Quantity(abs(adjustment.delta.value), adjustment.delta.unit)
            target.append(self._in_base_unit(material_id, magnitude, adjustment.unit_cost))

        created_at = self._clock.now()
        with self._locks.hold([material_id]):
            working, rows = self._snapshot([material_id], for_update=True)
            layers = working[material_id]

            reductions: list[FifoConsumption] = []
            for quantity, unit_cost in removals:
                at_cost = [layer for layer in layers if layer.unit_cost == unit_cost]
                try:
                    plan = plan_fifo_consumption(
                        material_id, at_cost, quantity, currency=self._currency
                    )
                except InsufficientInventoryError as e:
                    raise InsufficientStockAtCostError(
                        material_id, unit_cost, e.available, e.required, unit=quantity.unit
                    ) from e
                layers = apply_consumption(layers, plan)
                reductions.append(plan)

            created = [
                self._insert_layer(
                    material_id, quantity, unit_cost, created_at, transaction_ref, "adjustment"
                )
                for quantity, unit_cost in additions
            ]
            self._write({material_id: layers}, rows)

        result = StockAdjustmentResult(
            material_id=material_id,
            layers_created=tuple(created),
            reductions=tuple(reductions),
        )
        logger.info(
            "inventory_adjusted",
            extra={
                "material_id": str(material_id),
                "layers_created": len(created),
                "layers_reduced": sum(len(r.layers_consumed) for r in reductions),
                "net_change": str(result.net_change),
                "transaction_ref": transaction_ref,
            },
        )
        return result

    def _write(
        self,
        working: dict[UUID, list[InventoryLayer]],
        rows: dict[UUID, InventoryLayerModel],
    ) -> None:
        if self._memory is not None:
            for material_id, planned in working.items():
                planned_by_id = {layer.layer_id: layer for layer in planned}
                self._memory[material_id] = [
                    planned_by_id.get(layer.layer_id, layer)
                    for layer in self._memory.get(material_id, [])
                ]
            return

        for planned in working.values():
            for layer in planned:
                row = rows[layer.layer_id]
                if row.quantity_available != layer.quantity_available:
                    row.quantity_available = layer.quantity_available
                    row.quantity_on_hand = layer.quantity_on_hand
        self._session.flush()
