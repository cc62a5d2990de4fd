"""
garment_engines.valuation.fifo -- FIFO consumption planning over cost layers.

Responsibility:
    Given a snapshot of a material's inventory layers and a required
    quantity, decide which layers are drawn and by how much, and compute the
    quantity-weighted average unit cost of the draw.  Applying a plan to the
    snapshot yields the post-consumption layer states.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The InventoryLedger service
    takes locks, loads the snapshot, calls ``plan_fifo_consumption`` and
    writes the result back.

Invariants enforced:
    - Deterministic total order: layers are drawn in ascending
      (created_at, layer_id).
    - All-or-nothing: availability is checked before a plan is produced, so
      a shortfall never leaves a partially applied plan behind.
    - Earlier layers are fully exhausted before a later layer is touched.
    - average_unit_cost = sum(taken_i * unit_cost_i) / required.
    - Layer quantities never become negative.

Failure modes:
    - InsufficientInventoryError if sum(available) < required.
    - InvalidQuantityError if required is negative.
    - UnitMismatchError if the required unit differs from the layers' unit.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from garment_kernel.domain.values import Money, Quantity
from garment_kernel.exceptions import (
    InsufficientInventoryError,
    InvalidQuantityError,
    UnitMismatchError,
)
from garment_kernel.logging_config import get_logger
from garment_engines.tracer import traced_engine

logger = get_logger("engines.valuation.fifo")


@dataclass(frozen=True, slots=True)
class InventoryLayer:
    """Point-in-time state of one inventory layer."""

    layer_id: UUID
    material_id: UUID
    created_at: datetime
    quantity_on_hand: Decimal
    quantity_available: Decimal
    unit_cost: Money
    unit: str
    transaction_ref: str | None = None

    def __post_init__(self) -> None:
        if self.quantity_available < 0 or self.quantity_on_hand < 0:
            raise ValueError(
                f"Layer {self.layer_id} has negative quantity "
                f"(on hand {self.quantity_on_hand}, available {self.quantity_available})"
            )

    @property
    def fifo_key(self) -> tuple[datetime, UUID]:
        return (self.created_at, self.layer_id)

    @property
    def is_depleted(self) -> bool:
        return self.quantity_available == 0

    @property
    def value(self) -> Money:
        return self.unit_cost * self.quantity_available

    def draw(self, quantity: Decimal) -> InventoryLayer:
        """Layer state after ``quantity`` has been taken from it."""
        if quantity > self.quantity_available:
            raise ValueError(
                f"Cannot draw {quantity} from layer {self.layer_id} "
                f"with {self.quantity_available} available"
            )
        return replace(
            self,
            quantity_available=self.quantity_available - quantity,
            quantity_on_hand=max(self.quantity_on_hand - quantity, Decimal("0")),
        )


@dataclass(frozen=True, slots=True)
class LayerTake:
    """Quantity drawn from a single layer by one consumption."""

    layer_id: UUID
    quantity_taken: Decimal
    unit_cost: Money
    remaining_available: Decimal

    @property
    def cost(self) -> Money:
        return self.unit_cost * self.quantity_taken


@dataclass(frozen=True, slots=True)
class FifoConsumption:
    """Planned (or applied) FIFO draw for one material."""

    material_id: UUID
    required: Quantity
    layers_consumed: tuple[LayerTake, ...]
    total_cost: Money

    @property
    def average_unit_cost(self) -> Money:
        """Quantity-weighted average over every layer drawn."""
        if self.required.is_zero:
            return Money.zero(self.total_cost.currency)
        return self.total_cost / self.required.value

    @property
    def quantity_taken(self) -> Decimal:
        return sum((t.quantity_taken for t in self.layers_consumed), Decimal("0"))


def fifo_order(layers: Iterable[InventoryLayer]) -> list[InventoryLayer]:
    """Layers sorted by (created_at, layer_id)."""
    return sorted(layers, key=lambda layer: layer.fifo_key)


def total_available(layers: Iterable[InventoryLayer]) -> Decimal:
    return sum((layer.quantity_available for layer in layers), Decimal("0"))


@traced_engine(
    "fifo_consumption", "1.0", fingerprint_fields=("material_id", "layers", "required")
)
def plan_fifo_consumption(
    material_id: UUID,
    layers: Sequence[InventoryLayer],
    required: Quantity,
    currency: str = "USD",
) -> FifoConsumption:
    """
    Plan drawing ``required`` from ``layers`` oldest first.

    ``layers`` is the snapshot taken at the start of the consumption pass;
    it is sorted here and not re-read.
    """
    if required.is_negative:
        raise InvalidQuantityError("required quantity", required.value, "must not be negative")

    candidates = [
        layer
        for layer in fifo_order(layers)
        if layer.material_id == material_id and not layer.is_depleted
    ]
    for layer in candidates:
        if layer.unit != required.unit:
            raise UnitMismatchError(
                expected=layer.unit, actual=required.unit, material_id=material_id
            )

    available = total_available(candidates)
    if available < required.value:
        raise InsufficientInventoryError(
            material_id=material_id,
            available=available,
            required=required.value,
            unit=required.unit,
        )

    takes: list[LayerTake] = []
    total_cost = (
        Money.zero(candidates[0].unit_cost.currency) if candidates else Money.zero(currency)
    )
    remaining = required.value
    for layer in candidates:
        if remaining <= 0:
            break
        taken = min(layer.quantity_available, remaining)
        take = LayerTake(
            layer_id=layer.layer_id,
            quantity_taken=taken,
            unit_cost=layer.unit_cost,
            remaining_available=layer.quantity_available - taken,
        )
        takes.append(take)
        total_cost = total_cost + take.cost
        remaining -= taken

    consumption = FifoConsumption(
        material_id=material_id,
        required=required,
        layers_consumed=tuple(takes),
        total_cost=total_cost,
    )
    logger.debug(
        "fifo_consumption_planned",
        extra={
            "material_id": str(material_id),
            "required": str(required.value),
            "layers_touched": len(takes),
            "total_cost": str(total_cost.amount),
        },
    )
    return consumption


def apply_consumption(
    layers: Sequence[InventoryLayer],
    consumption: FifoConsumption,
) -> list[InventoryLayer]:
    """Layer states after ``consumption``, in FIFO order."""
    taken = {take.layer_id: take.quantity_taken for take in consumption.layers_consumed}
    return [
        layer.draw(taken[layer.layer_id]) if layer.layer_id in taken else layer
        for layer in fifo_order(layers)
    ]
