"""FIFO inventory layer consumption."""

from garment_engines.valuation.fifo import (
    FifoConsumption,
    InventoryLayer,
    LayerTake,
    apply_consumption,
    fifo_order,
    plan_fifo_consumption,
    total_available,
)

__all__ = [
    "FifoConsumption",
    "InventoryLayer",
    "LayerTake",
    "apply_consumption",
    "fifo_order",
    "plan_fifo_consumption",
    "total_available",
]
