"""
Module: garment_kernel.models.inventory
Responsibility: ORM persistence for FIFO inventory layers.  One row per
    receipt (or positive adjustment) of a material at a unit cost.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - quantity_available and quantity_on_hand never go below zero; the ledger
      checks availability before decrementing.
    - Layers are never re-filled.  New stock always arrives as a new row.
    - (material_id, created_at, id) is the FIFO consumption order; the
      composite index serves the ordered, locked layer scan.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from garment_kernel.db.base import Base, UUIDString


class InventoryLayerModel(Base):
    """Quantity of one material received at one unit cost."""

    __tablename__ = "inventory_layers"

    __table_args__ = (
        Index("idx_inventory_layer_fifo", "material_id", "created_at", "id"),
    )

    material_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("materials.id"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    quantity_on_hand: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    quantity_available: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    unit_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    # receipt | adjustment
    transaction_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="receipt",
    )

    transaction_ref: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryLayer {self.id} material={self.material_id} "
            f"available={self.quantity_available}>"
        )
