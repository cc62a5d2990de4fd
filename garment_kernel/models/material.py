"""
Module: garment_kernel.models.material
Responsibility: ORM persistence for the material master (fabrics, trims,
    threads, packaging).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Identity is immutable; ``cost_per_unit`` may change over time.
    - ``cost_per_unit`` is per *base* unit and may be NULL (unpriced material).
    - ``conversion_factor`` converts one purchase unit into base units
      (e.g. 1 roll = 50 m).
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from garment_kernel.db.base import Base


class MaterialModel(Base):
    """Raw material master record."""

    __tablename__ = "materials"

    code: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        unique=True,
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    base_unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    purchase_unit: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    conversion_factor: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("1"),
    )

    cost_per_unit: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Material {self.code or self.id}: {self.name}>"
