"""
Module: garment_kernel.models.bom
Responsibility: ORM persistence for bills of materials: header, ordered
    lines and per-variant consumption overrides.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - BOM headers are soft-deleted (``is_active = False``), never removed,
      so issues that reference them keep their provenance.
    - ``bom_lines.material_id`` is deliberately not a foreign key: a line may
      point at a material that no longer resolves, which the expander
      reports as unresolved instead of the database rejecting the row.
    - Variant overrides are stored as (spec_type, spec_value) pairs:
      general / size / color / category.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from garment_kernel.db.base import Base, UUIDString


class BOMHeaderModel(Base):
    """Bill of materials for producing ``quantity`` ``unit`` of output."""

    __tablename__ = "bom_headers"

    __table_args__ = (
        Index("idx_bom_header_name_version", "name", "version"),
        Index("idx_bom_header_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    version: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="1.0",
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    # Set when a revision replaces this BOM
    superseded_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    lines: Mapped[list["BOMLineModel"]] = relationship(
        back_populates="bom",
        cascade="all, delete-orphan",
        order_by="BOMLineModel.sort_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<BOM {self.name} v{self.version} active={self.is_active}>"


class BOMLineModel(Base):
    """One material consumption line of a BOM."""

    __tablename__ = "bom_lines"

    __table_args__ = (
        Index("idx_bom_line_bom", "bom_id"),
        Index("idx_bom_line_material", "material_id"),
    )

    bom_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bom_headers.id"),
        nullable=False,
    )

    material_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    waste_percentage: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    sort_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    bom: Mapped["BOMHeaderModel"] = relationship(back_populates="lines")

    variants: Mapped[list["BOMLineVariantModel"]] = relationship(
        back_populates="line",
        cascade="all, delete-orphan",
        order_by="BOMLineVariantModel.sort_order",
        lazy="selectin",
    )


class BOMLineVariantModel(Base):
    """Size, color or category specific consumption for a BOM line."""

    __tablename__ = "bom_line_variants"

    __table_args__ = (
        Index("idx_bom_line_variant_line", "line_id"),
    )

    line_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bom_lines.id"),
        nullable=False,
    )

    # general | size | color | category
    spec_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    spec_value: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    waste_percentage: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    sort_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    line: Mapped["BOMLineModel"] = relationship(back_populates="variants")
