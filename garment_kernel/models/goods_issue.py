"""
Module: garment_kernel.models.goods_issue
Responsibility: ORM persistence for goods issues (material withdrawals to
    production, maintenance, samples, waste and adjustments), their lines,
    and the FIFO layer takes recorded when an issue is posted.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``status`` moves pending -> issued or pending -> cancelled, once.  The
      service reads the header ``FOR UPDATE`` before transitioning.
    - ``unit_cost`` on a line is NULL until the issue is posted; afterwards it
      is the quantity-weighted average of the layer takes and never changes.
    - ``issue_number`` is unique and allocated from ``sequence_counters``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from garment_kernel.db.base import Base, UUIDString


class GoodsIssueModel(Base):
    """Goods issue header."""

    __tablename__ = "goods_issues"

    __table_args__ = (
        Index("idx_goods_issue_status", "status"),
        Index("idx_goods_issue_date", "issue_date"),
    )

    issue_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        unique=True,
    )

    issue_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    # production | maintenance | sample | waste | adjustment
    issue_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # pending | issued | cancelled
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
    )

    reference_number: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # BOM the lines were derived from, if any
    bom_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("bom_headers.id"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    lines: Mapped[list["GoodsIssueLineModel"]] = relationship(
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="GoodsIssueLineModel.line_seq",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<GoodsIssue {self.issue_number} {self.status}>"


class GoodsIssueLineModel(Base):
    """Material and quantity withdrawn by a goods issue."""

    __tablename__ = "goods_issue_lines"

    __table_args__ = (
        Index("idx_goods_issue_line_issue", "issue_id"),
        Index("idx_goods_issue_line_material", "material_id"),
    )

    issue_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("goods_issues.id"),
        nullable=False,
    )

    material_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("materials.id"),
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

    unit_cost: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    currency: Mapped[str | None] = mapped_column(
        String(3),
        nullable=True,
    )

    batch_number: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    line_seq: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    issue: Mapped["GoodsIssueModel"] = relationship(back_populates="lines")

    layer_takes: Mapped[list["GoodsIssueLayerTakeModel"]] = relationship(
        back_populates="issue_line",
        cascade="all, delete-orphan",
        order_by="GoodsIssueLayerTakeModel.take_seq",
        lazy="selectin",
    )


class GoodsIssueLayerTakeModel(Base):
    """Quantity drawn from one inventory layer for one posted issue line."""

    __tablename__ = "goods_issue_layer_takes"

    __table_args__ = (
        Index("idx_layer_take_line", "issue_line_id"),
        Index("idx_layer_take_layer", "layer_id"),
    )

    issue_line_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("goods_issue_lines.id"),
        nullable=False,
    )

    layer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_layers.id"),
        nullable=False,
    )

    quantity_taken: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    unit_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    take_seq: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    issue_line: Mapped["GoodsIssueLineModel"] = relationship(back_populates="layer_takes")
