"""Named counter rows backing gap-free document numbers."""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from garment_kernel.db.base import Base


class SequenceCounter(Base):
    """
    One row per named sequence (e.g. ``goods_issue``).

    Rows are read ``FOR UPDATE`` before incrementing so concurrent
    allocations serialize on the row.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
