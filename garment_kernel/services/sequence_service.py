"""
SequenceService -- gap-free document numbers from locked counter rows.

Responsibility:
    Allocates strictly increasing values per named sequence and formats
    document numbers such as ``GI-000042`` for goods issues.

Architecture position:
    Kernel > Services.  Used by the goods issue service at creation time.

Invariants enforced:
    - Monotonic: the counter row is read ``SELECT ... FOR UPDATE`` and
      incremented in place, never derived from ``MAX(...) + 1``.
    - Transactional: the increment belongs to the caller's transaction.  A
      rolled-back issue does not consume a number.

Failure modes:
    - IntegrityError if two transactions create the same counter row for
      the first time concurrently.  Call ``ensure`` at deployment to seed
      counters ahead of concurrent use.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from garment_kernel.logging_config import get_logger
from garment_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """Named, monotonically increasing counters."""

    GOODS_ISSUE = "goods_issue"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def ensure(self, sequence_name: str) -> None:
        """Create the counter row at zero if it does not exist yet."""
        if self._locked_counter(sequence_name) is None:
            self._session.add(SequenceCounter(name=sequence_name, current_value=0))
            self._session.flush()

    def next_value(self, sequence_name: str) -> int:
        """
        Increment and return the next value of ``sequence_name``.

        The first call for a name creates its counter and returns 1.
        """
        counter = self._locked_counter(sequence_name)
        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def next_document_number(self, sequence_name: str, prefix: str, width: int = 6) -> str:
        """Allocate the next value and format it as ``{prefix}-{value}`` zero-padded."""
        return f"{prefix}-{self.next_value(sequence_name):0{width}d}"
