"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing numbers for named sequences, used to
    generate human-readable adjustment reference numbers ("SA-000001").
    A dedicated counter table with row-level locking
    (``SELECT ... FOR UPDATE``) keeps allocation unique and ordered under
    concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by StockAdjustmentService when a draft is created.

Invariants enforced:
    - Monotonicity: the locked counter row is the sole source of truth for
      the next value.  Never ``MAX(reference) + 1``.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from stock_kernel.db.base import Base
from stock_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its current value.
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


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly increasing
        integer.  Does NOT call ``session.commit()``; the caller controls
        transaction boundaries.

    Usage:
        seq = SequenceService(session).next_value(SequenceService.STOCK_ADJUSTMENT)
        reference = f"SA-{seq:06d}"
    """

    STOCK_ADJUSTMENT = "stock_adjustment"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row (creating it on first use), increments it and
        returns the new value.  The returned value is always > 0.
        """
        if not sequence_name:
            raise ValueError("sequence_name is required")

        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  Another session may create the row at the same
            # time, so insert inside a savepoint and fall back to the lock.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None if unused."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        Only for tests and data migrations; reusing numbers in production
        produces duplicate reference numbers.
        """
        counter = self._locked_counter(sequence_name)
        if counter is None:
            self._session.add(SequenceCounter(name=sequence_name, current_value=value))
        else:
            counter.current_value = value
        self._session.flush()
        logger.warning(
            "sequence_reset",
            extra={"sequence_name": sequence_name, "value": value},
        )
