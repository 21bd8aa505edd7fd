"""
SequenceService -- per-store, per-fiscal-year entry number allocation.

Responsibility:
    Hands out the sequential part of journal entry numbers.  Each
    (store_id, fiscal_year) pair owns one counter row; the counter is
    advanced with a single atomic ``UPDATE ... SET current_value =
    current_value + 1`` so the critical section is one row write.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by JournalService when a draft entry is created.

Invariants enforced:
    - Uniqueness: no two committed entries of a store and fiscal year share
      a sequence value.  The SQL aggregate-max-plus-one pattern is never
      used; the counter row is the sole source of truth.
    - Transactional: the increment only becomes visible when the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: two writers creating the first counter row of a
      (store, fiscal year) at once.  Handled by a savepoint rollback and a
      second increment attempt.
    - ConcurrencyError if the counter row still cannot be found after the
      race was detected.

Audit relevance:
    Allocation is logged at DEBUG with store_id, fiscal_year and value.
"""

from sqlalchemy import Integer, String, UniqueConstraint, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.exceptions import ConcurrencyError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class EntrySequence(Base):
    """
    Entry-number counter table.

    One row per (store_id, fiscal_year); current_value is the last number
    handed out.
    """

    __tablename__ = "entry_sequences"

    __table_args__ = (
        UniqueConstraint("store_id", "fiscal_year", name="uq_sequence_store_year"),
    )

    store_id: Mapped[str] = mapped_column(String(100), nullable=False)

    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)

    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SequenceService:
    """
    Service for generating transactional entry sequence numbers.

    Contract:
        ``next_value(store_id, fiscal_year)`` returns the next integer of
        that counter.  The increment is committed with the caller's
        transaction.

    Guarantees:
        - Sequence values start at 1 and increase by exactly 1 per
          committed allocation.
        - Concurrency safety: the atomic UPDATE takes the row lock (on
          SQLite the database write lock), so concurrent allocations for
          the same counter are serialised.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session):
        self._session = session

    def _increment(self, store_id: str, fiscal_year: int) -> bool:
        result = self._session.execute(
            update(EntrySequence)
            .where(
                EntrySequence.store_id == store_id,
                EntrySequence.fiscal_year == fiscal_year,
            )
            .values(current_value=EntrySequence.current_value + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def next_value(self, store_id: str, fiscal_year: int) -> int:
        """
        Allocate the next sequence value for a store and fiscal year.

        Preconditions:
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer > 0, one above the previous committed
              value of this counter.
        """
        if not self._increment(store_id, fiscal_year):
            # First use of this counter.  A savepoint keeps the rest of the
            # caller's transaction intact if another writer wins the insert.
            savepoint = self._session.begin_nested()
            try:
                self._session.add(
                    EntrySequence(store_id=store_id, fiscal_year=fiscal_year, current_value=1)
                )
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"store_id": store_id, "fiscal_year": fiscal_year, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"store_id": store_id, "fiscal_year": fiscal_year},
                )
                savepoint.rollback()
                if not self._increment(store_id, fiscal_year):
                    raise ConcurrencyError(
                        f"Entry sequence for store {store_id}, fiscal year "
                        f"{fiscal_year} could not be allocated"
                    )

        value = self.current_value(store_id, fiscal_year)
        logger.debug(
            "sequence_allocated",
            extra={"store_id": store_id, "fiscal_year": fiscal_year, "value": value},
        )
        return value

    def current_value(self, store_id: str, fiscal_year: int) -> int | None:
        """Current value of a counter without incrementing (None if unused)."""
        return self._session.execute(
            select(EntrySequence.current_value).where(
                EntrySequence.store_id == store_id,
                EntrySequence.fiscal_year == fiscal_year,
            )
        ).scalar_one_or_none()
