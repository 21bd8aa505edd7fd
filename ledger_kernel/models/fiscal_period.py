"""
Module: ledger_kernel.models.fiscal_period
Responsibility: ORM persistence for a store's fiscal periods -- named date
    ranges that scope reporting and control which dates accept postings.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - period_code is unique per store (uq_period_store_code).
    - Periods of one store never overlap (checked by PeriodService).
    - No entry may be posted with an entry_date inside a CLOSED or LOCKED
      period (checked by JournalService).

Failure modes:
    - ClosedPeriodError when posting into a closed period.
    - PeriodOverlapError on creating an overlapping period.

Audit relevance:
    Closed periods guarantee that historical statements stay stable.
"""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class PeriodStatus(str, Enum):
    """Lifecycle status of a fiscal period.

    Contract: Transitions are OPEN -> CLOSED -> LOCKED.  A closed period
    never reopens.
    """

    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"


class FiscalPeriod(TrackedBase):
    """
    Fiscal period of one store.

    Contract:
        Reports accept a period by code; PeriodService resolves it to its
        inclusive [start_date, end_date] range.

    Guarantees:
        - period_code is unique per store.
        - start_date <= end_date (enforced by PeriodService).

    Non-goals:
        - This model does NOT enforce non-overlapping date ranges; that is
          checked by PeriodService at creation time.
    """

    __tablename__ = "fiscal_periods"

    __table_args__ = (
        UniqueConstraint("store_id", "period_code", name="uq_period_store_code"),
        Index("idx_period_store_dates", "store_id", "start_date", "end_date"),
    )

    store_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Period identifier (e.g., "2024-01", "2024-Q1", "FY2024")
    period_code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Period boundaries (inclusive)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[PeriodStatus] = mapped_column(
        String(20),
        default=PeriodStatus.OPEN.value,
        nullable=False,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    closed_by_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<FiscalPeriod {self.store_id}/{self.period_code}: {self.status}>"

    @property
    def is_open(self) -> bool:
        return self.status == PeriodStatus.OPEN

    @property
    def is_closed(self) -> bool:
        """Check if period is closed or locked."""
        return self.status in (PeriodStatus.CLOSED, PeriodStatus.LOCKED)

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date

    def close(self, actor_id: str, closed_at: datetime) -> None:
        """Close the period.

        Raises: ValueError if period is already closed.

        Note: closed_at comes from the injected clock.
        """
        if self.is_closed:
            raise ValueError(f"Period {self.period_code} is already closed")

        self.status = PeriodStatus.CLOSED.value
        self.closed_at = closed_at
        self.closed_by_id = actor_id
