"""
Reporting ORM Persistence Models (``ledger_modules.reporting.orm``).

Responsibility:
    Persist trial balances as snapshots.  A snapshot is a cache of a
    derived report: it can always be recomputed from the journal and is
    replaced whenever the same store and period is recomputed.

Architecture position:
    **Modules layer** -- persistence companion to ``reporting.models``.
    Inherits from ``TrackedBase``.

Invariants enforced:
    - One snapshot per (store_id, period_start, period_end).
    - Monetary columns are Decimal (Numeric(38,9)) -- NEVER float.
    - account_id is stored without a foreign key; account_code and
      account_name are copied so the snapshot reads on its own.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.values import DateRange, round_money, to_decimal
from ledger_modules.reporting.models import TrialBalanceLine, TrialBalanceReport


def _money(value) -> Decimal:
    return round_money(to_decimal(value))


class TrialBalanceSnapshot(TrackedBase):
    """
    ORM model for a persisted ``TrialBalanceReport``.

    Guarantees:
        - ``to_dto()`` rebuilds the report with its lines ordered by code.
    """

    __tablename__ = "trial_balance_snapshots"

    __table_args__ = (
        UniqueConstraint(
            "store_id", "period_start", "period_end", name="uq_tb_snapshot_store_period"
        ),
        Index("idx_tb_snapshot_store", "store_id"),
    )

    store_id: Mapped[str] = mapped_column(String(100), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    generated_at: Mapped[datetime]
    total_opening_debit: Mapped[Decimal]
    total_opening_credit: Mapped[Decimal]
    total_period_debit: Mapped[Decimal]
    total_period_credit: Mapped[Decimal]
    total_closing_debit: Mapped[Decimal]
    total_closing_credit: Mapped[Decimal]
    is_balanced: Mapped[bool] = mapped_column(Boolean, nullable=False)

    lines: Mapped[list["TrialBalanceSnapshotLine"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TrialBalanceSnapshotLine.account_code",
    )

    @classmethod
    def from_dto(cls, report: TrialBalanceReport, created_by_id: str) -> "TrialBalanceSnapshot":
        snapshot = cls(
            store_id=report.store_id,
            period_start=report.period.start,
            period_end=report.period.end,
            generated_at=report.generated_at,
            total_opening_debit=report.total_opening_debit,
            total_opening_credit=report.total_opening_credit,
            total_period_debit=report.total_period_debit,
            total_period_credit=report.total_period_credit,
            total_closing_debit=report.total_closing_debit,
            total_closing_credit=report.total_closing_credit,
            is_balanced=report.is_balanced,
            created_by_id=created_by_id,
        )
        snapshot.lines = [
            TrialBalanceSnapshotLine.from_dto(line, created_by_id) for line in report.lines
        ]
        return snapshot

    def to_dto(self) -> TrialBalanceReport:
        return TrialBalanceReport(
            store_id=self.store_id,
            period=DateRange(self.period_start, self.period_end),
            generated_at=self.generated_at,
            lines=tuple(line.to_dto() for line in self.lines),
            total_opening_debit=_money(self.total_opening_debit),
            total_opening_credit=_money(self.total_opening_credit),
            total_period_debit=_money(self.total_period_debit),
            total_period_credit=_money(self.total_period_credit),
            total_closing_debit=_money(self.total_closing_debit),
            total_closing_credit=_money(self.total_closing_credit),
            is_balanced=self.is_balanced,
            snapshot_id=self.id,
        )


class TrialBalanceSnapshotLine(TrackedBase):
    __tablename__ = "trial_balance_snapshot_lines"

    __table_args__ = (
        Index("idx_tb_snapshot_line_snapshot", "snapshot_id"),
    )

    snapshot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("trial_balance_snapshots.id", ondelete="CASCADE"),
        nullable=False,
    )
    account_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    account_code: Mapped[str] = mapped_column(String(20), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    opening_debit: Mapped[Decimal]
    opening_credit: Mapped[Decimal]
    period_debit: Mapped[Decimal]
    period_credit: Mapped[Decimal]
    closing_debit: Mapped[Decimal]
    closing_credit: Mapped[Decimal]

    snapshot: Mapped[TrialBalanceSnapshot] = relationship(back_populates="lines")

    @classmethod
    def from_dto(cls, line: TrialBalanceLine, created_by_id: str) -> "TrialBalanceSnapshotLine":
        return cls(
            account_id=line.account_id,
            account_code=line.account_code,
            account_name=line.account_name,
            account_type=line.account_type,
            opening_debit=line.opening_debit,
            opening_credit=line.opening_credit,
            period_debit=line.period_debit,
            period_credit=line.period_credit,
            closing_debit=line.closing_debit,
            closing_credit=line.closing_credit,
            created_by_id=created_by_id,
        )

    def to_dto(self) -> TrialBalanceLine:
        return TrialBalanceLine(
            account_id=self.account_id,
            account_code=self.account_code,
            account_name=self.account_name,
            account_type=self.account_type,
            opening_debit=_money(self.opening_debit),
            opening_credit=_money(self.opening_credit),
            period_debit=_money(self.period_debit),
            period_credit=_money(self.period_credit),
            closing_debit=_money(self.closing_debit),
            closing_credit=_money(self.closing_credit),
        )
