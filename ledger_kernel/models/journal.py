"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    single source of financial truth in this system.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - entry_number is unique per (store_id, fiscal_year)
      (uq_journal_store_year_number).
    - Balance (|debits - credits| <= tolerance) is checked by JournalService
      before an entry leaves DRAFT; is_balanced() is a read-side helper.
    - Immutability after POSTED (ORM listeners in db/immutability.py); the
      only permitted change is the one-way POSTED -> REVERSED flag.
    - A line's store_id and line_date always equal its entry's.

Failure modes:
    - IntegrityError on a duplicate entry number (mapped to
      EntryNumberCollisionError by JournalService).
    - ImmutabilityViolationError on UPDATE/DELETE of a posted entry/line.

Audit relevance:
    JournalEntry and JournalLine rows are the authoritative financial record.
    Every balance, statement and VAT report derives from POSTED/REVERSED rows.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    Contract: Transitions are one-way: DRAFT -> POSTED -> REVERSED.
    """

    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"


# Statuses whose lines count towards balances.  A reversed entry still
# counts: its reversal entry carries the offsetting lines.
BOOKED_STATUSES = (JournalEntryStatus.POSTED.value, JournalEntryStatus.REVERSED.value)


class JournalCode(str, Enum):
    """Standard journal codes."""

    SALES = "VT"
    BANK = "BK"
    CASH = "CA"
    TAX = "TVA"
    PURCHASES = "AC"
    MISC = "OD"


class JournalEntry(TrackedBase):
    """
    Journal entry header -- the atomic unit of double-entry accounting.

    Contract:
        Created as DRAFT with no lines.  JournalService attaches lines and
        moves the entry to POSTED only once the whole entry balances.
        Reversal creates a new entry; the original is only flagged REVERSED.

    Guarantees:
        - entry_number follows {fiscal_year}{month:02}{sequence}.
        - reversal_of_id points at the original when this is a reversal.

    Non-goals:
        - This model does NOT enforce balance at the ORM level.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint(
            "store_id", "fiscal_year", "entry_number",
            name="uq_journal_store_year_number",
        ),
        Index("idx_journal_store_date", "store_id", "entry_date"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_reference", "store_id", "reference"),
    )

    store_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Accounting date (drives period and fiscal year)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    journal: Mapped[str] = mapped_column(String(10), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    # Business reference, e.g. ORDER:<id>
    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)

    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)

    entry_number: Mapped[str] = mapped_column(String(30), nullable=False)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        default=JournalEntryStatus.DRAFT.value,
        nullable=False,
    )

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_seq",
    )

    reversal_of: Mapped["JournalEntry | None"] = relationship(
        remote_side="JournalEntry.id",
        foreign_keys=[reversal_of_id],
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} status={self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def is_draft(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    @property
    def is_reversed(self) -> bool:
        return self.status == JournalEntryStatus.REVERSED

    @property
    def created_by(self) -> str:
        return self.created_by_id

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    def is_balanced(self, tolerance: Decimal) -> bool:
        """|debits - credits| <= tolerance, with at least one line."""
        return bool(self.lines) and abs(self.total_debits - self.total_credits) <= tolerance


class JournalLine(TrackedBase):
    """
    Individual posting within a journal entry.

    Contract:
        References one postable Account of the entry's store.  debit and
        credit are non-negative; callers should set only one of them.

    Guarantees:
        - store_id and line_date are stamped from the parent entry.
        - line_seq gives a stable order within the entry.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account_date", "account_id", "line_date"),
        Index("idx_line_order", "order_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    store_id: Mapped[str] = mapped_column(String(100), nullable=False)

    line_date: Mapped[date] = mapped_column(Date, nullable=False)

    debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Traceability to the source order / inventory item
    order_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    inventory_item_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # VAT rate category of a taxable base line (revenue or purchase)
    vat_category: Mapped[str | None] = mapped_column(String(20), nullable=True)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(
        back_populates="journal_lines",
        lazy="joined",
    )

    def __repr__(self) -> str:
        return f"<JournalLine D{self.debit} C{self.credit}>"

    @property
    def signed_amount(self) -> Decimal:
        """Debits positive, credits negative."""
        return self.debit - self.credit
