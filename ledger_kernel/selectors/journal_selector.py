"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only queries over journal entries: lookup by id,
    by business reference, by order, by date range, and detection of
    dangling drafts.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Returns JournalEntryInfo DTOs, never ORM entities.
    - Never mutates the session.

Audit relevance:
    dangling_drafts() is the detection side of the create/add_lines unit of
    work: a draft older than a few seconds means a writer died between the
    two steps.  Drafts never count towards balances.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import JournalEntryInfo
from ledger_kernel.domain.values import DateRange
from ledger_kernel.models.journal import (
    BOOKED_STATUSES,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.selectors.base import BaseSelector


class JournalSelector(BaseSelector[JournalEntry]):
    """Selector for journal entry queries."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_entry(self, entry_id: UUID) -> JournalEntryInfo | None:
        entry = self.session.get(JournalEntry, entry_id)
        return JournalEntryInfo.from_model(entry) if entry is not None else None

    def find_by_reference(
        self,
        store_id: str,
        reference: str,
        booked_only: bool = True,
    ) -> list[JournalEntryInfo]:
        """Entries carrying a business reference (e.g. ORDER:<id>)."""
        query = select(JournalEntry).where(
            JournalEntry.store_id == store_id,
            JournalEntry.reference == reference,
        )
        if booked_only:
            query = query.where(JournalEntry.status.in_(BOOKED_STATUSES))
        entries = self.session.execute(query.order_by(JournalEntry.entry_number)).scalars()
        return [JournalEntryInfo.from_model(e) for e in entries]

    def entries_for_order(
        self,
        store_id: str,
        order_id: str,
        status: JournalEntryStatus | None = None,
    ) -> list[JournalEntryInfo]:
        """Entries with at least one line traced to the order."""
        entry_ids = (
            select(JournalLine.journal_entry_id)
            .where(JournalLine.store_id == store_id, JournalLine.order_id == order_id)
            .distinct()
        )
        query = select(JournalEntry).where(JournalEntry.id.in_(entry_ids))
        if status is not None:
            query = query.where(JournalEntry.status == status.value)
        entries = self.session.execute(query.order_by(JournalEntry.entry_number)).scalars()
        return [JournalEntryInfo.from_model(e) for e in entries]

    def entries(
        self,
        store_id: str,
        date_range: DateRange,
        journal: str | None = None,
    ) -> list[JournalEntryInfo]:
        """Booked entries of a store dated within the range."""
        query = select(JournalEntry).where(
            JournalEntry.store_id == store_id,
            JournalEntry.status.in_(BOOKED_STATUSES),
            JournalEntry.entry_date >= date_range.start,
            JournalEntry.entry_date <= date_range.end,
        )
        if journal is not None:
            query = query.where(JournalEntry.journal == journal)
        entries = self.session.execute(
            query.order_by(JournalEntry.entry_date, JournalEntry.entry_number)
        ).scalars()
        return [JournalEntryInfo.from_model(e) for e in entries]

    def dangling_drafts(
        self,
        store_id: str | None = None,
        older_than: datetime | None = None,
    ) -> list[JournalEntryInfo]:
        """
        Draft entries, optionally only those created before ``older_than``.
        """
        query = select(JournalEntry).where(JournalEntry.status == JournalEntryStatus.DRAFT.value)
        if store_id is not None:
            query = query.where(JournalEntry.store_id == store_id)
        if older_than is not None:
            query = query.where(JournalEntry.created_at < older_than)
        entries = self.session.execute(query.order_by(JournalEntry.created_at)).scalars()
        return [JournalEntryInfo.from_model(e) for e in entries]
