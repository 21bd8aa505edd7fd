"""
PostingService -- applies posting rules through the journal engine.

Responsibility:
    For each business event, look up its posting rule, build the lines and
    create exactly one posted entry.  Order cancellation reverses every
    posted entry traced to the order.

Architecture position:
    Modules layer.  Uses kernel JournalService (writes) and JournalSelector
    (idempotency and cancellation lookups).  Runs inside the caller's
    session; the Ledger facade owns commit/rollback.

Invariants enforced:
    - One event -> one balanced entry.  create_entry and add_lines share
      the caller's transaction, so a failing line discards the draft.
    - Order-completed and supplier-invoice events are idempotent on their
      business reference (ORDER:<id>, INVOICE:<id>): a duplicate returns the
      existing entry id and posts nothing.
    - Cancellation never reverses a reversal entry and never reverses the
      same entry twice.

Failure modes:
    - PostingRuleNotFoundError for an event type with no registered rule.
    - Any kernel error (unbalanced, unknown account, closed period)
      propagates unchanged.
"""

from collections.abc import Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import EntryHeader
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import JournalEntryStatus
from ledger_kernel.posting_rules.base import PostingEvent
from ledger_kernel.posting_rules.registry import PostingRuleRegistry
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.journal_service import JournalService
from ledger_modules.posting.events import (
    OrderCancelled,
    OrderCompleted,
    SupplierInvoiceReceived,
)

logger = get_logger("modules.posting.service")

IDEMPOTENT_EVENT_TYPES = frozenset(
    {OrderCompleted.event_type, SupplierInvoiceReceived.event_type}
)

SYSTEM_ACTOR = "system"


class PostingService:
    """
    Turns events into journal entries.

    Contract:
        ``post`` returns the id of the entry created (or found, for an
        idempotent duplicate).  ``cancel_order`` returns the ids of the
        reversal entries it created.
    """

    def __init__(
        self,
        session: Session,
        journal: JournalService,
        registry: PostingRuleRegistry,
        accounts: Mapping[str, str],
        journals: Mapping[str, str],
    ):
        self._session = session
        self._journal = journal
        self._registry = registry
        self._accounts = accounts
        self._journals = journals
        self._selector = JournalSelector(session)

    def post(self, event: PostingEvent, actor: str = SYSTEM_ACTOR) -> UUID:
        rule = self._registry.get_rule(event.event_type)
        target = rule.build(event, self._accounts, self._journals)

        if event.event_type in IDEMPOTENT_EVENT_TYPES and target.reference:
            existing = self._selector.find_by_reference(event.store_id, target.reference)
            if existing:
                logger.info(
                    "posting_duplicate_event",
                    extra={
                        "event_type": event.event_type,
                        "reference": target.reference,
                        "entry_id": str(existing[0].id),
                    },
                )
                return existing[0].id

        entry = self._journal.create_entry(
            EntryHeader(
                entry_date=target.entry_date,
                journal=target.journal,
                description=target.description,
                store_id=event.store_id,
                created_by=actor,
                reference=target.reference,
            )
        )
        self._journal.add_lines(entry.id, target.lines)

        logger.info(
            "event_posted",
            extra={
                "event_type": event.event_type,
                "rule_version": rule.version,
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "reference": target.reference,
            },
        )
        return entry.id

    def cancel_order(self, event: OrderCancelled, actor: str = SYSTEM_ACTOR) -> list[UUID]:
        """Reverse every posted, unreversed entry carrying the order's lines."""
        entries = self._selector.entries_for_order(
            event.store_id, event.order_id, status=JournalEntryStatus.POSTED
        )
        reason = f"Cancellation order {event.order_id}"
        if event.reason:
            reason = f"{reason}: {event.reason}"

        reversal_ids = []
        for entry in entries:
            if entry.reversal_of_id is not None:
                continue
            reversal = self._journal.reverse_entry(
                entry.id,
                actor=actor,
                reason=reason,
                reversal_date=event.timestamp.date(),
            )
            reversal_ids.append(reversal.id)

        logger.info(
            "order_cancelled",
            extra={
                "order_id": event.order_id,
                "store_id": event.store_id,
                "reversed_count": len(reversal_ids),
            },
        )
        return reversal_ids
