"""
ORM-level immutability enforcement for posted ledger data.

===============================================================================
WHY THIS EXISTS
===============================================================================

A posted journal entry is part of the books.  It can never be edited or
deleted; an error is corrected by reversing the entry, which leaves a
visible trail.  These listeners catch modifications made through
SQLAlchemy before any SQL reaches the database.

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity        | When immutable                 | Permitted change
--------------|--------------------------------|-------------------------------
JournalEntry  | status POSTED or REVERSED      | POSTED -> REVERSED (status only)
JournalLine   | parent entry POSTED/REVERSED   | none
FiscalPeriod  | status CLOSED or LOCKED        | CLOSED -> LOCKED (status only)

updated_at / updated_by_id are audit metadata and may always change.

===============================================================================
USAGE
===============================================================================

The Ledger facade registers the listeners on construction:

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

_FROZEN_ENTRY_STATUSES = ("posted", "reversed")


def _status_value(status) -> str | None:
    if status is None:
        return None
    return getattr(status, "value", status)


def _previous_status(target) -> str | None:
    """Status as stored before the pending flush."""
    history = get_history(target, "status")
    if history.deleted:
        return _status_value(history.deleted[0])
    if history.unchanged:
        return _status_value(history.unchanged[0])
    return _status_value(target.status)


def _changed_fields(target) -> list[str]:
    insp = inspect(target)
    return [
        attr.key
        for attr in insp.attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]


def _block(entity_type: str, entity_id, operation: str, reason: str, **extra) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_journal_entry_immutability(mapper, connection, target):
    """
    Block updates to a posted or reversed JournalEntry.

    The posting workflow itself (DRAFT -> POSTED) is allowed because the
    previous status is DRAFT.  Once POSTED, the only accepted change is the
    status flag moving to REVERSED.
    """
    previous = _previous_status(target)
    if previous not in _FROZEN_ENTRY_STATUSES:
        return

    changed = [name for name in _changed_fields(target) if name != "lines"]
    if not changed:
        return

    if (
        previous == "posted"
        and changed == ["status"]
        and _status_value(target.status) == "reversed"
    ):
        return

    _block(
        "JournalEntry",
        target.id,
        "UPDATE",
        f"Cannot modify field(s) {', '.join(sorted(changed))} on {previous} journal entry",
        fields=changed,
    )


def _check_journal_entry_delete(mapper, connection, target):
    if _previous_status(target) in _FROZEN_ENTRY_STATUSES:
        _block(
            "JournalEntry",
            target.id,
            "DELETE",
            "Posted journal entries cannot be deleted",
        )


def _parent_is_frozen(target) -> bool:
    entry = target.entry
    return entry is not None and _previous_status(entry) in _FROZEN_ENTRY_STATUSES


def _check_journal_line_immutability(mapper, connection, target):
    if _parent_is_frozen(target):
        _block(
            "JournalLine",
            target.id,
            "UPDATE",
            "Journal lines cannot be modified after parent entry is posted",
        )


def _check_journal_line_delete(mapper, connection, target):
    if _parent_is_frozen(target):
        _block(
            "JournalLine",
            target.id,
            "DELETE",
            "Journal lines cannot be deleted after parent entry is posted",
        )


def _check_fiscal_period_immutability(mapper, connection, target):
    """A closed period may only move on to LOCKED."""
    previous = _previous_status(target)
    if previous not in ("closed", "locked"):
        return

    changed = _changed_fields(target)
    if not changed:
        return
    if (
        previous == "closed"
        and changed == ["status"]
        and _status_value(target.status) == "locked"
    ):
        return

    _block(
        "FiscalPeriod",
        target.id,
        "UPDATE",
        f"Period {target.period_code} is {previous}",
        fields=changed,
    )


def _listeners():
    from ledger_kernel.models.fiscal_period import FiscalPeriod
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    return [
        (JournalEntry, "before_update", _check_journal_entry_immutability),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalLine, "before_update", _check_journal_line_immutability),
        (JournalLine, "before_delete", _check_journal_line_delete),
        (FiscalPeriod, "before_update", _check_fiscal_period_immutability),
    ]


def register_immutability_listeners() -> None:
    """Register all immutability listeners.  Safe to call repeatedly."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)
