"""
JournalService -- the journal engine.

Responsibility:
    Creates draft journal entries with their entry number, attaches lines
    and posts the entry once the whole entry balances, reverses posted
    entries, and discards drafts left behind by an interrupted unit of work.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the Ledger facade (manual entries), PostingService (order and
    payment events) and the VAT service (period VAT entries).

Invariants enforced:
    - Balance: an entry leaves DRAFT only when |debits - credits| <=
      balance_tolerance.  Unbalanced line sets are rejected, never coerced.
    - Entry numbers {fiscal_year}{month:02}{sequence} are unique per
      (store, fiscal year); the sequence comes from SequenceService.
    - Immutability: lines are never added to a posted entry; reversal
      creates a new entry and only flags the original.
    - No entry is created or posted inside a closed or locked period.

Failure modes:
    - ValidationError listing every missing header field or bad line amount.
    - AccountNotFoundError / AccountNotPostableError / AccountInactiveError /
      StoreMismatchError for a bad line account.
    - UnbalancedEntryError{debit_total, credit_total}.
    - ImmutabilityViolationError when adding lines to a posted entry.
    - EntryNumberCollisionError if the unique entry number constraint fires.

Audit relevance:
    journal_entry_created, entry_lines_added and entry_reversed are logged
    with entry_id, entry_number and totals.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import EntryHeader, LineSpec
from ledger_kernel.domain.values import ZERO, fiscal_year_for
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AccountNotPostableError,
    ChartNotFoundError,
    ClosedPeriodError,
    EntryAlreadyReversedError,
    EntryNotFoundError,
    EntryNotPostedError,
    EntryNumberCollisionError,
    FieldError,
    ImmutabilityViolationError,
    StoreMismatchError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, ChartOfAccounts
from ledger_kernel.models.fiscal_period import FiscalPeriod, PeriodStatus
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal")


def format_entry_number(fiscal_year: int, entry_date: date, sequence: int, width: int) -> str:
    return f"{fiscal_year}{entry_date.month:02d}{sequence:0{width}d}"


class JournalService(BaseService[JournalEntry]):
    """
    Journal engine: draft -> posted -> reversed.

    Contract:
        ``create_entry`` returns a DRAFT entry with no lines.  ``add_lines``
        validates the lines and the whole-entry balance, then posts the
        entry.  Both run in the caller's transaction, so a failure in
        ``add_lines`` discards the draft when the caller rolls back.

    Guarantees:
        - A posted entry always balances within balance_tolerance.
        - Every line carries the entry's store_id and entry_date.

    Non-goals:
        - Does NOT auto-balance (no rounding line is ever invented).
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        balance_tolerance: Decimal = Decimal("0.01"),
        sequence_width: int = 6,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._tolerance = balance_tolerance
        self._sequence_width = sequence_width
        self._sequences = SequenceService(session)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_entry(self, header: EntryHeader, reversal_of_id: UUID | None = None) -> JournalEntry:
        """
        Create a draft entry and assign its entry number.

        Raises:
            ValidationError: listing every missing/invalid header field.
            ChartNotFoundError: if the store has no chart.
            ClosedPeriodError: if entry_date falls in a closed period.
            EntryNumberCollisionError: on a duplicate entry number.
        """
        self._validate_header(header)

        chart = self.session.execute(
            select(ChartOfAccounts).where(ChartOfAccounts.store_id == header.store_id)
        ).scalar_one_or_none()
        if chart is None:
            raise ChartNotFoundError(header.store_id)

        self._check_period_open(header.store_id, header.entry_date)

        fiscal_year = fiscal_year_for(
            header.entry_date,
            chart.fiscal_year_start_month,
            chart.fiscal_year_start_day,
        )
        sequence = self._sequences.next_value(header.store_id, fiscal_year)
        entry_number = format_entry_number(
            fiscal_year, header.entry_date, sequence, self._sequence_width
        )

        entry = JournalEntry(
            store_id=header.store_id,
            entry_date=header.entry_date,
            journal=header.journal,
            description=header.description,
            reference=header.reference,
            fiscal_year=fiscal_year,
            entry_number=entry_number,
            status=JournalEntryStatus.DRAFT.value,
            reversal_of_id=reversal_of_id,
            created_by_id=header.created_by,
        )
        self.session.add(entry)
        try:
            self.session.flush()
        except IntegrityError as exc:
            logger.warning(
                "entry_number_collision",
                extra={
                    "store_id": header.store_id,
                    "fiscal_year": fiscal_year,
                    "entry_number": entry_number,
                },
            )
            raise EntryNumberCollisionError(header.store_id, fiscal_year, entry_number) from exc

        logger.info(
            "journal_entry_created",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry_number,
                "store_id": header.store_id,
                "journal": header.journal,
                "entry_date": header.entry_date,
            },
        )
        return entry

    def _validate_header(self, header: EntryHeader) -> None:
        errors: list[FieldError] = []
        if header.entry_date is None:
            errors.append(FieldError(field="entry_date", message="required"))
        elif not isinstance(header.entry_date, date):
            errors.append(FieldError(field="entry_date", message="must be a date"))
        if not header.journal or not str(header.journal).strip():
            errors.append(FieldError(field="journal", message="required"))
        if not header.description or not str(header.description).strip():
            errors.append(FieldError(field="description", message="required"))
        if not header.store_id or not str(header.store_id).strip():
            errors.append(FieldError(field="store_id", message="required"))
        if not header.created_by or not str(header.created_by).strip():
            errors.append(FieldError(field="created_by", message="required"))
        if errors:
            logger.warning(
                "journal_entry_validation_failed",
                extra={"fields": [e.field for e in errors]},
            )
            raise ValidationError(errors)

    def _check_period_open(self, store_id: str, entry_date: date) -> None:
        closed = self.session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.store_id == store_id,
                FiscalPeriod.start_date <= entry_date,
                FiscalPeriod.end_date >= entry_date,
                FiscalPeriod.status.in_(
                    [PeriodStatus.CLOSED.value, PeriodStatus.LOCKED.value]
                ),
            )
        ).scalar_one_or_none()
        if closed is not None:
            raise ClosedPeriodError(closed.period_code, entry_date.isoformat())

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    def get_entry(self, entry_id: UUID) -> JournalEntry:
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def add_lines(self, entry_id: UUID, lines: Sequence[LineSpec]) -> JournalEntry:
        """
        Attach lines to a draft entry and post it.

        Each line is stamped with the entry's store and date.  Line checks
        run first, then the whole-entry balance.

        Raises:
            EntryNotFoundError: unknown entry_id.
            ImmutabilityViolationError: the entry is not a draft.
            ValidationError: bad line amounts (all reported together).
            UnbalancedEntryError: debits and credits differ beyond tolerance.
        """
        entry = self.get_entry(entry_id)
        if not entry.is_draft:
            raise ImmutabilityViolationError(
                entity_type="JournalEntry",
                entity_id=str(entry.id),
                reason=f"cannot add lines to a {entry.status} entry",
            )

        accounts = self._resolve_accounts(entry, lines)

        debit_total = sum((line.debit for line in lines), ZERO)
        credit_total = sum((line.credit for line in lines), ZERO)
        if abs(debit_total - credit_total) > self._tolerance:
            logger.warning(
                "unbalanced_entry_rejected",
                extra={
                    "entry_id": str(entry.id),
                    "debit_total": debit_total,
                    "credit_total": credit_total,
                },
            )
            raise UnbalancedEntryError(
                debit_total=debit_total,
                credit_total=credit_total,
                tolerance=self._tolerance,
                entry_id=str(entry.id),
            )

        for seq, spec in enumerate(lines):
            entry.lines.append(
                JournalLine(
                    account=accounts[spec.account_code],
                    store_id=entry.store_id,
                    line_date=entry.entry_date,
                    debit=spec.debit,
                    credit=spec.credit,
                    description=spec.description,
                    order_id=spec.order_id,
                    inventory_item_id=spec.inventory_item_id,
                    vat_category=spec.vat_category,
                    line_seq=seq,
                    created_by_id=entry.created_by_id,
                )
            )
        entry.status = JournalEntryStatus.POSTED.value
        entry.posted_at = self._clock.now()
        self.session.flush()

        logger.info(
            "entry_lines_added",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "line_count": len(lines),
                "debit_total": debit_total,
                "credit_total": credit_total,
            },
        )
        return entry

    def _resolve_accounts(self, entry: JournalEntry, lines: Sequence[LineSpec]) -> dict[str, Account]:
        if not lines:
            raise ValidationError([FieldError(field="lines", message="at least one line is required")])

        codes = {spec.account_code for spec in lines}
        accounts = {
            account.code: account
            for account in self.session.execute(
                select(Account).where(
                    Account.store_id == entry.store_id,
                    Account.code.in_(codes),
                )
            ).scalars()
        }

        errors: list[FieldError] = []
        for index, spec in enumerate(lines):
            if spec.store_id is not None and spec.store_id != entry.store_id:
                raise StoreMismatchError(entry.store_id, spec.store_id)
            account = accounts.get(spec.account_code)
            if account is None:
                raise AccountNotFoundError(f"{entry.store_id}/{spec.account_code}")
            if not account.postable:
                raise AccountNotPostableError(spec.account_code)
            if not account.is_active:
                raise AccountInactiveError(spec.account_code)
            if spec.debit < 0:
                errors.append(FieldError(field=f"lines[{index}].debit", message="cannot be negative"))
            if spec.credit < 0:
                errors.append(FieldError(field=f"lines[{index}].credit", message="cannot be negative"))
            if spec.debit == 0 and spec.credit == 0:
                errors.append(
                    FieldError(field=f"lines[{index}]", message="debit or credit must be non-zero")
                )
        if errors:
            raise ValidationError(errors)
        return accounts

    # ------------------------------------------------------------------
    # Reverse / discard
    # ------------------------------------------------------------------

    def reverse_entry(
        self,
        entry_id: UUID,
        actor: str | None = None,
        reason: str | None = None,
        reversal_date: date | None = None,
    ) -> JournalEntry:
        """
        Reverse a posted entry.

        Creates a new posted entry whose lines swap debit and credit; the
        original keeps its lines and is flagged REVERSED.

        Raises:
            EntryNotPostedError: the entry is still a draft.
            EntryAlreadyReversedError: the entry was already reversed.
        """
        original = self.get_entry(entry_id)
        if original.is_reversed:
            raise EntryAlreadyReversedError(str(original.id))
        if not original.is_posted:
            raise EntryNotPostedError(str(original.id), str(original.status))

        header = EntryHeader(
            entry_date=reversal_date or original.entry_date,
            journal=original.journal,
            description=reason or f"Reversal of {original.entry_number}",
            store_id=original.store_id,
            created_by=actor or original.created_by_id,
            reference=f"REVERSAL:{original.entry_number}",
        )
        reversal = self.create_entry(header, reversal_of_id=original.id)
        self.add_lines(
            reversal.id,
            [
                LineSpec(
                    account_code=line.account.code,
                    debit=line.credit,
                    credit=line.debit,
                    description=line.description,
                    order_id=line.order_id,
                    inventory_item_id=line.inventory_item_id,
                    vat_category=line.vat_category,
                )
                for line in original.lines
            ],
        )

        original.status = JournalEntryStatus.REVERSED.value
        self.session.flush()

        logger.info(
            "entry_reversed",
            extra={
                "entry_id": str(original.id),
                "entry_number": original.entry_number,
                "reversal_id": str(reversal.id),
                "reversal_number": reversal.entry_number,
            },
        )
        return reversal

    def discard_draft(self, entry_id: UUID) -> None:
        """
        Delete a draft entry (e.g. left behind by a crash between create and
        add_lines).  Its entry number is not reused.

        Raises:
            ImmutabilityViolationError: the entry is not a draft.
        """
        entry = self.get_entry(entry_id)
        if not entry.is_draft:
            raise ImmutabilityViolationError(
                entity_type="JournalEntry",
                entity_id=str(entry.id),
                reason=f"only draft entries can be discarded, entry is {entry.status}",
            )
        self.session.delete(entry)
        self.session.flush()
        logger.info(
            "draft_entry_discarded",
            extra={"entry_id": str(entry_id), "entry_number": entry.entry_number},
        )
