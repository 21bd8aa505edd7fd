"""
VATService -- period VAT reports and their TVA journal entries.

Responsibility:
    Computes a store's VAT for a period from the booked revenue and expense
    lines tagged with a VAT category, writes the TVA-journal entries that
    move the collected and deductible VAT into the VAT due account, and
    manages the report's filing lifecycle.

Architecture position:
    Modules layer.  Reads through the kernel LedgerSelector, writes through
    the kernel JournalService.  This is the one reporting path that writes
    to the ledger.  Runs inside the caller's session; never commits.

Invariants enforced:
    - Every synthesised entry balances by construction (one debit and one
      credit line of the same amount).
    - The collected and deductible entries move the VAT booked on the VAT
      collected and recoverable accounts during the period, so both accounts
      clear.  The report's totals are the per-line calculation; any gap
      between the two is stored as the booked difference and logged.
    - Regenerating a draft report reverses the TVA entries it produced
      earlier before writing new ones, so VAT is never booked twice.
    - A report that left DRAFT is never regenerated.
    - Exempt purchases carry no deductible VAT.

Failure modes:
    - VATReportFiledError: regenerating a submitted/accepted/paid report.
    - VATReportNotFoundError: unknown report id.
    - InvalidStatusTransitionError: a lifecycle move not in
      VAT_REPORT_TRANSITIONS.
    - Kernel errors (closed period, missing VAT accounts) propagate.
    - VATReportConflictError: a concurrent generation created the period's
      report first; the facade retries the unit of work.

Audit relevance:
    vat_report_generated logs the totals and the ids of the entries written.
"""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import EntryHeader, LineSpec
from ledger_kernel.domain.values import ZERO, DateRange
from ledger_kernel.exceptions import (
    FieldError,
    InvalidStatusTransitionError,
    ValidationError,
    VATReportConflictError,
    VATReportFiledError,
    VATReportNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.journal_service import JournalService
from ledger_modules.tax.calculator import (
    calculate_line_vat,
    net_vat_position,
    totals_by_category,
    vat_due_date,
)
from ledger_modules.tax.models import (
    VAT_REPORT_TRANSITIONS,
    VATLine,
    VATReport,
    VATReportStatus,
)
from ledger_modules.tax.orm import VATReportRecord

logger = get_logger("modules.tax.service")


class VATService:
    """
    VAT reporting for one store at a time.

    Contract:
        ``period_vat`` returns a DRAFT report and leaves the TVA entries
        posted in the caller's transaction.
    """

    def __init__(
        self,
        session: Session,
        journal: JournalService,
        accounts: Mapping[str, str],
        journals: Mapping[str, str],
        vat_rates: Mapping[str, Decimal | None],
        vat_due_day: int = 20,
        clock: Clock | None = None,
    ):
        self._session = session
        self._journal = journal
        self._accounts = accounts
        self._journals = journals
        self._rates = vat_rates
        self._due_day = vat_due_day
        self._clock = clock or SystemClock()
        self._ledger = LedgerSelector(session)

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def _vat_lines(self, store_id: str, period: DateRange) -> tuple[list[VATLine], list[VATLine]]:
        sales: list[VATLine] = []
        purchases: list[VATLine] = []
        for line in self._ledger.taxable_lines(store_id, period):
            if line.account_type == AccountType.REVENUE.value:
                sales.append(
                    calculate_line_vat(line.credit - line.debit, line.vat_category, self._rates)
                )
            else:
                purchases.append(
                    calculate_line_vat(line.debit - line.credit, line.vat_category, self._rates)
                )
        return sales, purchases

    def period_vat(self, store_id: str, period: DateRange, actor: str = "system") -> VATReport:
        """
        Compute the period's VAT, post the TVA entries and save the report.

        Raises:
            VATReportFiledError: the period's report was already filed.
        """
        record = self._find_record(store_id, period)
        if record is not None:
            if record.status != VATReportStatus.DRAFT.value:
                raise VATReportFiledError(str(record.id), record.status)
            self._reverse_report_entries(record, actor)

        sales, purchases = self._vat_lines(store_id, period)
        vat_on_sales = sum((line.vat_amount for line in sales), ZERO)
        vat_on_purchases = sum(
            (line.vat_amount for line in purchases if line.recoverable), ZERO
        )
        position = net_vat_position(vat_on_sales, vat_on_purchases)
        booked = net_vat_position(*self._booked_vat(store_id, period))

        is_new = record is None
        if is_new:
            record = VATReportRecord(
                store_id=store_id,
                period_start=period.start,
                period_end=period.end,
                created_by_id=actor,
            )

        record.taxable_sales = sum((line.base for line in sales), ZERO)
        record.vat_on_sales = vat_on_sales
        record.taxable_purchases = sum((line.base for line in purchases), ZERO)
        record.vat_on_purchases = vat_on_purchases
        record.vat_payable = position.payable
        record.vat_refundable = position.refundable
        record.net_vat = position.net
        record.booked_vat_on_sales = booked.vat_on_sales
        record.booked_vat_on_purchases = booked.vat_on_purchases
        record.due_date = vat_due_date(period.end, self._due_day)
        record.status = VATReportStatus.DRAFT.value
        record.generated_at = self._clock.now()
        record.updated_by_id = actor
        if is_new:
            self._insert_record(record)

        record.collected_entry_id = self._post_vat_entry(
            store_id,
            period.end,
            f"VAT collected {period.start} - {period.end}",
            debit_account=self._accounts["vat_collected"],
            credit_account=self._accounts["vat_due"],
            amount=booked.vat_on_sales,
            actor=actor,
        )
        record.deductible_entry_id = self._post_vat_entry(
            store_id,
            period.end,
            f"VAT deductible {period.start} - {period.end}",
            debit_account=self._accounts["vat_due"],
            credit_account=self._accounts["vat_recoverable"],
            amount=booked.vat_on_purchases,
            actor=actor,
        )
        record.settlement_entry_id = self._post_vat_entry(
            store_id,
            period.end,
            f"VAT settlement {period.start} - {period.end}",
            debit_account=self._accounts["vat_due"],
            credit_account=self._accounts["bank"],
            amount=booked.payable,
            actor=actor,
        )
        self._session.flush()

        if booked.net != position.net:
            logger.warning(
                "vat_booked_difference",
                extra={
                    "store_id": store_id,
                    "report_id": str(record.id),
                    "booked_vat_on_sales": booked.vat_on_sales,
                    "booked_vat_on_purchases": booked.vat_on_purchases,
                    "difference": booked.net - position.net,
                },
            )

        logger.info(
            "vat_report_generated",
            extra={
                "store_id": store_id,
                "report_id": str(record.id),
                "vat_on_sales": vat_on_sales,
                "vat_on_purchases": vat_on_purchases,
                "net_vat": position.net,
                "entry_ids": [str(e) for e in record.entry_ids],
            },
        )
        return record.to_dto(totals_by_category(sales), totals_by_category(purchases))

    def _insert_record(self, record: VATReportRecord) -> None:
        """Insert a new report row; losing a race for the period is a conflict."""
        self._session.add(record)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise VATReportConflictError(
                record.store_id, str(record.period_start), str(record.period_end)
            ) from exc

    def _booked_vat(self, store_id: str, period: DateRange) -> tuple[Decimal, Decimal]:
        """VAT credited to the collected account and debited to the recoverable one."""
        movements = {
            balance.account_code: balance.period_movement
            for balance in self._ledger.store_balances(store_id, period)
        }
        collected = -movements.get(self._accounts["vat_collected"], ZERO)
        recoverable = movements.get(self._accounts["vat_recoverable"], ZERO)
        return collected, recoverable

    def _post_vat_entry(
        self,
        store_id: str,
        entry_date: date,
        description: str,
        debit_account: str,
        credit_account: str,
        amount: Decimal,
        actor: str,
    ) -> UUID | None:
        if amount <= ZERO:
            return None
        entry = self._journal.create_entry(
            EntryHeader(
                entry_date=entry_date,
                journal=self._journals["tax"],
                description=description,
                store_id=store_id,
                created_by=actor,
                reference=f"VAT:{entry_date.isoformat()}",
            )
        )
        self._journal.add_lines(
            entry.id,
            [
                LineSpec.debit_line(debit_account, amount, description=description),
                LineSpec.credit_line(credit_account, amount, description=description),
            ],
        )
        return entry.id

    def _reverse_report_entries(self, record: VATReportRecord, actor: str) -> None:
        for entry_id in record.entry_ids:
            entry = self._session.get(JournalEntry, entry_id)
            if entry is not None and entry.status == JournalEntryStatus.POSTED:
                self._journal.reverse_entry(
                    entry_id, actor=actor, reason=f"VAT report {record.id} regenerated"
                )
        record.collected_entry_id = None
        record.deductible_entry_id = None
        record.settlement_entry_id = None
        logger.info(
            "vat_report_entries_reversed",
            extra={"report_id": str(record.id), "store_id": record.store_id},
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _find_record(self, store_id: str, period: DateRange) -> VATReportRecord | None:
        return self._session.execute(
            select(VATReportRecord).where(
                VATReportRecord.store_id == store_id,
                VATReportRecord.period_start == period.start,
                VATReportRecord.period_end == period.end,
            )
        ).scalar_one_or_none()

    def _get_record(self, report_id: UUID) -> VATReportRecord:
        record = self._session.get(VATReportRecord, report_id)
        if record is None:
            raise VATReportNotFoundError(str(report_id))
        return record

    def get_report(self, report_id: UUID) -> VATReport:
        return self._get_record(report_id).to_dto()

    def _transition(
        self,
        record: VATReportRecord,
        target: VATReportStatus,
        actor: str,
    ) -> None:
        current = VATReportStatus(record.status)
        if target not in VAT_REPORT_TRANSITIONS[current]:
            raise InvalidStatusTransitionError("VATReport", current.value, target.value)
        record.status = target.value
        record.updated_by_id = actor
        logger.info(
            "vat_report_status_changed",
            extra={
                "report_id": str(record.id),
                "from_status": current.value,
                "to_status": target.value,
            },
        )

    def file_report(self, report_id: UUID, actor: str = "system") -> VATReport:
        """DRAFT -> SUBMITTED."""
        record = self._get_record(report_id)
        self._transition(record, VATReportStatus.SUBMITTED, actor)
        record.submitted_at = self._clock.now()
        self._session.flush()
        return record.to_dto()

    def record_outcome(
        self,
        report_id: UUID,
        status: VATReportStatus | str,
        actor: str = "system",
        payment_reference: str | None = None,
    ) -> VATReport:
        """SUBMITTED -> ACCEPTED | REJECTED, ACCEPTED -> PAID."""
        record = self._get_record(report_id)
        try:
            target = VATReportStatus(status)
        except ValueError:
            raise ValidationError(
                [FieldError(field="status", message=f"unknown VAT report status {status!r}")]
            ) from None
        self._transition(record, target, actor)
        if payment_reference is not None:
            record.payment_reference = payment_reference
        self._session.flush()
        return record.to_dto()
