"""
Financial Reporting Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Reads per-account balances through the kernel ``LedgerSelector``, builds
reports with the pure functions in ``statements.py`` and persists trial
balance snapshots.

Architecture position
---------------------
**Modules layer** -- thin orchestration over kernel selectors.  Runs
inside the caller's session; never commits.

Failure modes
-------------
* ``ValidationError`` for an unsupported statement type (cash flow).
* ``TrialBalanceConflictError`` when a concurrent call stored the same
  period's snapshot first; the facade retries the unit of work.
* Ledger errors propagate unchanged: a failed balance computation is never
  reported as zero activity.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.values import DateRange
from ledger_kernel.exceptions import FieldError, TrialBalanceConflictError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_modules.reporting import statements
from ledger_modules.reporting.models import (
    BalanceSheet,
    FinancialStatement,
    IncomeStatement,
    ProfitabilityAnalysis,
    StatementType,
    TrialBalanceReport,
)
from ledger_modules.reporting.orm import TrialBalanceSnapshot

logger = get_logger("modules.reporting.service")


class ReportingService:
    """
    Reports over one store's ledger.

    Contract:
        Every method takes an already-resolved DateRange.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        balance_tolerance: Decimal = Decimal("0.01"),
        currency: str = "MAD",
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._tolerance = balance_tolerance
        self._currency = currency
        self._ledger = LedgerSelector(session)

    def trial_balance(
        self,
        store_id: str,
        period: DateRange,
        actor: str = "system",
        persist: bool = True,
    ) -> TrialBalanceReport:
        """
        Trial balance of every postable account.  When ``persist`` is set the
        report replaces any earlier snapshot for the same store and period.
        """
        report = statements.build_trial_balance(
            store_id,
            period,
            self._ledger.store_balances(store_id, period),
            self._tolerance,
            self._clock.now(),
        )

        if not report.is_balanced:
            logger.error(
                "trial_balance_out_of_balance",
                extra={
                    "store_id": store_id,
                    "period_start": period.start,
                    "period_end": period.end,
                    "difference": report.difference,
                },
            )

        if persist:
            report = self._save_snapshot(report, actor)

        logger.info(
            "trial_balance_generated",
            extra={
                "store_id": store_id,
                "period_start": period.start,
                "period_end": period.end,
                "line_count": len(report.lines),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def _save_snapshot(self, report: TrialBalanceReport, actor: str) -> TrialBalanceReport:
        self._session.execute(
            delete(TrialBalanceSnapshot).where(
                TrialBalanceSnapshot.store_id == report.store_id,
                TrialBalanceSnapshot.period_start == report.period.start,
                TrialBalanceSnapshot.period_end == report.period.end,
            )
        )
        snapshot = TrialBalanceSnapshot.from_dto(report, actor)
        self._session.add(snapshot)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise TrialBalanceConflictError(
                report.store_id, str(report.period.start), str(report.period.end)
            ) from exc
        return snapshot.to_dto()

    def latest_snapshot(self, store_id: str, period: DateRange) -> TrialBalanceReport | None:
        snapshot = self._session.execute(
            select(TrialBalanceSnapshot).where(
                TrialBalanceSnapshot.store_id == store_id,
                TrialBalanceSnapshot.period_start == period.start,
                TrialBalanceSnapshot.period_end == period.end,
            )
        ).scalar_one_or_none()
        return snapshot.to_dto() if snapshot is not None else None

    def income_statement(self, store_id: str, period: DateRange) -> IncomeStatement:
        return statements.build_income_statement(
            store_id, period, self._ledger.store_balances(store_id, period)
        )

    def balance_sheet(self, store_id: str, period: DateRange) -> BalanceSheet:
        return statements.build_balance_sheet(
            store_id, period, self._ledger.store_balances(store_id, period)
        )

    def generate_financial_statement(
        self,
        statement_type: StatementType | str,
        store_id: str,
        period: DateRange,
    ) -> FinancialStatement:
        """
        Wrap an income statement or balance sheet as a draft statement.

        Raises:
            ValidationError: unknown or unsupported statement type.
        """
        try:
            statement_type = StatementType(statement_type)
        except ValueError:
            raise ValidationError(
                [FieldError(field="statement_type", message=f"unknown type {statement_type!r}")]
            ) from None

        if statement_type == StatementType.INCOME_STATEMENT:
            data = self.income_statement(store_id, period)
        elif statement_type == StatementType.BALANCE_SHEET:
            data = self.balance_sheet(store_id, period)
        else:
            raise ValidationError(
                [
                    FieldError(
                        field="statement_type",
                        message=f"{statement_type.value} statements are not supported",
                    )
                ]
            )

        logger.info(
            "financial_statement_generated",
            extra={"store_id": store_id, "statement_type": statement_type.value},
        )
        return FinancialStatement(
            statement_type=statement_type,
            store_id=store_id,
            period=period,
            currency=self._currency,
            generated_at=self._clock.now(),
            data=data,
        )

    def profitability(self, store_id: str, period: DateRange) -> ProfitabilityAnalysis:
        return statements.build_profitability(
            store_id, period, self._ledger.store_balances(store_id, period)
        )
