"""
ledger_services.ledger -- the Ledger facade.

Responsibility:
    The public entry point of the accounting subsystem.  Each call opens its
    own session, builds the services for it through LedgerOrchestrator and
    commits or rolls back as one unit of work.  Reads return frozen DTOs.

Architecture position:
    Services -- top layer.  Owns transaction boundaries; nothing below it
    commits.

Invariants enforced:
    - No module-level state: config, cache, clock and posting-rule registry
      are instance attributes injected at construction.
    - Entry creation and line attachment of an event posting share one
      transaction; a failure rolls back the draft with everything else.
    - ConcurrencyError (including database-busy and serialization failures,
      mapped to DatabaseBusyError) retries the whole unit of work with a
      fresh session, up to ``config.max_retries`` times.
    - The chart cache entry of a store is invalidated again after the
      commit of any chart mutation.

Failure modes:
    - Every kernel and module error propagates unchanged to the caller
      (after the retries above are exhausted for concurrency errors).

Usage:
    engine = create_engine_from_url("sqlite:///ledger.db")
    create_all_tables(engine)
    ledger = Ledger(create_session_factory(engine))
    ledger.create_chart("store-1", "Casa Centre", actor="admin")
    entry_id = ledger.on_order_completed(OrderCompleted(...))
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from datetime import date, datetime
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ledger_config.loader import ReferenceAccount, load_reference_chart
from ledger_config.schema import LedgerConfig
from ledger_kernel.db.engine import session_scope
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.domain.cache import Cache, TTLCache
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountInfo,
    ChartInfo,
    EntryHeader,
    FiscalPeriodInfo,
    JournalEntryInfo,
    LineSpec,
)
from ledger_kernel.domain.values import DateRange
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ConcurrencyError,
    DatabaseBusyError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account, AccountCategory
from ledger_kernel.posting_rules.registry import PostingRuleRegistry
from ledger_kernel.selectors.ledger_selector import AccountPeriodBalance, GeneralLedger
from ledger_kernel.services.chart_service import chart_cache_key
from ledger_modules.posting.events import (
    OrderCancelled,
    OrderCompleted,
    PaymentSettled,
    SupplierInvoiceReceived,
)
from ledger_modules.posting.rules import build_default_registry
from ledger_modules.reporting.models import (
    FinancialStatement,
    ProfitabilityAnalysis,
    StatementType,
    TrialBalanceReport,
)
from ledger_modules.tax.calculator import determine_tax_regime, tax_obligations
from ledger_modules.tax.models import TaxObligation, TaxRegime, VATReport, VATReportStatus
from ledger_services.orchestrator import LedgerOrchestrator

logger = get_logger("services.ledger")

T = TypeVar("T")

Period = str | DateRange

# SQLite "database is locked", PostgreSQL serialization failure / deadlock
_BUSY_MESSAGES = ("database is locked", "database table is locked")
_BUSY_PGCODES = frozenset({"40001", "40P01"})

# Operations that never write; they run in read-only scopes and never wait
# for a writer's lock on SQLite.
_READ_OPERATIONS = frozenset(
    {
        "get_chart",
        "get_account",
        "list_periods",
        "get_entry",
        "list_entries",
        "entries_for_order",
        "dangling_drafts",
        "get_general_ledger",
        "account_balances",
        "store_balances",
        "latest_trial_balance",
        "generate_financial_statement",
        "analyze_profitability",
        "get_vat_report",
        "determine_tax_regime",
    }
)


def _is_busy(exc: OperationalError) -> bool:
    if getattr(exc.orig, "pgcode", None) in _BUSY_PGCODES:
        return True
    message = str(exc.orig).lower()
    return any(fragment in message for fragment in _BUSY_MESSAGES)


class Ledger:
    """
    Facade over charts, journal, posting rules, reports and VAT.

    Contract:
        ``period`` arguments accept a period_code of the store or a
        DateRange.  Write methods return ids or DTOs built before commit.

    Guarantees:
        - One call = one transaction.
        - Retries are invisible to the caller except through logs.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: LedgerConfig | None = None,
        cache: Cache | None = None,
        clock: Clock | None = None,
        registry: PostingRuleRegistry | None = None,
    ):
        self._session_factory = session_factory
        self.config = config or LedgerConfig.with_defaults()
        self.clock = clock or SystemClock()
        self.cache = cache if cache is not None else TTLCache(self.clock)
        self.registry = registry or build_default_registry()
        self._reference_chart: tuple[ReferenceAccount, ...] | None = None
        register_immutability_listeners()

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _services(self, session: Session) -> LedgerOrchestrator:
        return LedgerOrchestrator(session, self.config, self.cache, self.clock, self.registry)

    def _run_once(
        self,
        operation: str,
        work: Callable[[LedgerOrchestrator], T],
    ) -> T:
        try:
            with session_scope(
                self._session_factory, read_only=operation in _READ_OPERATIONS
            ) as session:
                return work(self._services(session))
        except OperationalError as exc:
            if _is_busy(exc):
                raise DatabaseBusyError(operation, str(exc.orig)) from exc
            raise

    def _execute(
        self,
        operation: str,
        work: Callable[[LedgerOrchestrator], T],
        **context: str | None,
    ) -> T:
        context.setdefault(
            "correlation_id", LogContext.get_all().get("correlation_id") or str(uuid4())
        )
        with LogContext.bind(**context):
            attempt = 0
            while True:
                try:
                    return self._run_once(operation, work)
                except ConcurrencyError as exc:
                    attempt += 1
                    if attempt > self.config.max_retries:
                        logger.error(
                            "unit_of_work_retries_exhausted",
                            extra={"operation": operation, "attempts": attempt, "error_code": exc.code},
                        )
                        raise
                    logger.warning(
                        "unit_of_work_retry",
                        extra={"operation": operation, "attempt": attempt, "error_code": exc.code},
                    )
                    if self.config.retry_backoff_seconds:
                        time.sleep(self.config.retry_backoff_seconds * attempt)

    def _reference_accounts(self) -> tuple[ReferenceAccount, ...]:
        if self._reference_chart is None:
            self._reference_chart = load_reference_chart(self.config.reference_chart_path)
        return self._reference_chart

    # ------------------------------------------------------------------
    # Chart of accounts
    # ------------------------------------------------------------------

    def create_chart(self, store_id: str, name: str, actor: str) -> ChartInfo:
        """Create the store's chart seeded with the reference plan."""
        reference = self._reference_accounts()
        chart = self._execute(
            "create_chart",
            lambda s: s.charts.create_chart(
                store_id,
                name,
                actor,
                reference,
                currency=self.config.currency,
                fiscal_year_start_month=self.config.fiscal_year_start_month,
                fiscal_year_start_day=self.config.fiscal_year_start_day,
            ),
            store_id=store_id,
            actor_id=actor,
        )
        self.cache.invalidate(chart_cache_key(store_id))
        return chart

    def get_chart(self, store_id: str) -> ChartInfo | None:
        return self._execute("get_chart", lambda s: s.charts.get_chart(store_id), store_id=store_id)

    def get_account(self, store_id: str, code: str) -> AccountInfo:
        """
        Raises:
            ChartNotFoundError: the store has no chart.
            AccountNotFoundError: the code is not in the store's chart.
        """

        def work(s: LedgerOrchestrator) -> AccountInfo:
            account = s.charts.require_chart(store_id).account(code)
            if account is None:
                raise AccountNotFoundError(f"{store_id}/{code}")
            return account

        return self._execute("get_account", work, store_id=store_id)

    def add_account(
        self,
        store_id: str,
        code: str,
        name: str,
        category: AccountCategory | str,
        actor: str,
        postable: bool = True,
    ) -> AccountInfo:
        def work(s: LedgerOrchestrator) -> AccountInfo:
            return s.charts.add_account(store_id, code, name, category, actor, postable)

        account = self._execute("add_account", work, store_id=store_id, actor_id=actor)
        self.cache.invalidate(chart_cache_key(store_id))
        return account

    def deactivate_account(self, store_id: str, code: str, actor: str) -> AccountInfo:
        account = self._execute(
            "deactivate_account",
            lambda s: s.charts.deactivate_account(store_id, code, actor),
            store_id=store_id,
            actor_id=actor,
        )
        self.cache.invalidate(chart_cache_key(store_id))
        return account

    # ------------------------------------------------------------------
    # Periods
    # ------------------------------------------------------------------

    def create_period(
        self,
        store_id: str,
        period_code: str,
        name: str,
        start_date: date,
        end_date: date,
        actor: str,
    ) -> FiscalPeriodInfo:
        return self._execute(
            "create_period",
            lambda s: s.periods.create_period(store_id, period_code, name, start_date, end_date, actor),
            store_id=store_id,
            actor_id=actor,
        )

    def close_period(self, store_id: str, period_code: str, actor: str) -> FiscalPeriodInfo:
        return self._execute(
            "close_period",
            lambda s: s.periods.close_period(store_id, period_code, actor),
            store_id=store_id,
            actor_id=actor,
        )

    def lock_period(self, store_id: str, period_code: str, actor: str) -> FiscalPeriodInfo:
        return self._execute(
            "lock_period",
            lambda s: s.periods.lock_period(store_id, period_code, actor),
            store_id=store_id,
            actor_id=actor,
        )

    def list_periods(self, store_id: str) -> list[FiscalPeriodInfo]:
        return self._execute("list_periods", lambda s: s.periods.list_periods(store_id), store_id=store_id)

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------

    def create_entry(self, header: EntryHeader) -> UUID:
        """Create a draft entry with its entry number; returns its id."""
        return self._execute(
            "create_entry",
            lambda s: s.journal.create_entry(header).id,
            store_id=header.store_id,
            actor_id=header.created_by,
        )

    def add_lines(self, entry_id: UUID, lines: Sequence[LineSpec]) -> JournalEntryInfo:
        """Attach lines to a draft entry and post it."""
        return self._execute(
            "add_lines",
            lambda s: JournalEntryInfo.from_model(s.journal.add_lines(entry_id, lines)),
            entry_id=str(entry_id),
        )

    def post_entry(self, header: EntryHeader, lines: Sequence[LineSpec]) -> JournalEntryInfo:
        """Create and post a manual entry in a single transaction."""

        def work(s: LedgerOrchestrator) -> JournalEntryInfo:
            entry = s.journal.create_entry(header)
            return JournalEntryInfo.from_model(s.journal.add_lines(entry.id, lines))

        return self._execute(
            "post_entry", work, store_id=header.store_id, actor_id=header.created_by
        )

    def reverse_entry(
        self,
        entry_id: UUID,
        actor: str | None = None,
        reason: str | None = None,
    ) -> UUID:
        """Reverse a posted entry; returns the reversal entry's id."""
        return self._execute(
            "reverse_entry",
            lambda s: s.journal.reverse_entry(entry_id, actor=actor, reason=reason).id,
            entry_id=str(entry_id),
            actor_id=actor,
        )

    def discard_draft(self, entry_id: UUID) -> None:
        self._execute(
            "discard_draft",
            lambda s: s.journal.discard_draft(entry_id),
            entry_id=str(entry_id),
        )

    def get_entry(self, entry_id: UUID) -> JournalEntryInfo | None:
        return self._execute(
            "get_entry", lambda s: s.journal_selector.get_entry(entry_id), entry_id=str(entry_id)
        )

    def list_entries(
        self,
        store_id: str,
        period: Period,
        journal: str | None = None,
    ) -> list[JournalEntryInfo]:
        """Booked entries of a store within a period, optionally one journal."""
        return self._execute(
            "list_entries",
            lambda s: s.journal_selector.entries(
                store_id, s.periods.resolve(store_id, period), journal
            ),
            store_id=store_id,
        )

    def entries_for_order(self, store_id: str, order_id: str) -> list[JournalEntryInfo]:
        return self._execute(
            "entries_for_order",
            lambda s: s.journal_selector.entries_for_order(store_id, order_id),
            store_id=store_id,
        )

    def dangling_drafts(
        self,
        store_id: str | None = None,
        older_than: datetime | None = None,
    ) -> list[JournalEntryInfo]:
        """Drafts left by a unit of work that never attached its lines."""
        return self._execute(
            "dangling_drafts",
            lambda s: s.journal_selector.dangling_drafts(store_id, older_than),
            store_id=store_id,
        )

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    @staticmethod
    def _account_store(s: LedgerOrchestrator, account_id: UUID) -> str:
        account = s.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account.store_id

    def get_general_ledger(self, account_id: UUID, date_range: Period) -> GeneralLedger:
        def work(s: LedgerOrchestrator) -> GeneralLedger:
            period = s.periods.resolve(self._account_store(s, account_id), date_range)
            return s.ledger_selector.general_ledger(account_id, period)

        return self._execute("get_general_ledger", work)

    def account_balances(self, account_id: UUID, period: Period) -> AccountPeriodBalance:
        def work(s: LedgerOrchestrator) -> AccountPeriodBalance:
            resolved = s.periods.resolve(self._account_store(s, account_id), period)
            return s.ledger_selector.account_balances(account_id, resolved)

        return self._execute("account_balances", work)

    def store_balances(self, store_id: str, period: Period) -> list[AccountPeriodBalance]:
        return self._execute(
            "store_balances",
            lambda s: s.ledger_selector.store_balances(store_id, s.periods.resolve(store_id, period)),
            store_id=store_id,
        )

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def get_trial_balance(
        self,
        period: Period,
        store_id: str,
        actor: str = "system",
    ) -> TrialBalanceReport:
        """Compute the trial balance and replace the stored snapshot."""
        return self._execute(
            "get_trial_balance",
            lambda s: s.reporting.trial_balance(store_id, s.periods.resolve(store_id, period), actor),
            store_id=store_id,
            actor_id=actor,
        )

    def latest_trial_balance(self, period: Period, store_id: str) -> TrialBalanceReport | None:
        """The stored snapshot for the period, without recomputing."""
        return self._execute(
            "latest_trial_balance",
            lambda s: s.reporting.latest_snapshot(store_id, s.periods.resolve(store_id, period)),
            store_id=store_id,
        )

    def generate_financial_statement(
        self,
        statement_type: StatementType | str,
        period: Period,
        store_id: str,
    ) -> FinancialStatement:
        return self._execute(
            "generate_financial_statement",
            lambda s: s.reporting.generate_financial_statement(
                statement_type, store_id, s.periods.resolve(store_id, period)
            ),
            store_id=store_id,
        )

    def analyze_profitability(self, period: Period, store_id: str) -> ProfitabilityAnalysis:
        return self._execute(
            "analyze_profitability",
            lambda s: s.reporting.profitability(store_id, s.periods.resolve(store_id, period)),
            store_id=store_id,
        )

    # ------------------------------------------------------------------
    # VAT
    # ------------------------------------------------------------------

    def calculate_vat(self, period: Period, store_id: str, actor: str = "system") -> VATReport:
        """Compute the period VAT report and post its TVA entries."""
        return self._execute(
            "calculate_vat",
            lambda s: s.vat.period_vat(store_id, s.periods.resolve(store_id, period), actor),
            store_id=store_id,
            actor_id=actor,
        )

    def get_vat_report(self, report_id: UUID) -> VATReport:
        return self._execute("get_vat_report", lambda s: s.vat.get_report(report_id))

    def file_vat_report(self, report_id: UUID, actor: str = "system") -> VATReport:
        return self._execute(
            "file_vat_report",
            lambda s: s.vat.file_report(report_id, actor),
            actor_id=actor,
        )

    def record_vat_outcome(
        self,
        report_id: UUID,
        status: VATReportStatus | str,
        actor: str = "system",
        payment_reference: str | None = None,
    ) -> VATReport:
        return self._execute(
            "record_vat_outcome",
            lambda s: s.vat.record_outcome(report_id, status, actor, payment_reference),
            actor_id=actor,
        )

    def determine_tax_regime(self, store_id: str, year: int) -> TaxRegime:
        """Regime from the store's booked revenue over the calendar year."""
        income = self._execute(
            "determine_tax_regime",
            lambda s: s.reporting.income_statement(store_id, DateRange.year(year)),
            store_id=store_id,
        )
        return determine_tax_regime(income.total_revenue, self.config.tax_regimes)

    def tax_obligations(self, period_end: date | None = None) -> tuple[TaxObligation, ...]:
        """Upcoming tax deadlines from ``period_end`` (default: today on the ledger clock)."""
        return tax_obligations(period_end or self.clock.today(), self.config.vat_due_day)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_order_completed(self, event: OrderCompleted, actor: str = "system") -> UUID:
        return self._execute(
            "on_order_completed",
            lambda s: s.posting.post(event, actor),
            store_id=event.store_id,
            event_id=event.order_id,
        )

    def on_payment_settled(self, event: PaymentSettled, actor: str = "system") -> UUID:
        return self._execute(
            "on_payment_settled",
            lambda s: s.posting.post(event, actor),
            store_id=event.store_id,
            event_id=event.order_id,
        )

    def on_order_cancelled(self, event: OrderCancelled, actor: str = "system") -> list[UUID]:
        return self._execute(
            "on_order_cancelled",
            lambda s: s.posting.cancel_order(event, actor),
            store_id=event.store_id,
            event_id=event.order_id,
        )

    def on_supplier_invoice(self, event: SupplierInvoiceReceived, actor: str = "system") -> UUID:
        return self._execute(
            "on_supplier_invoice",
            lambda s: s.posting.post(event, actor),
            store_id=event.store_id,
            event_id=event.invoice_id,
        )
