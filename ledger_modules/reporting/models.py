"""
Financial Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects for the reporting outputs: trial balance,
income statement, balance sheet, the FinancialStatement wrapper and the
profitability analysis.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by
``statements.py`` and returned by ``ReportingService``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields are ``Decimal`` rounded to cents.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.values import ZERO, DateRange


class StatementType(str, Enum):
    """Types of financial statements."""

    BALANCE_SHEET = "balance_sheet"
    INCOME_STATEMENT = "income_statement"
    CASH_FLOW = "cash_flow"


class StatementStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceLine:
    """One postable account: opening, period and closing, each split."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    opening_debit: Decimal
    opening_credit: Decimal
    period_debit: Decimal
    period_credit: Decimal
    closing_debit: Decimal
    closing_credit: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    """
    Trial balance of a store over a period.

    ``is_balanced`` compares the closing columns against the configured
    tolerance.
    """

    store_id: str
    period: DateRange
    generated_at: datetime
    lines: tuple[TrialBalanceLine, ...]
    total_opening_debit: Decimal
    total_opening_credit: Decimal
    total_period_debit: Decimal
    total_period_credit: Decimal
    total_closing_debit: Decimal
    total_closing_credit: Decimal
    is_balanced: bool
    snapshot_id: UUID | None = None

    @property
    def difference(self) -> Decimal:
        return self.total_closing_debit - self.total_closing_credit

    def line(self, account_code: str) -> TrialBalanceLine | None:
        for item in self.lines:
            if item.account_code == account_code:
                return item
        return None


# =========================================================================
# Income Statement
# =========================================================================


@dataclass(frozen=True)
class StatementLine:
    """An account amount in its natural sign."""

    account_code: str
    account_name: str
    amount: Decimal


@dataclass(frozen=True)
class IncomeStatement:
    store_id: str
    period: DateRange
    revenue: tuple[StatementLine, ...]
    expenses: tuple[StatementLine, ...]
    total_revenue: Decimal
    total_expenses: Decimal
    net_result: Decimal
    # net_result / total_revenue * 100, zero without revenue
    gross_margin: Decimal

    @property
    def is_profitable(self) -> bool:
        return self.net_result > ZERO


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class BalanceSheetSection:
    title: str
    lines: tuple[StatementLine, ...]
    total: Decimal


@dataclass(frozen=True)
class BalanceSheet:
    """
    Closing position at the end of the period.

    ``current_result`` is revenue minus expenses not yet closed into
    equity, so assets = liabilities + equity + current_result.
    """

    store_id: str
    period: DateRange
    assets: BalanceSheetSection
    liabilities: BalanceSheetSection
    equity: BalanceSheetSection
    current_result: Decimal

    @property
    def total_assets(self) -> Decimal:
        return self.assets.total

    @property
    def total_liabilities_and_equity(self) -> Decimal:
        return self.liabilities.total + self.equity.total + self.current_result

    def is_balanced(self, tolerance: Decimal) -> bool:
        return abs(self.total_assets - self.total_liabilities_and_equity) <= tolerance


# =========================================================================
# Wrapper and analysis
# =========================================================================


@dataclass(frozen=True)
class FinancialStatement:
    statement_type: StatementType
    store_id: str
    period: DateRange
    currency: str
    generated_at: datetime
    data: IncomeStatement | BalanceSheet
    status: StatementStatus = StatementStatus.DRAFT

    @property
    def is_draft(self) -> bool:
        return self.status == StatementStatus.DRAFT

    def approve(self) -> FinancialStatement:
        """Approved copy of this statement. Approval is not stored."""
        return replace(self, status=StatementStatus.APPROVED)


@dataclass(frozen=True)
class ProfitabilityAnalysis:
    store_id: str
    period: DateRange
    total_revenue: Decimal
    total_costs: Decimal
    purchases: Decimal
    # revenue - purchases
    gross_profit: Decimal
    gross_margin: Decimal
    net_profit: Decimal
    net_margin: Decimal
