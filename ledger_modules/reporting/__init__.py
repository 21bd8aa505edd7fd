"""Reporting module: trial balance, financial statements, profitability."""

from ledger_modules.reporting.models import (
    BalanceSheet,
    BalanceSheetSection,
    FinancialStatement,
    IncomeStatement,
    ProfitabilityAnalysis,
    StatementLine,
    StatementStatus,
    StatementType,
    TrialBalanceLine,
    TrialBalanceReport,
)
from ledger_modules.reporting.service import ReportingService

__all__ = [
    "BalanceSheet",
    "BalanceSheetSection",
    "FinancialStatement",
    "IncomeStatement",
    "ProfitabilityAnalysis",
    "ReportingService",
    "StatementLine",
    "StatementStatus",
    "StatementType",
    "TrialBalanceLine",
    "TrialBalanceReport",
]
