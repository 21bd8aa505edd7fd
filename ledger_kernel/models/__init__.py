"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import (
    CATEGORY_TYPES,
    Account,
    AccountCategory,
    AccountType,
    ChartOfAccounts,
    NormalBalance,
    normal_balance_for,
    type_for_category,
)
from ledger_kernel.models.fiscal_period import FiscalPeriod, PeriodStatus
from ledger_kernel.models.journal import (
    BOOKED_STATUSES,
    JournalCode,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)

__all__ = [
    "Account",
    "AccountCategory",
    "AccountType",
    "BOOKED_STATUSES",
    "CATEGORY_TYPES",
    "ChartOfAccounts",
    "FiscalPeriod",
    "JournalCode",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "NormalBalance",
    "PeriodStatus",
    "normal_balance_for",
    "type_for_category",
]
