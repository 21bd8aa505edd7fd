"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import (
    AccountPeriodBalance,
    GeneralLedger,
    GeneralLedgerLine,
    LedgerSelector,
    TaxableLine,
)

__all__ = [
    "AccountPeriodBalance",
    "GeneralLedger",
    "GeneralLedgerLine",
    "JournalSelector",
    "LedgerSelector",
    "TaxableLine",
]
