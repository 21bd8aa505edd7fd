"""
Pure domain layer.

DTOs, value objects, and the clock and cache abstractions.  Nothing here
touches the ORM or the database.
"""

from ledger_kernel.domain.cache import Cache, NullCache, TTLCache
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountInfo,
    ChartInfo,
    EntryHeader,
    FiscalPeriodInfo,
    JournalEntryInfo,
    JournalLineInfo,
    LineSpec,
)
from ledger_kernel.domain.values import (
    CENT,
    ZERO,
    DateRange,
    fiscal_year_for,
    round_money,
    to_decimal,
)

__all__ = [
    # Values
    "CENT",
    "ZERO",
    "DateRange",
    "fiscal_year_for",
    "round_money",
    "to_decimal",
    # DTOs
    "AccountInfo",
    "ChartInfo",
    "EntryHeader",
    "FiscalPeriodInfo",
    "JournalEntryInfo",
    "JournalLineInfo",
    "LineSpec",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Cache
    "Cache",
    "NullCache",
    "TTLCache",
]
