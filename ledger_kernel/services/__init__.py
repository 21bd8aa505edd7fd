"""Kernel write services.  All of them flush; none of them commit."""

from ledger_kernel.services.chart_service import ChartService
from ledger_kernel.services.journal_service import JournalService, format_entry_number
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.sequence_service import EntrySequence, SequenceService

__all__ = [
    "ChartService",
    "EntrySequence",
    "JournalService",
    "PeriodService",
    "SequenceService",
    "format_entry_number",
]
