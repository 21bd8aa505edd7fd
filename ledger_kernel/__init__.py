"""
Ledger Kernel

Double-entry bookkeeping core for multi-store restaurant accounting:
- Per-store chart of accounts
- Balanced, immutable journal entries with per-store entry numbering
- Balances derived from posted lines only (no stored balances)
- Structured logging and typed errors
"""

__version__ = "0.1.0"
