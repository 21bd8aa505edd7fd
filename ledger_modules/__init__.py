"""
Ledger Modules.

Business modules layered over the ledger kernel:
- posting: order/payment/supplier-invoice events -> journal entries
- reporting: trial balance, income statement, balance sheet, profitability
- tax: Moroccan VAT calculation, period reports and TVA entries

Processing primitives (journal, balances, sequences) live in the kernel.
"""

from ledger_modules import posting, reporting, tax

__all__ = [
    "posting",
    "reporting",
    "tax",
]
