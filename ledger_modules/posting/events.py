"""
Posting events consumed from the order, payment and purchasing subsystems.

These are frozen value objects; the ledger never produces them.  Amounts
are converted to Decimal on construction.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from ledger_kernel.domain.values import to_decimal


class PaymentMethod:
    """Known payment methods; unknown ones settle through the bank."""

    CASH = "cash"
    CARD = "card"
    BANK = "bank"
    TRANSFER = "transfer"
    MOBILE = "mobile"


def _decimals(obj, *names: str) -> None:
    for name in names:
        object.__setattr__(obj, name, to_decimal(getattr(obj, name)))


@dataclass(frozen=True)
class OrderCompleted:
    event_type: ClassVar[str] = "order.completed"

    order_id: str
    store_id: str
    total_amount: Decimal
    tax_amount: Decimal
    payment_method: str
    timestamp: datetime
    vat_category: str = "standard"

    def __post_init__(self):
        _decimals(self, "total_amount", "tax_amount")

    @property
    def net_amount(self) -> Decimal:
        return self.total_amount - self.tax_amount


@dataclass(frozen=True)
class PaymentSettled:
    event_type: ClassVar[str] = "payment.settled"

    order_id: str
    store_id: str
    amount: Decimal
    method: str
    timestamp: datetime

    def __post_init__(self):
        _decimals(self, "amount")


@dataclass(frozen=True)
class OrderCancelled:
    event_type: ClassVar[str] = "order.cancelled"

    order_id: str
    store_id: str
    timestamp: datetime
    reason: str | None = None


@dataclass(frozen=True)
class SupplierInvoiceReceived:
    event_type: ClassVar[str] = "supplier_invoice.received"

    invoice_id: str
    store_id: str
    net_amount: Decimal
    tax_amount: Decimal
    vat_category: str
    timestamp: datetime
    # Chart code to debit instead of the configured purchases account
    expense_account: str | None = None

    def __post_init__(self):
        _decimals(self, "net_amount", "tax_amount")

    @property
    def total_amount(self) -> Decimal:
        return self.net_amount + self.tax_amount
