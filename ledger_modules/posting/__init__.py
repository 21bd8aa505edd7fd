"""Posting module: order, payment and supplier-invoice events -> journal entries."""

from ledger_modules.posting.events import (
    OrderCancelled,
    OrderCompleted,
    PaymentMethod,
    PaymentSettled,
    SupplierInvoiceReceived,
)
from ledger_modules.posting.rules import (
    PAYMENT_METHOD_ROLES,
    PaymentRule,
    SaleRule,
    SupplierInvoiceRule,
    build_default_registry,
    invoice_reference,
    order_reference,
    payment_reference,
)
from ledger_modules.posting.service import PostingService

__all__ = [
    "OrderCancelled",
    "OrderCompleted",
    "PAYMENT_METHOD_ROLES",
    "PaymentMethod",
    "PaymentRule",
    "PaymentSettled",
    "PostingService",
    "SaleRule",
    "SupplierInvoiceReceived",
    "SupplierInvoiceRule",
    "build_default_registry",
    "invoice_reference",
    "order_reference",
    "payment_reference",
]
