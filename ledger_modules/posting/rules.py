"""
Restaurant posting rules.

Responsibility:
    Turn order, payment and supplier-invoice events into balanced line
    sets, using the posting-role -> account-code map from LedgerConfig.

Architecture position:
    Modules layer.  Pure: no session, no I/O.  The PostingService applies
    the result through the kernel JournalService.

Invariants enforced:
    - Every rule produces lines whose debits equal their credits exactly.
    - No line carries both a debit and a credit; zero-amount lines are
      omitted (a zero-tax order has no VAT line).
    - Every line of an order-derived entry carries the order_id.

Failure modes:
    - ValidationError for non-positive totals or a tax amount outside
      [0, total].
"""

from collections.abc import Mapping
from decimal import Decimal

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.values import ZERO
from ledger_kernel.exceptions import FieldError, ValidationError
from ledger_kernel.posting_rules.base import BasePostingRule
from ledger_kernel.posting_rules.registry import PostingRuleRegistry
from ledger_modules.posting.events import (
    OrderCompleted,
    PaymentMethod,
    PaymentSettled,
    SupplierInvoiceReceived,
)

# Payment method -> posting role in the accounts map
PAYMENT_METHOD_ROLES: dict[str, str] = {
    PaymentMethod.CASH: "cash",
    PaymentMethod.CARD: "card",
    PaymentMethod.BANK: "bank",
    PaymentMethod.TRANSFER: "bank",
    PaymentMethod.MOBILE: "mobile",
}


def order_reference(order_id: str) -> str:
    return f"ORDER:{order_id}"


def payment_reference(order_id: str) -> str:
    return f"PAYMENT:{order_id}"


def invoice_reference(invoice_id: str) -> str:
    return f"INVOICE:{invoice_id}"


def _check_amounts(total: Decimal, tax: Decimal, total_field: str) -> None:
    errors = []
    if total <= ZERO:
        errors.append(FieldError(field=total_field, message="must be positive"))
    if tax < ZERO:
        errors.append(FieldError(field="tax_amount", message="cannot be negative"))
    elif tax > total:
        errors.append(FieldError(field="tax_amount", message=f"exceeds {total_field}"))
    if errors:
        raise ValidationError(errors)


class SaleRule(BasePostingRule):
    """Order completed: Dr receivable total / Cr revenue net, Cr VAT collected tax."""

    @property
    def event_type(self) -> str:
        return OrderCompleted.event_type

    @property
    def version(self) -> int:
        return 1

    def journal_name(self, event: OrderCompleted) -> str:
        return "sales"

    def describe(self, event: OrderCompleted) -> str:
        return f"Sale order {event.order_id}"

    def reference(self, event: OrderCompleted) -> str:
        return order_reference(event.order_id)

    def validate_event(self, event: OrderCompleted) -> None:
        super().validate_event(event)
        _check_amounts(event.total_amount, event.tax_amount, "total_amount")

    def compute_lines(self, event: OrderCompleted, accounts: Mapping[str, str]) -> list[LineSpec]:
        lines = [
            LineSpec.debit_line(
                accounts["receivable"],
                event.total_amount,
                description=f"Customer order {event.order_id}",
                order_id=event.order_id,
            ),
        ]
        if event.net_amount > ZERO:
            lines.append(
                LineSpec.credit_line(
                    accounts["revenue"],
                    event.net_amount,
                    description=f"Sales order {event.order_id}",
                    order_id=event.order_id,
                    vat_category=event.vat_category,
                )
            )
        if event.tax_amount > ZERO:
            lines.append(
                LineSpec.credit_line(
                    accounts["vat_collected"],
                    event.tax_amount,
                    description=f"VAT order {event.order_id}",
                    order_id=event.order_id,
                )
            )
        return lines


class PaymentRule(BasePostingRule):
    """Payment settled: Dr cash/bank by method / Cr receivable."""

    @property
    def event_type(self) -> str:
        return PaymentSettled.event_type

    @property
    def version(self) -> int:
        return 1

    def journal_name(self, event: PaymentSettled) -> str:
        return "cash" if event.method == PaymentMethod.CASH else "bank"

    def describe(self, event: PaymentSettled) -> str:
        return f"Payment {event.method} order {event.order_id}"

    def reference(self, event: PaymentSettled) -> str:
        return payment_reference(event.order_id)

    def validate_event(self, event: PaymentSettled) -> None:
        super().validate_event(event)
        if event.amount <= ZERO:
            raise ValidationError([FieldError(field="amount", message="must be positive")])

    def compute_lines(self, event: PaymentSettled, accounts: Mapping[str, str]) -> list[LineSpec]:
        role = PAYMENT_METHOD_ROLES.get(event.method, "bank")
        return [
            LineSpec.debit_line(
                accounts[role],
                event.amount,
                description=f"Payment {event.method} order {event.order_id}",
                order_id=event.order_id,
            ),
            LineSpec.credit_line(
                accounts["receivable"],
                event.amount,
                description=f"Settlement order {event.order_id}",
                order_id=event.order_id,
            ),
        ]


class SupplierInvoiceRule(BasePostingRule):
    """
    Supplier invoice: Dr purchases net, Dr recoverable VAT / Cr payable total.

    VAT on an exempt purchase is not deductible and is charged to the
    purchase line instead.
    """

    @property
    def event_type(self) -> str:
        return SupplierInvoiceReceived.event_type

    @property
    def version(self) -> int:
        return 1

    def journal_name(self, event: SupplierInvoiceReceived) -> str:
        return "purchases"

    def describe(self, event: SupplierInvoiceReceived) -> str:
        return f"Supplier invoice {event.invoice_id}"

    def reference(self, event: SupplierInvoiceReceived) -> str:
        return invoice_reference(event.invoice_id)

    def validate_event(self, event: SupplierInvoiceReceived) -> None:
        super().validate_event(event)
        _check_amounts(event.total_amount, event.tax_amount, "net_amount")

    def compute_lines(
        self, event: SupplierInvoiceReceived, accounts: Mapping[str, str]
    ) -> list[LineSpec]:
        deductible = event.vat_category != "exempt"
        expense = event.net_amount if deductible else event.total_amount
        lines = [
            LineSpec.debit_line(
                event.expense_account or accounts["purchases"],
                expense,
                description=f"Purchase invoice {event.invoice_id}",
                vat_category=event.vat_category,
            ),
        ]
        if deductible and event.tax_amount > ZERO:
            lines.append(
                LineSpec.debit_line(
                    accounts["vat_recoverable"],
                    event.tax_amount,
                    description=f"Recoverable VAT invoice {event.invoice_id}",
                )
            )
        lines.append(
            LineSpec.credit_line(
                accounts["payable"],
                event.total_amount,
                description=f"Supplier invoice {event.invoice_id}",
            )
        )
        return lines


def build_default_registry() -> PostingRuleRegistry:
    """Registry with the sale, payment and supplier-invoice rules."""
    registry = PostingRuleRegistry()
    registry.register(SaleRule())
    registry.register(PaymentRule())
    registry.register(SupplierInvoiceRule())
    return registry
