"""Tax module: Moroccan VAT calculation, period reports, TVA entries and the tax calendar."""

from ledger_modules.tax.calculator import (
    calculate_line_vat,
    determine_tax_regime,
    net_vat_position,
    tax_obligations,
    totals_by_category,
    vat_due_date,
)
from ledger_modules.tax.models import (
    VAT_REPORT_TRANSITIONS,
    ObligationFrequency,
    TaxObligation,
    TaxRegime,
    VATCategory,
    VATCategoryTotal,
    VATLine,
    VATPosition,
    VATReport,
    VATReportStatus,
)
from ledger_modules.tax.service import VATService

__all__ = [
    "ObligationFrequency",
    "TaxObligation",
    "TaxRegime",
    "VATCategory",
    "VATCategoryTotal",
    "VATLine",
    "VATPosition",
    "VATReport",
    "VATReportStatus",
    "VATService",
    "VAT_REPORT_TRANSITIONS",
    "calculate_line_vat",
    "determine_tax_regime",
    "net_vat_position",
    "tax_obligations",
    "totals_by_category",
    "vat_due_date",
]
