"""Read-only selectors returning DTOs."""

from sme_kernel.selectors.base import Page
from sme_kernel.selectors.cheque_book_selector import ChequeBookDTO, ChequeBookSelector
from sme_kernel.selectors.ledger_selector import LedgerEntryDTO, LedgerFilter, LedgerSelector
from sme_kernel.selectors.purchase_history_selector import (
    DateRangeType,
    PurchaseFilter,
    PurchaseHistorySelector,
    PurchaseSummaryDTO,
)
from sme_kernel.selectors.template_selector import CalibrationDTO, TemplateSelector

__all__ = [
    "CalibrationDTO",
    "ChequeBookDTO",
    "ChequeBookSelector",
    "DateRangeType",
    "LedgerEntryDTO",
    "LedgerFilter",
    "LedgerSelector",
    "Page",
    "PurchaseFilter",
    "PurchaseHistorySelector",
    "PurchaseSummaryDTO",
    "TemplateSelector",
]
