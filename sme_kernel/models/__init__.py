"""Persistent models for the SME ledger kernel."""

from sme_kernel.models.cheque_book import ChequeBook
from sme_kernel.models.cheque_template import ChequeTemplateCalibration, ChequeTemplateConfig
from sme_kernel.models.print_ledger import PrintLedgerEntry, PrintStatus
from sme_kernel.models.print_queue import PrintQueueItem
from sme_kernel.models.purchase import PurchaseEntry
from sme_kernel.models.vendor import Vendor

__all__ = [
    "ChequeBook",
    "ChequeTemplateCalibration",
    "ChequeTemplateConfig",
    "PrintLedgerEntry",
    "PrintQueueItem",
    "PrintStatus",
    "PurchaseEntry",
    "Vendor",
]
