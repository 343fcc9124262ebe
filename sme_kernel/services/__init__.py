"""Kernel services: write paths and the issuance orchestrator."""

from sme_kernel.services.cheque_book_allocator import ChequeBookAllocator
from sme_kernel.services.cheque_book_service import ChequeBookService
from sme_kernel.services.cheque_issuance_service import (
    ChequeIssuanceService,
    OutcomeResult,
    PrintBundle,
    PrintRequest,
    ReissueResult,
    SubmissionResult,
)
from sme_kernel.services.print_ledger_service import PrintLedgerService
from sme_kernel.services.purchase_service import PurchaseService
from sme_kernel.services.retry import retry_on_storage_error
from sme_kernel.services.template_service import TemplateService

__all__ = [
    "ChequeBookAllocator",
    "ChequeBookService",
    "ChequeIssuanceService",
    "OutcomeResult",
    "PrintBundle",
    "PrintLedgerService",
    "PrintRequest",
    "PurchaseService",
    "ReissueResult",
    "SubmissionResult",
    "TemplateService",
    "retry_on_storage_error",
]
