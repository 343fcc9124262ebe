"""
Module: sme_kernel.selectors.ledger_selector
Responsibility: Filtered, paginated reads of the cheque print ledger.
Architecture position: Kernel > Selectors.

Filters combine with AND.  Dates filter on printed_at (inclusive whole
days); vendor filters through the ledger row's purchase; the cheque-issued
flag selects SUCCESS rows (True) or every other status (False).
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import select

from sme_kernel.models.print_ledger import PrintLedgerEntry, PrintStatus
from sme_kernel.models.purchase import PurchaseEntry
from sme_kernel.selectors.base import BaseSelector, Page

DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class LedgerFilter:
    date_from: date | None = None
    date_to: date | None = None
    vendor_id: int | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    cheque_issued: bool | None = None
    status: PrintStatus | str | None = None
    book_id: int | None = None


@dataclass(frozen=True)
class LedgerEntryDTO:
    id: int
    printed_at: datetime
    payee_name: str
    amount: Decimal
    cheque_number: int
    print_status: str
    remarks: str | None
    user_id: str | None
    book_id: int | None
    purchase_id: int | None
    voids_entry_id: int | None


class LedgerSelector(BaseSelector[PrintLedgerEntry]):
    """Read-only access to the print ledger."""

    def __init__(self, session, page_size: int = DEFAULT_PAGE_SIZE):
        super().__init__(session)
        self.page_size = page_size

    def _to_dto(self, entry: PrintLedgerEntry) -> LedgerEntryDTO:
        return LedgerEntryDTO(
            id=entry.id,
            printed_at=entry.printed_at,
            payee_name=entry.payee_name,
            amount=entry.amount,
            cheque_number=entry.cheque_number,
            print_status=entry.print_status,
            remarks=entry.remarks,
            user_id=entry.user_id,
            book_id=entry.book_id,
            purchase_id=entry.purchase_id,
            voids_entry_id=entry.voids_entry_id,
        )

    def get_entry(self, entry_id: int) -> LedgerEntryDTO | None:
        entry = self.session.get(PrintLedgerEntry, entry_id)
        return self._to_dto(entry) if entry is not None else None

    def entries_for_leaf(self, book_id: int, leaf_number: int) -> list[LedgerEntryDTO]:
        """Full history of one leaf, oldest first."""
        stmt = (
            select(PrintLedgerEntry)
            .where(
                PrintLedgerEntry.book_id == book_id,
                PrintLedgerEntry.cheque_number == leaf_number,
            )
            .order_by(PrintLedgerEntry.id)
        )
        return [self._to_dto(e) for e in self.session.scalars(stmt)]

    def _filtered(self, criteria: LedgerFilter):
        stmt = select(PrintLedgerEntry)
        if criteria.date_from is not None:
            stmt = stmt.where(
                PrintLedgerEntry.printed_at >= datetime.combine(criteria.date_from, time.min)
            )
        if criteria.date_to is not None:
            stmt = stmt.where(
                PrintLedgerEntry.printed_at
                < datetime.combine(criteria.date_to + timedelta(days=1), time.min)
            )
        if criteria.vendor_id is not None:
            stmt = stmt.join(
                PurchaseEntry, PurchaseEntry.id == PrintLedgerEntry.purchase_id
            ).where(PurchaseEntry.vendor_id == criteria.vendor_id)
        if criteria.min_amount is not None:
            stmt = stmt.where(PrintLedgerEntry.amount >= criteria.min_amount)
        if criteria.max_amount is not None:
            stmt = stmt.where(PrintLedgerEntry.amount <= criteria.max_amount)
        if criteria.cheque_issued is True:
            stmt = stmt.where(PrintLedgerEntry.print_status == PrintStatus.SUCCESS.value)
        elif criteria.cheque_issued is False:
            stmt = stmt.where(PrintLedgerEntry.print_status != PrintStatus.SUCCESS.value)
        if criteria.status is not None:
            status = (
                criteria.status.value
                if isinstance(criteria.status, PrintStatus)
                else str(criteria.status).upper()
            )
            stmt = stmt.where(PrintLedgerEntry.print_status == status)
        if criteria.book_id is not None:
            stmt = stmt.where(PrintLedgerEntry.book_id == criteria.book_id)
        return stmt

    def query(self, criteria: LedgerFilter | None = None, page: int = 1) -> Page[LedgerEntryDTO]:
        """Newest first, ``page_size`` rows per page."""
        stmt = self._filtered(criteria or LedgerFilter())
        total = self._count(stmt)
        stmt = stmt.order_by(PrintLedgerEntry.printed_at.desc(), PrintLedgerEntry.id.desc())
        rows = self._paginate(stmt, page, self.page_size)
        return Page(
            items=tuple(self._to_dto(e) for e in rows),
            page=max(1, page),
            page_size=self.page_size,
            total_count=total,
        )
