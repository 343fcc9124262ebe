"""
Module: sme_kernel.selectors.cheque_book_selector
Responsibility: Read-only queries over cheque books, including the leaves
    that were reserved but never reported to the print ledger.
Architecture position: Kernel > Selectors.

A leaf below a book's next_number is consumed.  If the ledger has no row for
it, the print outcome was never reported (crash, lost confirmation) and an
operator must reconcile it; it is never handed out again.
"""

from dataclasses import dataclass

from sqlalchemy import select

from sme_kernel.models.cheque_book import ChequeBook
from sme_kernel.models.print_ledger import PrintLedgerEntry
from sme_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ChequeBookDTO:
    id: int
    book_name: str
    bank_name: str
    start_number: int
    end_number: int
    next_number: int
    is_active: bool
    remaining_leaves: int
    is_exhausted: bool


class ChequeBookSelector(BaseSelector[ChequeBook]):
    """Read-only access to cheque books."""

    def _to_dto(self, book: ChequeBook) -> ChequeBookDTO:
        return ChequeBookDTO(
            id=book.id,
            book_name=book.book_name,
            bank_name=book.bank_name,
            start_number=book.start_number,
            end_number=book.end_number,
            next_number=book.next_number,
            is_active=book.is_active,
            remaining_leaves=book.remaining_leaves,
            is_exhausted=book.is_exhausted,
        )

    def get_book(self, book_id: int) -> ChequeBookDTO | None:
        book = self.session.get(ChequeBook, book_id)
        return self._to_dto(book) if book is not None else None

    def list_books(
        self,
        bank_name: str | None = None,
        active_only: bool = False,
    ) -> list[ChequeBookDTO]:
        """Books ordered by bank, then registration order."""
        stmt = select(ChequeBook)
        if bank_name is not None:
            stmt = stmt.where(ChequeBook.bank_name == bank_name)
        if active_only:
            stmt = stmt.where(ChequeBook.is_active.is_(True))
        stmt = stmt.order_by(ChequeBook.bank_name, ChequeBook.id)
        return [self._to_dto(book) for book in self.session.scalars(stmt)]

    def active_book(self, bank_name: str | None = None) -> ChequeBookDTO | None:
        books = self.list_books(bank_name=bank_name, active_only=True)
        return books[-1] if books else None

    def unreconciled_leaves(self, book_id: int) -> list[int]:
        """
        Consumed leaves with no ledger row, ascending.

        Returns an empty list for an unknown book.
        """
        book = self.session.get(ChequeBook, book_id)
        if book is None or not book.has_consumed_leaves:
            return []
        recorded = set(
            self.session.scalars(
                select(PrintLedgerEntry.cheque_number).where(
                    PrintLedgerEntry.book_id == book_id
                )
            )
        )
        return [
            leaf
            for leaf in range(book.start_number, book.next_number)
            if leaf not in recorded
        ]
