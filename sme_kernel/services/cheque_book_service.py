"""
ChequeBookService -- cheque book registration and activation.

Responsibility:
    Registers new cheque books, switches which book is active for a bank,
    and loads books by id.  It never touches next_number; only
    ChequeBookAllocator advances it.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes within the caller's
    transaction.

Invariants enforced:
    - 0 < start_number <= end_number for every registered book.
    - At most one active book per bank.

Failure modes:
    - InvalidBookRangeError for an unusable leaf range.
    - BookNotFoundError for unknown ids or when a bank has no active book.
"""

from sqlalchemy import select, update

from sme_kernel.exceptions import BookNotFoundError, InvalidBookRangeError, ValidationError
from sme_kernel.logging_config import get_logger
from sme_kernel.models.cheque_book import ChequeBook
from sme_kernel.services.base import BaseService

logger = get_logger("services.cheque_book")


class ChequeBookService(BaseService[ChequeBook]):
    """Administration of cheque books."""

    def register_book(
        self,
        book_name: str,
        bank_name: str,
        start_number: int,
        end_number: int,
        activate: bool = True,
    ) -> ChequeBook:
        """
        Register a new book whose first reservation returns ``start_number``.

        Raises:
            ValidationError: if book or bank name is blank.
            InvalidBookRangeError: if start <= 0 or start > end.
        """
        if not (book_name or "").strip():
            raise ValidationError("Book name is required", field="book_name")
        if not (bank_name or "").strip():
            raise ValidationError("Bank name is required", field="bank_name")
        if (
            start_number is None
            or end_number is None
            or start_number <= 0
            or start_number > end_number
        ):
            raise InvalidBookRangeError(start_number, end_number)

        book = ChequeBook(
            book_name=book_name.strip(),
            bank_name=bank_name.strip(),
            start_number=start_number,
            end_number=end_number,
            next_number=start_number,
            is_active=False,
        )
        self.session.add(book)
        self.session.flush()

        logger.info(
            "cheque_book_registered",
            extra={
                "book_id": book.id,
                "bank_name": book.bank_name,
                "start_number": start_number,
                "end_number": end_number,
            },
        )

        if activate:
            self.activate_book(book.id)
        return book

    def get_book(self, book_id: int) -> ChequeBook:
        book = self.session.get(ChequeBook, book_id)
        if book is None:
            raise BookNotFoundError(book_id)
        return book

    def activate_book(self, book_id: int) -> ChequeBook:
        """
        Make a book the active one for its bank.

        Postconditions: every other book of the same bank is inactive.
        """
        book = self.get_book(book_id)
        self.session.execute(
            update(ChequeBook)
            .where(
                ChequeBook.bank_name == book.bank_name,
                ChequeBook.id != book.id,
                ChequeBook.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        book.is_active = True
        self.session.flush()
        logger.info(
            "cheque_book_activated",
            extra={"book_id": book.id, "bank_name": book.bank_name},
        )
        return book

    def deactivate_book(self, book_id: int) -> ChequeBook:
        book = self.get_book(book_id)
        if book.is_active:
            book.is_active = False
            self.session.flush()
            logger.info("cheque_book_deactivated", extra={"book_id": book.id})
        return book

    def get_active_book(self, bank_name: str | None = None) -> ChequeBook:
        """
        The active book for a bank (or the most recently registered active
        book of any bank when ``bank_name`` is None).

        Raises:
            BookNotFoundError: if there is none.
        """
        stmt = select(ChequeBook).where(ChequeBook.is_active.is_(True))
        if bank_name is not None:
            stmt = stmt.where(ChequeBook.bank_name == bank_name)
        book = self.session.scalars(stmt.order_by(ChequeBook.id.desc()).limit(1)).first()
        if book is None:
            raise BookNotFoundError(bank_name=bank_name)
        return book
