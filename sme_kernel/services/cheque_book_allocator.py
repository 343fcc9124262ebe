"""
ChequeBookAllocator -- gap-free cheque leaf reservation.

Responsibility:
    Hands out the next unused leaf of a cheque book.  Each call returns a
    leaf number no other call has returned, in increasing order, with no
    gaps, and persists the advanced cursor before returning.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Unlike the
    session-bound services, the allocator owns its transaction: a
    reservation is committed before the leaf number is handed out.

Invariants enforced:
    - Uniqueness and monotonicity: three layers of exclusion guard each
      reservation.
        1. A per-book ``threading.Lock`` held across the commit serializes
           reservations within the process.
        2. ``SELECT ... FOR UPDATE`` locks the book row on PostgreSQL.
        3. ``UPDATE ... WHERE next_number = :observed`` is a compare-and-swap;
           if another writer advanced the cursor, nothing is written and
           OptimisticLockError is raised.
    - Atomicity: the exhausted check, the increment and its persistence are
      one transaction.  Any failure rolls back and next_number is unchanged.
    - Irreversibility: there is no operation that lowers next_number.  A
      reserved leaf whose print never completed is surfaced by
      ChequeBookSelector.unreconciled_leaves(), never handed out again.

Failure modes:
    - BookNotFoundError for an unknown book id.
    - BookExhaustedError when next_number > end_number (state unchanged).
    - LeafReservationTimeoutError when the book lock is not acquired in time.
    - StorageError for database failures (state unchanged; safe to retry).
    - OptimisticLockError if a writer outside this process won the race.

Audit relevance:
    Every reservation is logged (``leaf_reserved``) with book and leaf
    number; the print ledger later records what happened to the leaf.
"""

import threading

from sqlalchemy import func, select, update

from sme_kernel.db.engine import Database
from sme_kernel.exceptions import (
    BookExhaustedError,
    BookNotFoundError,
    LeafReservationTimeoutError,
    OptimisticLockError,
)
from sme_kernel.logging_config import LogContext, get_logger
from sme_kernel.models.cheque_book import ChequeBook

logger = get_logger("services.cheque_book_allocator")


class ChequeBookAllocator:
    """
    Reserves cheque leaves.

    Contract:
        ``reserve_next_leaf(book_id)`` returns the leaf that was
        next_number before the call and leaves next_number one higher.

    Guarantees:
        - Concurrent callers for one book receive distinct, consecutive
          leaves.
        - Different books never block each other in-process.

    Non-goals:
        - Cross-process fairness; a second process is serialized by the
          database row lock (PostgreSQL) or write lock (SQLite).
    """

    def __init__(self, database: Database, lock_timeout_seconds: float = 10.0):
        self._database = database
        self.lock_timeout_seconds = lock_timeout_seconds
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _book_lock(self, book_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(book_id)
            if lock is None:
                lock = self._locks[book_id] = threading.Lock()
            return lock

    def reserve_next_leaf(self, book_id: int, timeout: float | None = None) -> int:
        """
        Reserve the next leaf of a book.

        Preconditions:
            - ``book_id`` refers to a registered book.

        Postconditions:
            - On return, the book's next_number is one greater than the
              returned leaf and that change is committed.
            - On any exception, next_number is unchanged.

        Args:
            book_id: The cheque book to draw from.
            timeout: Seconds to wait for the book lock (default:
                ``lock_timeout_seconds``).

        Returns:
            The reserved leaf number.

        Raises:
            BookNotFoundError, BookExhaustedError,
            LeafReservationTimeoutError, StorageError, OptimisticLockError.
        """
        wait = self.lock_timeout_seconds if timeout is None else timeout
        lock = self._book_lock(book_id)

        with LogContext.bind(book_id=book_id):
            if not lock.acquire(timeout=wait):
                logger.warning(
                    "leaf_reservation_timeout",
                    extra={"book_id": book_id, "timeout": wait},
                )
                raise LeafReservationTimeoutError(book_id, wait)
            try:
                with self._database.session_scope() as session:
                    leaf = self._reserve(session, book_id)
            finally:
                lock.release()

            logger.info("leaf_reserved", extra={"book_id": book_id, "leaf_number": leaf})
            return leaf

    def _reserve(self, session, book_id: int) -> int:
        book = session.execute(
            select(ChequeBook)
            .where(ChequeBook.id == book_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if book is None:
            raise BookNotFoundError(book_id)

        if book.is_exhausted:
            logger.warning(
                "book_exhausted",
                extra={
                    "book_id": book_id,
                    "next_number": book.next_number,
                    "end_number": book.end_number,
                },
            )
            raise BookExhaustedError(book_id, book.next_number, book.end_number)

        observed = book.next_number
        result = session.execute(
            update(ChequeBook)
            .where(ChequeBook.id == book_id, ChequeBook.next_number == observed)
            .values(next_number=observed + 1, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "leaf_reservation_conflict",
                extra={"book_id": book_id, "observed": observed},
            )
            raise OptimisticLockError("ChequeBook", book_id, observed)

        logger.debug(
            "leaf_cursor_advanced",
            extra={"book_id": book_id, "next_number": observed + 1},
        )
        return observed

    def remaining_leaves(self, book_id: int) -> int:
        """max(0, end_number - next_number + 1), read from storage."""
        with self._database.session_scope() as session:
            book = session.get(ChequeBook, book_id)
            if book is None:
                raise BookNotFoundError(book_id)
            return book.remaining_leaves
