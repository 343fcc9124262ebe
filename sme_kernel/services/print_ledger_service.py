"""
PrintLedgerService -- print queue staging and the append-only print ledger.

Responsibility:
    Stages cheque print jobs in the print queue, attaches reserved leaves to
    them, and records the outcome of every print attempt as an immutable
    ledger row.  Recording an outcome and removing the queue item happen in
    the caller's single transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes within the caller's
    transaction.

Invariants enforced:
    - Ledger rows are only ever inserted.  A mistaken SUCCESS is corrected
      by appending a VOID row that references it.
    - At most one SUCCESS row per (book, leaf): checked before the insert
      and enforced by the partial unique index at flush.
    - A failed or cancelled print consumes its leaf; the leaf is never
      handed out again.
    - On SUCCESS the purchase (if any) is stamped with the zero-padded
      cheque number and the cheque date.

Failure modes:
    - DuplicateLedgerError for a second SUCCESS on the same leaf, or a
      second VOID of the same entry.
    - InvalidPrintStatusError for an unknown status, or VOID passed to
      record_outcome (use void_entry).
    - LeafMismatchError when the reported leaf differs from the leaf
      reserved for the queue item.
    - QueueItemNotFoundError / LedgerEntryNotFoundError for unknown ids.

Audit relevance:
    The ledger is the single source of truth for whether a leaf was
    consumed.  printed_at comes from the injected clock.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from sme_kernel.db.types import round_money
from sme_kernel.domain.clock import Clock, SystemClock
from sme_kernel.exceptions import (
    DuplicateLedgerError,
    InvalidPrintStatusError,
    LeafMismatchError,
    LedgerEntryNotFoundError,
    QueueItemNotFoundError,
    ValidationError,
)
from sme_kernel.logging_config import LogContext, get_logger
from sme_kernel.models.print_ledger import PrintLedgerEntry, PrintStatus
from sme_kernel.models.print_queue import PrintQueueItem
from sme_kernel.services.base import BaseService
from sme_kernel.services.purchase_service import PurchaseService

logger = get_logger("services.print_ledger")

_OUTCOME_STATUSES = (PrintStatus.SUCCESS, PrintStatus.FAILED, PrintStatus.CANCELLED)


def parse_print_status(status: PrintStatus | str) -> PrintStatus:
    if isinstance(status, PrintStatus):
        return status
    try:
        return PrintStatus(str(status).strip().upper())
    except ValueError:
        raise InvalidPrintStatusError(str(status)) from None


def format_cheque_number(leaf_number: int, width: int = 6) -> str:
    return str(leaf_number).zfill(width)


class PrintLedgerService(BaseService[PrintLedgerEntry]):
    """
    Print queue and print ledger writes.

    Contract:
        ``record_outcome`` is the only way a queue item leaves the queue
        with a consumed leaf; ``void_entry`` is the only correction.

    Non-goals:
        - Rendering or spooling cheques; the printing collaborator reports
          outcomes.
    """

    def __init__(self, session, clock: Clock | None = None, leaf_number_width: int = 6):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self.leaf_number_width = leaf_number_width

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def enqueue(
        self,
        payee_name: str,
        amount: Decimal,
        cheque_date: date,
        is_ac_payee: bool = True,
        purchase_id: int | None = None,
    ) -> PrintQueueItem:
        """
        Stage a cheque for printing.  No leaf is reserved yet.

        Raises:
            ValidationError: if payee is blank, amount is not positive, or
                cheque date is missing.
        """
        self._validate_job(payee_name, amount, cheque_date)
        item = PrintQueueItem(
            purchase_id=purchase_id,
            payee_name=payee_name.strip(),
            amount=round_money(Decimal(amount)),
            cheque_date=cheque_date,
            is_ac_payee=is_ac_payee,
        )
        self.session.add(item)
        self.session.flush()
        logger.info(
            "print_job_enqueued",
            extra={
                "queue_item_id": item.id,
                "purchase_id": purchase_id,
                "amount": item.amount,
            },
        )
        return item

    @staticmethod
    def _validate_job(payee_name: str | None, amount: Decimal | None, cheque_date: date | None):
        errors = []
        field = None
        if not (payee_name or "").strip():
            errors.append("Payee name is required")
            field = field or "payee_name"
        if amount is None or Decimal(amount) <= 0:
            errors.append("Amount must be greater than 0")
            field = field or "amount"
        if cheque_date is None:
            errors.append("Cheque date is required")
            field = field or "cheque_date"
        if errors:
            raise ValidationError(errors, field=field)

    def get_item(self, queue_item_id: int) -> PrintQueueItem:
        item = self.session.get(PrintQueueItem, queue_item_id)
        if item is None:
            raise QueueItemNotFoundError(queue_item_id)
        return item

    def list_queue(self) -> list[PrintQueueItem]:
        """Queued jobs, oldest first."""
        return list(
            self.session.scalars(
                select(PrintQueueItem).order_by(PrintQueueItem.created_at, PrintQueueItem.id)
            )
        )

    def count_queue(self) -> int:
        return self.session.scalar(select(func.count()).select_from(PrintQueueItem)) or 0

    def update_item(
        self,
        queue_item_id: int,
        payee_name: str | None = None,
        amount: Decimal | None = None,
        cheque_date: date | None = None,
        is_ac_payee: bool | None = None,
    ) -> PrintQueueItem:
        """Edit a staged job.  Only the given fields change."""
        item = self.get_item(queue_item_id)
        self._validate_job(
            payee_name if payee_name is not None else item.payee_name,
            amount if amount is not None else item.amount,
            cheque_date if cheque_date is not None else item.cheque_date,
        )
        if payee_name is not None:
            item.payee_name = payee_name.strip()
        if amount is not None:
            item.amount = round_money(Decimal(amount))
        if cheque_date is not None:
            item.cheque_date = cheque_date
        if is_ac_payee is not None:
            item.is_ac_payee = is_ac_payee
        self.session.flush()
        logger.info("print_job_updated", extra={"queue_item_id": item.id})
        return item

    def attach_leaf(self, queue_item_id: int, book_id: int, leaf_number: int) -> PrintQueueItem:
        """
        Record which reserved leaf a job will be printed on.

        Raises:
            LeafMismatchError: if a different leaf is already attached.
        """
        item = self.get_item(queue_item_id)
        if item.has_leaf and (
            item.leaf_number != leaf_number or item.book_id != book_id
        ):
            raise LeafMismatchError(queue_item_id, item.leaf_number, leaf_number)
        item.book_id = book_id
        item.leaf_number = leaf_number
        self.session.flush()
        return item

    def remove_item(self, queue_item_id: int) -> None:
        """
        Drop a job without printing it.

        A job with an attached leaf is only removed through record_outcome;
        the leaf must be accounted for in the ledger.
        """
        item = self.get_item(queue_item_id)
        if item.has_leaf:
            raise ValidationError(
                f"Queue item {queue_item_id} holds leaf {item.leaf_number}; "
                "record its outcome instead",
                field="queue_item_id",
            )
        self.session.delete(item)
        self.session.flush()
        logger.info("print_job_removed", extra={"queue_item_id": queue_item_id})

    def clear_queue(self) -> int:
        """Remove every job that has no leaf attached.  Returns the count."""
        result = self.session.execute(
            delete(PrintQueueItem)
            .where(PrintQueueItem.leaf_number.is_(None))
            .execution_options(synchronize_session="fetch")
        )
        self.session.flush()
        logger.info("print_queue_cleared", extra={"removed": result.rowcount})
        return result.rowcount

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def get_entry(self, entry_id: int) -> PrintLedgerEntry:
        entry = self.session.get(PrintLedgerEntry, entry_id)
        if entry is None:
            raise LedgerEntryNotFoundError(entry_id)
        return entry

    def _success_exists(self, book_id: int, leaf_number: int) -> bool:
        stmt = select(PrintLedgerEntry.id).where(
            PrintLedgerEntry.book_id == book_id,
            PrintLedgerEntry.cheque_number == leaf_number,
            PrintLedgerEntry.print_status == PrintStatus.SUCCESS.value,
        )
        return self.session.scalar(stmt.limit(1)) is not None

    def _append(self, entry: PrintLedgerEntry) -> PrintLedgerEntry:
        self.session.add(entry)
        try:
            self.session.flush()
        except IntegrityError as exc:
            logger.warning(
                "ledger_duplicate_rejected",
                extra={"book_id": entry.book_id, "cheque_number": entry.cheque_number},
            )
            raise DuplicateLedgerError(entry.book_id, entry.cheque_number) from exc
        return entry

    def record_outcome(
        self,
        queue_item: PrintQueueItem | int,
        leaf_number: int,
        status: PrintStatus | str,
        remarks: str | None = None,
        user_id: str | None = None,
        book_id: int | None = None,
    ) -> PrintLedgerEntry:
        """
        Record what happened when a staged cheque was printed.

        Preconditions:
            - ``leaf_number`` was reserved for this job (if the job has an
              attached leaf the two must match).

        Postconditions:
            - One new ledger row exists; the queue item is gone.
            - On SUCCESS the linked purchase carries the cheque number/date.

        Raises:
            ValidationError: for a SUCCESS when neither the job nor the
                caller names the book the leaf came from.
            DuplicateLedgerError, InvalidPrintStatusError, LeafMismatchError,
            QueueItemNotFoundError.
        """
        item = queue_item if isinstance(queue_item, PrintQueueItem) else self.get_item(queue_item)
        outcome = parse_print_status(status)
        if outcome not in _OUTCOME_STATUSES:
            raise InvalidPrintStatusError(outcome.value)

        if item.has_leaf and item.leaf_number != leaf_number:
            raise LeafMismatchError(item.id, item.leaf_number, leaf_number)
        book_id = item.book_id if item.book_id is not None else book_id
        if outcome is PrintStatus.SUCCESS and book_id is None:
            raise ValidationError(
                f"Cannot record a printed cheque for queue item {item.id} without its book",
                field="book_id",
            )

        with LogContext.bind(queue_item_id=item.id, book_id=book_id, purchase_id=item.purchase_id):
            if outcome is PrintStatus.SUCCESS and self._success_exists(book_id, leaf_number):
                logger.warning(
                    "ledger_duplicate_rejected",
                    extra={"book_id": book_id, "cheque_number": leaf_number},
                )
                raise DuplicateLedgerError(book_id, leaf_number)

            entry = self._append(
                PrintLedgerEntry(
                    user_id=user_id,
                    purchase_id=item.purchase_id,
                    book_id=book_id,
                    payee_name=item.payee_name,
                    amount=item.amount,
                    cheque_number=leaf_number,
                    print_status=outcome.value,
                    remarks=remarks,
                    printed_at=self._clock.now(),
                )
            )

            if outcome is PrintStatus.SUCCESS and item.purchase_id is not None:
                PurchaseService(self.session, clock=self._clock).mark_cheque_issued(
                    item.purchase_id,
                    format_cheque_number(leaf_number, self.leaf_number_width),
                    item.cheque_date,
                )

            self.session.delete(item)
            self.session.flush()

            logger.info(
                "ledger_entry_recorded",
                extra={
                    "entry_id": entry.id,
                    "cheque_number": leaf_number,
                    "print_status": outcome.value,
                    "amount": entry.amount,
                },
            )
        return entry

    def void_entry(
        self,
        entry_id: int,
        remarks: str | None = None,
        user_id: str | None = None,
    ) -> PrintLedgerEntry:
        """
        Invalidate a SUCCESS entry by appending a VOID row.

        The voided leaf stays consumed; next_number is not touched.  The
        linked purchase loses its cheque stamp so it can be re-issued.

        Raises:
            LedgerEntryNotFoundError, InvalidPrintStatusError (entry is not
            SUCCESS), DuplicateLedgerError (entry already voided).
        """
        original = self.get_entry(entry_id)
        if not original.is_success:
            raise InvalidPrintStatusError(original.print_status)

        already_voided = self.session.scalar(
            select(PrintLedgerEntry.id)
            .where(PrintLedgerEntry.voids_entry_id == entry_id)
            .limit(1)
        )
        if already_voided is not None:
            raise DuplicateLedgerError(original.book_id, original.cheque_number)

        void = self._append(
            PrintLedgerEntry(
                user_id=user_id,
                purchase_id=original.purchase_id,
                book_id=original.book_id,
                payee_name=original.payee_name,
                amount=original.amount,
                cheque_number=original.cheque_number,
                print_status=PrintStatus.VOID.value,
                remarks=remarks,
                voids_entry_id=original.id,
                printed_at=self._clock.now(),
            )
        )

        if original.purchase_id is not None:
            PurchaseService(self.session, clock=self._clock).mark_cheque_issued(
                original.purchase_id, None, None
            )

        logger.info(
            "ledger_entry_voided",
            extra={
                "entry_id": void.id,
                "voids_entry_id": original.id,
                "book_id": original.book_id,
                "cheque_number": original.cheque_number,
            },
        )
        return void
