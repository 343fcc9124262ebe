"""
ChequeIssuanceService -- orchestrator for submit-and-print.

Responsibility:
    Composes the purchase, allocator, print ledger and template components
    into the request/response operations the UI calls: submit a purchase
    (optionally staging a cheque), prepare a staged cheque for printing
    (reserving its leaf), report the printer's outcome, and void-and-reissue.

Architecture position:
    Kernel > Services -- orchestrator.  Owns transaction boundaries through
    Database.session_scope(); the session-bound services it creates only
    flush.

Invariants enforced:
    - A purchase and its staged cheque are saved in one transaction.
    - A leaf is reserved in its own committed transaction before it is
      attached to the queue item.  If attaching fails, the leaf stays
      consumed and shows up as unreconciled; it is never handed out again.
    - prepare_print is idempotent for a job that already holds a leaf: the
      same leaf is returned and no new leaf is reserved.
    - An outcome can only be reported for a job holding a leaf.

Failure modes:
    - Everything raised by the composed services propagates unchanged.
    - StorageError / ConcurrencyError during reservation are retried a
      bounded number of times (services/retry.py).
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sme_kernel.db.engine import Database
from sme_kernel.domain.amount_words import amount_to_words
from sme_kernel.domain.clock import Clock, SystemClock
from sme_kernel.domain.layout import ChequeLayout, ChequeStock
from sme_kernel.domain.purchase import FeeDefaults, PurchaseDraft
from sme_kernel.exceptions import ValidationError
from sme_kernel.logging_config import LogContext, get_logger
from sme_kernel.models.print_ledger import PrintStatus
from sme_kernel.services.cheque_book_allocator import ChequeBookAllocator
from sme_kernel.services.cheque_book_service import ChequeBookService
from sme_kernel.services.print_ledger_service import (
    PrintLedgerService,
    format_cheque_number,
    parse_print_status,
)
from sme_kernel.services.purchase_service import PurchaseService
from sme_kernel.services.retry import retry_on_storage_error
from sme_kernel.services.template_service import TemplateService

logger = get_logger("services.cheque_issuance")


@dataclass(frozen=True)
class PrintRequest:
    """Cheque to stage with a purchase.  Blank fields default from the purchase."""

    payee_name: str | None = None
    amount: Decimal | None = None
    cheque_date: date | None = None
    is_ac_payee: bool = True


@dataclass(frozen=True)
class SubmissionResult:
    purchase_id: int
    grand_total: Decimal
    status: str
    queue_item_id: int | None = None


@dataclass(frozen=True)
class PrintBundle:
    """Everything the printing collaborator needs to print one cheque."""

    queue_item_id: int
    book_id: int
    bank_name: str
    leaf_number: int
    cheque_number: str
    payee_name: str
    amount: Decimal
    amount_in_words: str
    amount_digits: str
    cheque_date: date
    date_digits: str
    is_ac_payee: bool
    layout: ChequeLayout


@dataclass(frozen=True)
class OutcomeResult:
    entry_id: int
    leaf_number: int
    print_status: str
    purchase_id: int | None


@dataclass(frozen=True)
class ReissueResult:
    void_entry_id: int
    queue_item_id: int


def format_amount_digits(amount: Decimal) -> str:
    return f"{amount:.2f}/-"


def format_date_digits(value: date) -> str:
    return value.strftime("%d%m%Y")


class ChequeIssuanceService:
    """
    Orchestrates the purchase-to-printed-cheque workflow.

    Contract:
        Each public method is one or more complete transactions; callers
        never manage sessions.

    Non-goals:
        - Rendering, spooling or observing the printer.
    """

    def __init__(
        self,
        database: Database,
        allocator: ChequeBookAllocator | None = None,
        clock: Clock | None = None,
        fee_defaults: FeeDefaults | None = None,
        stock: ChequeStock | None = None,
        leaf_number_width: int = 6,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
    ):
        self._database = database
        self._allocator = allocator or ChequeBookAllocator(database)
        self._clock = clock or SystemClock()
        self._fee_defaults = fee_defaults or FeeDefaults()
        self._stock = stock or ChequeStock()
        self._leaf_number_width = leaf_number_width
        self._retry_attempts = retry_attempts
        self._retry_backoff_seconds = retry_backoff_seconds

    def _ledger(self, session) -> PrintLedgerService:
        return PrintLedgerService(session, self._clock, self._leaf_number_width)

    def submit_purchase(
        self,
        draft: PurchaseDraft,
        print_request: PrintRequest | None = None,
    ) -> SubmissionResult:
        """
        Save a purchase and, if requested, stage its cheque.

        Raises:
            ValidationError, VendorNotFoundError, PurchaseNotFoundError.
        """
        with self._database.session_scope() as session:
            entry = PurchaseService(session, self._clock, self._fee_defaults).save(draft)
            queue_item_id = None
            if print_request is not None:
                item = self._ledger(session).enqueue(
                    payee_name=print_request.payee_name or entry.vendor.name,
                    amount=(
                        print_request.amount
                        if print_request.amount is not None
                        else entry.grand_total
                    ),
                    cheque_date=print_request.cheque_date or self._clock.today(),
                    is_ac_payee=print_request.is_ac_payee,
                    purchase_id=entry.id,
                )
                queue_item_id = item.id
            result = SubmissionResult(
                purchase_id=entry.id,
                grand_total=entry.grand_total,
                status=entry.status,
                queue_item_id=queue_item_id,
            )

        logger.info(
            "purchase_submitted",
            extra={
                "purchase_id": result.purchase_id,
                "queue_item_id": result.queue_item_id,
            },
        )
        return result

    def prepare_print(
        self,
        queue_item_id: int,
        book_id: int | None = None,
        bank_name: str | None = None,
    ) -> PrintBundle:
        """
        Reserve a leaf for a staged cheque and return its print bundle.

        Args:
            queue_item_id: The staged job.
            book_id: Book to draw from; defaults to the active book of
                ``bank_name`` (or any bank).
            bank_name: Used only when ``book_id`` is None.

        Raises:
            QueueItemNotFoundError, BookNotFoundError, BookExhaustedError,
            LeafReservationTimeoutError, StorageError.
        """
        with LogContext.bind(queue_item_id=queue_item_id):
            with self._database.session_scope() as session:
                item = self._ledger(session).get_item(queue_item_id)
                books = ChequeBookService(session)
                if item.has_leaf:
                    book = books.get_book(item.book_id)
                    leaf = item.leaf_number
                elif book_id is not None:
                    book = books.get_book(book_id)
                    leaf = None
                else:
                    book = books.get_active_book(bank_name)
                    leaf = None
                target_book_id = book.id
                target_bank = book.bank_name

            if leaf is None:
                leaf = retry_on_storage_error(
                    lambda: self._allocator.reserve_next_leaf(target_book_id),
                    attempts=self._retry_attempts,
                    backoff_seconds=self._retry_backoff_seconds,
                    operation_name="reserve_next_leaf",
                )
                with self._database.session_scope() as session:
                    self._ledger(session).attach_leaf(queue_item_id, target_book_id, leaf)
                logger.info(
                    "leaf_attached",
                    extra={"book_id": target_book_id, "leaf_number": leaf},
                )

            with self._database.session_scope() as session:
                item = self._ledger(session).get_item(queue_item_id)
                layout = TemplateService(session, self._clock, self._stock).get_template(
                    target_bank
                )
                return PrintBundle(
                    queue_item_id=item.id,
                    book_id=target_book_id,
                    bank_name=target_bank,
                    leaf_number=leaf,
                    cheque_number=format_cheque_number(leaf, self._leaf_number_width),
                    payee_name=item.payee_name,
                    amount=item.amount,
                    amount_in_words=amount_to_words(item.amount),
                    amount_digits=format_amount_digits(item.amount),
                    cheque_date=item.cheque_date,
                    date_digits=format_date_digits(item.cheque_date),
                    is_ac_payee=item.is_ac_payee,
                    layout=layout,
                )

    def report_outcome(
        self,
        queue_item_id: int,
        outcome: bool | PrintStatus | str,
        remarks: str | None = None,
        user_id: str | None = None,
    ) -> OutcomeResult:
        """
        Record the printer's outcome for a prepared cheque.

        ``True`` means SUCCESS and ``False`` means FAILED; a PrintStatus (or
        its name) may be given for CANCELLED.

        Raises:
            ValidationError: if no leaf was reserved for the job.
            DuplicateLedgerError, InvalidPrintStatusError,
            QueueItemNotFoundError.
        """
        if isinstance(outcome, bool):
            status = PrintStatus.SUCCESS if outcome else PrintStatus.FAILED
        else:
            status = parse_print_status(outcome)

        with self._database.session_scope() as session:
            ledger = self._ledger(session)
            item = ledger.get_item(queue_item_id)
            if not item.has_leaf:
                raise ValidationError(
                    f"No leaf reserved for queue item {queue_item_id}; prepare it first",
                    field="queue_item_id",
                )
            entry = ledger.record_outcome(item, item.leaf_number, status, remarks, user_id)
            return OutcomeResult(
                entry_id=entry.id,
                leaf_number=entry.cheque_number,
                print_status=entry.print_status,
                purchase_id=entry.purchase_id,
            )

    def void_and_reissue(
        self,
        entry_id: int,
        remarks: str | None = None,
        user_id: str | None = None,
        cheque_date: date | None = None,
    ) -> ReissueResult:
        """
        Void a printed cheque and stage a replacement for the same payee
        and amount.  The replacement gets a new leaf when prepared.
        """
        with self._database.session_scope() as session:
            ledger = self._ledger(session)
            void = ledger.void_entry(entry_id, remarks, user_id)
            item = ledger.enqueue(
                payee_name=void.payee_name,
                amount=void.amount,
                cheque_date=cheque_date or self._clock.today(),
                purchase_id=void.purchase_id,
            )
            result = ReissueResult(void_entry_id=void.id, queue_item_id=item.id)

        logger.info(
            "cheque_reissued",
            extra={
                "voids_entry_id": entry_id,
                "void_entry_id": result.void_entry_id,
                "queue_item_id": result.queue_item_id,
            },
        )
        return result
