"""
Typed Exception Hierarchy for the SME Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The UI layer above the kernel turns every error into a human-readable message
and, for some errors, a recovery action (register the vendor, activate another
cheque book, re-print after a void). It must never parse message strings to
decide which. Every error here therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, stable across wording changes)
  3. Structured DATA attributes (book_id, leaf_number, field, ...)

Example:
    try:
        leaf = allocator.reserve_next_leaf(book_id)
    except BookExhaustedError as e:
        prompt_for_new_book(e.book_id, e.end_number)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SmeKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidBookRangeError
    |
    +-- NotFoundError
    |   +-- PurchaseNotFoundError
    |   +-- VendorNotFoundError
    |   +-- BookNotFoundError
    |   +-- QueueItemNotFoundError
    |   +-- LedgerEntryNotFoundError
    |
    +-- AllocationError
    |   +-- BookExhaustedError
    |   +-- LeafMismatchError
    |
    +-- LedgerError
    |   +-- DuplicateLedgerError
    |   +-- InvalidPrintStatusError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityViolationError
    |
    +-- StorageError
        +-- LeafReservationTimeoutError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Purchase fails field validation
                | INVALID_BOOK_RANGE          | Book start > end or non-positive
----------------|-----------------------------|-----------------------------------------
Not found       | PURCHASE_NOT_FOUND          | Purchase id doesn't exist
                | VENDOR_NOT_FOUND            | Vendor id doesn't exist
                | BOOK_NOT_FOUND              | Cheque book id doesn't exist
                | QUEUE_ITEM_NOT_FOUND        | Print queue item doesn't exist
                | LEDGER_ENTRY_NOT_FOUND      | Ledger row doesn't exist
----------------|-----------------------------|-----------------------------------------
Allocation      | BOOK_EXHAUSTED              | next_number > end_number
                | LEAF_MISMATCH               | Outcome reported for a leaf not reserved
----------------|-----------------------------|-----------------------------------------
Ledger          | DUPLICATE_LEDGER_ENTRY      | Second SUCCESS for the same leaf
                | INVALID_PRINT_STATUS        | Status outside the allowed set
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Compare-and-swap on next_number lost
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Ledger edit, hard delete, counter rewind
----------------|-----------------------------|-----------------------------------------
Storage         | STORAGE_ERROR               | Underlying database failure
                | LEAF_RESERVATION_TIMEOUT    | Book lock not acquired within timeout

===============================================================================
HANDLING PATTERNS
===============================================================================

1. ValidationError carries every failing field; show `errors` to the user.
2. StorageError is the only category that may be retried automatically
   (see services.retry).
3. ImmutabilityViolationError means a caller tried to rewrite history.
   It is never retried.

===============================================================================
"""


class SmeKernelError(Exception):
    """
    Base exception for all kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SME_KERNEL_ERROR"


# Validation exceptions


class ValidationError(SmeKernelError):
    """Input rejected before any storage access.

    `errors` holds every failure message; `field` names the first failing field.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, errors: list[str] | str, field: str | None = None):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        self.field = field
        super().__init__("; ".join(self.errors))


class InvalidBookRangeError(ValidationError):
    """Cheque book leaf range is not usable."""

    code: str = "INVALID_BOOK_RANGE"

    def __init__(self, start_number: int, end_number: int):
        self.start_number = start_number
        self.end_number = end_number
        super().__init__(
            f"Invalid cheque book range: {start_number}..{end_number}",
            field="end_number",
        )


# Not-found exceptions


class NotFoundError(SmeKernelError):
    """Base exception for lookups that found nothing."""

    code: str = "NOT_FOUND"


class PurchaseNotFoundError(NotFoundError):
    """Purchase entry with given id was not found."""

    code: str = "PURCHASE_NOT_FOUND"

    def __init__(self, purchase_id: int):
        self.purchase_id = purchase_id
        super().__init__(f"Purchase not found: {purchase_id}")


class VendorNotFoundError(NotFoundError):
    """Vendor with given id was not found."""

    code: str = "VENDOR_NOT_FOUND"

    def __init__(self, vendor_id: int):
        self.vendor_id = vendor_id
        super().__init__(f"Vendor not found: {vendor_id}")


class BookNotFoundError(NotFoundError):
    """Cheque book with given id (or active book for a bank) was not found."""

    code: str = "BOOK_NOT_FOUND"

    def __init__(self, book_id: int | None = None, bank_name: str | None = None):
        self.book_id = book_id
        self.bank_name = bank_name
        if book_id is not None:
            message = f"Cheque book not found: {book_id}"
        else:
            message = f"No active cheque book for bank: {bank_name or '<any>'}"
        super().__init__(message)


class QueueItemNotFoundError(NotFoundError):
    """Print queue item with given id was not found."""

    code: str = "QUEUE_ITEM_NOT_FOUND"

    def __init__(self, queue_item_id: int):
        self.queue_item_id = queue_item_id
        super().__init__(f"Print queue item not found: {queue_item_id}")


class LedgerEntryNotFoundError(NotFoundError):
    """Print ledger entry with given id was not found."""

    code: str = "LEDGER_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: int):
        self.entry_id = entry_id
        super().__init__(f"Ledger entry not found: {entry_id}")


# Allocation exceptions


class AllocationError(SmeKernelError):
    """Base exception for cheque leaf allocation errors."""

    code: str = "ALLOCATION_ERROR"


class BookExhaustedError(AllocationError):
    """No leaves left in the book."""

    code: str = "BOOK_EXHAUSTED"

    def __init__(self, book_id: int, next_number: int, end_number: int):
        self.book_id = book_id
        self.next_number = next_number
        self.end_number = end_number
        super().__init__(
            f"Cheque book {book_id} is exhausted "
            f"(next {next_number} > end {end_number})"
        )


class LeafMismatchError(AllocationError):
    """Outcome reported for a leaf the queue item never reserved."""

    code: str = "LEAF_MISMATCH"

    def __init__(self, queue_item_id: int, expected: int | None, actual: int):
        self.queue_item_id = queue_item_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Queue item {queue_item_id} reserved leaf {expected}, "
            f"outcome reported for {actual}"
        )


# Ledger exceptions


class LedgerError(SmeKernelError):
    """Base exception for print ledger errors."""

    code: str = "LEDGER_ERROR"


class DuplicateLedgerError(LedgerError):
    """A successful print is already recorded for this leaf."""

    code: str = "DUPLICATE_LEDGER_ENTRY"

    def __init__(self, book_id: int | None, cheque_number: int):
        self.book_id = book_id
        self.cheque_number = cheque_number
        super().__init__(
            f"Leaf {cheque_number} of book {book_id} already has a SUCCESS entry"
        )


class InvalidPrintStatusError(LedgerError):
    """Print status outside the allowed set."""

    code: str = "INVALID_PRINT_STATUS"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Invalid print status: {status}")


# Concurrency exceptions


class ConcurrencyError(SmeKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Concurrent modification detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: int, expected: int | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected = expected
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id} "
            f"(expected value {expected})"
        )


# Immutability exceptions


class ImmutabilityViolationError(SmeKernelError):
    """Attempted modification of history."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: int | None, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


# Storage exceptions


class StorageError(SmeKernelError):
    """Underlying storage failed. Safe to retry; state is unchanged."""

    code: str = "STORAGE_ERROR"

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        self.detail = detail
        message = f"Storage failure during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class LeafReservationTimeoutError(StorageError):
    """The per-book lock could not be acquired in time."""

    code: str = "LEAF_RESERVATION_TIMEOUT"

    def __init__(self, book_id: int, timeout: float):
        self.book_id = book_id
        self.timeout = timeout
        super().__init__(
            "reserve_next_leaf",
            f"lock on book {book_id} not acquired within {timeout}s",
        )
