"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The print ledger is an audit trail, and cheque numbering must never go
backwards.  Services never attempt to rewrite history, but any code holding a
Session could.  This module intercepts such attempts before SQL reaches the
database:

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | Rule
--------------------|---------------------------------------------------------
PrintLedgerEntry    | ALWAYS immutable; never deleted
ChequeBook          | next_number never decreases; range frozen once a leaf
                    | is reserved; never deleted (deactivate instead)
PurchaseEntry       | Never physically deleted (soft delete via is_deleted)
Vendor              | Never physically deleted

Core UPDATE statements (the allocator's compare-and-swap) bypass ORM events;
the allocator itself only ever moves next_number forward.
===============================================================================
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from sme_kernel.exceptions import ImmutabilityViolationError
from sme_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str, **extra):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _check_ledger_entry_immutability(mapper, connection, target):
    """Ledger rows are append-only: block every field change."""
    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            _blocked(
                "PrintLedgerEntry",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on a print ledger entry",
                field=attr.key,
            )


def _check_ledger_entry_delete(mapper, connection, target):
    _blocked(
        "PrintLedgerEntry",
        target.id,
        "DELETE",
        "Print ledger entries cannot be deleted",
    )


def _check_cheque_book_immutability(mapper, connection, target):
    """
    Guard the allocation cursor of a ChequeBook.

    Logic:
        1. next_number may only move forward.
        2. start_number / end_number may change only while no leaf has been
           reserved (old next_number == old start_number).
    """
    next_history = get_history(target, "next_number")
    old_next = next_history.deleted[0] if next_history.deleted else target.next_number

    if next_history.deleted and target.next_number < old_next:
        _blocked(
            "ChequeBook",
            target.id,
            "UPDATE",
            f"next_number cannot decrease ({old_next} -> {target.next_number})",
            field="next_number",
        )

    start_history = get_history(target, "start_number")
    old_start = start_history.deleted[0] if start_history.deleted else target.start_number
    range_changed = start_history.has_changes() or get_history(target, "end_number").has_changes()

    if range_changed and old_next > old_start:
        _blocked(
            "ChequeBook",
            target.id,
            "UPDATE",
            "Leaf range cannot change after leaves were reserved",
            field="start_number/end_number",
        )


def _check_cheque_book_delete(mapper, connection, target):
    _blocked(
        "ChequeBook",
        target.id,
        "DELETE",
        "Cheque books cannot be deleted; deactivate the book instead",
    )


def _check_purchase_delete(mapper, connection, target):
    _blocked(
        "PurchaseEntry",
        target.id,
        "DELETE",
        "Purchases are soft-deleted only",
    )


def _check_vendor_delete(mapper, connection, target):
    _blocked(
        "Vendor",
        target.id,
        "DELETE",
        "Vendors are soft-deleted only",
    )


def _listeners():
    from sme_kernel.models.cheque_book import ChequeBook
    from sme_kernel.models.print_ledger import PrintLedgerEntry
    from sme_kernel.models.purchase import PurchaseEntry
    from sme_kernel.models.vendor import Vendor

    return (
        (PrintLedgerEntry, "before_update", _check_ledger_entry_immutability),
        (PrintLedgerEntry, "before_delete", _check_ledger_entry_delete),
        (ChequeBook, "before_update", _check_cheque_book_immutability),
        (ChequeBook, "before_delete", _check_cheque_book_delete),
        (PurchaseEntry, "before_delete", _check_purchase_delete),
        (Vendor, "before_delete", _check_vendor_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Called by Database on construction.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to bypass the guards.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
