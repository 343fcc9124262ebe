"""
Tests for the print queue and the append-only print ledger.

Verifies:
- Queue staging, editing and removal rules
- One SUCCESS row per (book, leaf)
- Outcomes stamp or leave the linked purchase
- VOID appends a correction without touching the original row
"""

from datetime import date
from decimal import Decimal

import pytest

from sme_kernel.exceptions import (
    DuplicateLedgerError,
    InvalidPrintStatusError,
    LeafMismatchError,
    LedgerEntryNotFoundError,
    QueueItemNotFoundError,
    ValidationError,
)
from sme_kernel.models.print_ledger import PrintLedgerEntry, PrintStatus
from sme_kernel.services.print_ledger_service import format_cheque_number, parse_print_status

CHEQUE_DATE = date(2024, 1, 16)


@pytest.fixture
def saved_purchase(purchase_service, lumpsum_draft):
    return purchase_service.save(lumpsum_draft())


@pytest.fixture
def staged(book, ledger_service, saved_purchase):
    """A queue item for the saved purchase, holding leaf 100 of ``book``."""
    item = ledger_service.enqueue(
        payee_name="Ramesh Traders",
        amount=saved_purchase.grand_total,
        cheque_date=CHEQUE_DATE,
        purchase_id=saved_purchase.id,
    )
    return ledger_service.attach_leaf(item.id, book.id, 100)


class TestHelpers:
    def test_format_cheque_number(self):
        assert format_cheque_number(100) == "000100"
        assert format_cheque_number(1234567, width=6) == "1234567"

    def test_parse_print_status(self):
        assert parse_print_status(" success ") is PrintStatus.SUCCESS
        assert parse_print_status(PrintStatus.VOID) is PrintStatus.VOID
        with pytest.raises(InvalidPrintStatusError):
            parse_print_status("SMUDGED")


class TestQueue:
    def test_enqueue_rounds_amount(self, ledger_service):
        item = ledger_service.enqueue("Payee", Decimal("10.005"), CHEQUE_DATE)
        assert item.amount == Decimal("10.01")
        assert item.leaf_number is None
        assert item.is_ac_payee

    def test_enqueue_validates(self, ledger_service):
        with pytest.raises(ValidationError) as exc_info:
            ledger_service.enqueue(" ", Decimal("0"), None)
        assert exc_info.value.errors == [
            "Payee name is required",
            "Amount must be greater than 0",
            "Cheque date is required",
        ]
        assert exc_info.value.field == "payee_name"

    def test_list_and_count(self, ledger_service):
        first = ledger_service.enqueue("A", Decimal("1"), CHEQUE_DATE)
        second = ledger_service.enqueue("B", Decimal("2"), CHEQUE_DATE)
        assert [i.id for i in ledger_service.list_queue()] == [first.id, second.id]
        assert ledger_service.count_queue() == 2

    def test_update_item(self, ledger_service):
        item = ledger_service.enqueue("A", Decimal("1"), CHEQUE_DATE)
        ledger_service.update_item(item.id, payee_name=" B ", is_ac_payee=False)
        assert item.payee_name == "B"
        assert not item.is_ac_payee
        assert item.amount == Decimal("1.00")
        with pytest.raises(ValidationError):
            ledger_service.update_item(item.id, amount=Decimal("-1"))

    def test_remove_unprinted_item(self, ledger_service):
        item = ledger_service.enqueue("A", Decimal("1"), CHEQUE_DATE)
        ledger_service.remove_item(item.id)
        with pytest.raises(QueueItemNotFoundError):
            ledger_service.get_item(item.id)

    def test_item_with_leaf_cannot_be_removed(self, ledger_service, staged):
        with pytest.raises(ValidationError):
            ledger_service.remove_item(staged.id)

    def test_clear_keeps_items_holding_leaves(self, ledger_service, staged):
        ledger_service.enqueue("A", Decimal("1"), CHEQUE_DATE)
        ledger_service.enqueue("B", Decimal("2"), CHEQUE_DATE)
        assert ledger_service.clear_queue() == 2
        assert [i.id for i in ledger_service.list_queue()] == [staged.id]

    def test_attach_same_leaf_is_idempotent(self, ledger_service, staged, book):
        again = ledger_service.attach_leaf(staged.id, book.id, 100)
        assert again.leaf_number == 100

    def test_attach_different_leaf_rejected(self, ledger_service, staged, book):
        with pytest.raises(LeafMismatchError) as exc_info:
            ledger_service.attach_leaf(staged.id, book.id, 101)
        assert exc_info.value.expected == 100
        assert exc_info.value.actual == 101


class TestRecordOutcome:
    def test_success_stamps_purchase(self, ledger_service, staged, saved_purchase, book):
        entry = ledger_service.record_outcome(staged, 100, PrintStatus.SUCCESS, user_id="op")

        assert entry.is_success
        assert entry.book_id == book.id
        assert entry.cheque_number == 100
        assert entry.amount == Decimal("1027.00")
        assert entry.printed_at is not None
        assert saved_purchase.cheque_number == "000100"
        assert saved_purchase.cheque_date == CHEQUE_DATE
        assert ledger_service.count_queue() == 0

    def test_failed_does_not_stamp(self, ledger_service, staged, saved_purchase):
        entry = ledger_service.record_outcome(staged.id, 100, "FAILED", remarks="jam")
        assert entry.print_status == "FAILED"
        assert entry.remarks == "jam"
        assert saved_purchase.cheque_number is None

    def test_second_success_for_leaf_rejected(self, ledger_service, staged, book):
        ledger_service.record_outcome(staged, 100, PrintStatus.SUCCESS)
        other = ledger_service.enqueue("Other", Decimal("5"), CHEQUE_DATE)
        ledger_service.attach_leaf(other.id, book.id, 100)

        with pytest.raises(DuplicateLedgerError) as exc_info:
            ledger_service.record_outcome(other, 100, PrintStatus.SUCCESS)
        assert exc_info.value.cheque_number == 100

    def test_failure_rows_may_repeat(self, ledger_service, book):
        for _ in range(2):
            item = ledger_service.enqueue("P", Decimal("5"), CHEQUE_DATE)
            ledger_service.attach_leaf(item.id, book.id, 101)
            ledger_service.record_outcome(item, 101, PrintStatus.CANCELLED)

    def test_wrong_leaf_rejected(self, ledger_service, staged):
        with pytest.raises(LeafMismatchError):
            ledger_service.record_outcome(staged, 101, PrintStatus.SUCCESS)

    def test_success_requires_book(self, ledger_service, session):
        item = ledger_service.enqueue("Walk-in", Decimal("5"), CHEQUE_DATE)
        with pytest.raises(ValidationError) as exc_info:
            ledger_service.record_outcome(item, 100, PrintStatus.SUCCESS)
        assert exc_info.value.field == "book_id"
        assert session.query(PrintLedgerEntry).count() == 0

    def test_success_with_caller_supplied_book(self, book, ledger_service):
        item = ledger_service.enqueue("Walk-in", Decimal("5"), CHEQUE_DATE)
        entry = ledger_service.record_outcome(item, 100, PrintStatus.SUCCESS, book_id=book.id)
        assert entry.book_id == book.id

        again = ledger_service.enqueue("Walk-in", Decimal("5"), CHEQUE_DATE)
        with pytest.raises(DuplicateLedgerError):
            ledger_service.record_outcome(again, 100, PrintStatus.SUCCESS, book_id=book.id)

    def test_failure_without_book_allowed(self, ledger_service):
        item = ledger_service.enqueue("Walk-in", Decimal("5"), CHEQUE_DATE)
        entry = ledger_service.record_outcome(item, 100, PrintStatus.FAILED)
        assert entry.book_id is None

    def test_void_is_not_an_outcome(self, ledger_service, staged):
        with pytest.raises(InvalidPrintStatusError):
            ledger_service.record_outcome(staged, 100, PrintStatus.VOID)

    def test_logged(self, ledger_service, staged, captured_logs):
        ledger_service.record_outcome(staged, 100, PrintStatus.SUCCESS)
        records = [r for r in captured_logs() if r["message"] == "ledger_entry_recorded"]
        assert records and records[0]["print_status"] == "SUCCESS"


class TestVoid:
    def test_void_appends_row(self, ledger_service, staged, saved_purchase, session):
        original = ledger_service.record_outcome(staged, 100, PrintStatus.SUCCESS)
        void = ledger_service.void_entry(original.id, remarks="wrong payee", user_id="op")

        assert void.is_void
        assert void.voids_entry_id == original.id
        assert void.cheque_number == original.cheque_number
        assert original.print_status == "SUCCESS"
        assert saved_purchase.cheque_number is None
        assert session.query(PrintLedgerEntry).count() == 2

    def test_void_twice_rejected(self, ledger_service, staged):
        original = ledger_service.record_outcome(staged, 100, PrintStatus.SUCCESS)
        ledger_service.void_entry(original.id)
        with pytest.raises(DuplicateLedgerError):
            ledger_service.void_entry(original.id)

    def test_only_success_can_be_voided(self, ledger_service, staged):
        failed = ledger_service.record_outcome(staged, 100, PrintStatus.FAILED)
        with pytest.raises(InvalidPrintStatusError):
            ledger_service.void_entry(failed.id)

    def test_unknown_entry(self, ledger_service):
        with pytest.raises(LedgerEntryNotFoundError):
            ledger_service.void_entry(98765)
