"""
Module: sme_kernel.models.print_ledger
Responsibility: ORM persistence for the append-only cheque print ledger.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: rows are never updated or deleted (ORM guard in
      db/immutability.py).  Corrections are new rows (VOID).
    - At most one SUCCESS row per (book_id, cheque_number), enforced by a
      partial unique index on both SQLite and PostgreSQL.
    - A SUCCESS row always names its book (check constraint), so the
      unique index never sees a NULL book_id.

Failure modes:
    - IntegrityError on a second SUCCESS for the same leaf (translated to
      DuplicateLedgerError by PrintLedgerService) or on a SUCCESS row
      without a book.
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.

Audit relevance:
    The ledger is the single source of truth for whether a leaf was
    consumed.  A leaf below a book's next_number with no ledger row is a
    reserved-but-unreported leaf and is surfaced for reconciliation.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from sme_kernel.db.base import Base
from sme_kernel.db.types import Money


class PrintStatus(str, Enum):
    """Outcome of one cheque print attempt."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    # Appended to invalidate an earlier SUCCESS row
    VOID = "VOID"


class PrintLedgerEntry(Base):
    """
    One immutable record of a print attempt.

    Contract:
        Written only by PrintLedgerService.  printed_at comes from the
        injected clock, not the database server.

    Guarantees:
        - cheque_number is the reserved leaf the attempt consumed.
        - voids_entry_id is set only on VOID rows.
    """

    __tablename__ = "cheque_print_ledger"

    __table_args__ = (
        Index(
            "uq_ledger_success_leaf",
            "book_id",
            "cheque_number",
            unique=True,
            sqlite_where=text("print_status = 'SUCCESS'"),
            postgresql_where=text("print_status = 'SUCCESS'"),
        ),
        CheckConstraint(
            "print_status <> 'SUCCESS' OR book_id IS NOT NULL",
            name="ck_ledger_success_has_book",
        ),
        Index("idx_ledger_printed_at", "printed_at"),
        Index("idx_ledger_purchase", "purchase_id"),
    )

    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    purchase_id: Mapped[int | None] = mapped_column(
        ForeignKey("purchase_entries.id"), nullable=True
    )

    book_id: Mapped[int | None] = mapped_column(ForeignKey("cheque_books.id"), nullable=True)

    payee_name: Mapped[str] = mapped_column(String(200), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    cheque_number: Mapped[int] = mapped_column(nullable=False)

    print_status: Mapped[str] = mapped_column(String(20), nullable=False)

    remarks: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    voids_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("cheque_print_ledger.id"), nullable=True
    )

    printed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @property
    def is_success(self) -> bool:
        return self.print_status == PrintStatus.SUCCESS.value

    @property
    def is_void(self) -> bool:
        return self.print_status == PrintStatus.VOID.value

    def __repr__(self) -> str:
        return (
            f"<PrintLedgerEntry {self.id} leaf={self.cheque_number} "
            f"{self.print_status} {self.amount}>"
        )
