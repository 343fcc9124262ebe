"""
Module: sme_kernel.models.print_queue
Responsibility: ORM persistence for staged cheque print jobs.
Architecture position: Kernel > Models.  May import from db/ only.

The queue is transient: an item is removed in the same transaction that
records its outcome in the print ledger.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from sme_kernel.db.base import TrackedBase
from sme_kernel.db.types import Money


class PrintQueueItem(TrackedBase):
    """A cheque waiting to be printed."""

    __tablename__ = "cheque_print_queue"

    purchase_id: Mapped[int | None] = mapped_column(
        ForeignKey("purchase_entries.id"), nullable=True
    )

    payee_name: Mapped[str] = mapped_column(String(200), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    cheque_date: Mapped[date] = mapped_column(Date, nullable=False)

    is_ac_payee: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Set once a leaf has been reserved for this job
    book_id: Mapped[int | None] = mapped_column(ForeignKey("cheque_books.id"), nullable=True)

    leaf_number: Mapped[int | None] = mapped_column(nullable=True)

    @property
    def has_leaf(self) -> bool:
        return self.leaf_number is not None

    def __repr__(self) -> str:
        return f"<PrintQueueItem {self.id} {self.payee_name!r} {self.amount}>"
