"""
Module: sme_kernel.models.cheque_book
Responsibility: ORM persistence for cheque books and their allocation cursor.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - start_number <= next_number <= end_number + 1 (CHECK constraints).
    - next_number only ever increases, and only through
      ChequeBookAllocator.reserve_next_leaf().
    - Books are never deleted; the leaf range is frozen once a leaf has
      been reserved.

Failure modes:
    - IntegrityError if a CHECK constraint is violated.
    - ImmutabilityViolationError if an ORM flush lowers next_number,
      changes a consumed range, or deletes a book.
"""

from sqlalchemy import Boolean, CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from sme_kernel.db.base import TrackedBase


class ChequeBook(TrackedBase):
    """
    A finite, contiguous range of cheque leaves.

    Contract:
        next_number is the leaf that the next reservation will return.

    Guarantees:
        - is_exhausted iff next_number > end_number.
        - remaining_leaves == max(0, end_number - next_number + 1).
    """

    __tablename__ = "cheque_books"

    __table_args__ = (
        CheckConstraint("start_number > 0", name="ck_cheque_book_start_positive"),
        CheckConstraint("start_number <= end_number", name="ck_cheque_book_range"),
        CheckConstraint(
            "next_number >= start_number AND next_number <= end_number + 1",
            name="ck_cheque_book_next_in_range",
        ),
        Index("idx_cheque_book_bank_active", "bank_name", "is_active"),
    )

    book_name: Mapped[str] = mapped_column(String(100), nullable=False)

    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)

    start_number: Mapped[int] = mapped_column(nullable=False)

    end_number: Mapped[int] = mapped_column(nullable=False)

    next_number: Mapped[int] = mapped_column(nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def is_exhausted(self) -> bool:
        return self.next_number > self.end_number

    @property
    def remaining_leaves(self) -> int:
        return max(0, self.end_number - self.next_number + 1)

    @property
    def has_consumed_leaves(self) -> bool:
        return self.next_number > self.start_number

    def __repr__(self) -> str:
        return (
            f"<ChequeBook {self.id} {self.bank_name}/{self.book_name} "
            f"{self.start_number}..{self.end_number} next={self.next_number}>"
        )
