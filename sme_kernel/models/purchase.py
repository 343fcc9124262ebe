"""
Module: sme_kernel.models.purchase
Responsibility: ORM persistence for purchase entries.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - grand_total = base_amount + market_fee_amount + commission_fee_amount,
      each rounded half-up to 2 dp.  Only PurchaseService writes these
      columns, always from domain.purchase.recompute().
    - Rows are never physically deleted (is_deleted flag; ORM guard in
      db/immutability.py).

Failure modes:
    - ImmutabilityViolationError on DELETE.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sme_kernel.db.base import TrackedBase
from sme_kernel.db.types import Money, Percent, Weight
from sme_kernel.models.vendor import Vendor


class PurchaseEntry(TrackedBase):
    """
    A saved purchase with its computed totals.

    Contract:
        Created and edited only through PurchaseService.save().  Editing
        replaces the row with the same id.

    Guarantees:
        - Totals are consistent with the stored inputs.
        - status is derived from advance_paid and payment_mode.

    Non-goals:
        - Payment reconciliation against bank statements.
    """

    __tablename__ = "purchase_entries"

    __table_args__ = (
        Index("idx_purchase_entry_date", "entry_date"),
        Index("idx_purchase_vendor", "vendor_id"),
        Index("idx_purchase_deleted", "is_deleted"),
    )

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    vendor_id: Mapped[int] = mapped_column(ForeignKey("vendors.id"), nullable=False)

    bags: Mapped[int] = mapped_column(nullable=False)

    rate: Mapped[Decimal] = mapped_column(Money, nullable=False)

    # Required unless is_lumpsum; stored as 0 for lumpsum entries
    weight_kg: Mapped[Decimal] = mapped_column(Weight, nullable=False, default=Decimal("0"))

    is_lumpsum: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    market_fee_percent: Mapped[Decimal] = mapped_column(Percent, nullable=False)

    commission_percent: Mapped[Decimal] = mapped_column(Percent, nullable=False)

    base_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    market_fee_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    commission_fee_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    grand_total: Mapped[Decimal] = mapped_column(Money, nullable=False)

    # CASH / CHEQUE / BANK_TRANSFER / UPI / ADVANCE
    payment_mode: Mapped[str] = mapped_column(String(20), nullable=False)

    advance_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Stamped by the print ledger on a successful cheque print
    cheque_number: Mapped[str | None] = mapped_column(String(20), nullable=True)

    cheque_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    vendor: Mapped[Vendor] = relationship(lazy="joined")

    @property
    def total_fees(self) -> Decimal:
        return self.market_fee_amount + self.commission_fee_amount

    @property
    def is_cheque_issued(self) -> bool:
        return bool(self.cheque_number)

    def __repr__(self) -> str:
        return f"<PurchaseEntry {self.id} vendor={self.vendor_id} total={self.grand_total}>"
