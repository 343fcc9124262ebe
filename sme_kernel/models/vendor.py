"""
Module: sme_kernel.models.vendor
Responsibility: ORM persistence for vendors (the payees of purchases).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Vendor names are unique.
    - A purchase may only reference a persisted vendor.  The UI uses -1 as
      the id of a vendor typed in but not yet created.
"""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from sme_kernel.db.base import TrackedBase


class Vendor(TrackedBase):
    """A supplier that purchases are made from and cheques are written to."""

    __tablename__ = "vendors"

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)

    contact_number: Mapped[str | None] = mapped_column(String(30), nullable=True)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Vendor {self.id} {self.name!r}>"
