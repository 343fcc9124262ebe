"""
Module: sme_kernel.models.cheque_template
Responsibility: ORM persistence for per-bank cheque layout calibration and
    its append-only change history.
Architecture position: Kernel > Models.  May import from db/ only.

All coordinates are millimetres measured from the top-left corner of the
cheque leaf.

Invariants enforced:
    - One ChequeTemplateConfig row per bank_name.
    - version increases by one for every calibration or factory reset, and
      every change has a matching ChequeTemplateCalibration row.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sme_kernel.db.base import Base, TrackedBase


class ChequeTemplateConfig(TrackedBase):
    """Stored layout for one bank's cheque stock."""

    __tablename__ = "cheque_template_config"

    __table_args__ = (UniqueConstraint("bank_name", name="uq_template_bank"),)

    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)

    date_x: Mapped[float] = mapped_column(Float, nullable=False)
    date_y: Mapped[float] = mapped_column(Float, nullable=False)

    payee_x: Mapped[float] = mapped_column(Float, nullable=False)
    payee_y: Mapped[float] = mapped_column(Float, nullable=False)

    amount_words_x: Mapped[float] = mapped_column(Float, nullable=False)
    amount_words_y: Mapped[float] = mapped_column(Float, nullable=False)

    amount_digits_x: Mapped[float] = mapped_column(Float, nullable=False)
    amount_digits_y: Mapped[float] = mapped_column(Float, nullable=False)

    signature_x: Mapped[float] = mapped_column(Float, nullable=False)
    signature_y: Mapped[float] = mapped_column(Float, nullable=False)

    ac_payee_x: Mapped[float] = mapped_column(Float, nullable=False)
    ac_payee_y: Mapped[float] = mapped_column(Float, nullable=False)

    micr_x: Mapped[float] = mapped_column(Float, nullable=False)
    micr_y: Mapped[float] = mapped_column(Float, nullable=False)

    micr_code: Mapped[str] = mapped_column(String(50), nullable=False)

    # "x,y;x,y;..." one pair per date character, empty for even spacing
    date_positions: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    font_size: Mapped[float] = mapped_column(Float, nullable=False)

    font_family: Mapped[str] = mapped_column(String(50), nullable=False)

    print_orientation: Mapped[str] = mapped_column(String(20), nullable=False)

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<ChequeTemplateConfig {self.bank_name!r} v{self.version}>"


class ChequeTemplateCalibration(Base):
    """Append-only record of one change to a bank's template."""

    __tablename__ = "cheque_template_calibrations"

    __table_args__ = (
        Index("idx_template_calibration_bank", "bank_name", "version"),
    )

    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)

    version: Mapped[int] = mapped_column(nullable=False)

    # CALIBRATE or RESET
    action: Mapped[str] = mapped_column(String(20), nullable=False)

    # {"payee": [dx, dy], ...} in millimetres; empty for RESET
    deltas: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    operator: Mapped[str | None] = mapped_column(String(100), nullable=True)

    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
