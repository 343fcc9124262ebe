"""
Module: sme_kernel.selectors.template_selector
Responsibility: Read-only access to cheque template calibration history.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select

from sme_kernel.models.cheque_template import ChequeTemplateCalibration
from sme_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class CalibrationDTO:
    bank_name: str
    version: int
    action: str
    deltas: dict
    operator: str | None
    applied_at: datetime


class TemplateSelector(BaseSelector[ChequeTemplateCalibration]):
    def calibration_history(self, bank_name: str) -> list[CalibrationDTO]:
        """Every change to the bank's template, oldest first."""
        stmt = (
            select(ChequeTemplateCalibration)
            .where(ChequeTemplateCalibration.bank_name == bank_name)
            .order_by(ChequeTemplateCalibration.version, ChequeTemplateCalibration.id)
        )
        return [
            CalibrationDTO(
                bank_name=row.bank_name,
                version=row.version,
                action=row.action,
                deltas=dict(row.deltas or {}),
                operator=row.operator,
                applied_at=row.applied_at,
            )
            for row in self.session.scalars(stmt)
        ]
