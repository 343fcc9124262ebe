"""
TemplateService -- per-bank cheque layout calibration.

Responsibility:
    Resolves the layout a bank's cheques are printed with (stored
    calibration, else factory defaults), applies millimetre calibration
    offsets, saves operator-edited layouts, and resets a bank to its factory
    layout.  Every change bumps the template version and appends a
    calibration history row.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes within the caller's
    transaction.  Layout values come from domain/layout.py.

Invariants enforced:
    - One stored template per bank.
    - version increases by exactly one per change, and each change has a
      ChequeTemplateCalibration row with the same version.
    - Factory reset happens only through reset_to_factory(); nothing resets
      implicitly.

Failure modes:
    - ValidationError for unknown field names, blank bank names, or
      malformed date positions.
"""

from typing import Mapping

from sqlalchemy import select

from sme_kernel.domain.clock import Clock, SystemClock
from sme_kernel.domain.layout import (
    CHEQUE_FIELDS,
    ChequeLayout,
    ChequeStock,
    Point,
    factory_layout,
    format_date_positions,
    parse_date_positions,
)
from sme_kernel.exceptions import ValidationError
from sme_kernel.logging_config import get_logger
from sme_kernel.models.cheque_template import ChequeTemplateCalibration, ChequeTemplateConfig
from sme_kernel.services.base import BaseService

logger = get_logger("services.template")

ACTION_CALIBRATE = "CALIBRATE"
ACTION_SAVE = "SAVE"
ACTION_RESET = "RESET"


def _layout_from_row(row: ChequeTemplateConfig, factory: ChequeLayout) -> ChequeLayout:
    points = {
        name: Point(getattr(row, f"{name}_x"), getattr(row, f"{name}_y"))
        for name in CHEQUE_FIELDS
    }
    return ChequeLayout(
        bank_name=row.bank_name,
        micr_code=row.micr_code,
        font_size=row.font_size,
        font_family=row.font_family,
        print_orientation=row.print_orientation,
        date_positions=parse_date_positions(row.date_positions),
        date_char_spacing_mm=factory.date_char_spacing_mm,
        version=row.version,
        **points,
    )


def _write_layout(row: ChequeTemplateConfig, layout: ChequeLayout) -> None:
    for name in CHEQUE_FIELDS:
        point = layout.field(name)
        setattr(row, f"{name}_x", point.x)
        setattr(row, f"{name}_y", point.y)
    row.micr_code = layout.micr_code
    row.font_size = layout.font_size
    row.font_family = layout.font_family
    row.print_orientation = layout.print_orientation
    row.date_positions = format_date_positions(layout.date_positions)


class TemplateService(BaseService[ChequeTemplateConfig]):
    """Read and calibrate cheque layouts."""

    def __init__(self, session, clock: Clock | None = None, stock: ChequeStock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self.stock = stock or ChequeStock()

    def get_factory_defaults(self, bank_name: str) -> ChequeLayout:
        return factory_layout(bank_name, self.stock)

    def _row(self, bank_name: str) -> ChequeTemplateConfig | None:
        return self.session.scalar(
            select(ChequeTemplateConfig).where(ChequeTemplateConfig.bank_name == bank_name)
        )

    def get_template(self, bank_name: str) -> ChequeLayout:
        """Stored calibration for the bank, or its factory layout."""
        factory = self.get_factory_defaults(bank_name)
        row = self._row(bank_name)
        if row is None:
            return factory
        return _layout_from_row(row, factory)

    def _store(
        self,
        bank_name: str,
        layout: ChequeLayout,
        action: str,
        deltas: dict,
        operator: str | None,
    ) -> ChequeLayout:
        row = self._row(bank_name)
        if row is None:
            row = ChequeTemplateConfig(bank_name=bank_name, version=0)
            self.session.add(row)
        _write_layout(row, layout)
        row.version = (row.version or 0) + 1

        self.session.add(
            ChequeTemplateCalibration(
                bank_name=bank_name,
                version=row.version,
                action=action,
                deltas=deltas,
                operator=operator,
                applied_at=self._clock.now(),
            )
        )
        self.session.flush()

        logger.info(
            "template_changed",
            extra={
                "bank_name": bank_name,
                "action": action,
                "version": row.version,
                "deltas": deltas,
            },
        )
        return _layout_from_row(row, self.get_factory_defaults(bank_name))

    @staticmethod
    def _require_bank(bank_name: str) -> str:
        bank_name = (bank_name or "").strip()
        if not bank_name:
            raise ValidationError("Bank name is required", field="bank_name")
        return bank_name

    def calibrate(
        self,
        bank_name: str,
        field_deltas: Mapping[str, tuple[float, float]],
        operator: str | None = None,
    ) -> ChequeLayout:
        """
        Shift fields by millimetre offsets measured on a test print.

        Args:
            bank_name: Bank whose stock was test-printed.
            field_deltas: {field: (dx, dy)}; positive dx moves right,
                positive dy moves down.
            operator: Who calibrated.

        Returns:
            The new stored layout (version incremented).

        Raises:
            ValidationError: for unknown fields or an empty delta set.
        """
        bank_name = self._require_bank(bank_name)
        if not field_deltas:
            raise ValidationError("No calibration offsets given", field="field_deltas")
        current = self.get_template(bank_name)
        calibrated = current.with_offsets(field_deltas)
        deltas = {name: [float(dx), float(dy)] for name, (dx, dy) in field_deltas.items()}
        return self._store(bank_name, calibrated, ACTION_CALIBRATE, deltas, operator)

    def save_layout(self, layout: ChequeLayout, operator: str | None = None) -> ChequeLayout:
        """Store an operator-edited layout as the bank's template."""
        bank_name = self._require_bank(layout.bank_name)
        return self._store(bank_name, layout, ACTION_SAVE, {}, operator)

    def reset_to_factory(self, bank_name: str, operator: str | None = None) -> ChequeLayout:
        """
        Replace a bank's calibration with its factory layout.

        A bank without a stored template is already at factory; nothing is
        written in that case.
        """
        bank_name = self._require_bank(bank_name)
        factory = self.get_factory_defaults(bank_name)
        if self._row(bank_name) is None:
            return factory
        return self._store(bank_name, factory, ACTION_RESET, {}, operator)
