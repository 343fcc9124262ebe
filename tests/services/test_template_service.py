"""Tests for cheque template calibration, saving and factory reset."""

from dataclasses import replace

import pytest

from sme_kernel.domain.layout import STATE_BANK_OF_INDIA, Point, factory_layout
from sme_kernel.exceptions import ValidationError
from sme_kernel.models.cheque_template import ChequeTemplateCalibration, ChequeTemplateConfig

SBI = STATE_BANK_OF_INDIA


class TestGetTemplate:
    def test_factory_when_nothing_stored(self, template_service):
        assert template_service.get_template(SBI) == factory_layout(SBI)

    def test_factory_defaults(self, template_service):
        assert template_service.get_factory_defaults(SBI).date == Point(154.0, 10.0)


class TestCalibrate:
    def test_offsets_applied_and_versioned(self, template_service, session):
        first = template_service.calibrate(SBI, {"payee": (1.0, -0.5)}, operator="op")
        assert first.payee == Point(26.0, 23.5)
        assert first.version == 1

        second = template_service.calibrate(SBI, {"payee": (1.0, 0.0)})
        assert second.payee == Point(27.0, 23.5)
        assert second.version == 2
        assert template_service.get_template(SBI) == second

        history = (
            session.query(ChequeTemplateCalibration)
            .order_by(ChequeTemplateCalibration.version)
            .all()
        )
        assert [h.version for h in history] == [1, 2]
        assert history[0].deltas == {"payee": [1.0, -0.5]}
        assert history[0].operator == "op"

    def test_one_row_per_bank(self, template_service, session):
        template_service.calibrate(SBI, {"date": (1, 1)})
        template_service.calibrate(SBI, {"date": (1, 1)})
        assert session.query(ChequeTemplateConfig).count() == 1

    def test_unknown_field(self, template_service, session):
        with pytest.raises(ValidationError):
            template_service.calibrate(SBI, {"logo": (1, 1)})
        assert session.query(ChequeTemplateConfig).count() == 0

    def test_empty_offsets(self, template_service):
        with pytest.raises(ValidationError):
            template_service.calibrate(SBI, {})

    def test_blank_bank(self, template_service):
        with pytest.raises(ValidationError) as exc_info:
            template_service.calibrate("  ", {"date": (1, 1)})
        assert exc_info.value.field == "bank_name"

    def test_logged(self, template_service, captured_logs):
        template_service.calibrate(SBI, {"micr": (0.5, 0.5)})
        records = [r for r in captured_logs() if r["message"] == "template_changed"]
        assert records[0]["action"] == "CALIBRATE"
        assert records[0]["version"] == 1


class TestSaveAndReset:
    def test_save_layout(self, template_service):
        layout = replace(factory_layout(SBI), font_size=14.0, micr_code="⑆123456⑈")
        saved = template_service.save_layout(layout, operator="op")
        assert saved.font_size == 14.0
        assert saved.micr_code == "⑆123456⑈"
        assert saved.version == 1

    def test_reset_restores_factory_positions(self, template_service):
        template_service.calibrate(SBI, {"signature": (3, 3)})
        reset = template_service.reset_to_factory(SBI, operator="op")
        assert reset.signature == factory_layout(SBI).signature
        assert reset.version == 2

    def test_reset_without_calibration_writes_nothing(self, template_service, session):
        layout = template_service.reset_to_factory(SBI)
        assert layout.version == 0
        assert session.query(ChequeTemplateCalibration).count() == 0

    def test_banks_are_independent(self, template_service):
        template_service.calibrate(SBI, {"date": (2, 0)})
        assert template_service.get_template("Default Bank") == factory_layout("Default Bank")
