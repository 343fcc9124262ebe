"""Calibration history reads."""

from sme_kernel.selectors.template_selector import TemplateSelector


def test_history_in_version_order(template_service, session):
    template_service.calibrate("State Bank of India", {"date": (1.0, 0.0)}, operator="op")
    template_service.reset_to_factory("State Bank of India", operator="op")
    template_service.calibrate("Default Bank", {"payee": (0.0, 1.0)})

    history = TemplateSelector(session).calibration_history("State Bank of India")

    assert [(h.version, h.action) for h in history] == [(1, "CALIBRATE"), (2, "RESET")]
    assert history[0].deltas == {"date": [1.0, 0.0]}
    assert history[1].deltas == {}
    assert history[0].operator == "op"


def test_empty_for_uncalibrated_bank(session):
    assert TemplateSelector(session).calibration_history("Canara Bank") == []
