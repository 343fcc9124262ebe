"""
Structured logging: JSON records, context propagation and exception
payloads.
"""

import json
import logging
from datetime import date
from decimal import Decimal

from sme_kernel.exceptions import BookExhaustedError
from sme_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record_factory):
    logger = get_logger("tests.logging")
    records = []

    class _Collect(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = _Collect()
    logger.addHandler(handler)
    try:
        record_factory(logger)
    finally:
        logger.removeHandler(handler)
    return [json.loads(StructuredFormatter().format(r)) for r in records]


def test_logger_namespace():
    assert get_logger("services.x").name == "sme_kernel.services.x"


def test_extra_fields_serialized():
    [payload] = _format(
        lambda log: log.info(
            "purchase_created", extra={"grand_total": Decimal("1027.00"), "day": date(2024, 1, 15)}
        )
    )
    assert payload["message"] == "purchase_created"
    assert payload["level"] == "INFO"
    assert payload["grand_total"] == "1027.00"
    assert payload["day"] == "2024-01-15"


def test_context_is_merged_and_restored():
    with LogContext.bind(book_id=7, actor_id="op"):
        [inside] = _format(lambda log: log.info("inside"))
    [outside] = _format(lambda log: log.info("outside"))
    assert inside["book_id"] == "7"
    assert inside["actor_id"] == "op"
    assert "book_id" not in outside


def test_exception_payload():
    def _raise(log):
        try:
            raise BookExhaustedError(3, 103, 102)
        except BookExhaustedError:
            log.error("reservation_failed", exc_info=True)

    [payload] = _format(_raise)
    assert payload["exc_type"] == "BookExhaustedError"
    assert payload["exc_code"] == "BOOK_EXHAUSTED"
    assert payload["exc_next_number"] == 103
    assert "traceback" in payload


def test_set_and_clear():
    LogContext.set(correlation_id="abc")
    assert LogContext.get_all() == {"correlation_id": "abc"}
    LogContext.clear()
    assert LogContext.get_all() == {}
