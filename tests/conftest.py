"""
Pytest fixtures for the sme_kernel test suite.

Provides:
- A fresh SQLite database file per test (Database + tables)
- Session-bound services and selectors
- A deterministic clock
- Captured structured logs

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  the per-test SQLite file.  Tables are dropped and recreated per test.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from sme_kernel.db.engine import Database
from sme_kernel.domain.clock import DeterministicClock
from sme_kernel.domain.purchase import PurchaseDraft
from sme_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from sme_kernel.services.cheque_book_allocator import ChequeBookAllocator
from sme_kernel.services.cheque_book_service import ChequeBookService
from sme_kernel.services.cheque_issuance_service import ChequeIssuanceService
from sme_kernel.services.print_ledger_service import PrintLedgerService
from sme_kernel.services.purchase_service import PurchaseService
from sme_kernel.services.template_service import TemplateService

TEST_USER = "test-operator"
TODAY = date(2024, 1, 15)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture sme_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, allocator, book):
            allocator.reserve_next_leaf(book.id)
            logs = captured_logs()
            assert any(r["message"] == "leaf_reserved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("sme_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def database_url(tmp_path) -> str:
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'sme_test.db'}"


@pytest.fixture
def database(database_url):
    db = Database(database_url, busy_timeout_seconds=30.0)
    db.drop_tables()
    db.create_tables()
    yield db
    db.drop_tables()
    db.dispose()


@pytest.fixture
def session(database):
    """A session committed at the end of each test step by the test itself."""
    s = database.new_session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def purchase_service(session, clock):
    return PurchaseService(session, clock=clock)


@pytest.fixture
def book_service(session):
    return ChequeBookService(session)


@pytest.fixture
def ledger_service(session, clock):
    return PrintLedgerService(session, clock=clock)


@pytest.fixture
def template_service(session, clock):
    return TemplateService(session, clock=clock)


@pytest.fixture
def allocator(database):
    return ChequeBookAllocator(database, lock_timeout_seconds=10.0)


@pytest.fixture
def issuance(database, allocator, clock):
    return ChequeIssuanceService(database, allocator=allocator, clock=clock)


# =============================================================================
# Data fixtures
# =============================================================================


@pytest.fixture
def vendor(database):
    """A committed vendor."""
    with database.session_scope() as s:
        v = PurchaseService(s).register_vendor("Ramesh Traders", "9876543210", "Market Yard")
    return v


@pytest.fixture
def make_book(database):
    """Factory for committed cheque books."""

    def _make(start=100, end=102, bank_name="State Bank of India", book_name=None, activate=True):
        with database.session_scope() as s:
            return ChequeBookService(s).register_book(
                book_name or f"{bank_name} {start}-{end}",
                bank_name,
                start,
                end,
                activate=activate,
            )

    return _make


@pytest.fixture
def book(make_book):
    return make_book(100, 102)


@pytest.fixture
def lumpsum_draft(vendor):
    """10 bags x 100, default fees: 1000.00 + 7.00 + 20.00 = 1027.00."""

    def _draft(**overrides):
        fields = dict(
            entry_date=TODAY,
            vendor_id=vendor.id,
            bags=10,
            rate=Decimal("100"),
            is_lumpsum=True,
            payment_mode="CHEQUE",
            created_by=TEST_USER,
        )
        fields.update(overrides)
        return PurchaseDraft(**fields)

    return _draft
