"""Tests for bounded retry of storage and concurrency failures."""

import pytest

from sme_kernel.exceptions import (
    BookExhaustedError,
    OptimisticLockError,
    StorageError,
)
from sme_kernel.services.retry import MAX_ATTEMPTS, retry_on_storage_error


class Flaky:
    def __init__(self, failures, error):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


def test_succeeds_after_transient_failures():
    sleeps = []
    op = Flaky(2, StorageError("commit", "database is locked"))
    assert retry_on_storage_error(op, attempts=3, backoff_seconds=0.1, sleep=sleeps.append) == "ok"
    assert op.calls == 3
    assert sleeps == [pytest.approx(0.1), pytest.approx(0.2)]


def test_concurrency_errors_are_retried():
    op = Flaky(1, OptimisticLockError("ChequeBook", 1, 5))
    assert retry_on_storage_error(op, sleep=lambda _: None) == "ok"


def test_gives_up_with_last_error():
    op = Flaky(5, StorageError("commit"))
    with pytest.raises(StorageError):
        retry_on_storage_error(op, attempts=2, sleep=lambda _: None)
    assert op.calls == 2


def test_domain_errors_not_retried():
    op = Flaky(1, BookExhaustedError(1, 103, 102))
    with pytest.raises(BookExhaustedError):
        retry_on_storage_error(op, attempts=5, sleep=lambda _: None)
    assert op.calls == 1


def test_attempts_are_capped():
    op = Flaky(100, StorageError("commit"))
    with pytest.raises(StorageError):
        retry_on_storage_error(op, attempts=1000, sleep=lambda _: None)
    assert op.calls == MAX_ATTEMPTS


def test_retries_logged(captured_logs):
    op = Flaky(1, StorageError("commit"))
    retry_on_storage_error(op, operation_name="reserve_next_leaf", sleep=lambda _: None)
    records = [r for r in captured_logs() if r["message"] == "retrying_after_error"]
    assert records[0]["operation"] == "reserve_next_leaf"
    assert records[0]["error_code"] == StorageError.code
