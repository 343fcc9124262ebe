"""
Bounded retry for operations that failed without changing state.

Responsibility:
    Re-runs an operation after a StorageError or ConcurrencyError, which the
    kernel raises only when the failed transaction was rolled back.  Every
    other error propagates on the first attempt.

Architecture position:
    Kernel > Services -- infrastructure used by ChequeIssuanceService.

Invariants enforced:
    - MAX_ATTEMPTS caps the number of attempts regardless of what the
      caller asks for.
    - The last error is re-raised unchanged when attempts run out.
"""

import time
from typing import Callable, TypeVar

from sme_kernel.exceptions import ConcurrencyError, StorageError
from sme_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

RETRYABLE_ERRORS = (StorageError, ConcurrencyError)

# Safety limit
MAX_ATTEMPTS = 10


def retry_on_storage_error(
    operation: Callable[[], T],
    *,
    attempts: int = 3,
    backoff_seconds: float = 0.05,
    operation_name: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation``, retrying retryable failures with linear backoff.

    Args:
        operation: Zero-argument callable that owns its own transaction.
        attempts: Total attempts (clamped to 1..MAX_ATTEMPTS).
        backoff_seconds: Delay before attempt n+1 is n * backoff_seconds.
        operation_name: Used in log records.
        sleep: Injected for tests.

    Returns:
        Whatever ``operation`` returns.

    Raises:
        The last StorageError / ConcurrencyError, or any other error
        immediately.
    """
    attempts = max(1, min(attempts, MAX_ATTEMPTS))
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except RETRYABLE_ERRORS as exc:
            if attempt == attempts:
                logger.error(
                    "retry_exhausted",
                    extra={"operation": operation_name, "attempts": attempts},
                    exc_info=True,
                )
                raise
            logger.warning(
                "retrying_after_error",
                extra={
                    "operation": operation_name,
                    "attempt": attempt,
                    "max_attempts": attempts,
                    "error_code": exc.code,
                },
            )
            sleep(backoff_seconds * attempt)
    raise AssertionError("unreachable")
