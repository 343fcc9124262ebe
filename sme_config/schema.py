"""
KernelSettings schema.

Typed, frozen view of the YAML configuration.  The loader parses
``defaults.yaml`` (plus any override file) into these dataclasses; bridges
turn them into kernel objects.  Nothing here imports the kernel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///sme_ledger.db"
    echo: bool = False
    busy_timeout_seconds: float = 30.0
    pool_size: int = 5
    max_overflow: int = 10


@dataclass(frozen=True)
class FeeSettings:
    """Default fee percentages for a new purchase."""

    market_fee_percent: Decimal = Decimal("0.70")
    commission_percent: Decimal = Decimal("2.00")


@dataclass(frozen=True)
class AllocationSettings:
    lock_timeout_seconds: float = 10.0
    retry_attempts: int = 3
    retry_backoff_seconds: float = 0.05


@dataclass(frozen=True)
class QuerySettings:
    page_size: int = 50


@dataclass(frozen=True)
class ChequeStockSettings:
    width_mm: float = 202.0
    height_mm: float = 92.0
    leaf_number_width: int = 6


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class KernelSettings:
    """Everything the kernel needs to be wired up."""

    config_id: str = "default"
    version: int = 1
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    fees: FeeSettings = field(default_factory=FeeSettings)
    allocation: AllocationSettings = field(default_factory=AllocationSettings)
    query: QuerySettings = field(default_factory=QuerySettings)
    cheque_stock: ChequeStockSettings = field(default_factory=ChequeStockSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
