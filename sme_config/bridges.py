"""
Config -> kernel bridges.

Builds kernel objects from ``KernelSettings``.  These live in sme_config
because the kernel must never import sme_config.

Usage:
    from sme_config import get_active_config
    from sme_config.bridges import build_database, build_issuance_service

    settings = get_active_config()
    database = build_database(settings)
    issuance = build_issuance_service(settings, database)
"""

from __future__ import annotations

from sme_config.schema import KernelSettings
from sme_kernel.db.engine import Database
from sme_kernel.domain.clock import Clock
from sme_kernel.domain.layout import ChequeStock
from sme_kernel.domain.purchase import FeeDefaults
from sme_kernel.logging_config import configure_logging
from sme_kernel.services.cheque_book_allocator import ChequeBookAllocator
from sme_kernel.services.cheque_issuance_service import ChequeIssuanceService


def configure_kernel_logging(settings: KernelSettings, **kwargs) -> None:
    configure_logging(level=settings.logging.level, **kwargs)


def build_database(settings: KernelSettings) -> Database:
    db = settings.database
    return Database(
        db.url,
        echo=db.echo,
        busy_timeout_seconds=db.busy_timeout_seconds,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
    )


def build_fee_defaults(settings: KernelSettings) -> FeeDefaults:
    return FeeDefaults(
        market_fee_percent=settings.fees.market_fee_percent,
        commission_percent=settings.fees.commission_percent,
    )


def build_cheque_stock(settings: KernelSettings) -> ChequeStock:
    return ChequeStock(
        width_mm=settings.cheque_stock.width_mm,
        height_mm=settings.cheque_stock.height_mm,
    )


def build_allocator(settings: KernelSettings, database: Database) -> ChequeBookAllocator:
    return ChequeBookAllocator(
        database, lock_timeout_seconds=settings.allocation.lock_timeout_seconds
    )


def build_issuance_service(
    settings: KernelSettings,
    database: Database,
    clock: Clock | None = None,
    allocator: ChequeBookAllocator | None = None,
) -> ChequeIssuanceService:
    """Wire the issuance orchestrator with every configurable collaborator."""
    return ChequeIssuanceService(
        database,
        allocator=allocator or build_allocator(settings, database),
        clock=clock,
        fee_defaults=build_fee_defaults(settings),
        stock=build_cheque_stock(settings),
        leaf_number_width=settings.cheque_stock.leaf_number_width,
        retry_attempts=settings.allocation.retry_attempts,
        retry_backoff_seconds=settings.allocation.retry_backoff_seconds,
    )
