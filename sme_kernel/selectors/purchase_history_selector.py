"""
Module: sme_kernel.selectors.purchase_history_selector
Responsibility: Filtered, paginated purchase history and the recycle bin.
Architecture position: Kernel > Selectors.

Date presets resolve against the injected clock:
    TODAY          today .. today
    LAST_7_DAYS    today - 7 .. today
    LAST_30_DAYS   today - 30 .. today
    CUSTOM_RANGE   date_from .. date_to (either end open when None)

The amount range applies to grand_total.  The free-text search matches the
vendor name or the cheque number, case-insensitively.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum

from sqlalchemy import func, or_, select

from sme_kernel.domain.clock import Clock, SystemClock
from sme_kernel.models.purchase import PurchaseEntry
from sme_kernel.models.vendor import Vendor
from sme_kernel.selectors.base import BaseSelector, Page

DEFAULT_PAGE_SIZE = 50


class DateRangeType(str, Enum):
    TODAY = "TODAY"
    LAST_7_DAYS = "LAST_7_DAYS"
    LAST_30_DAYS = "LAST_30_DAYS"
    CUSTOM_RANGE = "CUSTOM_RANGE"


@dataclass(frozen=True)
class PurchaseFilter:
    date_range: DateRangeType = DateRangeType.CUSTOM_RANGE
    date_from: date | None = None
    date_to: date | None = None
    vendor_ids: tuple[int, ...] = ()
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    # None = no filter, True = cheque printed, False = no cheque yet
    cheque_issued: bool | None = None
    search: str | None = None

    def resolve_dates(self, today: date) -> tuple[date | None, date | None]:
        if self.date_range is DateRangeType.TODAY:
            return today, today
        if self.date_range is DateRangeType.LAST_7_DAYS:
            return today - timedelta(days=7), today
        if self.date_range is DateRangeType.LAST_30_DAYS:
            return today - timedelta(days=30), today
        return self.date_from, self.date_to


@dataclass(frozen=True)
class PurchaseSummaryDTO:
    id: int
    entry_date: date
    vendor_id: int
    vendor_name: str
    bags: int
    weight_kg: Decimal
    rate: Decimal
    is_lumpsum: bool
    base_amount: Decimal
    market_fee_amount: Decimal
    commission_fee_amount: Decimal
    total_fees: Decimal
    grand_total: Decimal
    payment_mode: str
    advance_paid: bool
    status: str
    cheque_number: str | None
    cheque_date: date | None
    notes: str | None
    is_deleted: bool


class PurchaseHistorySelector(BaseSelector[PurchaseEntry]):
    """Read-only access to saved purchases."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self.page_size = page_size

    def _to_dto(self, entry: PurchaseEntry) -> PurchaseSummaryDTO:
        return PurchaseSummaryDTO(
            id=entry.id,
            entry_date=entry.entry_date,
            vendor_id=entry.vendor_id,
            vendor_name=entry.vendor.name,
            bags=entry.bags,
            weight_kg=entry.weight_kg,
            rate=entry.rate,
            is_lumpsum=entry.is_lumpsum,
            base_amount=entry.base_amount,
            market_fee_amount=entry.market_fee_amount,
            commission_fee_amount=entry.commission_fee_amount,
            total_fees=entry.total_fees,
            grand_total=entry.grand_total,
            payment_mode=entry.payment_mode,
            advance_paid=entry.advance_paid,
            status=entry.status,
            cheque_number=entry.cheque_number,
            cheque_date=entry.cheque_date,
            notes=entry.notes,
            is_deleted=entry.is_deleted,
        )

    def get_purchase(self, purchase_id: int) -> PurchaseSummaryDTO | None:
        entry = self.session.get(PurchaseEntry, purchase_id)
        return self._to_dto(entry) if entry is not None else None

    def _filtered(self, criteria: PurchaseFilter, deleted: bool = False):
        stmt = (
            select(PurchaseEntry)
            .join(Vendor, Vendor.id == PurchaseEntry.vendor_id)
            .where(PurchaseEntry.is_deleted.is_(deleted))
        )
        date_from, date_to = criteria.resolve_dates(self._clock.today())
        if date_from is not None:
            stmt = stmt.where(PurchaseEntry.entry_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(PurchaseEntry.entry_date <= date_to)
        if criteria.vendor_ids:
            stmt = stmt.where(PurchaseEntry.vendor_id.in_(criteria.vendor_ids))
        if criteria.min_amount is not None:
            stmt = stmt.where(PurchaseEntry.grand_total >= criteria.min_amount)
        if criteria.max_amount is not None:
            stmt = stmt.where(PurchaseEntry.grand_total <= criteria.max_amount)
        if criteria.cheque_issued is True:
            stmt = stmt.where(
                PurchaseEntry.cheque_number.is_not(None), PurchaseEntry.cheque_number != ""
            )
        elif criteria.cheque_issued is False:
            stmt = stmt.where(
                or_(PurchaseEntry.cheque_number.is_(None), PurchaseEntry.cheque_number == "")
            )
        search = (criteria.search or "").strip().lower()
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    func.lower(Vendor.name).like(pattern),
                    func.lower(PurchaseEntry.cheque_number).like(pattern),
                )
            )
        return stmt

    def query(
        self,
        criteria: PurchaseFilter | None = None,
        page: int = 1,
    ) -> Page[PurchaseSummaryDTO]:
        """Active (non-deleted) purchases, newest entry date first."""
        stmt = self._filtered(criteria or PurchaseFilter())
        total = self._count(stmt)
        stmt = stmt.order_by(PurchaseEntry.entry_date.desc(), PurchaseEntry.id.desc())
        rows = self._paginate(stmt, page, self.page_size)
        return Page(
            items=tuple(self._to_dto(e) for e in rows),
            page=max(1, page),
            page_size=self.page_size,
            total_count=total,
        )

    def recycle_bin(self) -> list[PurchaseSummaryDTO]:
        """Soft-deleted purchases, most recently changed first."""
        stmt = self._filtered(PurchaseFilter(), deleted=True).order_by(
            PurchaseEntry.updated_at.desc(), PurchaseEntry.id.desc()
        )
        return [self._to_dto(e) for e in self.session.scalars(stmt)]
