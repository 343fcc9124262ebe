"""
PurchaseService -- persistence of purchases and vendors.

Responsibility:
    Validates PurchaseDrafts, recomputes their totals and writes them as
    PurchaseEntry rows.  Handles edit-in-place, soft delete and restore,
    vendor registration, and stamping a purchase with its cheque.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes within the caller's
    transaction.

Invariants enforced:
    - Totals are always written from domain.purchase.recompute(); a caller
      can never persist totals that disagree with the inputs.
    - Saving with the unregistered-vendor sentinel (-1) or an unknown vendor
      is rejected before any write.
    - Purchases are never physically deleted.

Failure modes:
    - ValidationError for an invalid draft or duplicate vendor name.
    - VendorNotFoundError / PurchaseNotFoundError for unknown ids.
"""

from datetime import date

from sqlalchemy import func, select

from sme_kernel.domain.clock import Clock, SystemClock
from sme_kernel.domain.purchase import (
    FeeDefaults,
    PurchaseDraft,
    derive_status,
    recompute,
)
from sme_kernel.exceptions import (
    PurchaseNotFoundError,
    ValidationError,
    VendorNotFoundError,
)
from sme_kernel.logging_config import LogContext, get_logger
from sme_kernel.models.purchase import PurchaseEntry
from sme_kernel.models.vendor import Vendor
from sme_kernel.services.base import BaseService

logger = get_logger("services.purchase")


class PurchaseService(BaseService[PurchaseEntry]):
    """
    Write side of purchase records.

    Contract:
        ``save()`` is the only path that writes purchase totals.

    Guarantees:
        - Editing keeps the purchase id.
        - Status is re-derived on every save.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        fee_defaults: FeeDefaults | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self.fee_defaults = fee_defaults or FeeDefaults()

    # ------------------------------------------------------------------
    # Vendors
    # ------------------------------------------------------------------

    def register_vendor(
        self,
        name: str,
        contact_number: str | None = None,
        address: str | None = None,
    ) -> Vendor:
        """
        Create a vendor so purchases can reference it.

        Raises:
            ValidationError: if the name is blank or already registered.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Vendor name is required", field="name")

        existing = self.session.scalar(
            select(Vendor).where(func.lower(Vendor.name) == name.lower())
        )
        if existing is not None:
            if existing.is_deleted:
                existing.is_deleted = False
                self.session.flush()
                logger.info("vendor_restored", extra={"vendor_id": existing.id})
                return existing
            raise ValidationError(f"Vendor already exists: {name}", field="name")

        vendor = Vendor(name=name, contact_number=contact_number, address=address)
        self.session.add(vendor)
        self.session.flush()
        logger.info("vendor_registered", extra={"vendor_id": vendor.id, "vendor_name": name})
        return vendor

    def get_vendor(self, vendor_id: int) -> Vendor:
        vendor = self.session.get(Vendor, vendor_id)
        if vendor is None or vendor.is_deleted:
            raise VendorNotFoundError(vendor_id)
        return vendor

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------

    def new_draft(self, **fields) -> PurchaseDraft:
        """A draft dated today with the configured default fee percentages."""
        fields.setdefault("entry_date", self._clock.today())
        fields.setdefault("market_fee_percent", self.fee_defaults.market_fee_percent)
        fields.setdefault("commission_percent", self.fee_defaults.commission_percent)
        return PurchaseDraft(**fields)

    def save(self, draft: PurchaseDraft) -> PurchaseEntry:
        """
        Validate, recompute and persist a draft.

        Preconditions:
            - ``draft.purchase_id`` is None for a new purchase, or the id of
              a saved, non-deleted purchase for an edit.

        Postconditions:
            - The returned row holds recomputed totals and derived status,
              and has been flushed (its id is assigned).

        Raises:
            ValidationError: if the draft is invalid or the purchase is in
                the recycle bin.
            VendorNotFoundError: if the vendor does not exist.
            PurchaseNotFoundError: if editing an unknown purchase.
        """
        draft.validate()
        vendor = self.get_vendor(draft.vendor_id)
        totals = recompute(draft)

        if draft.purchase_id is None:
            entry = PurchaseEntry(created_by=draft.created_by, is_deleted=False)
            self.session.add(entry)
            action = "purchase_created"
        else:
            entry = self.get(draft.purchase_id)
            action = "purchase_updated"

        entry.entry_date = draft.entry_date
        entry.vendor = vendor
        entry.bags = draft.bags
        entry.rate = draft.rate
        entry.weight_kg = draft.weight_kg
        entry.is_lumpsum = draft.is_lumpsum
        entry.market_fee_percent = draft.market_fee_percent
        entry.commission_percent = draft.commission_percent
        entry.base_amount = totals.base_amount
        entry.market_fee_amount = totals.market_fee_amount
        entry.commission_fee_amount = totals.commission_fee_amount
        entry.grand_total = totals.grand_total
        entry.payment_mode = draft.payment_mode
        entry.advance_paid = draft.advance_paid
        entry.status = derive_status(draft.advance_paid, draft.payment_mode)
        entry.notes = draft.notes

        self.session.flush()
        draft.purchase_id = entry.id

        with LogContext.bind(purchase_id=entry.id):
            logger.info(
                action,
                extra={
                    "vendor_id": vendor.id,
                    "grand_total": totals.grand_total,
                    "status": entry.status,
                },
            )
        return entry

    def get(self, purchase_id: int, include_deleted: bool = False) -> PurchaseEntry:
        entry = self.session.get(PurchaseEntry, purchase_id)
        if entry is None:
            raise PurchaseNotFoundError(purchase_id)
        if entry.is_deleted and not include_deleted:
            raise ValidationError(
                f"Purchase {purchase_id} is in the recycle bin", field="purchase_id"
            )
        return entry

    def draft_for_edit(self, purchase_id: int) -> PurchaseDraft:
        """Load a saved purchase back into an editable draft."""
        entry = self.get(purchase_id)
        draft = PurchaseDraft(
            entry_date=entry.entry_date,
            vendor_id=entry.vendor_id,
            bags=entry.bags,
            rate=entry.rate,
            weight_kg=entry.weight_kg,
            is_lumpsum=entry.is_lumpsum,
            market_fee_percent=entry.market_fee_percent,
            commission_percent=entry.commission_percent,
            payment_mode=entry.payment_mode,
            advance_paid=entry.advance_paid,
            notes=entry.notes,
            created_by=entry.created_by,
            purchase_id=entry.id,
        )
        if entry.advance_paid:
            draft.override_fees(entry.market_fee_amount, entry.commission_fee_amount)
        return draft

    def soft_delete(self, purchase_id: int) -> PurchaseEntry:
        entry = self.get(purchase_id, include_deleted=True)
        if not entry.is_deleted:
            entry.is_deleted = True
            self.session.flush()
            logger.info("purchase_soft_deleted", extra={"purchase_id": purchase_id})
        return entry

    def soft_delete_many(self, purchase_ids) -> int:
        """Move several purchases to the recycle bin.  Returns how many moved."""
        moved = 0
        for purchase_id in dict.fromkeys(purchase_ids):
            entry = self.get(purchase_id, include_deleted=True)
            if not entry.is_deleted:
                entry.is_deleted = True
                moved += 1
        self.session.flush()
        logger.info("purchases_soft_deleted", extra={"removed": moved})
        return moved

    def restore(self, purchase_id: int) -> PurchaseEntry:
        entry = self.get(purchase_id, include_deleted=True)
        if entry.is_deleted:
            entry.is_deleted = False
            self.session.flush()
            logger.info("purchase_restored", extra={"purchase_id": purchase_id})
        return entry

    def mark_cheque_issued(
        self,
        purchase_id: int,
        cheque_number: str | None,
        cheque_date: date | None,
    ) -> PurchaseEntry:
        """Stamp (or with None, clear) the cheque a purchase was paid with."""
        entry = self.get(purchase_id, include_deleted=True)
        entry.cheque_number = cheque_number
        entry.cheque_date = cheque_date if cheque_number else None
        self.session.flush()
        logger.info(
            "purchase_cheque_stamped",
            extra={"purchase_id": purchase_id, "cheque_number": cheque_number},
        )
        return entry
