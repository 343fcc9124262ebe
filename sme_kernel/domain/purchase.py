"""
Purchase record -- draft, validation, totals and status.

Responsibility:
    Holds an unsaved purchase (PurchaseDraft), validates it, and recomputes
    its totals on demand through the pure ``recompute()`` function.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  PurchaseService
    persists what this module produces.

Invariants enforced:
    - grand_total = base + market fee + commission fee, each rounded half-up
      to 2 dp at the point of computation.
    - total_fees is always market fee + commission fee; it is never set
      independently.
    - While advance_paid is true, fee amounts are zero unless an explicit
      override was supplied.  An override survives any number of
      recalculations for as long as advance_paid stays true.
    - derive_status() is total and idempotent.
    - Totals are computed from inputs held at their stored scale (rate 2 dp,
      weight 3 dp, percentages 4 dp), so a saved row recomputes to the
      totals stored with it.

Failure modes:
    - ValidationError from PurchaseDraft.validate(), listing every failing
      field.  Validation never touches storage.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from sme_kernel.db.types import (
    MONEY_DECIMAL_PLACES,
    PERCENT_DECIMAL_PLACES,
    RATE_DECIMAL_PLACES,
    WEIGHT_DECIMAL_PLACES,
    ZERO,
    round_money,
)
from sme_kernel.domain import money
from sme_kernel.exceptions import ValidationError

UNREGISTERED_VENDOR_ID = -1

STATUS_UNPAID = "UNPAID"
STATUS_PAID_ADVANCE = "PAID (ADVANCE)"

MAX_FEE_PERCENT = Decimal("100")


class PaymentMode(str, Enum):
    """How a purchase is settled."""

    CASH = "CASH"
    CHEQUE = "CHEQUE"
    BANK_TRANSFER = "BANK_TRANSFER"
    UPI = "UPI"
    ADVANCE = "ADVANCE"

    @classmethod
    def parse(cls, value: Any) -> "PaymentMode | None":
        """Case-insensitive lookup; 'bank transfer' and 'Bank-Transfer' both match."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            return None


def derive_status(advance_paid: bool, payment_mode: Any) -> str:
    """
    Derive the payment status label of a purchase.

    Returns:
        "PAID (ADVANCE)" when an advance was paid, "PAID (<MODE>)" for a
        recognised payment mode, otherwise "UNPAID".
    """
    if advance_paid:
        return STATUS_PAID_ADVANCE
    mode = PaymentMode.parse(payment_mode)
    if mode is None:
        return STATUS_UNPAID
    return f"PAID ({mode.value})"


@dataclass(frozen=True)
class FeeDefaults:
    """Default fee percentages applied to new drafts."""

    market_fee_percent: Decimal = Decimal("0.70")
    commission_percent: Decimal = Decimal("2.00")


@dataclass(frozen=True)
class PurchaseTotals:
    """Result of recomputing a draft."""

    base_amount: Decimal
    market_fee_amount: Decimal
    commission_fee_amount: Decimal
    grand_total: Decimal

    @property
    def total_fees(self) -> Decimal:
        return self.market_fee_amount + self.commission_fee_amount


def _at_scale(value: Any, places: int) -> Decimal:
    return round_money(money.parse_decimal(value), places)


@dataclass
class PurchaseDraft:
    """
    An unsaved purchase as edited in the purchase form.

    Contract:
        Mutable while the operator edits it.  Totals are never stored on the
        draft; call ``calculate_fees()`` (or ``recompute(draft)``) whenever
        they are needed.

    Non-goals:
        - Listener cascades: nothing recomputes implicitly on assignment.
    """

    entry_date: date | None = None
    vendor_id: int | None = None
    bags: int = 0
    rate: Decimal = ZERO
    weight_kg: Decimal = ZERO
    is_lumpsum: bool = False
    market_fee_percent: Decimal = FeeDefaults.market_fee_percent
    commission_percent: Decimal = FeeDefaults.commission_percent
    payment_mode: str = PaymentMode.CASH.value
    advance_paid: bool = False
    # Honoured only while advance_paid is true
    market_fee_override: Decimal | None = None
    commission_fee_override: Decimal | None = None
    notes: str | None = None
    created_by: str | None = None
    # Set when editing a saved purchase
    purchase_id: int | None = None
    errors: list[str] = field(default_factory=list, repr=False, compare=False)

    def normalize(self) -> None:
        """
        Round the numeric inputs to the scale they are stored at.

        Rate is held at 2 dp, weight at 3 dp, percentages at 4 dp and fee
        overrides at 2 dp, so totals computed from the draft equal totals
        recomputed from the saved row.
        """
        self.bags = money.parse_int(self.bags)
        self.rate = _at_scale(self.rate, RATE_DECIMAL_PLACES)
        self.weight_kg = _at_scale(self.weight_kg, WEIGHT_DECIMAL_PLACES)
        self.market_fee_percent = _at_scale(self.market_fee_percent, PERCENT_DECIMAL_PLACES)
        self.commission_percent = _at_scale(self.commission_percent, PERCENT_DECIMAL_PLACES)
        if self.market_fee_override is not None:
            self.market_fee_override = _at_scale(self.market_fee_override, MONEY_DECIMAL_PLACES)
        if self.commission_fee_override is not None:
            self.commission_fee_override = _at_scale(
                self.commission_fee_override, MONEY_DECIMAL_PLACES
            )

    def validate(self) -> None:
        """
        Normalize the draft and check it is complete enough to save.

        Raises:
            ValidationError: with every failing rule; ``field`` names the
                first failing field.
        """
        self.normalize()
        failures: list[tuple[str, str]] = []
        if self.entry_date is None:
            failures.append(("entry_date", "Entry date is required"))
        if self.vendor_id == UNREGISTERED_VENDOR_ID:
            failures.append(("vendor_id", "Create vendor first"))
        elif self.vendor_id is None or self.vendor_id <= 0:
            failures.append(("vendor_id", "Valid vendor is required"))
        if self.bags <= 0:
            failures.append(("bags", "Bags must be greater than 0"))
        if self.rate <= 0:
            failures.append(("rate", "Rate must be greater than 0"))
        if not self.is_lumpsum and self.weight_kg <= 0:
            failures.append(("weight_kg", "Weight is required if not lumpsum"))
        for name in ("market_fee_percent", "commission_percent"):
            if not ZERO <= getattr(self, name) <= MAX_FEE_PERCENT:
                failures.append((name, "Fee percentage must be between 0 and 100"))

        self.errors = [message for _, message in failures]
        if failures:
            raise ValidationError(self.errors, field=failures[0][0])

    def is_valid(self) -> bool:
        try:
            self.validate()
        except ValidationError:
            return False
        return True

    def set_lumpsum(self, is_lumpsum: bool) -> None:
        """Toggle lumpsum pricing; weight is irrelevant (and zeroed) for lumpsum."""
        self.is_lumpsum = is_lumpsum
        if is_lumpsum:
            self.weight_kg = ZERO

    def set_advance_paid(self, advance_paid: bool, defaults: FeeDefaults | None = None) -> None:
        """
        Toggle the advance-paid flag.

        Marking an advance zeroes the fee percentages.  Clearing it restores
        the default percentages and discards any fee overrides.
        """
        self.advance_paid = advance_paid
        if advance_paid:
            self.market_fee_percent = ZERO
            self.commission_percent = ZERO
            return
        defaults = defaults or FeeDefaults()
        self.market_fee_percent = defaults.market_fee_percent
        self.commission_percent = defaults.commission_percent
        self.market_fee_override = None
        self.commission_fee_override = None

    def override_fees(
        self,
        market_fee_amount: Decimal | None = None,
        commission_fee_amount: Decimal | None = None,
    ) -> None:
        """Set explicit fee amounts for an advance-paid purchase."""
        if market_fee_amount is not None:
            self.market_fee_override = market_fee_amount
        if commission_fee_amount is not None:
            self.commission_fee_override = commission_fee_amount

    def calculate_fees(self) -> PurchaseTotals:
        return recompute(self)

    @property
    def status(self) -> str:
        return derive_status(self.advance_paid, self.payment_mode)


def recompute(draft: PurchaseDraft) -> PurchaseTotals:
    """
    Compute all totals of a draft.

    Pure: reads the draft, returns a new PurchaseTotals, mutates nothing.
    Inputs are taken at their stored scale (see PurchaseDraft.normalize).
    """
    draft = replace(draft)
    draft.normalize()
    base = money.base_amount(draft.is_lumpsum, draft.bags, draft.weight_kg, draft.rate)

    if draft.advance_paid:
        market_fee = (
            ZERO if draft.market_fee_override is None else draft.market_fee_override
        )
        commission_fee = (
            ZERO if draft.commission_fee_override is None else draft.commission_fee_override
        )
    else:
        market_fee = money.fee(base, draft.market_fee_percent)
        commission_fee = money.fee(base, draft.commission_percent)

    return PurchaseTotals(
        base_amount=base,
        market_fee_amount=market_fee,
        commission_fee_amount=commission_fee,
        grand_total=money.grand_total(base, market_fee, commission_fee),
    )


def draft_from_form(
    *,
    entry_date: date | None,
    vendor_id: int | None,
    bags: str | None,
    rate: str | None,
    weight_kg: str | None = None,
    is_lumpsum: bool = False,
    market_fee_percent: str | None = None,
    commission_percent: str | None = None,
    payment_mode: str = PaymentMode.CASH.value,
    advance_paid: bool = False,
    notes: str | None = None,
    created_by: str | None = None,
    defaults: FeeDefaults | None = None,
) -> PurchaseDraft:
    """
    Build a draft from the raw strings of the purchase form.

    Unparseable numbers become zero (and then fail validation); blank fee
    percentages fall back to the defaults, or to zero when advance is paid.
    """
    defaults = defaults or FeeDefaults()
    if advance_paid:
        market_default = commission_default = ZERO
    else:
        market_default = defaults.market_fee_percent
        commission_default = defaults.commission_percent

    draft = PurchaseDraft(
        entry_date=entry_date,
        vendor_id=vendor_id,
        bags=money.parse_int(bags),
        rate=money.parse_decimal(rate),
        weight_kg=money.parse_decimal(weight_kg),
        market_fee_percent=money.parse_decimal(market_fee_percent, market_default),
        commission_percent=money.parse_decimal(commission_percent, commission_default),
        payment_mode=payment_mode,
        advance_paid=advance_paid,
        notes=notes,
        created_by=created_by,
    )
    draft.set_lumpsum(is_lumpsum)
    draft.normalize()
    return draft
