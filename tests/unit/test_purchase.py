"""
Unit tests for the purchase draft: validation, recompute, advance handling
and status derivation.
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from sme_kernel.domain.purchase import (
    STATUS_PAID_ADVANCE,
    STATUS_UNPAID,
    UNREGISTERED_VENDOR_ID,
    FeeDefaults,
    PaymentMode,
    PurchaseDraft,
    derive_status,
    draft_from_form,
    recompute,
)
from sme_kernel.exceptions import ValidationError


def make_draft(**overrides) -> PurchaseDraft:
    fields = dict(
        entry_date=date(2024, 1, 15),
        vendor_id=1,
        bags=10,
        rate=Decimal("100"),
        is_lumpsum=True,
    )
    fields.update(overrides)
    return PurchaseDraft(**fields)


class TestValidation:
    def test_valid_lumpsum_draft(self):
        draft = make_draft()
        draft.validate()
        assert draft.errors == []
        assert draft.is_valid()

    def test_collects_every_failure(self):
        draft = PurchaseDraft(bags=0, rate=Decimal("0"))
        with pytest.raises(ValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.errors == [
            "Entry date is required",
            "Valid vendor is required",
            "Bags must be greater than 0",
            "Rate must be greater than 0",
            "Weight is required if not lumpsum",
        ]
        assert exc_info.value.field == "entry_date"
        assert draft.errors == exc_info.value.errors

    def test_unregistered_vendor_asks_to_create_vendor(self):
        draft = make_draft(vendor_id=UNREGISTERED_VENDOR_ID)
        with pytest.raises(ValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.errors == ["Create vendor first"]
        assert exc_info.value.field == "vendor_id"

    def test_weight_required_when_not_lumpsum(self):
        draft = make_draft(is_lumpsum=False, weight_kg=Decimal("0"))
        assert not draft.is_valid()
        assert draft.errors == ["Weight is required if not lumpsum"]

    def test_lumpsum_does_not_need_weight(self):
        assert make_draft(weight_kg=Decimal("0")).is_valid()


class TestRecompute:
    def test_lumpsum_example(self):
        totals = recompute(make_draft())
        assert totals.base_amount == Decimal("1000.00")
        assert totals.market_fee_amount == Decimal("7.00")
        assert totals.commission_fee_amount == Decimal("20.00")
        assert totals.total_fees == Decimal("27.00")
        assert totals.grand_total == Decimal("1027.00")

    def test_weight_example(self):
        draft = make_draft(is_lumpsum=False, weight_kg=Decimal("100"), rate=Decimal("200"))
        assert recompute(draft).base_amount == Decimal("1000.00")

    def test_recompute_does_not_mutate(self):
        draft = make_draft()
        before = (draft.market_fee_percent, draft.commission_percent, draft.advance_paid)
        draft.calculate_fees()
        assert (draft.market_fee_percent, draft.commission_percent, draft.advance_paid) == before

    def test_set_lumpsum_zeroes_weight(self):
        draft = make_draft(is_lumpsum=False, weight_kg=Decimal("50"))
        draft.set_lumpsum(True)
        assert draft.weight_kg == Decimal("0")


class TestAdvancePaid:
    def test_advance_zeroes_fees(self):
        draft = make_draft()
        draft.set_advance_paid(True)
        totals = recompute(draft)
        assert draft.market_fee_percent == Decimal("0")
        assert totals.total_fees == Decimal("0.00")
        assert totals.grand_total == Decimal("1000.00")

    def test_override_survives_recalculation(self):
        draft = make_draft()
        draft.set_advance_paid(True)
        draft.override_fees(Decimal("5.005"), Decimal("12"))
        first = recompute(draft)
        draft.bags = 20
        second = recompute(draft)
        assert first.market_fee_amount == second.market_fee_amount == Decimal("5.01")
        assert first.commission_fee_amount == second.commission_fee_amount == Decimal("12.00")
        assert second.grand_total == Decimal("2017.01")

    def test_clearing_advance_restores_defaults(self):
        draft = make_draft()
        draft.set_advance_paid(True)
        draft.override_fees(Decimal("5"), Decimal("5"))
        draft.set_advance_paid(False, FeeDefaults(Decimal("1.00"), Decimal("3.00")))
        assert draft.market_fee_override is None
        assert draft.commission_fee_override is None
        totals = recompute(draft)
        assert totals.market_fee_amount == Decimal("10.00")
        assert totals.commission_fee_amount == Decimal("30.00")

    def test_override_ignored_without_advance(self):
        draft = make_draft()
        draft.override_fees(Decimal("1"), Decimal("1"))
        assert recompute(draft).total_fees == Decimal("27.00")


class TestStatus:
    @pytest.mark.parametrize(
        "advance,mode,expected",
        [
            (True, "CASH", STATUS_PAID_ADVANCE),
            (False, "CASH", "PAID (CASH)"),
            (False, "cheque", "PAID (CHEQUE)"),
            (False, "bank transfer", "PAID (BANK_TRANSFER)"),
            (False, "Bank-Transfer", "PAID (BANK_TRANSFER)"),
            (False, "barter", STATUS_UNPAID),
            (False, None, STATUS_UNPAID),
        ],
    )
    def test_derive_status(self, advance, mode, expected):
        assert derive_status(advance, mode) == expected

    def test_idempotent(self):
        assert derive_status(False, "UPI") == derive_status(False, "UPI")

    def test_draft_status_property(self):
        assert make_draft(payment_mode=PaymentMode.UPI.value).status == "PAID (UPI)"


class TestDraftFromForm:
    def test_parses_form_text(self):
        draft = draft_from_form(
            entry_date=date(2024, 1, 15),
            vendor_id=3,
            bags="10",
            rate="1,00",
            weight_kg="",
            is_lumpsum=True,
        )
        assert draft.bags == 10
        assert draft.rate == Decimal("100")
        assert draft.market_fee_percent == Decimal("0.70")
        assert draft.commission_percent == Decimal("2.00")

    def test_garbage_becomes_zero_and_fails_validation(self):
        draft = draft_from_form(entry_date=date(2024, 1, 15), vendor_id=3, bags="ten", rate="x")
        assert draft.bags == 0
        assert draft.rate == Decimal("0")
        assert not draft.is_valid()

    def test_advance_defaults_fees_to_zero(self):
        draft = draft_from_form(
            entry_date=date(2024, 1, 15),
            vendor_id=3,
            bags="1",
            rate="1",
            advance_paid=True,
        )
        assert draft.market_fee_percent == Decimal("0")
        assert draft.commission_percent == Decimal("0")

    def test_inputs_held_at_stored_scale(self):
        draft = draft_from_form(
            entry_date=date(2024, 1, 15),
            vendor_id=3,
            bags="1",
            rate="33.335",
            weight_kg="100.0004",
            market_fee_percent="0.70005",
        )
        assert draft.rate == Decimal("33.34")
        assert draft.weight_kg == Decimal("100.000")
        assert draft.market_fee_percent == Decimal("0.7001")

    def test_out_of_range_rate_becomes_zero(self):
        draft = draft_from_form(
            entry_date=date(2024, 1, 15),
            vendor_id=3,
            bags="1",
            rate="99999999999999999999999999999",
            is_lumpsum=True,
        )
        assert recompute(draft).grand_total == Decimal("0.00")
        assert not draft.is_valid()

    @given(
        bags=st.text(max_size=20),
        rate=st.text(max_size=40),
        weight=st.text(max_size=40),
        market=st.text(max_size=20),
        commission=st.text(max_size=20),
        is_lumpsum=st.booleans(),
        advance_paid=st.booleans(),
    )
    @settings(max_examples=300)
    def test_recompute_never_raises(
        self, bags, rate, weight, market, commission, is_lumpsum, advance_paid
    ):
        draft = draft_from_form(
            entry_date=date(2024, 1, 15),
            vendor_id=3,
            bags=bags,
            rate=rate,
            weight_kg=weight,
            market_fee_percent=market,
            commission_percent=commission,
            is_lumpsum=is_lumpsum,
            advance_paid=advance_paid,
        )
        totals = recompute(draft)
        assert totals.grand_total == totals.base_amount + totals.total_fees


class TestStoredScale:
    def test_recompute_uses_stored_scale(self):
        draft = make_draft(is_lumpsum=False, weight_kg=Decimal("100"), rate=Decimal("33.335"))
        # 33.34 * 100 / 20, not 33.335 * 100 / 20 = 166.675
        assert recompute(draft).base_amount == Decimal("166.70")
        assert draft.rate == Decimal("33.335")

    def test_validate_normalizes(self):
        draft = make_draft(rate=Decimal("33.335"), weight_kg=Decimal("1.23456"))
        draft.validate()
        assert draft.rate == Decimal("33.34")
        assert draft.weight_kg == Decimal("1.235")

    def test_sub_cent_rate_fails_validation(self):
        draft = make_draft(rate=Decimal("0.004"))
        assert not draft.is_valid()
        assert draft.errors == ["Rate must be greater than 0"]

    @pytest.mark.parametrize("percent", [Decimal("-1"), Decimal("100.01")])
    def test_fee_percent_bounds(self, percent):
        draft = make_draft(market_fee_percent=percent)
        with pytest.raises(ValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.field == "market_fee_percent"
