"""
Money calculator -- pure purchase arithmetic.

Responsibility:
    Computes base amounts, percentage fees and grand totals for purchases,
    and parses raw numeric text typed into the purchase form.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Every intermediate division is held at 6 dp (half-up) and every result
      is rounded half-up to 2 dp via db.types.round_money.
    - No function in this module raises on bad numeric input: None, blank,
      malformed, non-finite and out-of-range values degrade to zero (or the
      caller's default for the parsers).  A result too large to quantize
      is zero.
    - Deterministic: same inputs always produce the same Decimal.

Formulas:
    lumpsum base   = bags * rate
    weighted base  = (weight_kg * rate) / 20      (rate is per 20 kg)
    fee            = base * percent / 100
    grand total    = base + market fee + commission fee
"""

from decimal import Decimal, InvalidOperation, Overflow
from typing import Any

from sme_kernel.db.types import MAX_INTEGER_DIGITS, ZERO, round_intermediate, round_money

WEIGHT_RATE_DIVISOR = Decimal("20")
PERCENT_DIVISOR = Decimal("100")


def _in_range(value: Decimal) -> bool:
    return not value or value.adjusted() < MAX_INTEGER_DIGITS


def parse_decimal(text: Any, default: Decimal = ZERO) -> Decimal:
    """
    Parse user-entered numeric text without ever raising.

    Whitespace and thousands separators are ignored.  Blank, malformed,
    NaN and infinite inputs return ``default``, as do magnitudes with more
    integer digits than a Money column can store.
    """
    if text is None:
        return default
    if isinstance(text, Decimal):
        return text if text.is_finite() and _in_range(text) else default
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        text = str(text)
    if not isinstance(text, str):
        return default

    cleaned = text.strip().replace(",", "").replace(" ", "")
    if not cleaned:
        return default
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return default
    return value if value.is_finite() and _in_range(value) else default


def parse_int(text: Any, default: int = 0) -> int:
    """
    Parse a user-entered whole number without ever raising.

    Integral Decimals and floats (``Decimal("10")``, ``10.0``) are accepted;
    fractional values return ``default``.
    """
    if text is None or isinstance(text, bool):
        return default
    if isinstance(text, (Decimal, float)):
        value = parse_decimal(text, default=None)
        if value is None or value != value.to_integral_value():
            return default
        return int(value)
    if isinstance(text, int):
        return text if abs(text) < 10**MAX_INTEGER_DIGITS else default
    if not isinstance(text, str):
        return default
    cleaned = text.strip().replace(",", "")
    try:
        value = int(cleaned)
    except ValueError:
        return default
    return value if abs(value) < 10**MAX_INTEGER_DIGITS else default


def _coerce(value: Any) -> Decimal | None:
    if value is None:
        return None
    return parse_decimal(value)


def base_amount(
    is_lumpsum: bool,
    bags: Any,
    weight_kg: Any,
    rate: Any,
) -> Decimal:
    """
    Compute the base amount of a purchase.

    Args:
        is_lumpsum: Price by bag count instead of weight.
        bags: Number of bags (used when is_lumpsum).
        weight_kg: Total weight in kilograms (used otherwise).
        rate: Price per bag (lumpsum) or per 20 kg.

    Returns:
        Base amount rounded half-up to 2 dp; zero when rate is missing or
        zero, or when the product is too large to represent.
    """
    rate_value = _coerce(rate)
    if rate_value is None or rate_value == 0:
        return ZERO

    try:
        if is_lumpsum:
            return round_money(Decimal(parse_int(bags)) * rate_value)

        weight = _coerce(weight_kg) or ZERO
        return round_money(round_intermediate(weight * rate_value / WEIGHT_RATE_DIVISOR))
    except (InvalidOperation, Overflow):
        return ZERO


def fee(base: Any, percent: Any) -> Decimal:
    """
    Compute a percentage fee on a base amount.

    Returns zero when either input is missing.  Linear in ``base`` up to
    rounding: fee(k * b, p) and k * fee(b, p) differ by at most (k + 1)
    half-cents.
    """
    base_value = _coerce(base)
    percent_value = _coerce(percent)
    if base_value is None or percent_value is None:
        return ZERO
    try:
        return round_money(round_intermediate(base_value * percent_value / PERCENT_DIVISOR))
    except (InvalidOperation, Overflow):
        return ZERO


def grand_total(base: Any, market_fee: Any = None, commission_fee: Any = None) -> Decimal:
    """Sum the non-missing components and round half-up to 2 dp."""
    total = ZERO
    for component in (base, market_fee, commission_fee):
        value = _coerce(component)
        if value is not None:
            total += value
    try:
        return round_money(total)
    except (InvalidOperation, Overflow):
        return ZERO
