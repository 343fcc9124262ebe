"""
Module: sme_kernel.db.types
Responsibility: Annotated type aliases and the rounding helpers shared by
    every monetary computation.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for monetary
      values.  Rounding is always ROUND_HALF_UP.
    - Intermediate division results are held at INTERMEDIATE_DECIMAL_PLACES
      before the final rounding to MONEY_DECIMAL_PLACES.
    - No floats for money anywhere in the kernel.
"""

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Numeric

# Column types: monetary amount (2 dp), percentage, kilograms
Money = Numeric(14, 2)
Percent = Numeric(7, 4)
Weight = Numeric(14, 3)

MONEY_DECIMAL_PLACES = 2
RATE_DECIMAL_PLACES = 2
WEIGHT_DECIMAL_PLACES = 3
PERCENT_DECIMAL_PLACES = 4
INTERMEDIATE_DECIMAL_PLACES = 6
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")

# Integer digits a Money column can hold (Numeric(14, 2))
MAX_INTEGER_DIGITS = 12


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized with the given rounding mode.
    """
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)


def round_intermediate(value: Decimal) -> Decimal:
    """Quantize a division result to the intermediate scale (6 dp, half-up)."""
    return round_money(value, INTERMEDIATE_DECIMAL_PLACES)
