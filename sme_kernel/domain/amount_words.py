"""Amount in words for cheques, using the Indian numbering system (lakh, crore)."""

from decimal import Decimal

from sme_kernel.db.types import round_money

_UNITS = (
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
)

_TENS = (
    "", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety",
)

# (divisor, name), largest first
_SCALES = (
    (10_000_000, "Crore"),
    (100_000, "Lakh"),
    (1_000, "Thousand"),
    (100, "Hundred"),
)


def number_to_words(n: int) -> str:
    """Spell a non-negative integer, e.g. 1234567 -> 'Twelve Lakh Thirty Four Thousand ...'."""
    if n < 0:
        return f"Minus {number_to_words(-n)}"
    if n == 0:
        return "Zero"
    if n < 20:
        return _UNITS[n]
    if n < 100:
        tens, units = divmod(n, 10)
        return f"{_TENS[tens]} {_UNITS[units]}".rstrip()

    for divisor, name in _SCALES:
        if n >= divisor:
            head, rest = divmod(n, divisor)
            words = f"{number_to_words(head)} {name}"
            if rest:
                words = f"{words} {number_to_words(rest)}"
            return words
    raise AssertionError("unreachable")


def amount_to_words(amount: Decimal | None) -> str:
    """
    Cheque wording for an amount.

    Examples:
        1027      -> "One Thousand Twenty Seven Rupees Only"
        1027.50   -> "One Thousand Twenty Seven Rupees and Fifty Paise Only"

    Returns an empty string for None.
    """
    if amount is None:
        return ""
    rounded = round_money(Decimal(amount))
    rupees = int(rounded)
    paise = int((rounded - rupees) * 100)

    words = f"{number_to_words(rupees)} Rupees"
    if paise:
        words = f"{words} and {number_to_words(paise)} Paise"
    return f"{words} Only"
