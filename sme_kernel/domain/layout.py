"""
Cheque layout -- field positions on a cheque leaf.

Responsibility:
    Defines the immutable ChequeLayout value (millimetre coordinates for
    every printed field), the factory layouts for known cheque stocks, and
    the unit conversions a printing collaborator needs.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  TemplateService
    persists calibrated layouts.

Invariants enforced:
    - Coordinates are millimetres from the top-left corner of the leaf.
    - A layout is never mutated; calibration produces a new layout.
    - Only the fields in CHEQUE_FIELDS may be calibrated.

Failure modes:
    - ValidationError for an unknown field name or malformed date positions.
"""

from dataclasses import dataclass, replace
from typing import Iterable, Mapping

from sme_kernel.exceptions import ValidationError

MM_PER_INCH = 25.4
POINTS_PER_INCH = 72.0

CHEQUE_FIELDS = (
    "date",
    "payee",
    "amount_words",
    "amount_digits",
    "signature",
    "ac_payee",
    "micr",
)

DEFAULT_MICR_CODE = "⑆000000⑈ 000000000⑉ 00"
DEFAULT_FONT_FAMILY = "Inter"
LANDSCAPE = "LANDSCAPE"
PORTRAIT = "PORTRAIT"

DEFAULT_BANK = "Default Bank"
STATE_BANK_OF_INDIA = "State Bank of India"


def mm_to_points(mm: float) -> float:
    """Millimetres to PDF points (1 mm = 2.83465 pt)."""
    return mm * POINTS_PER_INCH / MM_PER_INCH


def points_to_mm(points: float) -> float:
    return points * MM_PER_INCH / POINTS_PER_INCH


def mm_to_printer_pixels(mm: float, dpi: int) -> int:
    """Millimetres to device pixels at the given printer resolution."""
    return round(mm / MM_PER_INCH * dpi)


@dataclass(frozen=True)
class Point:
    """A position on the leaf, in millimetres."""

    x: float
    y: float

    def shifted(self, dx: float, dy: float) -> "Point":
        return Point(round(self.x + dx, 3), round(self.y + dy, 3))

    def in_points(self) -> tuple[float, float]:
        return mm_to_points(self.x), mm_to_points(self.y)


@dataclass(frozen=True)
class ChequeStock:
    """Physical cheque leaf dimensions (CTS-2010 by default)."""

    width_mm: float = 202.0
    height_mm: float = 92.0


def parse_date_positions(text: str | None) -> tuple[Point, ...]:
    """
    Parse per-character date positions stored as "x,y;x,y;...".

    Raises:
        ValidationError: if a pair is not two numbers.
    """
    if not text or not text.strip():
        return ()
    points = []
    for pair in text.strip().strip(";").split(";"):
        parts = pair.split(",")
        try:
            x, y = (float(p) for p in parts)
        except ValueError:
            raise ValidationError(
                f"Invalid date position {pair!r}; expected 'x,y'",
                field="date_positions",
            ) from None
        points.append(Point(x, y))
    return tuple(points)


def format_date_positions(points: Iterable[Point]) -> str:
    return ";".join(f"{p.x:g},{p.y:g}" for p in points)


@dataclass(frozen=True)
class ChequeLayout:
    """
    Where each field is printed on one bank's cheque stock.

    Contract:
        ``version`` is 0 for factory layouts and counts calibrations for
        stored layouts.

    Guarantees:
        - ``with_offsets`` returns a new layout; self is unchanged.
    """

    bank_name: str
    date: Point
    payee: Point
    amount_words: Point
    amount_digits: Point
    signature: Point
    ac_payee: Point
    micr: Point
    micr_code: str = DEFAULT_MICR_CODE
    font_size: float = 12.0
    font_family: str = DEFAULT_FONT_FAMILY
    print_orientation: str = LANDSCAPE
    # Explicit per-character boxes for the DDMMYYYY date, when printed in boxes
    date_positions: tuple[Point, ...] = ()
    date_char_spacing_mm: float = 5.5
    version: int = 0

    def field(self, name: str) -> Point:
        if name not in CHEQUE_FIELDS:
            raise ValidationError(f"Unknown cheque field: {name}", field=name)
        return getattr(self, name)

    def with_offsets(self, deltas: Mapping[str, tuple[float, float]]) -> "ChequeLayout":
        """
        Shift fields by (dx, dy) millimetre offsets.

        Raises:
            ValidationError: for a field outside CHEQUE_FIELDS.
        """
        unknown = sorted(set(deltas) - set(CHEQUE_FIELDS))
        if unknown:
            raise ValidationError(
                [f"Unknown cheque field: {name}" for name in unknown],
                field=unknown[0],
            )
        changes = {
            name: self.field(name).shifted(float(dx), float(dy))
            for name, (dx, dy) in deltas.items()
        }
        if "date" in deltas and self.date_positions:
            dx, dy = deltas["date"]
            changes["date_positions"] = tuple(
                p.shifted(float(dx), float(dy)) for p in self.date_positions
            )
        return replace(self, **changes)

    def date_character_positions(self, date_digits: str) -> list[Point]:
        """
        Position of each character of the printed date.

        Uses the explicit per-character boxes when present, otherwise spaces
        the characters evenly from the date anchor.
        """
        if self.date_positions:
            return list(self.date_positions[: len(date_digits)])
        return [
            Point(round(self.date.x + i * self.date_char_spacing_mm, 3), self.date.y)
            for i in range(len(date_digits))
        ]


# Normalized (fraction of width, fraction of height) positions for stock
# without calibrated constants
_RELATIVE_POSITIONS = {
    "date": (0.82, 0.08),
    "payee": (0.12, 0.22),
    "amount_words": (0.12, 0.32),
    "amount_digits": (0.82, 0.42),
    "signature": (0.75, 0.80),
}
_RELATIVE_FONT_SIZE = 16.0

_FACTORY_LAYOUTS = {
    STATE_BANK_OF_INDIA: ChequeLayout(
        bank_name=STATE_BANK_OF_INDIA,
        date=Point(154.0, 10.0),
        payee=Point(25.0, 24.0),
        amount_words=Point(25.0, 36.0),
        amount_digits=Point(155.0, 48.0),
        signature=Point(150.0, 75.0),
        ac_payee=Point(15.0, 10.0),
        micr=Point(13.0, 85.0),
        date_char_spacing_mm=4.5,
    ),
    DEFAULT_BANK: ChequeLayout(
        bank_name=DEFAULT_BANK,
        date=Point(160.0, 15.0),
        payee=Point(30.0, 45.0),
        amount_words=Point(30.0, 60.0),
        amount_digits=Point(160.0, 55.0),
        signature=Point(150.0, 70.0),
        ac_payee=Point(15.0, 10.0),
        micr=Point(13.0, 85.0),
    ),
}


def known_banks() -> list[str]:
    return sorted(_FACTORY_LAYOUTS)


def factory_layout(bank_name: str, stock: ChequeStock | None = None) -> ChequeLayout:
    """
    Factory layout for a bank.

    Known banks (matched case-insensitively) get their calibrated constants;
    any other bank gets the relative layout scaled to ``stock``.
    """
    for known, layout in _FACTORY_LAYOUTS.items():
        if known.lower() == (bank_name or "").strip().lower():
            return layout

    stock = stock or ChequeStock()
    scaled = {
        name: Point(round(fx * stock.width_mm, 3), round(fy * stock.height_mm, 3))
        for name, (fx, fy) in _RELATIVE_POSITIONS.items()
    }
    base = _FACTORY_LAYOUTS[DEFAULT_BANK]
    return replace(
        base,
        bank_name=bank_name,
        font_size=_RELATIVE_FONT_SIZE,
        **scaled,
    )
