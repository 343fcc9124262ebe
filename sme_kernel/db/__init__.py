"""Database layer - engine, base classes, types, and immutability guards."""

from sme_kernel.db.base import Base, TrackedBase
from sme_kernel.db.engine import Database
from sme_kernel.db.types import Money, Percent, Weight, round_money

__all__ = [
    "Base",
    "Database",
    "Money",
    "Percent",
    "TrackedBase",
    "Weight",
    "round_money",
]
