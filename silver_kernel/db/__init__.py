"""Database layer: declarative base, column types, engine and listeners."""

from silver_kernel.db.base import Base, TrackedBase, UUIDString
from silver_kernel.db.types import Money, Percent, Rate, Weight, round_money, round_weight

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "Money",
    "Percent",
    "Rate",
    "Weight",
    "round_money",
    "round_weight",
]
