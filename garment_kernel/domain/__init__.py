"""
Pure domain layer: value objects and time.

Nothing here touches the ORM, the database or I/O.
"""

from garment_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from garment_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from garment_kernel.domain.values import Currency, Money, Quantity, to_decimal

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CurrencyInfo",
    "CurrencyRegistry",
    "Currency",
    "Money",
    "Quantity",
    "to_decimal",
]
