"""
Stock kernel domain layer -- pure value objects, zero I/O.
"""

from stock_kernel.domain.adjustment import (
    AdjustmentItem,
    AdjustmentStatus,
    AdjustmentType,
    AuditStamp,
    StockAdjustment,
)
from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.currency import CurrencyRegistry, round_for_display
from stock_kernel.domain.values import (
    ExchangeRate,
    RateLookup,
    RateTable,
    as_decimal,
    positive_rate,
)
from stock_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "AdjustmentItem",
    "AdjustmentStatus",
    "AdjustmentType",
    "AuditStamp",
    "StockAdjustment",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CurrencyRegistry",
    "round_for_display",
    "ExchangeRate",
    "RateLookup",
    "RateTable",
    "as_decimal",
    "positive_rate",
    "Guard",
    "Transition",
    "Workflow",
]
