"""
Stock engines -- pure calculation layer for stock adjustments.

Normalizer -> Reconciler -> Aggregator.  No I/O, no clock, no globals.
"""

from stock_engines.aggregator import (
    AdjustmentStats,
    RateBasis,
    ReportTotals,
    Totals,
    aggregate,
    aggregate_for_reporting,
    equivalent_amount,
    summarize,
)
from stock_engines.normalizer import convert, resolve_rate
from stock_engines.reconciler import (
    ReconciliationResult,
    invalid_items,
    is_valid_difference,
    reconcile,
    reconcile_items,
)

__all__ = [
    "AdjustmentStats",
    "RateBasis",
    "ReportTotals",
    "Totals",
    "aggregate",
    "aggregate_for_reporting",
    "equivalent_amount",
    "summarize",
    "convert",
    "resolve_rate",
    "ReconciliationResult",
    "invalid_items",
    "is_valid_difference",
    "reconcile",
    "reconcile_items",
]
