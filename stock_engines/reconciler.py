"""
stock_engines.reconciler -- Adjustment item reconciliation.

Responsibility:
    For each item on a stock adjustment, compute the quantity delta and
    its monetary value, and check the delta's sign against the
    adjustment's declared direction.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel domain types.

Invariants enforced:
    - ``difference = new_quantity - current_quantity``.
    - ``line_value = |difference| * unit_cost`` in Decimal, unrounded.
    - ``add`` requires ``difference >= 0``; ``deduct`` requires
      ``difference <= 0``.  A zero delta is valid for both.
    - Invalid items are flagged, never dropped: ``reconcile_items`` returns
      one result per input item, in order.

Failure modes:
    - None.  Reconciliation reports; the lifecycle decides what blocks.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from stock_engines.tracer import traced_engine
from stock_kernel.domain.adjustment import AdjustmentItem, AdjustmentType
from stock_kernel.exceptions import ItemViolation


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of reconciling one item."""

    index: int
    product_id: str
    difference: Decimal
    line_value: Decimal
    is_valid: bool

    def to_violation(self, adjustment_type: AdjustmentType) -> ItemViolation:
        return ItemViolation(
            index=self.index,
            product_id=self.product_id,
            difference=self.difference,
            adjustment_type=AdjustmentType(adjustment_type).value,
        )


def is_valid_difference(difference: Decimal, adjustment_type: AdjustmentType) -> bool:
    """Does ``difference`` have the sign ``adjustment_type`` requires?"""
    if AdjustmentType(adjustment_type) == AdjustmentType.ADD:
        return difference >= 0
    return difference <= 0


def reconcile(
    item: AdjustmentItem,
    adjustment_type: AdjustmentType,
    index: int = 0,
) -> ReconciliationResult:
    """Reconcile a single item against the adjustment direction."""
    difference = item.difference
    return ReconciliationResult(
        index=index,
        product_id=item.product_id,
        difference=difference,
        line_value=item.line_value,
        is_valid=is_valid_difference(difference, adjustment_type),
    )


@traced_engine("reconciler", "1.0", fingerprint_fields=("items", "adjustment_type"))
def reconcile_items(
    items: Sequence[AdjustmentItem],
    adjustment_type: AdjustmentType,
) -> tuple[ReconciliationResult, ...]:
    """Reconcile every item; result ``i`` describes ``items[i]``."""
    return tuple(
        reconcile(item, adjustment_type, index=i) for i, item in enumerate(items)
    )


def invalid_items(
    items: Sequence[AdjustmentItem],
    adjustment_type: AdjustmentType,
) -> tuple[ReconciliationResult, ...]:
    """Only the results that violate the adjustment direction."""
    return tuple(r for r in reconcile_items(items, adjustment_type) if not r.is_valid)
