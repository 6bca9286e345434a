"""
stock_engines.aggregator -- Adjustment totals and reporting aggregation.

Responsibility:
    Sum item deltas/values into document totals, and re-express a set of
    approved adjustments in one reporting currency as inbound/outbound
    movement totals.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes the normalizer (currency conversion) and the adjustment
    domain types.  Consumed by the lifecycle (totals frozen at submit) and
    by reporting callers.

Invariants enforced:
    - ``total_items == len(items)``; ``total_value == sum(line_value)``.
    - Only ``approved`` documents participate in reporting totals.
    - ``in_value`` and ``out_value`` are non-negative magnitudes;
      ``net_value = in_value + out_value`` is total movement, not a
      signed position.
    - Nothing is rounded during aggregation; ``ReportTotals.for_display``
      rounds at the presentation boundary.

Failure modes:
    - Missing live rates default to a factor of 1 unless ``strict`` is set
      (see stock_engines.normalizer).

Open question kept explicit:
    The default ``RateBasis.LIVE`` values every document at the rate in the
    supplied lookup *today*, so the same approved documents can report a
    different total tomorrow.  ``RateBasis.HISTORICAL`` values each document
    at the ``exchange_rate_at_creation`` it captured instead.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from stock_engines.normalizer import RateLookupFn, convert
from stock_engines.tracer import traced_engine
from stock_kernel.domain.adjustment import (
    AdjustmentItem,
    AdjustmentStatus,
    AdjustmentType,
    StockAdjustment,
)
from stock_kernel.domain.currency import round_for_display
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.aggregator")


class RateBasis(str, Enum):
    """Which exchange rate values a document in a report."""

    LIVE = "live"
    HISTORICAL = "historical"


@dataclass(frozen=True)
class Totals:
    """Document totals derived from its items."""

    total_items: int
    total_value: Decimal


@dataclass(frozen=True)
class ReportTotals:
    """Approved movement expressed in one reporting currency."""

    reporting_currency: str
    in_value: Decimal
    out_value: Decimal
    document_count: int = 0

    @property
    def net_value(self) -> Decimal:
        return self.in_value + self.out_value

    def for_display(self, min_places: int = 2) -> ReportTotals:
        """Copy with both totals rounded for the reporting currency."""
        return ReportTotals(
            reporting_currency=self.reporting_currency,
            in_value=round_for_display(self.in_value, self.reporting_currency, min_places),
            out_value=round_for_display(self.out_value, self.reporting_currency, min_places),
            document_count=self.document_count,
        )


@dataclass(frozen=True)
class AdjustmentStats:
    """
    Document counts for a dashboard summary.

    ``total_value`` sums each document at the rate it captured on creation
    (see ``equivalent_amount``).  ``last_update`` is the latest creation or
    workflow stamp, or None when there are no documents.
    """

    total: int
    by_status: dict[AdjustmentStatus, int] = field(default_factory=dict)
    by_type: dict[AdjustmentType, int] = field(default_factory=dict)
    total_value: Decimal = Decimal("0")
    last_update: datetime | None = None

    @property
    def stock_in_count(self) -> int:
        return self.by_type.get(AdjustmentType.ADD, 0)

    @property
    def stock_out_count(self) -> int:
        return self.by_type.get(AdjustmentType.DEDUCT, 0)


def aggregate(items: Iterable[AdjustmentItem]) -> Totals:
    """Count items and sum their line values."""
    items = tuple(items)
    return Totals(
        total_items=len(items),
        total_value=sum((item.line_value for item in items), Decimal("0")),
    )


def equivalent_amount(document: StockAdjustment) -> Decimal:
    """The document's total at the rate it captured when it was created."""
    return document.total_value * document.exchange_rate_at_creation


def _reporting_value(
    document: StockAdjustment,
    reporting_currency: str,
    rate_lookup: RateLookupFn,
    rate_basis: RateBasis,
    strict: bool,
) -> Decimal:
    if rate_basis == RateBasis.HISTORICAL:
        if document.currency_id == reporting_currency:
            return document.total_value
        return equivalent_amount(document)
    return convert(
        document.total_value,
        document.currency_id,
        reporting_currency,
        rate_lookup,
        strict=strict,
    )


@traced_engine(
    "aggregator",
    "1.0",
    fingerprint_fields=("documents", "reporting_currency", "rate_basis"),
)
def aggregate_for_reporting(
    documents: Sequence[StockAdjustment],
    reporting_currency: str,
    rate_lookup: RateLookupFn,
    rate_basis: RateBasis = RateBasis.LIVE,
    strict: bool = False,
) -> ReportTotals:
    """
    Sum approved adjustments into inbound/outbound totals.

    Args:
        documents: Any mix of adjustments; non-approved ones are skipped.
        reporting_currency: Currency every total is expressed in.
        rate_lookup: ``(from, to) -> rate | None`` snapshot of current rates.
        rate_basis: LIVE (default) or HISTORICAL valuation.
        strict: Raise ExchangeRateNotFoundError on a missing live rate
            instead of using a factor of 1.

    Returns:
        ReportTotals with ``in_value`` (add), ``out_value`` (deduct) and
        ``net_value`` (their sum).
    """
    rate_basis = RateBasis(rate_basis)
    in_value = Decimal("0")
    out_value = Decimal("0")
    count = 0

    for document in documents:
        if document.status != AdjustmentStatus.APPROVED:
            continue
        value = _reporting_value(document, reporting_currency, rate_lookup, rate_basis, strict)
        if document.adjustment_type == AdjustmentType.ADD:
            in_value += value
        else:
            out_value += value
        count += 1

    logger.debug(
        "reporting_totals_computed",
        extra={
            "reporting_currency": reporting_currency,
            "rate_basis": rate_basis.value,
            "document_count": count,
            "in_value": str(in_value),
            "out_value": str(out_value),
        },
    )
    return ReportTotals(
        reporting_currency=reporting_currency,
        in_value=in_value,
        out_value=out_value,
        document_count=count,
    )


def summarize(documents: Iterable[StockAdjustment]) -> AdjustmentStats:
    """Count documents overall, per status and per adjustment type."""
    documents = tuple(documents)
    stamps = [d.created_at for d in documents]
    stamps.extend(stamp.at for d in documents for stamp in d.audit_trail)
    return AdjustmentStats(
        total=len(documents),
        by_status=dict(Counter(d.status for d in documents)),
        by_type=dict(Counter(d.adjustment_type for d in documents)),
        total_value=sum((equivalent_amount(d) for d in documents), Decimal("0")),
        last_update=max(stamps, default=None),
    )
