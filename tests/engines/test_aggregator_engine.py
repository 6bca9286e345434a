"""
Tests for adjustment totals and reporting aggregation.

Tests cover:
- aggregate: item count and summed line values
- equivalent_amount: total at the captured historical rate
- aggregate_for_reporting: approved-only, in/out split, live vs historical
  valuation, missing-rate fallback and strict mode
- ReportTotals.for_display: presentation rounding per reporting currency
- summarize: counts by status and type, historical total value, last update
"""

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_engines.aggregator import (
    RateBasis,
    ReportTotals,
    aggregate,
    aggregate_for_reporting,
    equivalent_amount,
    summarize,
)
from stock_kernel.domain.adjustment import (
    AdjustmentItem,
    AuditStamp,
    AdjustmentStatus,
    AdjustmentType,
    StockAdjustment,
)
from stock_kernel.domain.values import ExchangeRate, RateTable
from stock_kernel.exceptions import ExchangeRateNotFoundError

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


# =========================================================================
# Factory helpers
# =========================================================================


def make_doc(
    total_value: Decimal | str,
    currency_id: str,
    adjustment_type: AdjustmentType = AdjustmentType.ADD,
    status: AdjustmentStatus = AdjustmentStatus.APPROVED,
    rate_at_creation: Decimal | str = "1",
) -> StockAdjustment:
    return StockAdjustment(
        id=uuid4(),
        reference_number="SA-X",
        adjustment_type=adjustment_type,
        store_id="STORE-1",
        currency_id=currency_id,
        exchange_rate_at_creation=rate_at_creation,
        adjustment_date=date(2024, 1, 1),
        created_by="u-1",
        created_at=NOW,
        status=status,
        total_items=1,
        total_value=Decimal(total_value),
        rejection_reason="r" if status == AdjustmentStatus.REJECTED else None,
    )


RATES = RateTable.of(
    ExchangeRate.of("A", "R", "2"),
    ExchangeRate.of("B", "R", "1"),
)


class TestAggregate:
    def test_sums_line_values(self):
        items = [
            AdjustmentItem.of("P-1", 10, 15, 2),
            AdjustmentItem.of("P-2", 4, 1, "0.5"),
        ]
        totals = aggregate(items)
        assert totals.total_items == 2
        assert totals.total_value == Decimal("11.5")

    def test_empty(self):
        totals = aggregate([])
        assert totals.total_items == 0
        assert totals.total_value == Decimal("0")

    def test_counts_invalid_items_too(self):
        # Validity is the reconciler's concern; totals cover every line.
        totals = aggregate([AdjustmentItem.of("P-1", 15, 10, 2)])
        assert totals.total_value == Decimal("10")


class TestEquivalentAmount:
    def test_total_times_historical_rate(self):
        doc = make_doc("100", "KES", rate_at_creation="0.0077")
        assert equivalent_amount(doc) == Decimal("0.77")


class TestAggregateForReporting:
    def test_mixed_currency_scenario(self):
        docs = [
            make_doc("100", "A", AdjustmentType.ADD),
            make_doc("50", "B", AdjustmentType.DEDUCT),
        ]
        totals = aggregate_for_reporting(docs, "R", RATES)
        assert totals == ReportTotals(
            reporting_currency="R",
            in_value=Decimal("200"),
            out_value=Decimal("50"),
            document_count=2,
        )
        assert totals.net_value == Decimal("250")

    @pytest.mark.parametrize(
        "status",
        [AdjustmentStatus.DRAFT, AdjustmentStatus.SUBMITTED, AdjustmentStatus.REJECTED],
    )
    def test_only_approved_documents_count(self, status):
        docs = [make_doc("100", "A"), make_doc("999", "A", status=status)]
        totals = aggregate_for_reporting(docs, "R", RATES)
        assert totals.in_value == Decimal("200")
        assert totals.document_count == 1

    def test_reporting_currency_needs_no_rate(self):
        totals = aggregate_for_reporting([make_doc("40", "R")], "R", RateTable())
        assert totals.in_value == Decimal("40")

    def test_missing_rate_defaults_to_one(self):
        totals = aggregate_for_reporting([make_doc("40", "Z")], "R", RATES)
        assert totals.in_value == Decimal("40")

    def test_strict_missing_rate_raises(self):
        with pytest.raises(ExchangeRateNotFoundError):
            aggregate_for_reporting([make_doc("40", "Z")], "R", RATES, strict=True)

    def test_historical_basis_uses_captured_rate(self):
        docs = [make_doc("100", "A", rate_at_creation="3")]
        live = aggregate_for_reporting(docs, "R", RATES, rate_basis=RateBasis.LIVE)
        historical = aggregate_for_reporting(docs, "R", RATES, rate_basis="historical")
        assert live.in_value == Decimal("200")
        assert historical.in_value == Decimal("300")

    def test_historical_basis_in_reporting_currency_is_unscaled(self):
        docs = [make_doc("100", "R", rate_at_creation="3")]
        totals = aggregate_for_reporting(docs, "R", RATES, rate_basis=RateBasis.HISTORICAL)
        assert totals.in_value == Decimal("100")

    def test_empty(self):
        totals = aggregate_for_reporting([], "R", RATES)
        assert totals.in_value == totals.out_value == Decimal("0")
        assert totals.document_count == 0

    def test_trace_fingerprint_covers_documents(self, captured_logs):
        aggregate_for_reporting([make_doc("100", "A")], "R", RATES)
        aggregate_for_reporting([make_doc("300", "A")], "R", RATES)

        prints = [
            r["input_fingerprint"]
            for r in captured_logs()
            if r["message"] == "STOCK_ENGINE_TRACE" and r["engine_name"] == "aggregator"
        ]
        assert len(prints) == 2
        assert prints[0] != prints[1]


class TestReportTotalsForDisplay:
    def test_rounds_half_up_to_two_places(self):
        totals = ReportTotals("USD", Decimal("10.005"), Decimal("0.0049"), 3)
        shown = totals.for_display()
        assert shown.in_value == Decimal("10.01")
        assert shown.out_value == Decimal("0.00")
        assert shown.document_count == 3
        assert shown.reporting_currency == "USD"

    def test_currency_precision_wins_over_min_places(self):
        shown = ReportTotals("KWD", Decimal("1.23456"), Decimal("0")).for_display()
        assert shown.in_value == Decimal("1.235")

    def test_min_places_widens_precision(self):
        shown = ReportTotals("USD", Decimal("1.23456"), Decimal("0")).for_display(4)
        assert shown.in_value == Decimal("1.2346")

    def test_original_is_unrounded(self):
        totals = ReportTotals("USD", Decimal("10.005"), Decimal("0"))
        totals.for_display()
        assert totals.in_value == Decimal("10.005")


class TestSummarize:
    def test_counts_by_status_and_type(self):
        docs = [
            make_doc("1", "A", AdjustmentType.ADD, AdjustmentStatus.DRAFT),
            make_doc("1", "A", AdjustmentType.ADD, AdjustmentStatus.APPROVED),
            make_doc("1", "A", AdjustmentType.DEDUCT, AdjustmentStatus.APPROVED),
            make_doc("1", "A", AdjustmentType.DEDUCT, AdjustmentStatus.REJECTED),
        ]
        stats = summarize(docs)
        assert stats.total == 4
        assert stats.by_status[AdjustmentStatus.APPROVED] == 2
        assert stats.by_status[AdjustmentStatus.DRAFT] == 1
        assert AdjustmentStatus.SUBMITTED not in stats.by_status
        assert stats.stock_in_count == 2
        assert stats.stock_out_count == 2

    def test_empty(self):
        stats = summarize([])
        assert stats.total == 0
        assert stats.stock_in_count == 0
        assert stats.total_value == Decimal("0")
        assert stats.last_update is None

    def test_total_value_uses_captured_rates(self):
        docs = [
            make_doc("100", "A", rate_at_creation="2"),
            make_doc("50", "B", status=AdjustmentStatus.DRAFT, rate_at_creation="0.5"),
        ]
        assert summarize(docs).total_value == Decimal("225")

    def test_last_update_is_latest_stamp(self):
        approved_at = NOW + timedelta(hours=3)
        stamped = replace(
            make_doc("1", "A"),
            audit_trail=(
                AuditStamp("submit", "u-1", NOW + timedelta(hours=1)),
                AuditStamp("approve", "u-2", approved_at),
            ),
        )
        assert summarize([make_doc("1", "A"), stamped]).last_update == approved_at

    def test_last_update_falls_back_to_creation(self):
        assert summarize([make_doc("1", "A")]).last_update == NOW
