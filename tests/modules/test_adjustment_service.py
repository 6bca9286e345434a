"""
Integration tests for StockAdjustmentService against SQLite in-memory.

Tests cover:
- create with sequential reference numbers
- draft edits persisted, optimistic version checks
- full lifecycle persisted with audit trail
- compare-and-set conflicts (StaleAdjustmentError)
- delete of drafts only
- catalog and approval authority collaborators
- listing filters, stats and reporting totals
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.adjustment import AdjustmentItem, AdjustmentStatus, AdjustmentType
from stock_kernel.domain.values import ExchangeRate, RateTable
from stock_kernel.exceptions import (
    AdjustmentNotFoundError,
    ExchangeRateNotFoundError,
    FieldValidationError,
    IllegalStateError,
    InvalidItemsError,
    NotAuthorizedError,
    NotFoundError,
    StaleAdjustmentError,
)
from stock_kernel.services.sequence_service import SequenceService
from stock_modules.adjustment.config import AdjustmentConfig
from stock_modules.adjustment.selectors import AdjustmentFilter
from stock_modules.adjustment.service import StockAdjustmentService

CLERK = "clerk"
MANAGER = "manager"


def item(current=10, new=15, cost=2, product_id="P-1") -> AdjustmentItem:
    return AdjustmentItem.of(product_id, current, new, cost)


class FakeCatalog:
    def __init__(self, stores=("STORE-1", "STORE-2"), products=("P-1", "P-2")):
        self.stores = set(stores)
        self.products = set(products)

    def require_store(self, store_id):
        if store_id not in self.stores:
            raise NotFoundError("store", store_id)

    def require_product(self, product_id):
        if product_id not in self.products:
            raise NotFoundError("product", product_id)


class FakeAuthority:
    def __init__(self, approvers=(MANAGER,)):
        self.approvers = set(approvers)

    def can_approve(self, actor_id):
        return actor_id in self.approvers


@pytest.fixture
def service(session, deterministic_clock):
    return StockAdjustmentService(
        session,
        clock=deterministic_clock,
        config=AdjustmentConfig(reporting_currency_id="R"),
    )


def create(service, **overrides):
    kwargs = dict(
        adjustment_type=AdjustmentType.ADD,
        store_id="STORE-1",
        currency_id="USD",
        exchange_rate_at_creation=Decimal("1"),
        actor_id=CLERK,
        items=[item()],
    )
    kwargs.update(overrides)
    return service.create(**kwargs)


class TestCreate:
    def test_reference_numbers_are_sequential(self, service):
        first = create(service)
        second = create(service)
        assert first.reference_number == "SA-000001"
        assert second.reference_number == "SA-000002"

    def test_custom_reference_format(self, session):
        service = StockAdjustmentService(
            session, config=AdjustmentConfig(reference_prefix="ADJ", reference_padding=4),
        )
        assert create(service).reference_number == "ADJ-0001"

    def test_persisted_draft(self, service, deterministic_clock):
        doc = create(service, notes="found in back room")
        loaded = service.get(doc.id)
        assert loaded == doc
        assert loaded.adjustment_date == deterministic_clock.now().date()
        assert loaded.total_value == Decimal("10")

    def test_explicit_adjustment_date(self, service):
        doc = create(service, adjustment_date=date(2023, 12, 31))
        assert service.get(doc.id).adjustment_date == date(2023, 12, 31)

    def test_unknown_id(self, service):
        with pytest.raises(AdjustmentNotFoundError):
            service.get(uuid4())

    def test_sequence_counter_advances(self, service, session):
        create(service)
        create(service)
        assert SequenceService(session).current_value(SequenceService.STOCK_ADJUSTMENT) == 2


class TestDraftEdits:
    def test_add_update_remove(self, service):
        doc = create(service)
        doc = service.add_item(doc.id, item(0, 3, 1, "P-2"), CLERK)
        assert service.get(doc.id).total_value == Decimal("13")
        doc = service.update_item(doc.id, 1, item(0, 4, 1, "P-2"), CLERK)
        assert service.get(doc.id).items[1].new_quantity == Decimal("4")
        doc = service.remove_item(doc.id, 0, CLERK)
        loaded = service.get(doc.id)
        assert [i.product_id for i in loaded.items] == ["P-2"]
        assert loaded.total_value == Decimal("4")
        assert loaded.version == doc.version

    def test_replace_items(self, service):
        doc = create(service)
        service.replace_items(doc.id, [item(product_id="P-2"), item(1, 2, 5)], CLERK)
        loaded = service.get(doc.id)
        assert loaded.total_items == 2
        assert loaded.total_value == Decimal("15")

    def test_update_header(self, service):
        doc = create(service)
        service.update_header(doc.id, CLERK, notes="recount", document_number="DR-1")
        loaded = service.get(doc.id)
        assert loaded.notes == "recount"
        assert loaded.document_number == "DR-1"

    def test_stale_expected_version(self, service):
        doc = create(service)
        service.update_header(doc.id, CLERK, notes="first")
        with pytest.raises(StaleAdjustmentError) as exc_info:
            service.update_header(doc.id, CLERK, expected_version=doc.version, notes="second")
        assert exc_info.value.code == "OPTIMISTIC_LOCK_CONFLICT"
        assert service.get(doc.id).notes == "first"

    def test_matching_expected_version(self, service):
        doc = create(service)
        updated = service.update_header(doc.id, CLERK, expected_version=doc.version, notes="ok")
        assert updated.version == doc.version + 1

    def test_edit_after_submit_is_illegal(self, service):
        doc = create(service)
        service.submit(doc.id, CLERK)
        with pytest.raises(IllegalStateError):
            service.add_item(doc.id, item(), CLERK)


class TestLifecycle:
    def test_submit_approve(self, service, deterministic_clock):
        doc = create(service)
        deterministic_clock.advance(60)
        service.submit(doc.id, CLERK)
        deterministic_clock.advance(60)
        service.approve(doc.id, MANAGER)
        loaded = service.get(doc.id)
        assert loaded.status == AdjustmentStatus.APPROVED
        assert loaded.approved_by == MANAGER
        assert loaded.submitted_at < loaded.approved_at
        assert [s.action for s in loaded.audit_trail] == ["create", "submit", "approve"]

    def test_reject_then_resubmit(self, service):
        doc = create(service)
        service.submit(doc.id, CLERK)
        rejected = service.reject(doc.id, MANAGER, "damaged goods")
        assert service.get(doc.id).rejection_reason == "damaged goods"
        service.resubmit(doc.id, CLERK, expected_version=rejected.version)
        loaded = service.get(doc.id)
        assert loaded.status == AdjustmentStatus.SUBMITTED
        assert loaded.rejection_reason is None
        assert [s.action for s in loaded.audit_trail] == ["create", "submit", "reject", "resubmit"]
        assert loaded.audit_trail[2].reason == "damaged goods"

    def test_invalid_submit_leaves_row_untouched(self, service):
        doc = create(service, adjustment_type=AdjustmentType.DEDUCT)
        with pytest.raises(InvalidItemsError):
            service.submit(doc.id, CLERK)
        assert service.get(doc.id) == doc

    def test_transition_by_name(self, service):
        doc = create(service)
        service.transition(doc.id, "submit", CLERK)
        assert service.get(doc.id).status == AdjustmentStatus.SUBMITTED


class TestCompareAndSet:
    def test_lost_update_detected(self, service):
        doc = create(service)
        stale = service.get(doc.id)
        service.update_header(doc.id, CLERK, notes="someone else")
        with pytest.raises(StaleAdjustmentError):
            service._persist(stale, replace(stale, notes="mine", version=stale.version + 1))
        assert service.get(doc.id).notes == "someone else"

    def test_status_moved_on(self, service):
        doc = create(service)
        stale = service.get(doc.id)
        service.submit(doc.id, CLERK)
        with pytest.raises(StaleAdjustmentError) as exc_info:
            service._persist(stale, replace(stale, version=stale.version + 1))
        assert exc_info.value.expected_status == "draft"


class TestDelete:
    def test_delete_draft(self, service):
        doc = create(service)
        service.delete(doc.id, CLERK)
        with pytest.raises(AdjustmentNotFoundError):
            service.get(doc.id)

    def test_delete_submitted_is_illegal(self, service):
        doc = create(service)
        service.submit(doc.id, CLERK)
        with pytest.raises(IllegalStateError):
            service.delete(doc.id, CLERK)
        assert service.get(doc.id).status == AdjustmentStatus.SUBMITTED

    def test_delete_with_stale_version(self, service):
        doc = create(service)
        service.update_header(doc.id, CLERK, notes="edited")
        with pytest.raises(StaleAdjustmentError):
            service.delete(doc.id, CLERK, expected_version=doc.version)


class TestCollaborators:
    def test_catalog_rejects_unknown_store(self, session):
        service = StockAdjustmentService(session, catalog=FakeCatalog())
        with pytest.raises(NotFoundError) as exc_info:
            create(service, store_id="STORE-X")
        assert exc_info.value.entity_type == "store"

    def test_catalog_rejects_unknown_product(self, session):
        service = StockAdjustmentService(session, catalog=FakeCatalog())
        doc = create(service)
        with pytest.raises(NotFoundError):
            service.add_item(doc.id, item(product_id="P-404"), CLERK)

    def test_authority_blocks_approve_and_reject(self, session):
        service = StockAdjustmentService(session, approval_authority=FakeAuthority())
        doc = create(service)
        service.submit(doc.id, CLERK)
        with pytest.raises(NotAuthorizedError):
            service.approve(doc.id, CLERK)
        with pytest.raises(NotAuthorizedError):
            service.reject(doc.id, CLERK, "no")
        assert service.approve(doc.id, MANAGER).status == AdjustmentStatus.APPROVED


class TestQueries:
    @pytest.fixture
    def populated(self, service, deterministic_clock):
        a = create(service, notes="cycle count", adjustment_date=date(2024, 1, 5))
        deterministic_clock.advance(60)
        b = create(
            service,
            adjustment_type=AdjustmentType.DEDUCT,
            store_id="STORE-2",
            items=[item(10, 4, 5)],
            document_number="DMG-99",
            adjustment_date=date(2024, 2, 1),
        )
        deterministic_clock.advance(60)
        c = create(service, adjustment_date=date(2024, 3, 1))
        service.submit(a.id, CLERK)
        service.approve(a.id, MANAGER)
        service.submit(b.id, CLERK)
        service.approve(b.id, MANAGER)
        return a, b, c

    def test_list_newest_first(self, service, populated):
        a, b, c = populated
        assert [d.id for d in service.list()] == [c.id, b.id, a.id]

    def test_list_paging(self, service, populated):
        a, b, c = populated
        assert [d.id for d in service.list(limit=1, offset=1)] == [b.id]

    def test_filters(self, service, populated):
        a, b, c = populated
        selector = service.selector
        assert [d.id for d in service.list(AdjustmentFilter(status=AdjustmentStatus.DRAFT))] == [c.id]
        assert [d.id for d in service.list(AdjustmentFilter(adjustment_type="deduct"))] == [b.id]
        assert [d.id for d in service.list(AdjustmentFilter(store_id="STORE-2"))] == [b.id]
        in_feb = AdjustmentFilter(start_date=date(2024, 2, 1), end_date=date(2024, 2, 29))
        assert [d.id for d in service.list(in_feb)] == [b.id]
        assert selector.count(AdjustmentFilter(start_date=date(2024, 2, 1))) == 2

    def test_search(self, service, populated):
        a, b, c = populated
        assert [d.id for d in service.list(AdjustmentFilter(search="CYCLE"))] == [a.id]
        assert [d.id for d in service.list(AdjustmentFilter(search="dmg-9"))] == [b.id]
        assert [d.id for d in service.list(AdjustmentFilter(search="SA-000003"))] == [c.id]

    def test_search_treats_wildcards_literally(self, service):
        pct = create(service, notes="100% count")
        create(service, notes="1000 count")
        under = create(service, notes="bin a_b")
        create(service, notes="bin axb")
        assert [d.id for d in service.list(AdjustmentFilter(search="100%"))] == [pct.id]
        assert [d.id for d in service.list(AdjustmentFilter(search="a_b"))] == [under.id]
        assert [d.id for d in service.list(AdjustmentFilter(search="%"))] == [pct.id]

    def test_sort_by_reference_ascending(self, service, populated):
        a, b, c = populated
        listed = service.list(sort_by="reference_number", sort_order="asc")
        assert [d.id for d in listed] == [a.id, b.id, c.id]

    def test_sort_by_adjustment_date(self, service, populated):
        a, b, c = populated
        assert [d.id for d in service.list(sort_by="adjustment_date")] == [c.id, b.id, a.id]
        assert [
            d.id for d in service.list(sort_by="adjustment_date", sort_order="asc")
        ] == [a.id, b.id, c.id]

    def test_sort_ties_broken_by_reference(self, service, populated):
        a, b, c = populated
        listed = service.list(sort_by="store_id", sort_order="asc")
        assert [d.id for d in listed] == [a.id, c.id, b.id]

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"sort_by": "total_value"}, "sort_by"),
            ({"sort_by": "notes; drop table"}, "sort_by"),
            ({"sort_order": "sideways"}, "sort_order"),
        ],
    )
    def test_bad_sort_rejected(self, service, kwargs, field):
        with pytest.raises(FieldValidationError) as exc_info:
            service.list(**kwargs)
        assert exc_info.value.field == field

    def test_get_by_reference(self, service, populated):
        a, b, c = populated
        assert service.selector.get_by_reference("SA-000002").id == b.id
        with pytest.raises(AdjustmentNotFoundError):
            service.selector.get_by_reference("SA-999999")

    def test_stats(self, service, populated):
        stats = service.stats()
        assert stats.total == 3
        assert stats.by_status[AdjustmentStatus.APPROVED] == 2
        assert stats.by_status[AdjustmentStatus.DRAFT] == 1
        assert stats.stock_in_count == 2
        assert stats.stock_out_count == 1

    def test_stats_total_value_and_last_update(self, service, populated, deterministic_clock):
        a, b, c = populated
        assert service.stats().total_value == Decimal("50")
        assert service.stats().last_update == deterministic_clock.now()

        deterministic_clock.advance(300)
        service.submit(c.id, CLERK)
        assert service.stats().last_update == deterministic_clock.now()

    def test_stats_empty(self, service):
        stats = service.stats()
        assert stats.total_value == Decimal("0")
        assert stats.last_update is None

    def test_report(self, service, populated):
        rates = RateTable.of(ExchangeRate.of("USD", "R", "2"))
        totals = service.report(rates)
        assert totals.reporting_currency == "R"
        assert totals.in_value == Decimal("20")
        assert totals.out_value == Decimal("60")
        assert totals.document_count == 2

    def test_report_for_display_rounds(self, session, deterministic_clock):
        service = StockAdjustmentService(
            session,
            clock=deterministic_clock,
            config=AdjustmentConfig(reporting_currency_id="R", display_decimal_places=3),
        )
        doc = create(service, items=[item(10, 13, "0.3333")])
        service.submit(doc.id, CLERK)
        service.approve(doc.id, MANAGER)
        rates = RateTable.of(ExchangeRate.of("USD", "R", "1.5"))

        assert service.report(rates).in_value == Decimal("1.49985")
        shown = service.report(rates, for_display=True)
        assert shown.in_value == Decimal("1.500")
        assert str(shown.in_value) == "1.500"
        assert shown.document_count == 1

    def test_report_by_store(self, service, populated):
        rates = RateTable.of(ExchangeRate.of("USD", "R", "2"))
        totals = service.report(rates, store_id="STORE-1")
        assert totals.out_value == Decimal("0")
        assert totals.document_count == 1

    def test_report_strict(self, session, populated):
        strict = StockAdjustmentService(
            session, config=AdjustmentConfig(reporting_currency_id="R", strict_rates=True),
        )
        with pytest.raises(ExchangeRateNotFoundError):
            strict.report(RateTable())

    def test_report_requires_currency(self, session):
        service = StockAdjustmentService(session)
        with pytest.raises(FieldValidationError):
            service.report(RateTable())
