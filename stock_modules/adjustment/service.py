"""
Stock Adjustment Service (``stock_modules.adjustment.service``).

Responsibility
--------------
Persists stock adjustments.  Loads a snapshot through
``AdjustmentSelector``, applies a pure ``lifecycle`` function, and writes
the result back with a compare-and-set on ``(id, status, version)``.  This
is a **thin glue layer** -- status rules, validation and totals all live in
the lifecycle and the engines.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. ``SequenceService`` allocates reference numbers (``SA-000001``).
2. ``lifecycle`` produces the next snapshot or raises.
3. ``_persist`` writes header, items and new audit stamps.

Invariants
----------
- The session is flushed, never committed; the caller owns the
  transaction (see ``stock_kernel.db.session_scope``).
- Every header write is ``UPDATE ... WHERE id AND status AND version``.
  Zero affected rows means another writer got there first:
  ``StaleAdjustmentError``, nothing partially applied by this call.
- Audit rows are inserted, never updated or deleted (except with their
  draft on delete).

Failure Modes
-------------
- Lifecycle errors (``ValidationError``, ``IllegalStateError``) pass
  through unchanged.
- ``AdjustmentNotFoundError`` for unknown ids.
- ``StaleAdjustmentError`` on a lost compare-and-set, or when the caller's
  ``expected_version`` is out of date.
- ``NotAuthorizedError`` when an approval authority is configured and
  refuses the actor.
- Catalog ``NotFoundError`` for unknown stores/products, unchanged.

Usage::

    with session_scope() as session:
        service = StockAdjustmentService(session, config=config)
        doc = service.create(
            adjustment_type="add", store_id="STORE-1", currency_id="USD",
            exchange_rate_at_creation=Decimal("1"), actor_id="u-1",
            items=[AdjustmentItem.of("P-1", 10, 15, "2.00")],
        )
        service.submit(doc.id, actor_id="u-1")
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID, uuid4

from sqlalchemy import delete, insert, update
from sqlalchemy.orm import Session

from stock_engines.aggregator import (
    AdjustmentStats,
    ReportTotals,
    aggregate_for_reporting,
    summarize,
)
from stock_engines.normalizer import RateLookupFn
from stock_kernel.domain.adjustment import AdjustmentItem, AdjustmentType, StockAdjustment
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.exceptions import (
    FieldValidationError,
    NotAuthorizedError,
    StaleAdjustmentError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.services.sequence_service import SequenceService
from stock_modules.adjustment import lifecycle
from stock_modules.adjustment.config import AdjustmentConfig
from stock_modules.adjustment.lifecycle import TransitionPayload
from stock_modules.adjustment.orm import (
    AdjustmentAuditModel,
    StockAdjustmentItemModel,
    StockAdjustmentModel,
    audit_values,
    header_values,
    item_values,
)
from stock_modules.adjustment.selectors import AdjustmentFilter, AdjustmentSelector
from stock_modules.adjustment.workflows import (
    ACTION_APPROVE,
    ACTION_REJECT,
    ACTION_RESUBMIT,
    ACTION_SUBMIT,
)

logger = get_logger("modules.adjustment.service")


class ReferenceCatalog(Protocol):
    """Store and product master data.  Raise NotFoundError for unknown ids."""

    def require_store(self, store_id: str) -> None: ...

    def require_product(self, product_id: str) -> None: ...


class ApprovalAuthority(Protocol):
    """Decides who may approve or reject submitted adjustments."""

    def can_approve(self, actor_id: str) -> bool: ...


class StockAdjustmentService:
    """
    Write-side facade for stock adjustments.

    Contract
    --------
    Every mutating method takes the document id and the acting user, and
    returns the freshly persisted snapshot.  ``expected_version`` lets a
    caller holding an older snapshot (e.g. a form loaded earlier) fail fast
    instead of overwriting someone else's edit.

    Non-goals
    ---------
    - Does NOT commit or roll back.
    - Does NOT decide status rules; ``lifecycle`` does.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: AdjustmentConfig | None = None,
        catalog: ReferenceCatalog | None = None,
        approval_authority: ApprovalAuthority | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or AdjustmentConfig.with_defaults()
        self._catalog = catalog
        self._authority = approval_authority
        self._selector = AdjustmentSelector(session)
        self._sequences = SequenceService(session)

    @property
    def selector(self) -> AdjustmentSelector:
        return self._selector

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, adjustment_id: UUID) -> StockAdjustment:
        return self._selector.get(adjustment_id)

    def list(
        self,
        criteria: AdjustmentFilter | None = None,
        limit: int | None = None,
        offset: int = 0,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> list[StockAdjustment]:
        return self._selector.list(
            criteria, limit=limit, offset=offset, sort_by=sort_by, sort_order=sort_order,
        )

    def stats(self, criteria: AdjustmentFilter | None = None) -> AdjustmentStats:
        """Counts by status and type over the matching adjustments."""
        return summarize(self._selector.list(criteria))

    def report(
        self,
        rate_lookup: RateLookupFn,
        reporting_currency: str | None = None,
        store_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        for_display: bool = False,
    ) -> ReportTotals:
        """
        Inbound/outbound totals of approved adjustments.

        Uses the configured reporting currency, rate basis and strictness
        unless a currency is passed explicitly.  With ``for_display`` the
        totals are rounded to ``display_decimal_places`` (or the currency's
        own precision when that is larger).
        """
        currency = reporting_currency or self._config.reporting_currency_id
        if not currency:
            raise FieldValidationError(
                "reporting_currency", reporting_currency, "no reporting currency configured"
            )
        documents = self._selector.approved_for_reporting(
            store_id=store_id, start_date=start_date, end_date=end_date,
        )
        totals = aggregate_for_reporting(
            documents,
            currency,
            rate_lookup,
            rate_basis=self._config.basis,
            strict=self._config.strict_rates,
        )
        if for_display:
            return totals.for_display(self._config.display_decimal_places)
        return totals

    # -------------------------------------------------------------------------
    # Creation and draft edits
    # -------------------------------------------------------------------------

    def _check_catalog(self, store_id: str | None, items: Iterable[AdjustmentItem]) -> None:
        if self._catalog is None:
            return
        if store_id is not None:
            self._catalog.require_store(store_id)
        for item in items:
            self._catalog.require_product(item.product_id)

    def create(
        self,
        *,
        adjustment_type: AdjustmentType | str,
        store_id: str,
        currency_id: str,
        exchange_rate_at_creation: Decimal | int | str,
        actor_id: str,
        items: Iterable[AdjustmentItem] = (),
        adjustment_date: date | None = None,
        reason_id: str | None = None,
        notes: str | None = None,
        document_type: str | None = None,
        document_number: str | None = None,
    ) -> StockAdjustment:
        """Create and persist a draft with a freshly allocated reference number."""
        items = tuple(items)
        self._check_catalog(store_id, items)
        now = self._clock.now()
        adjustment_id = uuid4()

        with LogContext.bind(actor_id=actor_id, document_id=adjustment_id):
            sequence = self._sequences.next_value(SequenceService.STOCK_ADJUSTMENT)
            document = lifecycle.create_adjustment(
                reference_number=self._config.format_reference(sequence),
                adjustment_type=adjustment_type,
                store_id=store_id,
                currency_id=currency_id,
                exchange_rate_at_creation=exchange_rate_at_creation,
                adjustment_date=adjustment_date or now.date(),
                actor_id=actor_id,
                at=now,
                items=items,
                reason_id=reason_id,
                notes=notes,
                document_type=document_type,
                document_number=document_number,
                adjustment_id=adjustment_id,
                notes_max_length=self._config.notes_max_length,
            )
            self._session.add(StockAdjustmentModel.from_dto(document))
            self._session.flush()
            logger.info(
                "adjustment_persisted",
                extra={
                    "reference_number": document.reference_number,
                    "version": document.version,
                },
            )
        return document

    def _load(self, adjustment_id: UUID, expected_version: int | None) -> StockAdjustment:
        document = self._selector.get(adjustment_id)
        if expected_version is not None and document.version != expected_version:
            raise StaleAdjustmentError(
                str(adjustment_id), document.status.value, expected_version,
            )
        return document

    def _edit(
        self,
        adjustment_id: UUID,
        actor_id: str,
        expected_version: int | None,
        operation: str,
        apply,
    ) -> StockAdjustment:
        with LogContext.bind(actor_id=actor_id, document_id=adjustment_id):
            previous = self._load(adjustment_id, expected_version)
            updated = apply(previous)
            if updated is previous:
                return previous
            self._persist(previous, updated)
            logger.info(
                "adjustment_draft_edited",
                extra={"operation": operation, "version": updated.version},
            )
        return updated

    def add_item(
        self,
        adjustment_id: UUID,
        item: AdjustmentItem,
        actor_id: str,
        expected_version: int | None = None,
    ) -> StockAdjustment:
        self._check_catalog(None, (item,))
        return self._edit(
            adjustment_id, actor_id, expected_version, "add_item",
            lambda doc: lifecycle.add_item(doc, item),
        )

    def update_item(
        self,
        adjustment_id: UUID,
        index: int,
        item: AdjustmentItem,
        actor_id: str,
        expected_version: int | None = None,
    ) -> StockAdjustment:
        self._check_catalog(None, (item,))
        return self._edit(
            adjustment_id, actor_id, expected_version, "update_item",
            lambda doc: lifecycle.update_item(doc, index, item),
        )

    def remove_item(
        self,
        adjustment_id: UUID,
        index: int,
        actor_id: str,
        expected_version: int | None = None,
    ) -> StockAdjustment:
        return self._edit(
            adjustment_id, actor_id, expected_version, "remove_item",
            lambda doc: lifecycle.remove_item(doc, index),
        )

    def replace_items(
        self,
        adjustment_id: UUID,
        items: Iterable[AdjustmentItem],
        actor_id: str,
        expected_version: int | None = None,
    ) -> StockAdjustment:
        items = tuple(items)
        self._check_catalog(None, items)
        return self._edit(
            adjustment_id, actor_id, expected_version, "replace_items",
            lambda doc: lifecycle.replace_items(doc, items),
        )

    def update_header(
        self,
        adjustment_id: UUID,
        actor_id: str,
        expected_version: int | None = None,
        **changes: Any,
    ) -> StockAdjustment:
        if "store_id" in changes:
            self._check_catalog(changes["store_id"], ())
        return self._edit(
            adjustment_id, actor_id, expected_version, "update_header",
            lambda doc: lifecycle.update_header(
                doc, notes_max_length=self._config.notes_max_length, **changes
            ),
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def transition(
        self,
        adjustment_id: UUID,
        action: str,
        actor_id: str,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> StockAdjustment:
        """Apply a workflow action and persist the result."""
        if (
            action in (ACTION_APPROVE, ACTION_REJECT)
            and self._authority is not None
            and not self._authority.can_approve(actor_id)
        ):
            logger.warning(
                "adjustment_action_not_authorized",
                extra={"action": action, "actor_id": actor_id, "document_id": str(adjustment_id)},
            )
            raise NotAuthorizedError(actor_id, action)

        with LogContext.bind(actor_id=actor_id, document_id=adjustment_id):
            previous = self._load(adjustment_id, expected_version)
            payload = TransitionPayload(actor_id=actor_id, at=self._clock.now(), reason=reason)
            updated = lifecycle.transition(previous, action, payload)
            self._persist(previous, updated)
        return updated

    def submit(self, adjustment_id: UUID, actor_id: str, **kwargs: Any) -> StockAdjustment:
        return self.transition(adjustment_id, ACTION_SUBMIT, actor_id, **kwargs)

    def approve(self, adjustment_id: UUID, actor_id: str, **kwargs: Any) -> StockAdjustment:
        return self.transition(adjustment_id, ACTION_APPROVE, actor_id, **kwargs)

    def reject(
        self, adjustment_id: UUID, actor_id: str, reason: str | None, **kwargs: Any,
    ) -> StockAdjustment:
        return self.transition(
            adjustment_id, ACTION_REJECT, actor_id, reason=reason, **kwargs
        )

    def resubmit(self, adjustment_id: UUID, actor_id: str, **kwargs: Any) -> StockAdjustment:
        return self.transition(adjustment_id, ACTION_RESUBMIT, actor_id, **kwargs)

    def delete(
        self,
        adjustment_id: UUID,
        actor_id: str,
        expected_version: int | None = None,
    ) -> None:
        """Delete a draft together with its items and audit rows."""
        with LogContext.bind(actor_id=actor_id, document_id=adjustment_id):
            document = self._load(adjustment_id, expected_version)
            lifecycle.ensure_deletable(document)
            # Claim the row first so a concurrent writer loses cleanly.
            self._compare_and_set(document, {"version": document.version + 1})
            for model in (StockAdjustmentItemModel, AdjustmentAuditModel):
                self._session.execute(
                    delete(model)
                    .where(model.adjustment_id == document.id)
                    .execution_options(synchronize_session=False)
                )
            self._session.execute(
                delete(StockAdjustmentModel)
                .where(StockAdjustmentModel.id == document.id)
                .execution_options(synchronize_session=False)
            )
            self._session.expire_all()
            logger.info(
                "adjustment_deleted",
                extra={"reference_number": document.reference_number},
            )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _compare_and_set(self, previous: StockAdjustment, values: dict[str, Any]) -> None:
        result = self._session.execute(
            update(StockAdjustmentModel)
            .where(
                StockAdjustmentModel.id == previous.id,
                StockAdjustmentModel.status == previous.status.value,
                StockAdjustmentModel.version == previous.version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "adjustment_write_conflict",
                extra={
                    "document_id": str(previous.id),
                    "expected_status": previous.status.value,
                    "expected_version": previous.version,
                },
            )
            raise StaleAdjustmentError(
                str(previous.id), previous.status.value, previous.version,
            )

    def _persist(self, previous: StockAdjustment, updated: StockAdjustment) -> None:
        """Write ``updated`` over ``previous``; raise if the stored row moved on."""
        self._compare_and_set(previous, header_values(updated))

        if updated.items != previous.items:
            self._session.execute(
                delete(StockAdjustmentItemModel)
                .where(StockAdjustmentItemModel.adjustment_id == updated.id)
                .execution_options(synchronize_session=False)
            )
            if updated.items:
                self._session.execute(
                    insert(StockAdjustmentItemModel),
                    [
                        {"id": uuid4(), **item_values(item, i, adjustment_id=updated.id)}
                        for i, item in enumerate(updated.items)
                    ],
                )

        start = len(previous.audit_trail)
        new_stamps = updated.audit_trail[start:]
        if new_stamps:
            self._session.execute(
                insert(AdjustmentAuditModel),
                [
                    {"id": uuid4(), **audit_values(stamp, start + i, adjustment_id=updated.id)}
                    for i, stamp in enumerate(new_stamps)
                ],
            )

        self._session.expire_all()
