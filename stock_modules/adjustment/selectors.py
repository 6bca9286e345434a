"""
Module: stock_modules.adjustment.selectors
Responsibility: Read-only queries over persisted stock adjustments:
    fetch by id or reference, filtered listing for the adjustment list view,
    and the approved set used for reporting totals.
Architecture position: Modules > Adjustment > Selectors.  Returns frozen
    StockAdjustment DTOs, never ORM instances.

Failure modes:
    - AdjustmentNotFoundError from get() when no row matches.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.sql import Select

from stock_kernel.domain.adjustment import AdjustmentStatus, AdjustmentType, StockAdjustment
from stock_kernel.exceptions import AdjustmentNotFoundError, FieldValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.selectors.base import BaseSelector
from stock_modules.adjustment.orm import StockAdjustmentModel

logger = get_logger("modules.adjustment.selectors")

# total_value is left out: ExactDecimal is stored as text on SQLite.
SORTABLE_FIELDS = {
    "created_at": StockAdjustmentModel.created_at,
    "adjustment_date": StockAdjustmentModel.adjustment_date,
    "reference_number": StockAdjustmentModel.reference_number,
    "adjustment_type": StockAdjustmentModel.adjustment_type,
    "status": StockAdjustmentModel.status,
    "store_id": StockAdjustmentModel.store_id,
    "total_items": StockAdjustmentModel.total_items,
}
SORT_ORDERS = ("asc", "desc")


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class AdjustmentFilter:
    """
    Listing criteria.  Every field is optional; set fields are ANDed.

    ``search`` is a case-insensitive substring match over reference number,
    notes and document number.  The date range is inclusive on
    ``adjustment_date``.
    """

    status: AdjustmentStatus | None = None
    adjustment_type: AdjustmentType | None = None
    store_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    search: str | None = None


class AdjustmentSelector(BaseSelector[StockAdjustmentModel]):
    """Read access to stock adjustments."""

    def _load(self, stmt: Select) -> list[StockAdjustment]:
        rows = self.session.scalars(
            stmt.execution_options(populate_existing=True)
        ).all()
        return [row.to_dto() for row in rows]

    def find(self, adjustment_id: UUID) -> StockAdjustment | None:
        """Adjustment by id, or None."""
        found = self._load(
            select(StockAdjustmentModel).where(StockAdjustmentModel.id == adjustment_id)
        )
        return found[0] if found else None

    def get(self, adjustment_id: UUID) -> StockAdjustment:
        """Adjustment by id; raises AdjustmentNotFoundError when absent."""
        document = self.find(adjustment_id)
        if document is None:
            raise AdjustmentNotFoundError(str(adjustment_id))
        return document

    def get_by_reference(self, reference_number: str) -> StockAdjustment:
        found = self._load(
            select(StockAdjustmentModel).where(
                StockAdjustmentModel.reference_number == reference_number
            )
        )
        if not found:
            raise AdjustmentNotFoundError(reference_number)
        return found[0]

    def _filtered(self, criteria: AdjustmentFilter | None) -> Select:
        stmt = select(StockAdjustmentModel)
        if criteria is None:
            return stmt
        if criteria.status is not None:
            stmt = stmt.where(
                StockAdjustmentModel.status == AdjustmentStatus(criteria.status).value
            )
        if criteria.adjustment_type is not None:
            stmt = stmt.where(
                StockAdjustmentModel.adjustment_type
                == AdjustmentType(criteria.adjustment_type).value
            )
        if criteria.store_id:
            stmt = stmt.where(StockAdjustmentModel.store_id == criteria.store_id)
        if criteria.start_date is not None:
            stmt = stmt.where(StockAdjustmentModel.adjustment_date >= criteria.start_date)
        if criteria.end_date is not None:
            stmt = stmt.where(StockAdjustmentModel.adjustment_date <= criteria.end_date)
        if criteria.search and criteria.search.strip():
            pattern = f"%{_escape_like(criteria.search.strip().lower())}%"
            stmt = stmt.where(
                or_(
                    func.lower(StockAdjustmentModel.reference_number).like(pattern, escape="\\"),
                    func.lower(StockAdjustmentModel.notes).like(pattern, escape="\\"),
                    func.lower(StockAdjustmentModel.document_number).like(pattern, escape="\\"),
                )
            )
        return stmt

    def list(
        self,
        criteria: AdjustmentFilter | None = None,
        limit: int | None = None,
        offset: int = 0,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> list[StockAdjustment]:
        """
        Adjustments matching ``criteria``, newest first by default.

        ``sort_by`` is one of ``SORTABLE_FIELDS``; ties are broken by
        ``reference_number`` in the same direction.

        Raises:
            FieldValidationError: unknown sort field or order.
        """
        if sort_by not in SORTABLE_FIELDS:
            raise FieldValidationError(
                "sort_by", sort_by, f"must be one of {sorted(SORTABLE_FIELDS)}"
            )
        if sort_order not in SORT_ORDERS:
            raise FieldValidationError("sort_order", sort_order, "must be 'asc' or 'desc'")
        columns = [SORTABLE_FIELDS[sort_by], StockAdjustmentModel.reference_number]
        if sort_order == "desc":
            stmt = self._filtered(criteria).order_by(*(c.desc() for c in columns))
        else:
            stmt = self._filtered(criteria).order_by(*(c.asc() for c in columns))
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        documents = self._load(stmt)
        logger.debug(
            "adjustments_listed",
            extra={
                "count": len(documents),
                "limit": limit,
                "offset": offset,
                "sort_by": sort_by,
                "sort_order": sort_order,
            },
        )
        return documents

    def count(self, criteria: AdjustmentFilter | None = None) -> int:
        stmt = select(func.count()).select_from(self._filtered(criteria).subquery())
        return self.session.scalar(stmt) or 0

    def approved_for_reporting(
        self,
        store_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Sequence[StockAdjustment]:
        """Approved adjustments, optionally narrowed by store and date range."""
        return self.list(
            AdjustmentFilter(
                status=AdjustmentStatus.APPROVED,
                store_id=store_id,
                start_date=start_date,
                end_date=end_date,
            )
        )
