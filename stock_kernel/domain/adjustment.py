"""
Stock adjustment domain types (``stock_kernel.domain.adjustment``).

Responsibility
--------------
Frozen value objects for the stock adjustment document: the header, its
owned items, and the append-only audit trail.  Every lifecycle operation
takes one snapshot and returns a new one; nothing here mutates.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Engines and
modules import from here; this module imports only from the kernel.

Invariants enforced
-------------------
* Quantities and unit cost are non-negative Decimals (never float).
* ``difference = new_quantity - current_quantity`` and
  ``line_value = |difference| * unit_cost`` are derived, never stored.
* ``rejection_reason`` is non-empty iff ``status == rejected``.
* ``audit_trail`` only ever grows.

Failure modes
-------------
* ``FieldValidationError`` on construction with negative quantities or
  cost, a non-numeric, non-finite or non-positive historical rate, or an inconsistent rejection reason.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_kernel.domain.values import as_decimal, positive_rate
from stock_kernel.exceptions import FieldValidationError


class AdjustmentType(str, Enum):
    """Adjustment direction: the sign every item delta must satisfy."""

    ADD = "add"
    DEDUCT = "deduct"


class AdjustmentStatus(str, Enum):
    """Stock adjustment lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


def _non_negative(name: str, value: Decimal | int | str) -> Decimal:
    try:
        result = as_decimal(value, name)
    except ValueError as e:
        raise FieldValidationError(name, value, "not a number") from e
    if not result.is_finite():
        raise FieldValidationError(name, value, "must be finite")
    if result < 0:
        raise FieldValidationError(name, value, "must not be negative")
    return result


@dataclass(frozen=True)
class AdjustmentItem:
    """
    One product line on a stock adjustment.

    Contract: immutable.  ``current_quantity`` is the stock level observed
    when the line was added; ``new_quantity`` is the proposed level.
    ``notes``/``batch_number``/``expiry_date``/``serial_numbers`` are
    carried for the caller and have no behavior here.
    """

    product_id: str
    current_quantity: Decimal
    new_quantity: Decimal
    unit_cost: Decimal
    notes: str | None = None
    batch_number: str | None = None
    expiry_date: date | None = None
    serial_numbers: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.product_id or not str(self.product_id).strip():
            raise FieldValidationError("product_id", self.product_id, "is required")
        object.__setattr__(self, "product_id", str(self.product_id))
        object.__setattr__(
            self, "current_quantity", _non_negative("current_quantity", self.current_quantity)
        )
        object.__setattr__(self, "new_quantity", _non_negative("new_quantity", self.new_quantity))
        object.__setattr__(self, "unit_cost", _non_negative("unit_cost", self.unit_cost))
        object.__setattr__(self, "serial_numbers", tuple(self.serial_numbers))

    @classmethod
    def of(
        cls,
        product_id: str,
        current: Decimal | int | str,
        new: Decimal | int | str,
        cost: Decimal | int | str,
        **extra,
    ) -> AdjustmentItem:
        return cls(
            product_id=product_id,
            current_quantity=current,
            new_quantity=new,
            unit_cost=cost,
            **extra,
        )

    @property
    def difference(self) -> Decimal:
        return self.new_quantity - self.current_quantity

    @property
    def line_value(self) -> Decimal:
        return abs(self.difference) * self.unit_cost


@dataclass(frozen=True)
class AuditStamp:
    """One entry in the append-only audit trail."""

    action: str
    actor_id: str
    at: datetime
    reason: str | None = None


@dataclass(frozen=True)
class StockAdjustment:
    """
    A stock adjustment document.

    Contract:
        Immutable snapshot.  ``total_items``/``total_value`` are maintained
        by the lifecycle functions (recomputed while draft, frozen after
        submit) and are never hand-edited.  ``version`` increases by one on
        every snapshot the lifecycle returns; the persistence adapter uses
        it for compare-and-set writes.

    Guarantees:
        - ``id``, ``reference_number``, ``adjustment_type`` never change
          across snapshots of the same document.
        - ``rejection_reason`` is set iff ``status`` is ``rejected``.
    """

    id: UUID
    reference_number: str
    adjustment_type: AdjustmentType
    store_id: str
    currency_id: str
    exchange_rate_at_creation: Decimal
    adjustment_date: date
    created_by: str
    created_at: datetime
    status: AdjustmentStatus = AdjustmentStatus.DRAFT
    items: tuple[AdjustmentItem, ...] = ()
    total_items: int = 0
    total_value: Decimal = Decimal("0")
    reason_id: str | None = None
    notes: str | None = None
    document_type: str | None = None
    document_number: str | None = None
    submitted_by: str | None = None
    submitted_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    audit_trail: tuple[AuditStamp, ...] = ()
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "adjustment_type", AdjustmentType(self.adjustment_type))
        object.__setattr__(self, "status", AdjustmentStatus(self.status))
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "audit_trail", tuple(self.audit_trail))
        object.__setattr__(self, "total_value", _non_negative("total_value", self.total_value))
        object.__setattr__(
            self,
            "exchange_rate_at_creation",
            positive_rate(self.exchange_rate_at_creation, "exchange_rate_at_creation"),
        )

        has_reason = bool(self.rejection_reason and self.rejection_reason.strip())
        if self.status == AdjustmentStatus.REJECTED and not has_reason:
            raise FieldValidationError(
                "rejection_reason", self.rejection_reason, "required when status is rejected"
            )
        if self.status != AdjustmentStatus.REJECTED and self.rejection_reason is not None:
            raise FieldValidationError(
                "rejection_reason", self.rejection_reason, "only allowed when status is rejected"
            )

    @property
    def is_editable(self) -> bool:
        return self.status == AdjustmentStatus.DRAFT

    @property
    def is_reportable(self) -> bool:
        return self.status == AdjustmentStatus.APPROVED

    def __repr__(self) -> str:
        return (
            f"<StockAdjustment {self.reference_number} {self.adjustment_type.value} "
            f"status={self.status.value} items={self.total_items} value={self.total_value}>"
        )
