"""
Module: stock_modules.adjustment.orm
Responsibility: SQLAlchemy ORM persistence models for stock adjustments.
    Maps the frozen StockAdjustment / AdjustmentItem / AuditStamp value
    objects from stock_kernel.domain.adjustment to relational tables.

Architecture position: Modules > Adjustment > ORM.  Inherits from Base
    (stock_kernel.db.base).  Stores and products are referenced by their
    external ids in String columns with NO foreign key constraints.

Invariants enforced:
    - All quantity and money fields use Decimal (ExactDecimal(38,9)) -- NEVER float.
    - The historical rate uses ExactDecimal(38,18).
    - Enum fields stored as String(50) for portability and readability.
    - Items and audit rows carry an explicit ``position`` so a document
      reloads with its items and trail in their original order.
    - ``version`` mirrors StockAdjustment.version and is the
      compare-and-set token used by StockAdjustmentService.

Failure modes:
    - IntegrityError on duplicate adjustment id or reference number.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, ExactDecimal
from stock_kernel.domain.adjustment import (
    AdjustmentItem,
    AdjustmentStatus,
    AdjustmentType,
    AuditStamp,
    StockAdjustment,
)


# =============================================================================
# StockAdjustmentModel
# =============================================================================

class StockAdjustmentModel(Base):
    """
    ORM model for the stock adjustment header.

    Maps to: stock_kernel.domain.adjustment.StockAdjustment (frozen dataclass).

    Guarantees:
        - reference_number is unique.
        - total_items / total_value are stored exactly as the lifecycle
          computed them; the ORM never recomputes.
    """

    __tablename__ = "stock_adjustments"

    __table_args__ = (
        UniqueConstraint("reference_number", name="uq_stock_adjustment_reference"),
        Index("idx_stock_adj_status", "status"),
        Index("idx_stock_adj_store", "store_id"),
        Index("idx_stock_adj_date", "adjustment_date"),
        Index("idx_stock_adj_type", "adjustment_type"),
    )

    reference_number: Mapped[str] = mapped_column(String(50))
    adjustment_type: Mapped[str] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(50), default=AdjustmentStatus.DRAFT.value)

    # External references (no FK)
    store_id: Mapped[str] = mapped_column(String(100))
    currency_id: Mapped[str] = mapped_column(String(10))
    reason_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    exchange_rate_at_creation: Mapped[Decimal] = mapped_column(ExactDecimal(38, 18))
    adjustment_date: Mapped[date] = mapped_column(Date)

    total_items: Mapped[int] = mapped_column(Integer, default=0)
    total_value: Mapped[Decimal] = mapped_column()

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Lifecycle stamps
    created_by: Mapped[str] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column()
    submitted_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, default=0)

    items: Mapped[list["StockAdjustmentItemModel"]] = relationship(
        back_populates="adjustment",
        cascade="all, delete-orphan",
        order_by="StockAdjustmentItemModel.position",
        lazy="selectin",
    )

    audit_entries: Mapped[list["AdjustmentAuditModel"]] = relationship(
        back_populates="adjustment",
        cascade="all, delete-orphan",
        order_by="AdjustmentAuditModel.position",
        lazy="selectin",
    )

    def to_dto(self) -> StockAdjustment:
        """Convert ORM model to frozen StockAdjustment DTO."""
        return StockAdjustment(
            id=self.id,
            reference_number=self.reference_number,
            adjustment_type=AdjustmentType(self.adjustment_type),
            store_id=self.store_id,
            currency_id=self.currency_id,
            exchange_rate_at_creation=self.exchange_rate_at_creation,
            adjustment_date=self.adjustment_date,
            created_by=self.created_by,
            created_at=self.created_at,
            status=AdjustmentStatus(self.status),
            items=tuple(item.to_dto() for item in self.items),
            total_items=self.total_items,
            total_value=self.total_value,
            reason_id=self.reason_id,
            notes=self.notes,
            document_type=self.document_type,
            document_number=self.document_number,
            submitted_by=self.submitted_by,
            submitted_at=self.submitted_at,
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            rejected_by=self.rejected_by,
            rejected_at=self.rejected_at,
            rejection_reason=self.rejection_reason,
            audit_trail=tuple(entry.to_dto() for entry in self.audit_entries),
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: StockAdjustment) -> "StockAdjustmentModel":
        """Create ORM model (with items and audit rows) from a StockAdjustment."""
        return cls(
            id=dto.id,
            **header_values(dto),
            reference_number=dto.reference_number,
            adjustment_type=dto.adjustment_type.value,
            created_by=dto.created_by,
            created_at=dto.created_at,
            items=[
                StockAdjustmentItemModel.from_dto(item, position=i)
                for i, item in enumerate(dto.items)
            ],
            audit_entries=[
                AdjustmentAuditModel.from_dto(stamp, position=i)
                for i, stamp in enumerate(dto.audit_trail)
            ],
        )

    def __repr__(self) -> str:
        return (
            f"<StockAdjustmentModel {self.reference_number} {self.adjustment_type} "
            f"status={self.status} v{self.version}>"
        )


def header_values(dto: StockAdjustment) -> dict:
    """Column values of the header that may change after creation."""
    return {
        "status": dto.status.value,
        "store_id": dto.store_id,
        "currency_id": dto.currency_id,
        "reason_id": dto.reason_id,
        "exchange_rate_at_creation": dto.exchange_rate_at_creation,
        "adjustment_date": dto.adjustment_date,
        "total_items": dto.total_items,
        "total_value": dto.total_value,
        "notes": dto.notes,
        "document_type": dto.document_type,
        "document_number": dto.document_number,
        "submitted_by": dto.submitted_by,
        "submitted_at": dto.submitted_at,
        "approved_by": dto.approved_by,
        "approved_at": dto.approved_at,
        "rejected_by": dto.rejected_by,
        "rejected_at": dto.rejected_at,
        "rejection_reason": dto.rejection_reason,
        "version": dto.version,
    }


# =============================================================================
# StockAdjustmentItemModel
# =============================================================================

class StockAdjustmentItemModel(Base):
    """
    ORM model for one product line on a stock adjustment.

    Maps to: stock_kernel.domain.adjustment.AdjustmentItem (frozen dataclass).
    Derived values (difference, line_value) are not stored.
    """

    __tablename__ = "stock_adjustment_items"

    __table_args__ = (
        UniqueConstraint("adjustment_id", "position", name="uq_stock_adj_item_position"),
        Index("idx_stock_adj_item_product", "product_id"),
    )

    adjustment_id: Mapped[UUID] = mapped_column(
        ForeignKey("stock_adjustments.id", ondelete="CASCADE"),
    )
    position: Mapped[int] = mapped_column(Integer)

    product_id: Mapped[str] = mapped_column(String(100))
    current_quantity: Mapped[Decimal] = mapped_column()
    new_quantity: Mapped[Decimal] = mapped_column()
    unit_cost: Mapped[Decimal] = mapped_column()

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    serial_numbers: Mapped[list] = mapped_column(JSON, default=list)

    adjustment: Mapped["StockAdjustmentModel"] = relationship(
        back_populates="items",
    )

    def to_dto(self) -> AdjustmentItem:
        """Convert ORM model to frozen AdjustmentItem DTO."""
        return AdjustmentItem(
            product_id=self.product_id,
            current_quantity=self.current_quantity,
            new_quantity=self.new_quantity,
            unit_cost=self.unit_cost,
            notes=self.notes,
            batch_number=self.batch_number,
            expiry_date=self.expiry_date,
            serial_numbers=tuple(self.serial_numbers or ()),
        )

    @classmethod
    def from_dto(cls, dto: AdjustmentItem, position: int) -> "StockAdjustmentItemModel":
        """Create ORM model from frozen AdjustmentItem DTO."""
        return cls(**item_values(dto, position))

    def __repr__(self) -> str:
        return (
            f"<StockAdjustmentItemModel #{self.position} {self.product_id} "
            f"{self.current_quantity}->{self.new_quantity}>"
        )


def item_values(dto: AdjustmentItem, position: int, adjustment_id: UUID | None = None) -> dict:
    values = {
        "position": position,
        "product_id": dto.product_id,
        "current_quantity": dto.current_quantity,
        "new_quantity": dto.new_quantity,
        "unit_cost": dto.unit_cost,
        "notes": dto.notes,
        "batch_number": dto.batch_number,
        "expiry_date": dto.expiry_date,
        "serial_numbers": list(dto.serial_numbers),
    }
    if adjustment_id is not None:
        values["adjustment_id"] = adjustment_id
    return values


# =============================================================================
# AdjustmentAuditModel
# =============================================================================

class AdjustmentAuditModel(Base):
    """
    ORM model for the append-only adjustment audit trail.

    Maps to: stock_kernel.domain.adjustment.AuditStamp (frozen dataclass).
    Rows are inserted, never updated.
    """

    __tablename__ = "stock_adjustment_audit"

    __table_args__ = (
        UniqueConstraint("adjustment_id", "position", name="uq_stock_adj_audit_position"),
    )

    adjustment_id: Mapped[UUID] = mapped_column(
        ForeignKey("stock_adjustments.id", ondelete="CASCADE"),
    )
    position: Mapped[int] = mapped_column(Integer)

    action: Mapped[str] = mapped_column(String(50))
    actor_id: Mapped[str] = mapped_column(String(100))
    at: Mapped[datetime] = mapped_column()
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    adjustment: Mapped["StockAdjustmentModel"] = relationship(
        back_populates="audit_entries",
    )

    def to_dto(self) -> AuditStamp:
        return AuditStamp(
            action=self.action,
            actor_id=self.actor_id,
            at=self.at,
            reason=self.reason,
        )

    @classmethod
    def from_dto(cls, dto: AuditStamp, position: int) -> "AdjustmentAuditModel":
        return cls(**audit_values(dto, position))

    def __repr__(self) -> str:
        return f"<AdjustmentAuditModel #{self.position} {self.action} by {self.actor_id}>"


def audit_values(dto: AuditStamp, position: int, adjustment_id: UUID | None = None) -> dict:
    values = {
        "position": position,
        "action": dto.action,
        "actor_id": dto.actor_id,
        "at": dto.at,
        "reason": dto.reason,
    }
    if adjustment_id is not None:
        values["adjustment_id"] = adjustment_id
    return values
