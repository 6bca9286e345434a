"""
Stock Adjustment Module (``stock_modules.adjustment``).

Responsibility
--------------
Lifecycle of stock adjustment documents: draft edits, submit, approve,
reject and resubmit, plus the SQLAlchemy adapter that persists them.

Architecture
------------
Layer: **Modules**.  ``lifecycle`` is pure and delegates arithmetic to
``stock_engines``; ``service`` is the only part that touches a session.
Imports from ``stock_engines`` and ``stock_kernel`` but never the reverse.
"""

from stock_modules.adjustment.config import AdjustmentConfig
from stock_modules.adjustment.lifecycle import (
    TransitionPayload,
    add_item,
    approve,
    create_adjustment,
    ensure_deletable,
    reject,
    remove_item,
    replace_items,
    resubmit,
    submit,
    transition,
    update_header,
    update_item,
    validate_for_submission,
)
from stock_modules.adjustment.selectors import AdjustmentFilter, AdjustmentSelector
from stock_modules.adjustment.service import (
    ApprovalAuthority,
    ReferenceCatalog,
    StockAdjustmentService,
)
from stock_modules.adjustment.workflows import ADJUSTMENT_WORKFLOW

__all__ = [
    "ADJUSTMENT_WORKFLOW",
    "AdjustmentConfig",
    "AdjustmentFilter",
    "AdjustmentSelector",
    "ApprovalAuthority",
    "ReferenceCatalog",
    "StockAdjustmentService",
    "TransitionPayload",
    "add_item",
    "approve",
    "create_adjustment",
    "ensure_deletable",
    "reject",
    "remove_item",
    "replace_items",
    "resubmit",
    "submit",
    "transition",
    "update_header",
    "update_item",
    "validate_for_submission",
]
