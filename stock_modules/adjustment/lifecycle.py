"""
Stock Adjustment Lifecycle (``stock_modules.adjustment.lifecycle``).

Responsibility
--------------
Owns a stock adjustment's status: creates drafts, applies draft edits,
and performs the submit / approve / reject / resubmit transitions declared
by ``ADJUSTMENT_WORKFLOW``.  Totals are recomputed on every draft edit and
frozen at submit time.

Architecture
------------
Layer: **Modules** -- pure functions over frozen ``StockAdjustment``
snapshots.  Each function takes a snapshot and returns a new one or
raises; nothing is mutated, nothing is persisted, no clock is read (the
caller passes actor and timestamp in ``TransitionPayload``).  Persistence
and concurrency control live in ``service.py``.

Invariants
----------
- Edits are gated by ``_require_status``; workflow actions are gated by
  ``ADJUSTMENT_WORKFLOW.find``.  Both refuse through ``_illegal_state``.
  No other code compares statuses to decide what is allowed.
- A failed call leaves the input snapshot untouched (it is frozen) and
  returns nothing.
- ``audit_trail`` is only appended to.  Resubmitting clears the rejection
  header fields but keeps the rejection stamp in the trail.
- ``version`` increases by one on every returned snapshot.

Failure Modes
-------------
- ``IllegalStateError`` for an action or edit the current status forbids.
- ``EmptyAdjustmentError`` / ``InvalidItemsError`` when submitting without
  items or with items whose delta contradicts the adjustment type; the
  latter lists every offending index.
- ``MissingRejectionReasonError`` when rejecting without a reason.
- ``FieldValidationError`` for malformed header values or bad item indices.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from stock_engines.aggregator import aggregate
from stock_engines.reconciler import invalid_items
from stock_kernel.domain.adjustment import (
    AdjustmentItem,
    AdjustmentStatus,
    AdjustmentType,
    AuditStamp,
    StockAdjustment,
)
from stock_kernel.domain.values import positive_rate
from stock_kernel.exceptions import (
    EmptyAdjustmentError,
    FieldValidationError,
    IllegalStateError,
    InvalidItemsError,
    MissingRejectionReasonError,
)
from stock_kernel.logging_config import get_logger
from stock_modules.adjustment.workflows import (
    ACTION_APPROVE,
    ACTION_REJECT,
    ACTION_RESUBMIT,
    ACTION_SUBMIT,
    ADJUSTMENT_WORKFLOW,
    DELETABLE_STATES,
    EDITABLE_STATES,
)

logger = get_logger("modules.adjustment.lifecycle")

DEFAULT_NOTES_MAX_LENGTH = 500

ACTION_CREATE = "create"

# Header fields a draft may change.  id, reference_number and
# adjustment_type are fixed at creation.
MUTABLE_HEADER_FIELDS = frozenset({
    "store_id",
    "currency_id",
    "exchange_rate_at_creation",
    "adjustment_date",
    "reason_id",
    "notes",
    "document_type",
    "document_number",
})


@dataclass(frozen=True)
class TransitionPayload:
    """Who is acting, when, and (for reject) why."""

    actor_id: str
    at: datetime
    reason: str | None = None


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------


def _illegal_state(document: StockAdjustment, action: str) -> IllegalStateError:
    logger.warning(
        "adjustment_action_illegal",
        extra={
            "document_id": str(document.id),
            "status": document.status.value,
            "action": action,
        },
    )
    return IllegalStateError(str(document.id), document.status.value, action)


def _require_status(
    document: StockAdjustment,
    allowed: Iterable[AdjustmentStatus],
    action: str,
) -> None:
    if document.status not in frozenset(allowed):
        raise _illegal_state(document, action)


def _require_text(field: str, value: str | None) -> str:
    if value is None or not str(value).strip():
        raise FieldValidationError(field, value, "is required")
    return str(value).strip()


def _check_notes(notes: str | None, max_length: int) -> None:
    if notes is not None and len(notes) > max_length:
        raise FieldValidationError(
            "notes", notes, f"must not exceed {max_length} characters"
        )


def validate_for_submission(document: StockAdjustment) -> None:
    """
    Raise unless ``document`` could be submitted as it stands.

    Checks items only (not status), so callers can pre-validate a draft and
    render every violation before attempting the transition.
    """
    if not document.items:
        raise EmptyAdjustmentError(str(document.id))
    violations = invalid_items(document.items, document.adjustment_type)
    if violations:
        raise InvalidItemsError(
            str(document.id),
            tuple(v.to_violation(document.adjustment_type) for v in violations),
        )


# -----------------------------------------------------------------------------
# Creation and draft edits
# -----------------------------------------------------------------------------


def create_adjustment(
    *,
    reference_number: str,
    adjustment_type: AdjustmentType | str,
    store_id: str,
    currency_id: str,
    exchange_rate_at_creation: Decimal | int | str,
    adjustment_date: date,
    actor_id: str,
    at: datetime,
    items: Iterable[AdjustmentItem] = (),
    reason_id: str | None = None,
    notes: str | None = None,
    document_type: str | None = None,
    document_number: str | None = None,
    adjustment_id: UUID | None = None,
    notes_max_length: int = DEFAULT_NOTES_MAX_LENGTH,
) -> StockAdjustment:
    """Create a new draft adjustment with totals derived from ``items``."""
    try:
        adjustment_type = AdjustmentType(adjustment_type)
    except ValueError as e:
        raise FieldValidationError(
            "adjustment_type", adjustment_type, "must be 'add' or 'deduct'"
        ) from e
    _check_notes(notes, notes_max_length)

    items = tuple(items)
    totals = aggregate(items)
    document = StockAdjustment(
        id=adjustment_id or uuid4(),
        reference_number=_require_text("reference_number", reference_number),
        adjustment_type=adjustment_type,
        store_id=_require_text("store_id", store_id),
        currency_id=_require_text("currency_id", currency_id),
        exchange_rate_at_creation=positive_rate(exchange_rate_at_creation, "exchange_rate_at_creation"),
        adjustment_date=adjustment_date,
        created_by=_require_text("actor_id", actor_id),
        created_at=at,
        status=AdjustmentStatus.DRAFT,
        items=items,
        total_items=totals.total_items,
        total_value=totals.total_value,
        reason_id=reason_id,
        notes=notes,
        document_type=document_type,
        document_number=document_number,
        audit_trail=(AuditStamp(action=ACTION_CREATE, actor_id=actor_id, at=at),),
        version=1,
    )
    logger.info(
        "adjustment_created",
        extra={
            "document_id": str(document.id),
            "reference_number": document.reference_number,
            "adjustment_type": document.adjustment_type.value,
            "store_id": document.store_id,
            "currency_id": document.currency_id,
            "actor_id": actor_id,
        },
    )
    return document


def _with_items(
    document: StockAdjustment,
    items: Iterable[AdjustmentItem],
    action: str,
) -> StockAdjustment:
    _require_status(document, EDITABLE_STATES, action)
    items = tuple(items)
    totals = aggregate(items)
    logger.debug(
        "adjustment_items_changed",
        extra={
            "document_id": str(document.id),
            "action": action,
            "total_items": totals.total_items,
            "total_value": str(totals.total_value),
        },
    )
    return replace(
        document,
        items=items,
        total_items=totals.total_items,
        total_value=totals.total_value,
        version=document.version + 1,
    )


def _check_index(document: StockAdjustment, index: int) -> None:
    if not 0 <= index < len(document.items):
        raise FieldValidationError(
            "index", index, f"no item at this position (document has {len(document.items)})"
        )


def add_item(document: StockAdjustment, item: AdjustmentItem) -> StockAdjustment:
    """Append an item to a draft."""
    return _with_items(document, document.items + (item,), "add_item")


def update_item(document: StockAdjustment, index: int, item: AdjustmentItem) -> StockAdjustment:
    """Replace the item at ``index`` on a draft."""
    _require_status(document, EDITABLE_STATES, "update_item")
    _check_index(document, index)
    items = list(document.items)
    items[index] = item
    return _with_items(document, items, "update_item")


def remove_item(document: StockAdjustment, index: int) -> StockAdjustment:
    """Remove the item at ``index`` from a draft."""
    _require_status(document, EDITABLE_STATES, "remove_item")
    _check_index(document, index)
    items = document.items[:index] + document.items[index + 1:]
    return _with_items(document, items, "remove_item")


def replace_items(document: StockAdjustment, items: Iterable[AdjustmentItem]) -> StockAdjustment:
    """Swap the whole item list of a draft."""
    return _with_items(document, items, "replace_items")


def update_header(
    document: StockAdjustment,
    notes_max_length: int = DEFAULT_NOTES_MAX_LENGTH,
    **changes,
) -> StockAdjustment:
    """
    Change mutable header fields on a draft.

    Only names in ``MUTABLE_HEADER_FIELDS`` are accepted; anything else
    (including the immutable id/reference/type) is a FieldValidationError.
    """
    _require_status(document, EDITABLE_STATES, "update_header")
    for name, value in changes.items():
        if name not in MUTABLE_HEADER_FIELDS:
            raise FieldValidationError(name, value, "cannot be changed")
    for name in ("store_id", "currency_id"):
        if name in changes:
            changes[name] = _require_text(name, changes[name])
    if "notes" in changes:
        _check_notes(changes["notes"], notes_max_length)
    if not changes:
        return document
    return replace(document, **changes, version=document.version + 1)


def ensure_deletable(document: StockAdjustment) -> None:
    """Raise unless ``document`` may be deleted (drafts only)."""
    _require_status(document, DELETABLE_STATES, "delete")


# -----------------------------------------------------------------------------
# Transitions
# -----------------------------------------------------------------------------


def _stamp(document: StockAdjustment, action: str, payload: TransitionPayload) -> tuple[AuditStamp, ...]:
    return document.audit_trail + (
        AuditStamp(action=action, actor_id=payload.actor_id, at=payload.at, reason=payload.reason),
    )


def _submit(document: StockAdjustment, payload: TransitionPayload, action: str) -> StockAdjustment:
    try:
        validate_for_submission(document)
    except (EmptyAdjustmentError, InvalidItemsError) as e:
        logger.warning(
            "adjustment_submit_blocked",
            extra={
                "document_id": str(document.id),
                "action": action,
                "error_code": e.code,
                "invalid_indices": list(getattr(e, "indices", ())),
            },
        )
        raise

    totals = aggregate(document.items)
    return replace(
        document,
        status=AdjustmentStatus.SUBMITTED,
        total_items=totals.total_items,
        total_value=totals.total_value,
        submitted_by=payload.actor_id,
        submitted_at=payload.at,
        rejected_by=None,
        rejected_at=None,
        rejection_reason=None,
        audit_trail=_stamp(document, action, replace(payload, reason=None)),
        version=document.version + 1,
    )


def _approve(document: StockAdjustment, payload: TransitionPayload, action: str) -> StockAdjustment:
    return replace(
        document,
        status=AdjustmentStatus.APPROVED,
        approved_by=payload.actor_id,
        approved_at=payload.at,
        audit_trail=_stamp(document, action, replace(payload, reason=None)),
        version=document.version + 1,
    )


def _reject(document: StockAdjustment, payload: TransitionPayload, action: str) -> StockAdjustment:
    reason = (payload.reason or "").strip()
    if not reason:
        raise MissingRejectionReasonError(str(document.id))
    return replace(
        document,
        status=AdjustmentStatus.REJECTED,
        rejected_by=payload.actor_id,
        rejected_at=payload.at,
        rejection_reason=reason,
        audit_trail=_stamp(document, action, replace(payload, reason=reason)),
        version=document.version + 1,
    )


_HANDLERS = {
    ACTION_SUBMIT: _submit,
    ACTION_RESUBMIT: _submit,
    ACTION_APPROVE: _approve,
    ACTION_REJECT: _reject,
}


def transition(
    document: StockAdjustment,
    action: str,
    payload: TransitionPayload,
) -> StockAdjustment:
    """
    Apply a workflow action to ``document``.

    Args:
        document: Current snapshot.
        action: One of ``submit``, ``approve``, ``reject``, ``resubmit``.
        payload: Actor, timestamp and (for reject) the reason.

    Returns:
        The new snapshot.  ``document`` itself is unchanged.
    """
    if action not in _HANDLERS:
        raise FieldValidationError("action", action, "unknown workflow action")

    step = ADJUSTMENT_WORKFLOW.find(document.status.value, action)
    if step is None:
        raise _illegal_state(document, action)

    result = _HANDLERS[action](document, payload, action)
    logger.info(
        "adjustment_transitioned",
        extra={
            "document_id": str(document.id),
            "reference_number": document.reference_number,
            "action": action,
            "from_status": document.status.value,
            "to_status": step.to_state,
            "actor_id": payload.actor_id,
        },
    )
    return result


def submit(document: StockAdjustment, payload: TransitionPayload) -> StockAdjustment:
    return transition(document, ACTION_SUBMIT, payload)


def approve(document: StockAdjustment, payload: TransitionPayload) -> StockAdjustment:
    return transition(document, ACTION_APPROVE, payload)


def reject(document: StockAdjustment, payload: TransitionPayload) -> StockAdjustment:
    return transition(document, ACTION_REJECT, payload)


def resubmit(document: StockAdjustment, payload: TransitionPayload) -> StockAdjustment:
    return transition(document, ACTION_RESUBMIT, payload)
