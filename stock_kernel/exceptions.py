"""
Typed Exception Hierarchy for the Stock Adjustment Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure in the adjustment workflow reflects a logical precondition,
never a transient fault, so callers need to tell them apart precisely in
order to render a useful message.  Each exception therefore has:
  1. A TYPED class (catch by type, not by parsing the message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (item index, current status, action, ...)

Example:
    try:
        document = transition(document, "submit", payload)
    except InvalidItemsError as e:
        for violation in e.violations:
            highlight_row(violation.index)
    except IllegalStateError as e:
        notify(f"Cannot {e.attempted_action} a {e.current_status} adjustment")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidItemsError
    |   +-- EmptyAdjustmentError
    |   +-- MissingRejectionReasonError
    |   +-- FieldValidationError
    |
    +-- IllegalStateError
    |
    +-- NotFoundError
    |   +-- AdjustmentNotFoundError
    |   +-- ExchangeRateNotFoundError
    |
    +-- ConcurrencyError
    |   +-- StaleAdjustmentError
    |
    +-- NotAuthorizedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|-----------------------------------------
Validation   | VALIDATION_ERROR          | Base class for all input violations
             | INVALID_ADJUSTMENT_ITEMS  | Item deltas contradict adjustment type
             | EMPTY_ADJUSTMENT          | Submit attempted with no items
             | MISSING_REJECTION_REASON  | Reject attempted without a reason
             | INVALID_FIELD             | Negative quantity, notes too long, ...
-------------|---------------------------|-----------------------------------------
State        | ILLEGAL_STATE             | Transition/edit not allowed in status
-------------|---------------------------|-----------------------------------------
Lookup       | NOT_FOUND                 | Store/product/currency missing
             | ADJUSTMENT_NOT_FOUND      | Adjustment id does not exist
             | EXCHANGE_RATE_NOT_FOUND   | Strict conversion with no rate
-------------|---------------------------|-----------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT  | Row changed since it was loaded
-------------|---------------------------|-----------------------------------------
Authority    | NOT_AUTHORIZED            | Actor lacks the approval capability

===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Validation


@dataclass(frozen=True)
class ItemViolation:
    """One offending item: where it sits and why it is wrong."""

    index: int
    product_id: str
    difference: Decimal
    adjustment_type: str

    @property
    def message(self) -> str:
        expected = ">= 0" if self.adjustment_type == "add" else "<= 0"
        return (
            f"item {self.index} ({self.product_id}): difference {self.difference} "
            f"must be {expected} for a '{self.adjustment_type}' adjustment"
        )


class ValidationError(StockKernelError):
    """Base exception for input that breaks a business rule."""

    code: str = "VALIDATION_ERROR"


class InvalidItemsError(ValidationError):
    """
    One or more items contradict the adjustment direction.

    Every offending item is listed, not just the first.
    """

    code: str = "INVALID_ADJUSTMENT_ITEMS"

    def __init__(self, document_id: str, violations: tuple[ItemViolation, ...]):
        self.document_id = document_id
        self.violations = violations
        self.indices = tuple(v.index for v in violations)
        super().__init__(
            f"Adjustment {document_id} has {len(violations)} invalid item(s): "
            + "; ".join(v.message for v in violations)
        )


class EmptyAdjustmentError(ValidationError):
    """Submission attempted on an adjustment with no items."""

    code: str = "EMPTY_ADJUSTMENT"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Adjustment {document_id} has no items")


class MissingRejectionReasonError(ValidationError):
    """Rejection attempted without a non-empty reason."""

    code: str = "MISSING_REJECTION_REASON"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"A rejection reason is required to reject adjustment {document_id}")


class FieldValidationError(ValidationError):
    """A single field carries a value the domain does not accept."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


# State


class IllegalStateError(StockKernelError):
    """Transition or edit attempted from a status that forbids it."""

    code: str = "ILLEGAL_STATE"

    def __init__(self, document_id: str, current_status: str, attempted_action: str):
        self.document_id = document_id
        self.current_status = current_status
        self.attempted_action = attempted_action
        super().__init__(
            f"Cannot {attempted_action} adjustment {document_id} "
            f"in status '{current_status}'"
        )


# Lookup


class NotFoundError(StockKernelError):
    """
    Referenced entity does not exist.

    Raised by external collaborators (store/product catalogs) and passed
    through the kernel unchanged.
    """

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class AdjustmentNotFoundError(NotFoundError):
    """Stock adjustment with given ID was not found."""

    code: str = "ADJUSTMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        super().__init__("stock_adjustment", document_id)
        self.document_id = document_id


class ExchangeRateNotFoundError(NotFoundError):
    """No directed rate for a currency pair (strict conversion only)."""

    code: str = "EXCHANGE_RATE_NOT_FOUND"

    def __init__(self, from_currency: str, to_currency: str):
        super().__init__("exchange_rate", f"{from_currency}->{to_currency}")
        self.from_currency = from_currency
        self.to_currency = to_currency


# Concurrency


class ConcurrencyError(StockKernelError):
    """Base exception for concurrent-modification errors."""

    code: str = "CONCURRENCY_ERROR"


class StaleAdjustmentError(ConcurrencyError):
    """
    The stored adjustment changed between load and write.

    Raised by the persistence adapter when the compare-and-set on
    status/version affects no row (a concurrent submit, delete, ...).
    """

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, document_id: str, expected_status: str, expected_version: int):
        self.document_id = document_id
        self.expected_status = expected_status
        self.expected_version = expected_version
        super().__init__(
            f"Adjustment {document_id} was modified concurrently "
            f"(expected status '{expected_status}', version {expected_version})"
        )


# Authority


class NotAuthorizedError(StockKernelError):
    """Actor is not allowed to perform the action."""

    code: str = "NOT_AUTHORIZED"

    def __init__(self, actor_id: str, action: str):
        self.actor_id = actor_id
        self.action = action
        super().__init__(f"Actor {actor_id} is not authorized to {action}")
