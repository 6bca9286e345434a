"""
Pytest fixtures for the stock adjustment test suite.

Provides:
- SQLite in-memory database sessions for adapter tests
- Deterministic clock
- Document and item factories
- Captured structured logs
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from stock_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from stock_kernel.domain.adjustment import AdjustmentItem, AdjustmentType, StockAdjustment
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stock_modules.adjustment.lifecycle import TransitionPayload, create_adjustment

TEST_ACTOR_ID = "user-clerk"
TEST_APPROVER_ID = "user-manager"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture stock_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "adjustment_transitioned" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stock_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Fresh in-memory SQLite database per test."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    sess = get_session()
    yield sess
    try:
        sess.rollback()
        sess.close()
    finally:
        reset_engine()


# =============================================================================
# Clock fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


# =============================================================================
# Factories
# =============================================================================


def make_item(
    product_id: str = "P-001",
    current: Decimal | int | str = 10,
    new: Decimal | int | str = 15,
    cost: Decimal | int | str = 2,
    **extra,
) -> AdjustmentItem:
    return AdjustmentItem.of(product_id, current, new, cost, **extra)


def make_document(
    adjustment_type: AdjustmentType | str = AdjustmentType.ADD,
    items: tuple[AdjustmentItem, ...] | None = None,
    currency_id: str = "USD",
    exchange_rate_at_creation: Decimal | str = "1",
    reference_number: str = "SA-000001",
    store_id: str = "STORE-1",
    clock: DeterministicClock | None = None,
    **kwargs,
) -> StockAdjustment:
    clock = clock or DeterministicClock()
    return create_adjustment(
        reference_number=reference_number,
        adjustment_type=adjustment_type,
        store_id=store_id,
        currency_id=currency_id,
        exchange_rate_at_creation=exchange_rate_at_creation,
        adjustment_date=date(2024, 1, 1),
        actor_id=TEST_ACTOR_ID,
        at=clock.now(),
        items=(make_item(),) if items is None else items,
        **kwargs,
    )


def make_payload(
    actor_id: str = TEST_ACTOR_ID,
    reason: str | None = None,
    clock: DeterministicClock | None = None,
) -> TransitionPayload:
    clock = clock or DeterministicClock()
    return TransitionPayload(actor_id=actor_id, at=clock.now(), reason=reason)


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def document_factory():
    return make_document


@pytest.fixture
def payload_factory():
    return make_payload
