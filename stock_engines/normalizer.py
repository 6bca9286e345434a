"""
stock_engines.normalizer -- Money/currency normalization.

Responsibility:
    Convert an amount from one currency to another using a caller-supplied
    rate lookup.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel domain types.

Invariants enforced:
    - Identity law: converting to the same currency returns the amount
      unchanged, whether or not a rate record exists for the pair.
    - Determinism: identical inputs produce identical outputs; there is no
      clock, cache or global rate state.  Historical reports can be
      reproduced by replaying the same rate snapshot.
    - Decimal only; no rounding happens here.

Failure modes:
    - Missing rate (default): the factor falls back to 1 and a WARNING
      ``exchange_rate_missing_defaulted`` is logged.  Reporting degrades to
      approximate totals instead of failing.
    - Missing rate with ``strict=True``: ExchangeRateNotFoundError.
    - FieldValidationError if the lookup returns a non-numeric,
      non-finite or non-positive rate.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

from stock_kernel.domain.values import as_decimal, positive_rate
from stock_kernel.exceptions import ExchangeRateNotFoundError
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.normalizer")

RateLookupFn = Callable[[str, str], "Decimal | None"]

DEFAULT_FACTOR = Decimal("1")


def resolve_rate(
    from_currency: str,
    to_currency: str,
    rate_lookup: RateLookupFn,
    strict: bool = False,
) -> Decimal:
    """Return the conversion factor for ``from_currency -> to_currency``."""
    if from_currency == to_currency:
        return DEFAULT_FACTOR

    rate = rate_lookup(from_currency, to_currency)
    if rate is None:
        if strict:
            raise ExchangeRateNotFoundError(from_currency, to_currency)
        logger.warning(
            "exchange_rate_missing_defaulted",
            extra={
                "from_currency": from_currency,
                "to_currency": to_currency,
                "factor": str(DEFAULT_FACTOR),
            },
        )
        return DEFAULT_FACTOR

    return positive_rate(rate, f"exchange_rate[{from_currency}->{to_currency}]")


def convert(
    amount: Decimal,
    from_currency: str,
    to_currency: str,
    rate_lookup: RateLookupFn,
    strict: bool = False,
) -> Decimal:
    """
    Convert ``amount`` from ``from_currency`` to ``to_currency``.

    Args:
        amount: Amount in ``from_currency``.
        from_currency: Source currency id.
        to_currency: Target currency id.
        rate_lookup: ``(from, to) -> rate | None``; a RateTable works.
        strict: Raise instead of defaulting the factor to 1 when no rate
            is known.

    Returns:
        ``amount * rate``, unrounded.
    """
    amount = as_decimal(amount, "amount")
    if from_currency == to_currency:
        return amount
    return amount * resolve_rate(from_currency, to_currency, rate_lookup, strict=strict)
