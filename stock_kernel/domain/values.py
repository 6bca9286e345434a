"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the exchange-rate value types the valuation engines consume:
    a single directed ``ExchangeRate`` and ``RateTable``, an immutable rate
    snapshot that satisfies the ``RateLookup`` contract.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Rates and amounts are Decimal, never float.
    - A rate is strictly positive.
    - A RateTable is a snapshot: once built it never changes, so a report
      computed from it is reproducible.

Failure modes:
    - FieldValidationError on construction with a missing currency or a
      non-numeric, non-finite or non-positive rate.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Protocol, runtime_checkable

from stock_kernel.exceptions import FieldValidationError


def as_decimal(value: Decimal | int | str, name: str = "value") -> Decimal:
    """Coerce an int/str/Decimal to Decimal.  Floats go through ``str``."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid {name}: {value!r}") from e


def positive_rate(value: Decimal | int | str, name: str = "exchange_rate") -> Decimal:
    """Coerce a rate to Decimal; it must be finite and strictly positive."""
    try:
        rate = as_decimal(value, name)
    except ValueError as e:
        raise FieldValidationError(name, value, "not a number") from e
    if not rate.is_finite():
        raise FieldValidationError(name, value, "must be finite")
    if rate <= 0:
        raise FieldValidationError(name, value, "must be positive")
    return rate


@runtime_checkable
class RateLookup(Protocol):
    """
    Rate lookup capability.

    ``lookup(from_currency, to_currency)`` returns the directed rate
    (1 unit of from = rate units of to), or None when no rate is known.
    """

    def __call__(self, from_currency: str, to_currency: str) -> Decimal | None: ...


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """
    Exchange rate between two currencies.

    Contract:
        Represents: 1 unit of from_currency = rate units of to_currency.

    Guarantees:
        - rate is always a positive Decimal
        - currency ids are non-empty, stripped strings

    Non-goals:
        - Does NOT store effective dates; a RateTable is already a snapshot
        - Does NOT triangulate through a third currency
    """

    from_currency: str
    to_currency: str
    rate: Decimal

    def __post_init__(self) -> None:
        for attr in ("from_currency", "to_currency"):
            val = getattr(self, attr)
            if not val or not str(val).strip():
                raise FieldValidationError(attr, val, "is required")
            object.__setattr__(self, attr, str(val).strip())

        object.__setattr__(self, "rate", positive_rate(self.rate, "rate"))

    @classmethod
    def of(
        cls,
        from_currency: str,
        to_currency: str,
        rate: Decimal | str | int,
    ) -> ExchangeRate:
        return cls(from_currency=from_currency, to_currency=to_currency, rate=rate)

    def inverse(self) -> ExchangeRate:
        """If this rate is A->B at 2, the inverse is B->A at 0.5."""
        return ExchangeRate(
            from_currency=self.to_currency,
            to_currency=self.from_currency,
            rate=Decimal("1") / self.rate,
        )

    @property
    def pair(self) -> tuple[str, str]:
        return (self.from_currency, self.to_currency)

    def __str__(self) -> str:
        return f"{self.from_currency}/{self.to_currency} = {self.rate}"


@dataclass(frozen=True)
class RateTable:
    """
    Immutable snapshot of directed exchange rates.

    Lookups are directed: a table holding A->B answers None for B->A unless
    that direction was supplied too.  The last rate given for a pair wins.

    Usage:
        rates = RateTable.of(ExchangeRate.of("KES", "USD", "0.0077"))
        rates("KES", "USD")  # Decimal("0.0077")
        rates("USD", "KES")  # None
    """

    _rates: Mapping[tuple[str, str], Decimal] = field(default_factory=dict, hash=False)

    @classmethod
    def of(cls, *rates: ExchangeRate) -> RateTable:
        return cls.from_rates(rates)

    @classmethod
    def from_rates(cls, rates: Iterable[ExchangeRate]) -> RateTable:
        return cls({r.pair: r.rate for r in rates})

    @classmethod
    def from_mapping(cls, mapping: Mapping[tuple[str, str], Decimal | str | int]) -> RateTable:
        return cls.from_rates(
            ExchangeRate.of(src, dst, rate) for (src, dst), rate in mapping.items()
        )

    def get(self, from_currency: str, to_currency: str) -> Decimal | None:
        return self._rates.get((from_currency, to_currency))

    def __call__(self, from_currency: str, to_currency: str) -> Decimal | None:
        return self.get(from_currency, to_currency)

    def __contains__(self, pair: object) -> bool:
        return pair in self._rates

    def __len__(self) -> int:
        return len(self._rates)
