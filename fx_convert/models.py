"""Data models shared across the store, resolver and engine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable

from fx_convert.errors import UnsupportedCurrencyError

DEFAULT_SUPPORTED_CURRENCIES: tuple[str, ...] = (
    "USD",
    "EUR",
    "GBP",
    "ILS",
    "JPY",
    "CAD",
    "CHF",
    "AUD",
)

INVERSE_SOURCE_PREFIX = "inverse-of:"


class ResolutionSource(str, Enum):
    """Provenance tags attached to every resolution and conversion."""

    SAME_CURRENCY = "same-currency"
    EXACT_DATE = "exact-date"
    FETCHED_ON_DEMAND = "fetched-on-demand"
    FALLBACK_NEAREST = "fallback-nearest"
    NONE = "none"


def normalise_currency(value: str, supported: Iterable[str] | None = None) -> str:
    """Return the upper-case ISO code for ``value`` or raise a typed error."""

    if not isinstance(value, str):
        raise UnsupportedCurrencyError(f"Currency code must be a string, got {value!r}")
    code = value.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise UnsupportedCurrencyError(f"Currency must be a 3-letter ISO 4217 code: {value!r}")
    allowed = DEFAULT_SUPPORTED_CURRENCIES if supported is None else tuple(supported)
    if code not in allowed:
        raise UnsupportedCurrencyError(f"Unsupported currency: {code}")
    return code


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class RateKey:
    """Composite key of a stored rate."""

    from_currency: str
    to_currency: str
    rate_date: date

    @property
    def pair(self) -> str:
        return f"{self.from_currency}/{self.to_currency}"

    def inverse(self) -> "RateKey":
        return RateKey(self.to_currency, self.from_currency, self.rate_date)

    def __str__(self) -> str:
        return f"{self.pair}@{self.rate_date.isoformat()}"


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """A single exchange rate observation for one day.

    ``rate`` is the number of ``to_currency`` units bought by one unit of
    ``from_currency``. Validation of ``rate > 0`` is owned by the store so
    corrupt rows read back from a backend can be detected and rejected
    instead of failing at construction time.
    """

    from_currency: str
    to_currency: str
    rate_date: date
    rate: Decimal
    source: str
    fetched_at: datetime = field(default_factory=_utcnow)

    @property
    def key(self) -> RateKey:
        return RateKey(self.from_currency, self.to_currency, self.rate_date)

    @property
    def pair(self) -> str:
        return f"{self.from_currency}/{self.to_currency}"

    @property
    def is_derived(self) -> bool:
        return self.source.startswith(INVERSE_SOURCE_PREFIX)

    def inverted(self) -> "ExchangeRate":
        """Return the synthesised reverse-direction record (never persisted)."""

        return replace(
            self,
            from_currency=self.to_currency,
            to_currency=self.from_currency,
            rate=Decimal(1) / self.rate,
            source=f"{INVERSE_SOURCE_PREFIX}{self.source}",
        )


@dataclass(slots=True)
class PersistenceResult:
    """Represents how many rows were inserted, updated or skipped in a write."""

    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        """Return the total number of affected rows."""

        return self.inserted + self.updated

    def __iadd__(self, other: "PersistenceResult") -> "PersistenceResult":
        self.inserted += other.inserted
        self.updated += other.updated
        self.skipped += other.skipped
        return self


@dataclass(frozen=True, slots=True)
class ConversionRequest:
    amount: Decimal | int | float | str
    from_currency: str
    to_currency: str
    rate_date: date
    allow_fallback: bool = True


@dataclass(frozen=True, slots=True)
class RateResolution:
    """Tagged outcome of :meth:`RateResolver.resolve`."""

    source: ResolutionSource
    rate: Decimal
    requested_date: date
    resolved_date: date
    days_difference: int = 0
    record: ExchangeRate | None = None

    @property
    def fallback_used(self) -> bool:
        return self.source is ResolutionSource.FALLBACK_NEAREST


@dataclass(frozen=True, slots=True)
class ConversionResult:
    """Converted amount plus the provenance of the rate that produced it."""

    original_amount: Decimal
    converted_amount: Decimal
    from_currency: str
    to_currency: str
    exchange_rate: Decimal | None
    source: ResolutionSource
    fallback_used: bool
    days_difference: int
    requested_date: date
    resolved_date: date | None
    rate_source: str | None = None

    @property
    def degraded(self) -> bool:
        """True when no rate was found and the original amount was passed through."""

        return self.source is ResolutionSource.NONE


__all__ = [
    "ConversionRequest",
    "ConversionResult",
    "DEFAULT_SUPPORTED_CURRENCIES",
    "ExchangeRate",
    "INVERSE_SOURCE_PREFIX",
    "PersistenceResult",
    "RateKey",
    "RateResolution",
    "ResolutionSource",
    "normalise_currency",
]
