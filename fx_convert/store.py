"""Rate store: exact, inverse-derived and nearest lookups plus priority upserts."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable

from fx_convert.db.base_backend import BackendStrategy
from fx_convert.errors import StorageIntegrityError
from fx_convert.models import ExchangeRate, PersistenceResult, RateKey
from fx_convert.utils.date_range import outward_offsets, window_around
from fx_convert.utils.logger import get_logger
from fx_convert.utils.money import to_rate

LOGGER = get_logger(__name__)

MANUAL_SOURCE = "manual"
SEED_SOURCE = "seed"

# Unknown sources rank 0.
SOURCE_PRIORITIES: dict[str, int] = {
    MANUAL_SOURCE: 100,
    "exchangerate-api": 50,
    "fixer-api": 50,
    "currency-api": 50,
    SEED_SOURCE: 10,
}

# Approximate starting rates; seed priority lets any fetched or manual rate win.
DEFAULT_SEED_RATES: tuple[tuple[str, str, str], ...] = (
    ("USD", "ILS", "3.7"),
    ("EUR", "ILS", "4.0"),
    ("GBP", "ILS", "4.6"),
    ("USD", "EUR", "0.85"),
    ("GBP", "USD", "1.25"),
)


def _check_rate(rate: ExchangeRate) -> None:
    value = rate.rate
    if not isinstance(value, Decimal) or not value.is_finite() or value <= 0:
        raise StorageIntegrityError(
            f"Rate for {rate.key} must be a finite positive number, got {value!r}"
        )


class RateStore:
    """Owns every persisted :class:`ExchangeRate` on top of a backend.

    Writes pass the source priorities to the backend, which compares and
    writes atomically so a lower-priority writer racing a higher one can
    never win, whether the writers are threads or separate processes.
    Synthesised inverse records are returned, never stored.
    """

    def __init__(self, backend: BackendStrategy) -> None:
        self.backend = backend

    def get(self, from_currency: str, to_currency: str, rate_date: date) -> ExchangeRate | None:
        """Raw direct read; a stored rate <= 0 raises :class:`StorageIntegrityError`."""

        record = self.backend.get_rate(from_currency, to_currency, rate_date)
        if record is not None:
            _check_rate(record)
        return record

    def lookup_exact(
        self, from_currency: str, to_currency: str, rate_date: date
    ) -> ExchangeRate | None:
        direct = self._safe_get(RateKey(from_currency, to_currency, rate_date))
        if direct is not None:
            return direct
        inverse = self._safe_get(RateKey(to_currency, from_currency, rate_date))
        if inverse is not None:
            return inverse.inverted()
        return None

    def lookup_nearest(
        self,
        from_currency: str,
        to_currency: str,
        rate_date: date,
        max_days: int,
    ) -> tuple[ExchangeRate, int] | None:
        """Return the closest usable record within ``max_days`` and its distance.

        Equidistant candidates resolve to the earlier date; on one date a
        direct record beats an inverse-derived one.
        """

        window = window_around(rate_date, max_days)
        candidates: dict[date, ExchangeRate] = {}
        for record in self.backend.fetch_range(
            to_currency, from_currency, window.start, window.end
        ):
            if self._is_usable(record):
                candidates[record.rate_date] = record.inverted()
        for record in self.backend.fetch_range(
            from_currency, to_currency, window.start, window.end
        ):
            if self._is_usable(record):
                candidates[record.rate_date] = record
        if not candidates:
            return None
        for candidate_date, distance in outward_offsets(rate_date, max_days):
            hit = candidates.get(candidate_date)
            if hit is not None:
                return hit, distance
        return None

    def store(self, rate: ExchangeRate) -> PersistenceResult:
        """Upsert ``rate`` unless a strictly higher-priority record exists."""

        _check_rate(rate)
        if rate.is_derived:
            raise StorageIntegrityError(f"Refusing to persist derived record {rate.key}")
        result = self.backend.put_rate(rate, SOURCE_PRIORITIES)
        if result.skipped:
            LOGGER.info("Kept higher-priority rate for %s over %s", rate.key, rate.source)
        else:
            LOGGER.info("Stored %s = %s (%s)", rate.key, rate.rate, rate.source)
        return result

    def set_manual_rate(
        self,
        from_currency: str,
        to_currency: str,
        rate: Decimal | float | str,
        rate_date: date,
    ) -> ExchangeRate:
        """Persist an operator-supplied rate with the highest source priority."""

        try:
            value = to_rate(rate)
        except ValueError as exc:
            raise StorageIntegrityError(str(exc)) from exc
        record = ExchangeRate(
            from_currency=from_currency,
            to_currency=to_currency,
            rate_date=rate_date,
            rate=value,
            source=MANUAL_SOURCE,
            fetched_at=datetime.now(timezone.utc),
        )
        self.store(record)
        LOGGER.info("Manually set %s on %s: %s", record.pair, rate_date.isoformat(), value)
        return record

    def seed_common_rates(
        self,
        rate_date: date,
        rates: Iterable[tuple[str, str, Decimal | float | str]] = DEFAULT_SEED_RATES,
    ) -> PersistenceResult:
        """Store placeholder rates under the lowest named source priority."""

        result = PersistenceResult()
        fetched_at = datetime.now(timezone.utc)
        for from_currency, to_currency, value in rates:
            result += self.store(
                ExchangeRate(
                    from_currency=from_currency,
                    to_currency=to_currency,
                    rate_date=rate_date,
                    rate=to_rate(value),
                    source=SEED_SOURCE,
                    fetched_at=fetched_at,
                )
            )
        LOGGER.info(
            "Seeded common rates for %s: %s inserted, %s updated, %s kept",
            rate_date.isoformat(),
            result.inserted,
            result.updated,
            result.skipped,
        )
        return result

    def has_rate(self, from_currency: str, to_currency: str, rate_date: date) -> bool:
        return self.lookup_exact(from_currency, to_currency, rate_date) is not None

    def latest_rates(self, base_currency: str | None = None) -> list[ExchangeRate]:
        """Return the most recent usable record per stored currency pair."""

        latest: dict[tuple[str, str], ExchangeRate] = {}
        for record in self.backend.fetch_range():
            if base_currency is not None and base_currency not in (
                record.from_currency,
                record.to_currency,
            ):
                continue
            if not self._is_usable(record):
                continue
            pair = (record.from_currency, record.to_currency)
            current = latest.get(pair)
            if current is None or record.rate_date > current.rate_date:
                latest[pair] = record
        return sorted(latest.values(), key=lambda record: (record.from_currency, record.to_currency))

    def _safe_get(self, key: RateKey) -> ExchangeRate | None:
        try:
            return self.get(key.from_currency, key.to_currency, key.rate_date)
        except StorageIntegrityError as exc:
            LOGGER.error("Rejected stored rate %s: %s", key, exc)
            return None

    @staticmethod
    def _is_usable(record: ExchangeRate) -> bool:
        try:
            _check_rate(record)
        except StorageIntegrityError as exc:
            LOGGER.error("Rejected stored rate %s: %s", record.key, exc)
            return False
        return True


__all__ = [
    "DEFAULT_SEED_RATES",
    "MANUAL_SOURCE",
    "RateStore",
    "SEED_SOURCE",
    "SOURCE_PRIORITIES",
]
