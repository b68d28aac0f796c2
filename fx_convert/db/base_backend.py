"""Backend strategy interface consumed by :class:`fx_convert.store.RateStore`."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Mapping

from fx_convert.models import ExchangeRate, PersistenceResult
from fx_convert.utils.money import to_rate


class BackendStrategy(ABC):
    """Get/put-by-composite-key contract implemented by every backend.

    Backends store records as given. When ``put_rate`` receives source
    priorities it must compare and write atomically with respect to other
    writers of the same database, not only other threads in this process.
    """

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create required tables/collections and verify connectivity."""

    @abstractmethod
    def get_rate(self, from_currency: str, to_currency: str, rate_date: date) -> ExchangeRate | None:
        """Return the record stored under the composite key, if any."""

    @abstractmethod
    def put_rate(
        self, rate: ExchangeRate, priorities: Mapping[str, int] | None = None
    ) -> PersistenceResult:
        """Insert or replace the record stored under ``rate.key``.

        With ``priorities``, a usable stored record whose source ranks
        strictly higher than ``rate.source`` is kept and the write is
        reported as skipped.
        """

    @abstractmethod
    def fetch_range(
        self,
        from_currency: str | None = None,
        to_currency: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[ExchangeRate]:
        """Return records ordered by date and constrained by the filters."""

    def close(self) -> None:  # pragma: no cover - optional cleanup hook
        """Backends may override to release connections/resources."""

    def __enter__(self) -> "BackendStrategy":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def outranks(
    existing_source: str,
    existing_rate: Decimal | float | str,
    incoming_source: str,
    priorities: Mapping[str, int] | None,
) -> bool:
    """Return True when the stored record must be kept over the incoming write.

    Corrupt stored rates (not finite or ``<= 0``) never outrank anything.
    """

    if priorities is None:
        return False
    try:
        value = to_rate(existing_rate)
    except ValueError:
        return False
    if not value.is_finite() or value <= 0:
        return False
    return priorities.get(existing_source, 0) > priorities.get(incoming_source, 0)


__all__ = ["BackendStrategy", "outranks"]
