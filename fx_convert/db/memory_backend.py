"""In-process backend keeping rates in a dictionary."""

from __future__ import annotations

import threading
from datetime import date
from typing import Mapping

from fx_convert.db.base_backend import BackendStrategy, outranks
from fx_convert.models import ExchangeRate, PersistenceResult, RateKey


class MemoryBackend(BackendStrategy):
    """Dictionary-backed store for tests, scripts and short-lived processes."""

    def __init__(self) -> None:
        self._rows: dict[RateKey, ExchangeRate] = {}
        self._write_lock = threading.Lock()

    def ensure_schema(self) -> None:
        return None

    def get_rate(self, from_currency: str, to_currency: str, rate_date: date) -> ExchangeRate | None:
        return self._rows.get(RateKey(from_currency, to_currency, rate_date))

    def put_rate(
        self, rate: ExchangeRate, priorities: Mapping[str, int] | None = None
    ) -> PersistenceResult:
        with self._write_lock:
            existing = self._rows.get(rate.key)
            if existing is not None and outranks(
                existing.source, existing.rate, rate.source, priorities
            ):
                return PersistenceResult(skipped=1)
            self._rows[rate.key] = rate
        return PersistenceResult(updated=1) if existing is not None else PersistenceResult(inserted=1)

    def fetch_range(
        self,
        from_currency: str | None = None,
        to_currency: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[ExchangeRate]:
        rows = [
            row
            for row in list(self._rows.values())
            if (from_currency is None or row.from_currency == from_currency)
            and (to_currency is None or row.to_currency == to_currency)
            and (start is None or row.rate_date >= start)
            and (end is None or row.rate_date <= end)
        ]
        return sorted(rows, key=lambda row: (row.rate_date, row.from_currency, row.to_currency))

    def __len__(self) -> int:
        return len(self._rows)


__all__ = ["MemoryBackend"]
