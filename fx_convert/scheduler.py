"""Batch fetching of many rate keys under provider rate limits."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, Sequence

from fx_convert.errors import CompositeProviderError, StorageIntegrityError
from fx_convert.models import PersistenceResult, RateKey
from fx_convert.providers.client import ProviderClient
from fx_convert.store import RateStore
from fx_convert.utils.logger import get_logger

LOGGER = get_logger(__name__)

COMMON_BASE_CURRENCIES: tuple[str, ...] = ("USD", "EUR", "ILS")


@dataclass(slots=True)
class BatchItemResult:
    key: RateKey
    ok: bool
    error: str | None = None


@dataclass(slots=True)
class BatchFetchReport:
    """Per-key outcome of a scheduler run."""

    items: list[BatchItemResult] = field(default_factory=list)
    persistence: PersistenceResult = field(default_factory=PersistenceResult)
    skipped: int = 0
    batches: int = 0

    @property
    def total(self) -> int:
        return len(self.items) + self.skipped

    @property
    def updated(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if not item.ok)

    @property
    def errors(self) -> list[BatchItemResult]:
        return [item for item in self.items if not item.ok]


def partition(keys: Sequence[RateKey], size: int) -> list[list[RateKey]]:
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [list(keys[index : index + size]) for index in range(0, len(keys), size)]


class BatchFetchScheduler:
    """Fetch keys in fixed-size batches and publish successes to the store.

    Keys inside one batch are fetched one after another; batches are
    separated by ``batch_delay_seconds``. Each success is stored before the
    run returns, and a failing key never aborts its siblings.
    """

    def __init__(
        self,
        store: RateStore,
        provider_client: ProviderClient,
        *,
        batch_size: int = 3,
        batch_delay_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.provider_client = provider_client
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self._sleep = sleep

    def run(self, keys: Iterable[RateKey], *, timeout: float | None = None) -> BatchFetchReport:
        unique = list(dict.fromkeys(keys))
        report = BatchFetchReport()
        batches = partition(unique, self.batch_size)
        for index, batch in enumerate(batches):
            if index:
                self._sleep(self.batch_delay_seconds)
            report.batches += 1
            for key in batch:
                report.items.append(self._fetch_one(key, report, timeout))
        LOGGER.info(
            "Batch fetch completed: %s updated, %s failed in %s batches",
            report.updated,
            report.failed,
            report.batches,
        )
        return report

    def sync_pairs(
        self, pairs: Iterable[tuple[str, str]], rate_date: date, *, timeout: float | None = None
    ) -> BatchFetchReport:
        return self.run(
            (RateKey(source, target, rate_date) for source, target in pairs if source != target),
            timeout=timeout,
        )

    def refresh_missing(
        self,
        rate_date: date,
        pairs: Iterable[tuple[str, str]],
        *,
        timeout: float | None = None,
    ) -> BatchFetchReport:
        """Fetch only the pairs that have no usable rate stored for ``rate_date``."""

        candidates = list(pairs)
        missing = [
            (source, target)
            for source, target in candidates
            if source != target and not self.store.has_rate(source, target, rate_date)
        ]
        if missing:
            LOGGER.info(
                "Found %s currency pairs needing rates for %s: %s",
                len(missing),
                rate_date.isoformat(),
                ", ".join(f"{source}/{target}" for source, target in missing),
            )
        else:
            LOGGER.info("All currency pairs have rates for %s", rate_date.isoformat())
        report = self.sync_pairs(missing, rate_date, timeout=timeout)
        report.skipped = len(candidates) - len(missing)
        return report

    def _fetch_one(
        self, key: RateKey, report: BatchFetchReport, timeout: float | None
    ) -> BatchItemResult:
        try:
            record = self.provider_client.fetch_rate(
                key.from_currency, key.to_currency, key.rate_date, timeout=timeout
            )
            report.persistence += self.store.store(record)
        except (CompositeProviderError, StorageIntegrityError) as exc:
            LOGGER.warning("Failed to update %s: %s", key, exc)
            return BatchItemResult(key=key, ok=False, error=str(exc))
        except Exception as exc:  # backend and driver errors stay scoped to this key
            LOGGER.exception("Unexpected error while updating %s", key)
            return BatchItemResult(key=key, ok=False, error=f"{type(exc).__name__}: {exc}")
        return BatchItemResult(key=key, ok=True)


def common_pairs(
    supported_currencies: Iterable[str],
    base_currencies: Iterable[str] = COMMON_BASE_CURRENCIES,
) -> list[tuple[str, str]]:
    """Pairs that should always have a rate: each base against every supported code."""

    targets = list(supported_currencies)
    return [
        (base, target)
        for base in base_currencies
        if base in targets
        for target in targets
        if base != target
    ]


def active_pairs(store: RateStore, base_pairs: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Pairs already tracked in ``store`` followed by any missing ``base_pairs``."""

    stored = [(record.from_currency, record.to_currency) for record in store.latest_rates()]
    return list(dict.fromkeys([*stored, *base_pairs]))


__all__ = [
    "BatchFetchReport",
    "BatchFetchScheduler",
    "BatchItemResult",
    "COMMON_BASE_CURRENCIES",
    "active_pairs",
    "common_pairs",
    "partition",
]
