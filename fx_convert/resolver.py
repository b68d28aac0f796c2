"""Deterministic exact → fetch → nearest resolution of exchange rates."""

from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal
from typing import Callable

from fx_convert.errors import CompositeProviderError, RateUnavailableError, StorageIntegrityError
from fx_convert.models import RateResolution, ResolutionSource
from fx_convert.providers.client import ProviderClient
from fx_convert.store import RateStore
from fx_convert.utils.date_range import days_between
from fx_convert.utils.logger import get_logger

LOGGER = get_logger(__name__)


class RateResolver:
    """Resolve a rate for ``(from, to, date)`` in a fixed order.

    1. same currency
    2. exact stored rate (direct or inverse-derived)
    3. on-demand provider fetch when ``0 <= today - date <= recent_date_threshold_days``
    4. nearest stored rate within ``max_fallback_days`` when fallback is allowed
    5. :class:`RateUnavailableError`

    Future dates skip step 3: providers only quote the current rate, which
    must not be recorded against a day that has not happened yet.
    """

    def __init__(
        self,
        store: RateStore,
        provider_client: ProviderClient,
        *,
        recent_date_threshold_days: int = 7,
        max_fallback_days: int = 30,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self.provider_client = provider_client
        self.recent_date_threshold_days = recent_date_threshold_days
        self.max_fallback_days = max_fallback_days
        self._today = today

    def today(self) -> date:
        return self._today()

    def is_recent(self, rate_date: date) -> bool:
        age = days_between(rate_date, self.today())
        return 0 <= age <= self.recent_date_threshold_days

    def resolve(
        self,
        from_currency: str,
        to_currency: str,
        rate_date: date,
        allow_fallback: bool = True,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RateResolution:
        if from_currency == to_currency:
            return RateResolution(
                source=ResolutionSource.SAME_CURRENCY,
                rate=Decimal(1),
                requested_date=rate_date,
                resolved_date=rate_date,
            )

        exact = self.store.lookup_exact(from_currency, to_currency, rate_date)
        if exact is not None:
            return RateResolution(
                source=ResolutionSource.EXACT_DATE,
                rate=exact.rate,
                requested_date=rate_date,
                resolved_date=rate_date,
                record=exact,
            )

        if self.is_recent(rate_date):
            fetched = self._fetch_and_store(
                from_currency, to_currency, rate_date, timeout=timeout, cancel_event=cancel_event
            )
            if fetched is not None:
                return fetched

        if allow_fallback:
            nearest = self.store.lookup_nearest(
                from_currency, to_currency, rate_date, self.max_fallback_days
            )
            if nearest is not None:
                record, distance = nearest
                LOGGER.warning(
                    "Using %s rate from %s for %s/%s on %s (%s days away)",
                    record.source,
                    record.rate_date.isoformat(),
                    from_currency,
                    to_currency,
                    rate_date.isoformat(),
                    distance,
                )
                return RateResolution(
                    source=ResolutionSource.FALLBACK_NEAREST,
                    rate=record.rate,
                    requested_date=rate_date,
                    resolved_date=record.rate_date,
                    days_difference=distance,
                    record=record,
                )

        raise RateUnavailableError(from_currency, to_currency, rate_date)

    def _fetch_and_store(
        self,
        from_currency: str,
        to_currency: str,
        rate_date: date,
        *,
        timeout: float | None,
        cancel_event: threading.Event | None,
    ) -> RateResolution | None:
        try:
            record = self.provider_client.fetch_rate(
                from_currency, to_currency, rate_date, timeout=timeout, cancel_event=cancel_event
            )
        except CompositeProviderError as exc:
            LOGGER.warning("On-demand fetch failed: %s", exc)
            return None
        try:
            self.store.store(record)
        except StorageIntegrityError as exc:
            LOGGER.error("Discarded fetched rate for %s: %s", record.key, exc)
            return None
        return RateResolution(
            source=ResolutionSource.FETCHED_ON_DEMAND,
            rate=record.rate,
            requested_date=rate_date,
            resolved_date=rate_date,
            record=record,
        )


__all__ = ["RateResolver"]
