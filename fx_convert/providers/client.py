"""Retried, backed-off fetches across an ordered list of rate providers."""

from __future__ import annotations

import threading
import time
from collections import Counter
from datetime import date
from typing import Callable, Sequence

import requests
from tenacity import Retrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from fx_convert.config import FxSettings
from fx_convert.errors import CompositeProviderError, FetchAbortedError, ProviderError
from fx_convert.models import ExchangeRate, RateKey
from fx_convert.providers.base import RateProvider
from fx_convert.providers.currencyapi import CurrencyAPIProvider
from fx_convert.providers.exchangerate_api import ExchangeRateAPIProvider
from fx_convert.providers.fixer import FixerProvider
from fx_convert.utils.logger import get_logger

LOGGER = get_logger(__name__)


class FetchBudget:
    """Caller-supplied time limit and cancellation token for one fetch."""

    def __init__(
        self,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cancel_event = cancel_event
        self._clock = clock
        self._sleep = sleep
        self.deadline = None if timeout is None else clock() + max(timeout, 0.0)

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(self.deadline - self._clock(), 0.0)

    def check(self, provider: str) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise FetchAbortedError(provider, "fetch cancelled by caller")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise FetchAbortedError(provider, "fetch timed out")

    def request_timeout(self, default: float) -> float:
        remaining = self.remaining()
        return default if remaining is None else min(default, remaining)

    def sleep(self, seconds: float, provider: str) -> None:
        remaining = self.remaining()
        delay = seconds if remaining is None else min(seconds, remaining)
        if self.cancel_event is not None:
            self.cancel_event.wait(delay)
        else:
            self._sleep(delay)
        self.check(provider)


def build_default_providers(
    settings: FxSettings, *, session: requests.Session | None = None
) -> list[RateProvider]:
    """Return the providers in priority order, keyed from ``settings``."""

    shared = session or requests.Session()
    return [
        ExchangeRateAPIProvider(session=shared),
        FixerProvider(api_key=settings.fixer_api_key, session=shared),
        CurrencyAPIProvider(api_key=settings.currency_api_key, session=shared),
    ]


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and not isinstance(exc, FetchAbortedError)


class ProviderClient:
    """Fetch a rate from the first provider that answers.

    Every provider gets ``retry_attempts`` tries with exponential backoff
    (``base * 2**(n-1)`` capped at ``backoff_max_seconds``). The client never
    writes to the store; callers persist results explicitly. Quotes for dates
    outside the freshness window are unreliable, so the resolver never asks
    for them.
    """

    def __init__(
        self,
        providers: Sequence[RateProvider],
        *,
        retry_attempts: int = 3,
        backoff_base_seconds: float = 1.0,
        backoff_max_seconds: float = 30.0,
        request_timeout_seconds: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
    ) -> None:
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self.providers: list[RateProvider] = []
        self.skipped: list[RateProvider] = []
        for provider in providers:
            if provider.is_configured:
                self.providers.append(provider)
            else:
                LOGGER.info("Skipping %s: API key not configured", provider.name)
                self.skipped.append(provider)
        self.retry_attempts = retry_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.request_timeout_seconds = request_timeout_seconds
        self._sleep = sleep
        self._today = today
        self._in_flight: Counter[RateKey] = Counter()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: FxSettings,
        *,
        providers: Sequence[RateProvider] | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
    ) -> "ProviderClient":
        return cls(
            providers if providers is not None else build_default_providers(settings, session=session),
            retry_attempts=settings.retry_attempts,
            backoff_base_seconds=settings.backoff_base_seconds,
            backoff_max_seconds=settings.backoff_max_seconds,
            request_timeout_seconds=settings.request_timeout_seconds,
            sleep=sleep,
            today=today,
        )

    def in_flight(self, key: RateKey) -> int:
        with self._lock:
            return self._in_flight[key]

    def fetch_rate(
        self,
        from_currency: str,
        to_currency: str,
        rate_date: date,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ExchangeRate:
        key = RateKey(from_currency, to_currency, rate_date)
        budget = FetchBudget(timeout, cancel_event, sleep=self._sleep)
        with self._lock:
            if self._in_flight[key]:
                LOGGER.debug("Duplicate in-flight fetch for %s", key)
            self._in_flight[key] += 1
        try:
            return self._fetch_from_providers(key, budget)
        finally:
            with self._lock:
                self._in_flight[key] -= 1
                if not self._in_flight[key]:
                    del self._in_flight[key]

    def _fetch_from_providers(self, key: RateKey, budget: FetchBudget) -> ExchangeRate:
        failures: list[ProviderError] = []
        LOGGER.info("Fetching exchange rate for %s", key)
        for provider in self.providers:
            try:
                rate = self._retrying(provider, budget)(self._attempt, provider, key, budget)
            except FetchAbortedError as exc:
                LOGGER.warning("Fetch for %s aborted during %s: %s", key, provider.name, exc)
                failures.append(exc)
                break
            except ProviderError as exc:
                LOGGER.warning("Provider %s failed for %s: %s", provider.name, key, exc)
                failures.append(exc)
                continue
            LOGGER.info("Fetched %s = %s from %s", key, rate.rate, provider.name)
            return rate
        raise CompositeProviderError(key.pair, key.rate_date, failures)

    def _retrying(self, provider: RateProvider, budget: FetchBudget) -> Retrying:
        def _log_retry(retry_state: RetryCallState) -> None:
            outcome = retry_state.outcome
            error = outcome.exception() if outcome is not None else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0
            LOGGER.warning(
                "Attempt %s/%s with %s failed (%s); retrying in %.2fs",
                retry_state.attempt_number,
                self.retry_attempts,
                provider.name,
                error,
                delay,
            )

        return Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_base_seconds, exp_base=2, max=self.backoff_max_seconds
            ),
            retry=retry_if_exception(_is_retryable),
            sleep=lambda seconds: budget.sleep(seconds, provider.name),
            before_sleep=_log_retry,
            reraise=True,
        )

    def _attempt(self, provider: RateProvider, key: RateKey, budget: FetchBudget) -> ExchangeRate:
        budget.check(provider.name)
        return provider.fetch(
            key.from_currency,
            key.to_currency,
            key.rate_date,
            timeout=budget.request_timeout(self.request_timeout_seconds),
            today=self._today(),
        )


__all__ = ["FetchBudget", "ProviderClient", "build_default_providers"]
