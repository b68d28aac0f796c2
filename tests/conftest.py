from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Mapping

import pytest

from fx_convert.db.memory_backend import MemoryBackend
from fx_convert.errors import ProviderError
from fx_convert.models import ExchangeRate
from fx_convert.providers.base import RateProvider
from fx_convert.providers.client import ProviderClient
from fx_convert.resolver import RateResolver
from fx_convert.store import RateStore

TODAY = date(2024, 6, 15)


def make_rate(
    from_currency: str,
    to_currency: str,
    rate_date: date,
    rate: str | Decimal,
    source: str = "seed",
) -> ExchangeRate:
    return ExchangeRate(
        from_currency=from_currency,
        to_currency=to_currency,
        rate_date=rate_date,
        rate=Decimal(rate),
        source=source,
        fetched_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class ScriptedProvider(RateProvider):
    """Provider returning queued rates or raising queued errors."""

    def __init__(
        self,
        outcomes: list[Any] | None = None,
        *,
        name: str = "Scripted",
        source: str = "exchangerate-api",
        requires_credentials: bool = False,
        api_key: str | None = None,
    ) -> None:
        super().__init__(api_key=api_key)
        self.name = name
        self.source = source
        self.requires_credentials = requires_credentials
        self.outcomes = list(outcomes or [])
        self.calls: list[tuple[str, str, date]] = []

    def _request(self, from_currency, to_currency, rate_date, is_current, timeout) -> Mapping[str, Any]:
        self.calls.append((from_currency, to_currency, rate_date))
        if not self.outcomes:
            raise ProviderError(self.name, "no scripted outcome left")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return {"rate": outcome}

    def _extract_rate(self, payload, from_currency, to_currency):
        return payload["rate"]


def failing(name: str = "Scripted", count: int = 10) -> list[Exception]:
    return [ProviderError(name, "boom") for _ in range(count)]


@pytest.fixture()
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture()
def store(backend: MemoryBackend) -> RateStore:
    return RateStore(backend)


@pytest.fixture()
def sleeps() -> list[float]:
    return []


def build_client(providers: list[RateProvider], sleeps: list[float] | None = None, **kwargs) -> ProviderClient:
    recorded = sleeps if sleeps is not None else []
    return ProviderClient(
        providers,
        sleep=recorded.append,
        today=lambda: TODAY,
        **kwargs,
    )


def build_resolver(store: RateStore, client: ProviderClient, **kwargs) -> RateResolver:
    return RateResolver(store, client, today=lambda: TODAY, **kwargs)
