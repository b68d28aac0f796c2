"""Base class for external exchange rate providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Mapping

import requests

from fx_convert.errors import ProviderCredentialsError, ProviderError
from fx_convert.models import ExchangeRate
from fx_convert.utils.money import to_rate


class RateProvider(ABC):
    """One external source of exchange rates.

    Subclasses declare whether they need an API key; providers without the
    credentials they need are excluded when the client is built.
    """

    name: str = "provider"
    source: str = "provider"
    requires_credentials: bool = False

    def __init__(
        self,
        *,
        api_key: str | None = None,
        session: requests.Session | None = None,
        base_url: str | None = None,
    ) -> None:
        self.api_key = api_key
        self.session = session or requests.Session()
        if base_url is not None:
            self.base_url = base_url.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return not self.requires_credentials or bool(self.api_key)

    def fetch(
        self,
        from_currency: str,
        to_currency: str,
        rate_date: date,
        *,
        timeout: float,
        today: date | None = None,
    ) -> ExchangeRate:
        """Fetch one rate; every failure surfaces as :class:`ProviderError`."""

        if not self.is_configured:
            raise ProviderCredentialsError(self.name, "API key not configured")
        is_current = rate_date >= (today or date.today())
        try:
            payload = self._request(from_currency, to_currency, rate_date, is_current, timeout)
            value = self._extract_rate(payload, from_currency, to_currency)
        except (TypeError, KeyError, AttributeError, IndexError) as exc:
            raise ProviderError(self.name, f"malformed response: {exc}") from exc
        try:
            rate = to_rate(value)
        except ValueError as exc:
            raise ProviderError(self.name, f"invalid rate {value!r}") from exc
        if not rate.is_finite() or rate <= 0:
            raise ProviderError(self.name, f"non-positive rate {value!r} for {to_currency}")
        return ExchangeRate(
            from_currency=from_currency,
            to_currency=to_currency,
            rate_date=rate_date,
            rate=rate,
            source=self.source,
            fetched_at=datetime.now(timezone.utc),
        )

    @abstractmethod
    def _request(
        self,
        from_currency: str,
        to_currency: str,
        rate_date: date,
        is_current: bool,
        timeout: float,
    ) -> Mapping[str, Any]:
        """Call the remote API and return the decoded JSON payload."""

    @abstractmethod
    def _extract_rate(
        self, payload: Mapping[str, Any], from_currency: str, to_currency: str
    ) -> Decimal | float | str:
        """Pull the ``to_currency`` quote out of ``payload``."""

    def _get_json(
        self, url: str, *, params: Mapping[str, str] | None = None, timeout: float
    ) -> Mapping[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=timeout)
        except requests.RequestException as exc:
            raise ProviderError(self.name, f"request failed: {exc}") from exc
        if response.status_code != 200:
            raise ProviderError(self.name, f"HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(self.name, "response is not valid JSON") from exc
        if not isinstance(data, Mapping):
            raise ProviderError(self.name, "unexpected response payload")
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(configured={self.is_configured})"


__all__ = ["RateProvider"]
