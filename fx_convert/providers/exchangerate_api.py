"""ExchangeRate-API provider (free tier, no API key)."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from fx_convert.errors import ProviderError
from fx_convert.providers.base import RateProvider


class ExchangeRateAPIProvider(RateProvider):
    """Latest rates from ``api.exchangerate-api.com``.

    The free endpoint has no history, so the current quote is returned for
    any date. Callers only fetch inside the freshness window.
    """

    name = "ExchangeRate-API"
    source = "exchangerate-api"
    base_url = "https://api.exchangerate-api.com/v4"

    def _request(
        self,
        from_currency: str,
        to_currency: str,
        rate_date: date,
        is_current: bool,
        timeout: float,
    ) -> Mapping[str, Any]:
        return self._get_json(f"{self.base_url}/latest/{from_currency}", timeout=timeout)

    def _extract_rate(self, payload: Mapping[str, Any], from_currency: str, to_currency: str):
        rates = payload.get("rates") or {}
        if to_currency not in rates:
            raise ProviderError(self.name, f"currency {to_currency} not found in response")
        return rates[to_currency]


__all__ = ["ExchangeRateAPIProvider"]
