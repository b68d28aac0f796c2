"""CurrencyAPI provider (requires ``CURRENCY_API_KEY``)."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from fx_convert.errors import ProviderError
from fx_convert.providers.base import RateProvider


class CurrencyAPIProvider(RateProvider):
    name = "CurrencyAPI"
    source = "currency-api"
    requires_credentials = True
    base_url = "https://api.currencyapi.com/v3"

    def _request(
        self,
        from_currency: str,
        to_currency: str,
        rate_date: date,
        is_current: bool,
        timeout: float,
    ) -> Mapping[str, Any]:
        params = {
            "apikey": self.api_key or "",
            "base_currency": from_currency,
            "currencies": to_currency,
        }
        if is_current:
            url = f"{self.base_url}/latest"
        else:
            url = f"{self.base_url}/historical"
            params["date"] = rate_date.isoformat()
        return self._get_json(url, params=params, timeout=timeout)

    def _extract_rate(self, payload: Mapping[str, Any], from_currency: str, to_currency: str):
        quote = (payload.get("data") or {}).get(to_currency)
        if not quote or "value" not in quote:
            raise ProviderError(self.name, f"currency {to_currency} not found in response")
        return quote["value"]


__all__ = ["CurrencyAPIProvider"]
