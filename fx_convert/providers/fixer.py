"""Fixer.io provider (requires ``FIXER_API_KEY``)."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from fx_convert.errors import ProviderError
from fx_convert.providers.base import RateProvider


class FixerProvider(RateProvider):
    name = "Fixer.io"
    source = "fixer-api"
    requires_credentials = True
    base_url = "http://data.fixer.io/api"

    def _request(
        self,
        from_currency: str,
        to_currency: str,
        rate_date: date,
        is_current: bool,
        timeout: float,
    ) -> Mapping[str, Any]:
        endpoint = "latest" if is_current else rate_date.isoformat()
        params = {
            "access_key": self.api_key or "",
            "base": from_currency,
            "symbols": to_currency,
        }
        payload = self._get_json(f"{self.base_url}/{endpoint}", params=params, timeout=timeout)
        if not payload.get("success", False):
            info = (payload.get("error") or {}).get("info") or "Unknown error"
            raise ProviderError(self.name, f"API error: {info}")
        return payload

    def _extract_rate(self, payload: Mapping[str, Any], from_currency: str, to_currency: str):
        rates = payload.get("rates") or {}
        if to_currency not in rates:
            raise ProviderError(self.name, f"currency {to_currency} not found in response")
        return rates[to_currency]


__all__ = ["FixerProvider"]
