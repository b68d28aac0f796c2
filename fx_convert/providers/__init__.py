"""External exchange rate providers and the retrying client that drives them."""

from __future__ import annotations

from fx_convert.providers.base import RateProvider
from fx_convert.providers.client import FetchBudget, ProviderClient, build_default_providers
from fx_convert.providers.currencyapi import CurrencyAPIProvider
from fx_convert.providers.exchangerate_api import ExchangeRateAPIProvider
from fx_convert.providers.fixer import FixerProvider

__all__ = [
    "CurrencyAPIProvider",
    "ExchangeRateAPIProvider",
    "FetchBudget",
    "FixerProvider",
    "ProviderClient",
    "RateProvider",
    "build_default_providers",
]
