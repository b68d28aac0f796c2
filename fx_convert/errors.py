"""Exception hierarchy shared by every fx_convert component."""

from __future__ import annotations

from datetime import date
from typing import Sequence


class FxConvertError(Exception):
    """Base class for all package errors."""


class InvalidAmountError(FxConvertError, ValueError):
    """Raised when a conversion amount is not a finite, non-negative number."""


class UnsupportedCurrencyError(FxConvertError, ValueError):
    """Raised for currency codes outside the configured supported set."""


class StorageIntegrityError(FxConvertError):
    """Raised when a rate <= 0 is written to or read from the store."""


class ProviderError(FxConvertError):
    """A single provider call failed."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class ProviderCredentialsError(ProviderError):
    """The provider needs an API key that is not configured."""


class FetchAbortedError(ProviderError):
    """The fetch ran out of time or was cancelled by the caller."""


class CompositeProviderError(FxConvertError):
    """Every eligible provider failed for a fetch."""

    def __init__(self, pair: str, rate_date: date, failures: Sequence[ProviderError]) -> None:
        self.pair = pair
        self.rate_date = rate_date
        self.failures = list(failures)
        if self.failures:
            detail = "; ".join(str(failure) for failure in self.failures)
        else:
            detail = "no eligible providers configured"
        super().__init__(f"All providers failed for {pair} on {rate_date.isoformat()}: {detail}")

    @property
    def aborted(self) -> bool:
        """Return True when the fetch stopped because of a timeout or cancellation."""

        return any(isinstance(failure, FetchAbortedError) for failure in self.failures)


class RateUnavailableError(FxConvertError, LookupError):
    """No exact, fetchable or nearby rate exists for the requested key."""

    def __init__(self, from_currency: str, to_currency: str, rate_date: date) -> None:
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.rate_date = rate_date
        super().__init__(
            f"No exchange rate available for {from_currency}/{to_currency} "
            f"on {rate_date.isoformat()}"
        )


__all__ = [
    "CompositeProviderError",
    "FetchAbortedError",
    "FxConvertError",
    "InvalidAmountError",
    "ProviderCredentialsError",
    "ProviderError",
    "RateUnavailableError",
    "StorageIntegrityError",
    "UnsupportedCurrencyError",
]
