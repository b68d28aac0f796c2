"""Conversion of monetary amounts using resolved exchange rates."""

from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal
from typing import Iterable

from fx_convert.errors import RateUnavailableError
from fx_convert.models import (
    ConversionRequest,
    ConversionResult,
    ResolutionSource,
    normalise_currency,
)
from fx_convert.resolver import RateResolver
from fx_convert.utils.date_range import parse_date
from fx_convert.utils.logger import get_logger
from fx_convert.utils.money import coerce_amount, convert_amount

LOGGER = get_logger(__name__)


class ConversionEngine:
    """Turn a resolved rate into a :class:`ConversionResult`.

    Every converted amount is ``convert_amount(amount, rate, to_currency)``,
    i.e. half-up to the target currency's minor unit. The only side effect
    is the store write an on-demand fetch performs inside the resolver.
    """

    def __init__(self, resolver: RateResolver, supported_currencies: Iterable[str] | None = None) -> None:
        self.resolver = resolver
        self.supported_currencies = (
            tuple(supported_currencies) if supported_currencies is not None else None
        )

    def convert(
        self,
        amount: Decimal | int | float | str,
        from_currency: str,
        to_currency: str,
        rate_date: date | str,
        allow_fallback: bool = True,
        *,
        degrade: bool = False,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ConversionResult:
        """Convert ``amount`` on ``rate_date``.

        With ``degrade=True`` a missing rate yields an explicitly flagged
        result carrying the original amount (``source="none"``); otherwise
        :class:`RateUnavailableError` propagates.
        """

        value = coerce_amount(amount)
        source_code = normalise_currency(from_currency, self.supported_currencies)
        target_code = normalise_currency(to_currency, self.supported_currencies)
        day = parse_date(rate_date)

        try:
            resolution = self.resolver.resolve(
                source_code,
                target_code,
                day,
                allow_fallback,
                timeout=timeout,
                cancel_event=cancel_event,
            )
        except RateUnavailableError:
            if not degrade:
                LOGGER.error(
                    "Currency conversion failed for %s %s to %s on %s",
                    value,
                    source_code,
                    target_code,
                    day.isoformat(),
                )
                raise
            LOGGER.warning(
                "No rate for %s/%s on %s; returning unconverted amount",
                source_code,
                target_code,
                day.isoformat(),
            )
            return ConversionResult(
                original_amount=value,
                converted_amount=value,
                from_currency=source_code,
                to_currency=target_code,
                exchange_rate=None,
                source=ResolutionSource.NONE,
                fallback_used=True,
                days_difference=0,
                requested_date=day,
                resolved_date=None,
            )

        if resolution.source is ResolutionSource.SAME_CURRENCY:
            converted = value
        else:
            converted = convert_amount(value, resolution.rate, target_code)
        return ConversionResult(
            original_amount=value,
            converted_amount=converted,
            from_currency=source_code,
            to_currency=target_code,
            exchange_rate=resolution.rate,
            source=resolution.source,
            fallback_used=resolution.fallback_used,
            days_difference=resolution.days_difference,
            requested_date=day,
            resolved_date=resolution.resolved_date,
            rate_source=resolution.record.source if resolution.record is not None else None,
        )

    def convert_request(
        self,
        request: ConversionRequest,
        *,
        degrade: bool = False,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ConversionResult:
        return self.convert(
            request.amount,
            request.from_currency,
            request.to_currency,
            request.rate_date,
            request.allow_fallback,
            degrade=degrade,
            timeout=timeout,
            cancel_event=cancel_event,
        )


__all__ = ["ConversionEngine"]
