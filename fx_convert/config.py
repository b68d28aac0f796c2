"""Runtime settings for rate resolution, provider access and batching."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from fx_convert.models import DEFAULT_SUPPORTED_CURRENCIES

ENV_PREFIX = "FX_"


@dataclass(slots=True)
class FxSettings:
    """Tunables shared by the resolver, provider client and scheduler.

    Provider credentials are optional: a missing key disables that provider,
    never the system.
    """

    supported_currencies: tuple[str, ...] = DEFAULT_SUPPORTED_CURRENCIES
    recent_date_threshold_days: int = 7
    max_fallback_days: int = 30
    retry_attempts: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 30.0
    request_timeout_seconds: float = 10.0
    batch_size: int = 3
    batch_delay_seconds: float = 2.0
    fixer_api_key: str | None = field(default=None, repr=False)
    currency_api_key: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.supported_currencies = tuple(
            code.strip().upper() for code in self.supported_currencies if code.strip()
        )
        if not self.supported_currencies:
            raise ValueError("supported_currencies must not be empty")
        for code in self.supported_currencies:
            if len(code) != 3 or not code.isalpha():
                raise ValueError(f"Invalid currency code in supported_currencies: {code!r}")
        if self.recent_date_threshold_days < 0:
            raise ValueError("recent_date_threshold_days must not be negative")
        if self.max_fallback_days < 0:
            raise ValueError("max_fallback_days must not be negative")
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.backoff_base_seconds < 0 or self.backoff_max_seconds < 0:
            raise ValueError("backoff delays must not be negative")
        if self.batch_delay_seconds < 0:
            raise ValueError("batch_delay_seconds must not be negative")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "FxSettings":
        """Build settings from ``FX_*`` environment variables and provider keys."""

        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        currencies = env.get(f"{ENV_PREFIX}SUPPORTED_CURRENCIES")
        if currencies:
            kwargs["supported_currencies"] = tuple(currencies.split(","))

        int_fields = {
            "recent_date_threshold_days": "RECENT_DATE_THRESHOLD_DAYS",
            "max_fallback_days": "MAX_FALLBACK_DAYS",
            "retry_attempts": "RETRY_ATTEMPTS",
            "batch_size": "BATCH_SIZE",
        }
        float_fields = {
            "backoff_base_seconds": "BACKOFF_BASE_SECONDS",
            "backoff_max_seconds": "BACKOFF_MAX_SECONDS",
            "request_timeout_seconds": "REQUEST_TIMEOUT_SECONDS",
            "batch_delay_seconds": "BATCH_DELAY_SECONDS",
        }
        for attr, suffix in int_fields.items():
            raw = env.get(f"{ENV_PREFIX}{suffix}")
            if raw not in (None, ""):
                kwargs[attr] = _parse_number(f"{ENV_PREFIX}{suffix}", raw, int)
        for attr, suffix in float_fields.items():
            raw = env.get(f"{ENV_PREFIX}{suffix}")
            if raw not in (None, ""):
                kwargs[attr] = _parse_number(f"{ENV_PREFIX}{suffix}", raw, float)

        kwargs["fixer_api_key"] = env.get("FIXER_API_KEY") or None
        kwargs["currency_api_key"] = env.get("CURRENCY_API_KEY") or None
        return cls(**kwargs)  # type: ignore[arg-type]


def _parse_number(name: str, raw: str, kind: type) -> int | float:
    try:
        return kind(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


__all__ = ["ENV_PREFIX", "FxSettings"]
