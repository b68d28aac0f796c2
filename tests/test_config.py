from __future__ import annotations

import pytest

from fx_convert.config import FxSettings
from fx_convert.models import DEFAULT_SUPPORTED_CURRENCIES


def test_defaults() -> None:
    settings = FxSettings()

    assert settings.supported_currencies == DEFAULT_SUPPORTED_CURRENCIES
    assert settings.recent_date_threshold_days == 7
    assert settings.max_fallback_days == 30
    assert settings.retry_attempts == 3
    assert settings.batch_size == 3
    assert settings.batch_delay_seconds == 2.0
    assert settings.fixer_api_key is None


def test_from_env_reads_overrides() -> None:
    env = {
        "FX_SUPPORTED_CURRENCIES": "usd, eur ,ils",
        "FX_RECENT_DATE_THRESHOLD_DAYS": "3",
        "FX_MAX_FALLBACK_DAYS": "10",
        "FX_BACKOFF_BASE_SECONDS": "0.5",
        "FX_BATCH_SIZE": "5",
        "FIXER_API_KEY": "fixer",
        "CURRENCY_API_KEY": "",
    }

    settings = FxSettings.from_env(env)

    assert settings.supported_currencies == ("USD", "EUR", "ILS")
    assert settings.recent_date_threshold_days == 3
    assert settings.max_fallback_days == 10
    assert settings.backoff_base_seconds == 0.5
    assert settings.batch_size == 5
    assert settings.fixer_api_key == "fixer"
    assert settings.currency_api_key is None


def test_from_env_ignores_empty_values() -> None:
    settings = FxSettings.from_env({"FX_RETRY_ATTEMPTS": ""})

    assert settings.retry_attempts == 3


def test_from_env_rejects_non_numbers() -> None:
    with pytest.raises(ValueError, match="FX_BATCH_SIZE"):
        FxSettings.from_env({"FX_BATCH_SIZE": "three"})


@pytest.mark.parametrize(
    "overrides",
    [
        {"supported_currencies": ()},
        {"supported_currencies": ("US",)},
        {"recent_date_threshold_days": -1},
        {"max_fallback_days": -1},
        {"retry_attempts": 0},
        {"batch_size": 0},
        {"backoff_base_seconds": -1.0},
        {"batch_delay_seconds": -0.1},
        {"request_timeout_seconds": 0},
    ],
)
def test_invalid_settings_are_rejected(overrides) -> None:
    with pytest.raises(ValueError):
        FxSettings(**overrides)


def test_api_keys_are_hidden_from_repr() -> None:
    settings = FxSettings(fixer_api_key="top-secret", currency_api_key="also-secret")

    assert "secret" not in repr(settings)
