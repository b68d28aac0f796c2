from __future__ import annotations

import argparse
from decimal import Decimal

import pytest

from conftest import TODAY, ScriptedProvider
from fx_convert import FxConvert
from fx_convert.config import FxSettings
from fx_convert.scripts import sync_rates as sync_module


@pytest.fixture()
def provider(monkeypatch: pytest.MonkeyPatch) -> ScriptedProvider:
    scripted = ScriptedProvider(["0.9", "3.7", "0.8"])
    built: list[FxConvert] = []

    def _factory(info, settings):
        fx = FxConvert(info, settings, providers=[scripted], today=lambda: TODAY, sleep=lambda _: None)
        built.append(fx)
        return fx

    monkeypatch.setattr(sync_module, "FxConvert", _factory)
    scripted.built = built
    return scripted


def test_parse_pair() -> None:
    assert sync_module.parse_pair("usd/ils") == ("USD", "ILS")
    with pytest.raises(argparse.ArgumentTypeError):
        sync_module.parse_pair("USDILS")


def test_parse_args_collects_pairs() -> None:
    args = sync_module.parse_args(
        ["--db", "memory://", "--pair", "USD/ILS", "--pair", "EUR/USD", "--missing-only"]
    )

    assert args.pairs == [("USD", "ILS"), ("EUR", "USD")]
    assert args.missing_only is True
    assert args.dry_run is False


def test_sync_rates_stores_requested_pairs(provider: ScriptedProvider) -> None:
    report = sync_module.sync_rates(
        "memory://",
        rate_date="2024-06-14",
        pairs=[("USD", "EUR"), ("USD", "ILS")],
        settings=FxSettings(),
    )

    assert report.updated == 2
    fx = provider.built[0]
    assert fx.store.get("USD", "ILS", TODAY.replace(day=14)).rate == Decimal("3.7")


def test_sync_rates_batch_size_override(provider: ScriptedProvider) -> None:
    report = sync_module.sync_rates(
        "memory://",
        pairs=[("USD", "EUR"), ("USD", "ILS"), ("USD", "GBP")],
        batch_size=1,
        settings=FxSettings(),
    )

    assert report.batches == 3
    assert provider.built[0].settings.batch_size == 1


def test_dry_run_calls_no_provider(provider: ScriptedProvider) -> None:
    report = sync_module.sync_rates("memory://", dry_run=True, settings=FxSettings())

    assert provider.calls == []
    assert report.skipped == 21
    assert report.updated == 0


def test_sqlite_path_is_accepted(tmp_path) -> None:
    info = sync_module._connection_info(str(tmp_path / "rates.db"))

    assert info.url.startswith("sqlite:///")


def test_main_returns_non_zero_on_failures(
    provider: ScriptedProvider, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(sync_module.FxSettings, "from_env", classmethod(lambda cls: cls(retry_attempts=1)))

    exit_code = sync_module.main(
        ["--db", "memory://", "--pair", "USD/EUR", "--pair", "USD/ILS", "--pair", "USD/GBP", "--pair", "USD/JPY"]
    )

    assert exit_code == 1
    assert len(provider.calls) == 4


def test_main_returns_zero_on_success(provider: ScriptedProvider) -> None:
    assert sync_module.main(["--db", "memory://", "--pair", "USD/EUR", "--date", "2024-06-15"]) == 0


def test_seed_flag_stores_seed_rates_under_fetched_ones(provider: ScriptedProvider) -> None:
    report = sync_module.sync_rates(
        "memory://",
        pairs=[("USD", "EUR")],
        seed=True,
        settings=FxSettings(),
    )

    fx = provider.built[0]
    assert report.updated == 1
    assert fx.store.get("USD", "EUR", TODAY).rate == Decimal("0.9")
    assert fx.store.get("GBP", "ILS", TODAY).source == "seed"


def test_default_pairs_include_stored_pairs(provider: ScriptedProvider, tmp_path) -> None:
    db = str(tmp_path / "rates.db")
    settings = FxSettings(supported_currencies=("USD", "EUR", "GBP"))
    sync_module.sync_rates(db, pairs=[("GBP", "USD")], settings=settings)

    report = sync_module.sync_rates(db, dry_run=True, settings=settings)

    assert report.skipped == 5
    assert len(provider.calls) == 1
    assert sync_module.parse_args(["--seed"]).seed is True
