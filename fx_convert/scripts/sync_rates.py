"""CLI for fetching and storing exchange rates for common currency pairs."""

from __future__ import annotations

import argparse
from dataclasses import replace
from datetime import date
from typing import Sequence

from fx_convert import DatabaseConnectionInfo, FxConvert
from fx_convert.config import FxSettings
from fx_convert.db import DEFAULT_SQLITE_DB_PATH
from fx_convert.scheduler import BatchFetchReport
from fx_convert.utils.date_range import parse_date
from fx_convert.utils.logger import get_logger, set_log_level

LOGGER = get_logger(__name__)

__all__ = ["parse_args", "parse_pair", "sync_rates", "main"]


def parse_pair(value: str) -> tuple[str, str]:
    source, sep, target = value.partition("/")
    if not sep or not source or not target:
        raise argparse.ArgumentTypeError(f"Pair must look like USD/ILS, got {value!r}")
    return source.strip().upper(), target.strip().upper()


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--db",
        dest="db",
        default=str(DEFAULT_SQLITE_DB_PATH),
        help="Database DSN (sqlite:///..., postgresql://..., mongodb://...) or SQLite path",
    )
    parser.add_argument("--date", dest="rate_date", help="Rate date (YYYY-MM-DD), default today")
    parser.add_argument(
        "--pair",
        dest="pairs",
        action="append",
        type=parse_pair,
        help="Currency pair such as USD/ILS (repeatable); defaults to stored and common pairs",
    )
    parser.add_argument(
        "--missing-only",
        action="store_true",
        help="Only fetch pairs that have no stored rate for the date",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Store approximate seed rates first; fetched and manual rates still win",
    )
    parser.add_argument("--batch-size", type=int, help="Override the provider batch size")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the pairs that would be fetched without calling providers",
    )
    parser.add_argument("--log-level", help="Logging level such as DEBUG or WARNING")
    return parser.parse_args(argv)


def _connection_info(db: str) -> DatabaseConnectionInfo:
    if "://" in db:
        return DatabaseConnectionInfo.from_url(db)
    return DatabaseConnectionInfo.sqlite(db)


def _log_report(label: str, report: BatchFetchReport) -> None:
    LOGGER.info(
        "%s → %s updated, %s failed, %s skipped (total %s)",
        label,
        report.updated,
        report.failed,
        report.skipped,
        report.total,
    )
    for item in report.errors:
        LOGGER.warning("%s: %s", item.key, item.error)


def sync_rates(
    db: str = str(DEFAULT_SQLITE_DB_PATH),
    *,
    rate_date: date | str | None = None,
    pairs: Sequence[tuple[str, str]] | None = None,
    missing_only: bool = False,
    batch_size: int | None = None,
    dry_run: bool = False,
    seed: bool = False,
    settings: FxSettings | None = None,
) -> BatchFetchReport:
    """Fetch rates for ``pairs`` on ``rate_date`` and store them in ``db``."""

    settings = settings or FxSettings.from_env()
    if batch_size is not None:
        settings = replace(settings, batch_size=batch_size)
    with FxConvert(_connection_info(db), settings) as fx:
        day = parse_date(rate_date) if rate_date is not None else fx.resolver.today()
        if seed and not dry_run:
            fx.seed_common_rates(day)
        selected = list(pairs) if pairs else fx.active_pairs()
        if dry_run:
            LOGGER.info(
                "Dry-run enabled; would fetch %s pairs for %s: %s",
                len(selected),
                day.isoformat(),
                ", ".join(f"{source}/{target}" for source, target in selected),
            )
            return BatchFetchReport(skipped=len(selected))
        if missing_only:
            report = fx.refresh_missing(day, selected)
        else:
            report = fx.sync_pairs(selected, day)
    _log_report(f"Rates for {day.isoformat()}", report)
    return report


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    if args.log_level:
        set_log_level(args.log_level)
    report = sync_rates(
        args.db,
        rate_date=args.rate_date,
        pairs=args.pairs,
        missing_only=args.missing_only,
        batch_size=args.batch_size,
        dry_run=args.dry_run,
        seed=args.seed,
    )
    return 1 if report.failed else 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
