"""Persistence backends for stored exchange rates."""

from __future__ import annotations

from pathlib import Path
from typing import Final

__all__ = ["DEFAULT_SQLITE_DB_PATH"]

# ``Path(__file__)`` points at ``fx_convert/db/__init__.py`` so replacing the
# filename gives a stable location for ``rates.db`` irrespective of the
# working directory. SQLite needs the absolute path once installed in
# site-packages.
DEFAULT_SQLITE_DB_PATH: Final[Path] = Path(__file__).resolve().with_name("rates.db")
