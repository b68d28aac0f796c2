"""SQLite backend strategy implementation."""

from __future__ import annotations

from pathlib import Path

from fx_convert.db import DEFAULT_SQLITE_DB_PATH
from fx_convert.db.relational_backend import RelationalBackend


class SQLiteBackend(RelationalBackend):
    """Backend strategy that stores rates in a local SQLite file."""

    def __init__(self, db_path: str | Path = DEFAULT_SQLITE_DB_PATH) -> None:
        self.db_path = Path(db_path).expanduser().resolve()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(f"sqlite:///{self.db_path}")
        # The file is created lazily, so the schema is ready before first use.
        self.ensure_schema()


__all__ = ["SQLiteBackend"]
