"""SQLAlchemy backend shared by SQLite, MySQL and Postgres."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Mapping, cast

from sqlalchemy import Date, DateTime, Float, String, case, create_engine, or_, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from fx_convert.db.base_backend import BackendStrategy, outranks
from fx_convert.models import ExchangeRate, PersistenceResult
from fx_convert.utils.logger import get_logger
from fx_convert.utils.money import to_rate

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class ExchangeRateRow(Base):
    __tablename__ = "exchange_rates"

    from_currency: Mapped[str] = mapped_column(String(3), primary_key=True)
    to_currency: Mapped[str] = mapped_column(String(3), primary_key=True)
    rate_date: Mapped[date] = mapped_column(Date, primary_key=True)
    rate: Mapped[float] = mapped_column(Float, nullable=False)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class RelationalBackend(BackendStrategy):
    """Backend that stores rates in an ``exchange_rates`` table via SQLAlchemy."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._engine_instance: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    def _get_engine(self) -> Engine:
        if self._engine_instance is None:
            kwargs: dict[str, object] = {"future": True}
            if self.url.startswith("sqlite"):
                kwargs["connect_args"] = {"check_same_thread": False}
                if self.url in {"sqlite://", "sqlite:///:memory:"}:
                    # Share the single in-memory database across threads.
                    kwargs["poolclass"] = StaticPool
            self._engine_instance = create_engine(self.url, **kwargs)
        return self._engine_instance

    def _sessions(self) -> sessionmaker[Session]:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self._get_engine(), expire_on_commit=False, future=True
            )
        return self._session_factory

    def ensure_schema(self) -> None:
        engine = self._get_engine()
        LOGGER.info("Ensuring exchange_rates schema exists")
        with engine.begin() as connection:
            connection.execute(text("SELECT 1"))
        Base.metadata.create_all(engine)

    def get_rate(self, from_currency: str, to_currency: str, rate_date: date) -> ExchangeRate | None:
        pk = {"from_currency": from_currency, "to_currency": to_currency, "rate_date": rate_date}
        with self._sessions()() as session:
            row = session.get(ExchangeRateRow, pk)
            return _to_record(row) if row is not None else None

    def put_rate(
        self, rate: ExchangeRate, priorities: Mapping[str, int] | None = None
    ) -> PersistenceResult:
        values = {
            "from_currency": rate.from_currency,
            "to_currency": rate.to_currency,
            "rate_date": rate.rate_date,
            "rate": float(rate.rate),
            "source": rate.source,
            "fetched_at": rate.fetched_at,
        }
        dialect = self._get_engine().dialect.name
        if dialect in _UPSERT_DIALECTS:
            return self._upsert(dialect, values, priorities)
        try:
            return self._locked_write(values, priorities)
        except IntegrityError:
            # Another writer inserted the key first; the retry sees its row.
            LOGGER.info("Concurrent insert of %s; retrying as update", rate.key)
        return self._locked_write(values, priorities)

    def _upsert(
        self, dialect: str, values: dict[str, Any], priorities: Mapping[str, int] | None
    ) -> PersistenceResult:
        stmt = _UPSERT_DIALECTS[dialect](ExchangeRateRow.__table__).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(_KEY_COLUMNS),
            set_={name: stmt.excluded[name] for name in _VALUE_COLUMNS},
            where=_replace_condition(values["source"], priorities),
        )
        pk = {name: values[name] for name in _KEY_COLUMNS}
        with self._sessions()() as session:
            existed = session.get(ExchangeRateRow, pk) is not None
            written = session.execute(stmt).rowcount
            session.commit()
        if not written:
            return PersistenceResult(skipped=1)
        return PersistenceResult(updated=1) if existed else PersistenceResult(inserted=1)

    def _locked_write(
        self, values: dict[str, Any], priorities: Mapping[str, int] | None
    ) -> PersistenceResult:
        pk = {name: values[name] for name in _KEY_COLUMNS}
        with self._sessions()() as session:
            existing = session.get(ExchangeRateRow, pk, with_for_update=True)
            if existing is None:
                session.add(ExchangeRateRow(**values))
                result = PersistenceResult(inserted=1)
            elif outranks(existing.source, existing.rate, values["source"], priorities):
                return PersistenceResult(skipped=1)
            else:
                for name in _VALUE_COLUMNS:
                    setattr(existing, name, values[name])
                result = PersistenceResult(updated=1)
            session.commit()
        return result

    def fetch_range(
        self,
        from_currency: str | None = None,
        to_currency: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[ExchangeRate]:
        stmt = select(ExchangeRateRow).order_by(
            ExchangeRateRow.rate_date,
            ExchangeRateRow.from_currency,
            ExchangeRateRow.to_currency,
        )
        if from_currency is not None:
            stmt = stmt.where(ExchangeRateRow.from_currency == from_currency)
        if to_currency is not None:
            stmt = stmt.where(ExchangeRateRow.to_currency == to_currency)
        if start is not None:
            stmt = stmt.where(ExchangeRateRow.rate_date >= start)
        if end is not None:
            stmt = stmt.where(ExchangeRateRow.rate_date <= end)
        with self._sessions()() as session:
            return [_to_record(row) for row in session.execute(stmt).scalars()]

    def close(self) -> None:
        if self._engine_instance is not None:
            self._engine_instance.dispose()


_KEY_COLUMNS = ("from_currency", "to_currency", "rate_date")
_VALUE_COLUMNS = ("rate", "source", "fetched_at")

# Dialects with INSERT .. ON CONFLICT DO UPDATE .. WHERE; others lock the row.
_UPSERT_DIALECTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


def _replace_condition(source: str, priorities: Mapping[str, int] | None):
    """SQL condition that holds when the stored row may be replaced (inverse of :func:`outranks`)."""

    if not priorities:
        return None
    current = case(dict(priorities), value=ExchangeRateRow.source, else_=0)
    return or_(ExchangeRateRow.rate <= 0, current <= priorities.get(source, 0))


def _to_record(row: ExchangeRateRow) -> ExchangeRate:
    fetched_at = cast(datetime, row.fetched_at)
    if fetched_at.tzinfo is None:
        # SQLite drops the offset; values are always written in UTC.
        fetched_at = fetched_at.replace(tzinfo=timezone.utc)
    return ExchangeRate(
        from_currency=row.from_currency,
        to_currency=row.to_currency,
        rate_date=_normalise_rate_date(row.rate_date),
        rate=to_rate(row.rate),
        source=row.source,
        fetched_at=fetched_at,
    )


def _normalise_rate_date(value: object) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    return date.fromisoformat(str(value))


__all__ = ["ExchangeRateRow", "RelationalBackend"]
