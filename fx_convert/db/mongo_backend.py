"""MongoDB backend strategy."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Mapping

from fx_convert.db.base_backend import BackendStrategy
from fx_convert.models import ExchangeRate, PersistenceResult
from fx_convert.utils.logger import get_logger
from fx_convert.utils.money import to_rate

try:  # pragma: no cover - optional dependency
    from pymongo import MongoClient
    from pymongo.collection import Collection
    from pymongo.errors import DuplicateKeyError, PyMongoError
except ModuleNotFoundError:  # pragma: no cover - handled dynamically
    MongoClient = None  # type: ignore[assignment]
    Collection = None  # type: ignore[assignment]
    PyMongoError = Exception  # type: ignore[assignment]
    DuplicateKeyError = PyMongoError  # type: ignore[assignment, misc]

LOGGER = get_logger(__name__)

COLLECTION_NAME = "exchange_rates"


class MongoBackend(BackendStrategy):
    """Backend strategy that persists exchange rates inside MongoDB."""

    def __init__(self, url: str, *, database: str | None = None) -> None:
        if MongoClient is None:  # pragma: no cover - defensive
            raise ModuleNotFoundError("pymongo is required for MongoDB backends")
        self.url = url
        self._client = MongoClient(url)
        db = self._client.get_default_database() if database is None else self._client[database]
        if db is None:
            raise ValueError("MongoDB connection URI must include a database name")
        self._collection: Collection = db[COLLECTION_NAME]

    def ensure_schema(self) -> None:
        try:
            LOGGER.info("Ensuring MongoDB exchange rate collection exists")
            self._client.admin.command("ping")
            self._collection.create_index(
                [("from_currency", 1), ("to_currency", 1), ("rate_date", 1)], unique=True
            )
        except PyMongoError as exc:  # pragma: no cover - error path
            raise RuntimeError(f"Failed to ensure MongoDB schema: {exc}") from exc

    def get_rate(self, from_currency: str, to_currency: str, rate_date: date) -> ExchangeRate | None:
        try:
            doc = self._collection.find_one(_key_filter(from_currency, to_currency, rate_date))
        except PyMongoError as exc:  # pragma: no cover - error path
            raise RuntimeError(f"Failed to read MongoDB rate: {exc}") from exc
        return _to_record(doc) if doc else None

    def put_rate(
        self, rate: ExchangeRate, priorities: Mapping[str, int] | None = None
    ) -> PersistenceResult:
        key = _key_filter(rate.from_currency, rate.to_currency, rate.rate_date)
        doc = {
            **key,
            "rate": float(rate.rate),
            "source": rate.source,
            "fetched_at": rate.fetched_at,
        }
        query = _replaceable_filter(key, rate.source, priorities)
        try:
            outcome = self._conditional_upsert(query, doc)
        except DuplicateKeyError:
            # Either a higher-priority document holds the key or a concurrent
            # insert won it; one retry re-evaluates the filter against it.
            try:
                outcome = self._conditional_upsert(query, doc)
            except DuplicateKeyError:
                return PersistenceResult(skipped=1)
        if getattr(outcome, "upserted_id", None) is not None:
            return PersistenceResult(inserted=1)
        return PersistenceResult(updated=1)

    def _conditional_upsert(self, query: dict[str, Any], doc: dict[str, Any]) -> Any:
        try:
            return self._collection.update_one(query, {"$set": doc}, upsert=True)
        except DuplicateKeyError:
            raise
        except PyMongoError as exc:  # pragma: no cover - error path
            raise RuntimeError(f"Failed to upsert MongoDB rate: {exc}") from exc

    def fetch_range(
        self,
        from_currency: str | None = None,
        to_currency: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[ExchangeRate]:
        query: dict[str, Any] = {}
        if from_currency is not None:
            query["from_currency"] = from_currency
        if to_currency is not None:
            query["to_currency"] = to_currency
        if start is not None or end is not None:
            range_query: dict[str, str] = {}
            if start is not None:
                range_query["$gte"] = start.isoformat()
            if end is not None:
                range_query["$lte"] = end.isoformat()
            query["rate_date"] = range_query
        try:
            docs = self._collection.find(query).sort("rate_date", 1)
            return [_to_record(doc) for doc in docs]
        except PyMongoError as exc:  # pragma: no cover - error path
            raise RuntimeError(f"Failed to query MongoDB rates: {exc}") from exc

    def close(self) -> None:  # pragma: no cover - trivial cleanup
        self._client.close()


def _key_filter(from_currency: str, to_currency: str, rate_date: date) -> dict[str, str]:
    # ISO strings keep lexicographic order equal to calendar order.
    return {
        "from_currency": from_currency,
        "to_currency": to_currency,
        "rate_date": rate_date.isoformat(),
    }


def _replaceable_filter(
    key: dict[str, str], source: str, priorities: Mapping[str, int] | None
) -> dict[str, Any]:
    """Match the keyed document only when ``source`` may replace it."""

    if not priorities:
        return dict(key)
    incoming = priorities.get(source, 0)
    higher = sorted(name for name, rank in priorities.items() if rank > incoming)
    if not higher:
        return dict(key)
    return {**key, "$or": [{"source": {"$nin": higher}}, {"rate": {"$lte": 0}}]}


def _to_record(doc: dict[str, Any]) -> ExchangeRate:
    fetched_at = doc.get("fetched_at") or datetime.now(timezone.utc)
    if isinstance(fetched_at, datetime) and fetched_at.tzinfo is None:
        fetched_at = fetched_at.replace(tzinfo=timezone.utc)
    return ExchangeRate(
        from_currency=doc["from_currency"],
        to_currency=doc["to_currency"],
        rate_date=date.fromisoformat(doc["rate_date"]),
        rate=to_rate(doc["rate"]),
        source=doc.get("source", "unknown"),
        fetched_at=fetched_at,
    )


__all__ = ["MongoBackend"]
