"""MongoDB access through Motor.

One ``AsyncIOMotorClient`` per process, created by ``init_client`` at startup
and closed by ``close_client`` at shutdown.  ``MongoDocumentStore`` adapts a
database handle to the engine's ``DocumentStore`` contract, translating every
driver error into ``StorageFailure``.

The client is built with ``tz_aware=True`` so stored dates come back as UTC
aware datetimes and compare cleanly with analytics windows.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from bson.errors import BSONError
from pymongo.errors import PyMongoError

from src.config import Settings, get_settings
from src.cycles.base import DocumentStore, Filter, SortSpec
from src.cycles.errors import StorageFailure

logger = logging.getLogger("mimos.db")

# Module-level client — initialized once at startup
_client: AsyncIOMotorClient | None = None

# Encoding failures (e.g. ints wider than 64 bits) surface outside PyMongoError.
_DRIVER_ERRORS = (PyMongoError, BSONError, OverflowError)


def init_client(settings: Settings | None = None) -> AsyncIOMotorClient:
    """Create the Motor client. Call once at startup."""
    global _client
    s = settings or get_settings()
    _client = AsyncIOMotorClient(
        s.mongodb_uri,
        tz_aware=True,
        serverSelectionTimeoutMS=s.mongodb_timeout_ms,
    )
    logger.info("Mongo client initialized (db=%s)", s.mongodb_db)
    return _client


def close_client() -> None:
    """Close the client. Call at shutdown."""
    global _client
    if _client:
        _client.close()
        _client = None
        logger.info("Mongo client closed")


def get_client() -> AsyncIOMotorClient:
    if _client is None:
        raise RuntimeError("Mongo client not initialized — call init_client() first")
    return _client


def get_database(settings: Settings | None = None) -> AsyncIOMotorDatabase:
    s = settings or get_settings()
    return get_client()[s.mongodb_db]


class MongoDocumentStore(DocumentStore):
    """``DocumentStore`` over a Motor database.

    Usage::

        store = MongoDocumentStore(get_database())
        rows = await store.find("cycles", {"userId": oid}, sort=[("startDate", -1)], limit=1)
    """

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    async def _aggregate(self, collection: str, pipeline: list[dict]) -> list[dict]:
        try:
            cursor = self._db[collection].aggregate(pipeline)
            return await cursor.to_list(length=None)
        except _DRIVER_ERRORS as exc:
            raise StorageFailure(
                f"Aggregation on {collection!r} failed: {exc}", collection
            ) from exc

    async def find(
        self,
        collection: str,
        filter: Filter,
        sort: SortSpec | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        try:
            cursor = self._db[collection].find(filter)
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(length=None)
        except _DRIVER_ERRORS as exc:
            raise StorageFailure(f"Find on {collection!r} failed: {exc}", collection) from exc

    async def aggregate_group_by_day(
        self, collection: str, filter: Filter, date_field: str
    ) -> list[dict]:
        pipeline: list[dict[str, Any]] = [
            {"$match": filter},
            {"$match": {date_field: {"$type": "date"}}},
            {
                "$group": {
                    "_id": {
                        "$dateToString": {
                            "format": "%Y-%m-%d",
                            "date": f"${date_field}",
                            "timezone": "UTC",
                        }
                    },
                    "count": {"$sum": 1},
                }
            },
            {"$sort": {"_id": 1}},
        ]
        rows = await self._aggregate(collection, pipeline)
        return [{"day": r["_id"], "count": r["count"]} for r in rows]

    async def aggregate_group_by(
        self, collection: str, filter: Filter, field: str
    ) -> list[dict]:
        pipeline: list[dict[str, Any]] = [
            {"$match": filter},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        ]
        rows = await self._aggregate(collection, pipeline)
        return [{"value": r["_id"], "count": r["count"]} for r in rows]

    async def aggregate_histogram(
        self,
        collection: str,
        field: str,
        boundaries: Sequence[float],
        default: str,
    ) -> list[dict]:
        bounds = list(boundaries)
        pipeline: list[dict[str, Any]] = [
            {"$match": {field: {"$type": "number", "$gte": bounds[0]}}},
            {
                "$bucket": {
                    "groupBy": f"${field}",
                    "boundaries": bounds,
                    "default": default,
                    "output": {"count": {"$sum": 1}},
                }
            },
        ]
        rows = await self._aggregate(collection, pipeline)
        return [{"bucket": r["_id"], "count": r["count"]} for r in rows]

    async def count(self, collection: str, filter: Filter) -> int:
        try:
            return await self._db[collection].count_documents(filter)
        except _DRIVER_ERRORS as exc:
            raise StorageFailure(f"Count on {collection!r} failed: {exc}", collection) from exc
