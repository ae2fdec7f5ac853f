"""Storage contract consumed by the cycle engine.

The engine never talks to a database driver directly.  It issues read
queries through a ``DocumentStore``: a find primitive, three grouping
primitives and a counter.  ``src.services.mongo.MongoDocumentStore`` is the
production implementation; ``src.cycles.memory_store.InMemoryDocumentStore``
serves tests and local development.

Filters use a small subset of the Mongo query dialect::

    {"userId": ObjectId("...")}                          # equality
    {"createdAt": {"$gte": start, "$lte": end}}          # ranges

Every implementation must raise ``StorageFailure`` (never a driver
exception) when the backend fails.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Sequence

from bson import ObjectId

Filter = dict[str, Any]
SortSpec = Sequence[tuple[str, int]]

ASCENDING = 1
DESCENDING = -1


def bson_sort_key(value: Any) -> tuple:
    """Sort key reproducing Mongo's cross-type ordering for common values.

    Null sorts first, then numbers, strings, ObjectIds, booleans and dates.
    Naive datetimes are taken as UTC.
    """
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (8, value)
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    if isinstance(value, ObjectId):
        return (7, value.binary)
    if isinstance(value, datetime):
        return (9, as_utc(value))
    if isinstance(value, date):
        return (9, datetime.combine(value, time.min, tzinfo=timezone.utc))
    return (3, repr(value))


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class DateWindow:
    """A closed ``[start, end]`` interval of UTC instants."""

    start: datetime
    end: datetime

    def as_filter(self, date_field: str) -> Filter:
        return {date_field: {"$gte": self.start, "$lte": self.end}}


class DocumentStore(ABC):
    """Read-side primitives the engine needs from a document store."""

    @abstractmethod
    async def find(
        self,
        collection: str,
        filter: Filter,
        sort: SortSpec | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Return matching documents, optionally sorted and truncated."""

    @abstractmethod
    async def aggregate_group_by_day(
        self, collection: str, filter: Filter, date_field: str
    ) -> list[dict]:
        """Count matching documents per UTC day of ``date_field``.

        Returns:
            ``[{"day": "YYYY-MM-DD", "count": n}, ...]`` ascending by day,
            only days with at least one document.
        """

    @abstractmethod
    async def aggregate_group_by(
        self, collection: str, filter: Filter, field: str
    ) -> list[dict]:
        """Count matching documents per distinct raw value of ``field``.

        Returns:
            ``[{"value": v, "count": n}, ...]`` in no guaranteed order.
        """

    @abstractmethod
    async def aggregate_histogram(
        self,
        collection: str,
        field: str,
        boundaries: Sequence[float],
        default: str,
    ) -> list[dict]:
        """Bucket numeric ``field`` values into ``[b_i, b_i+1)`` ranges.

        Only numeric values ``>= boundaries[0]`` are bucketed; values at or
        above the last boundary go to the ``default`` bucket.

        Returns:
            ``[{"bucket": lower_bound_or_default, "count": n}, ...]`` for
            populated buckets, ascending, default bucket last.
        """

    @abstractmethod
    async def count(self, collection: str, filter: Filter) -> int:
        """Return the number of matching documents."""
