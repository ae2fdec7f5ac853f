"""In-process ``DocumentStore`` backed by plain lists of dicts.

Mirrors the Mongo semantics the engine relies on (typed equality, range
operators, BSON cross-type ordering, ``$bucket`` style histograms) closely
enough for unit tests and local development without a database.
"""

from __future__ import annotations

import bisect
import copy
import logging
from collections import Counter
from datetime import date, datetime
from typing import Any, Iterable, Sequence

from src.cycles.base import (
    DocumentStore,
    Filter,
    SortSpec,
    as_utc,
    bson_sort_key,
)

logger = logging.getLogger("mimos.cycles.memory_store")

_RANGE_OPS = {
    "$gte": lambda a, b: a >= b,
    "$gt": lambda a, b: a > b,
    "$lte": lambda a, b: a <= b,
    "$lt": lambda a, b: a < b,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _comparable(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value)
    return value


def _equals(stored: Any, wanted: Any) -> bool:
    # bools never equal numbers in BSON
    if isinstance(stored, bool) != isinstance(wanted, bool):
        return False
    return _comparable(stored) == _comparable(wanted)


def _matches_condition(stored: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        for op, operand in condition.items():
            if op not in _RANGE_OPS:
                raise ValueError(f"Unsupported query operator: {op}")
            if stored is None:
                return False
            try:
                if not _RANGE_OPS[op](_comparable(stored), _comparable(operand)):
                    return False
            except TypeError:
                # Mongo range operators only match values of the same type
                return False
        return True
    return _equals(stored, condition)


def matches(document: dict, filter: Filter) -> bool:
    """Return True if ``document`` satisfies every clause of ``filter``."""
    return all(
        _matches_condition(document.get(field), condition)
        for field, condition in filter.items()
    )


def _hashable(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_hashable(v) for v in value)
    if isinstance(value, dict):
        return tuple(sorted((k, _hashable(v)) for k, v in value.items()))
    return value


class InMemoryDocumentStore(DocumentStore):
    """Dict-of-lists document store.

    Usage::

        store = InMemoryDocumentStore({"cycles": [{"userId": oid, "startDate": d}]})
        rows = await store.find("cycles", {"userId": oid})
    """

    def __init__(self, collections: dict[str, Iterable[dict]] | None = None) -> None:
        self._collections: dict[str, list[dict]] = {
            name: [dict(doc) for doc in docs] for name, docs in (collections or {}).items()
        }

    def insert_many(self, collection: str, documents: Iterable[dict]) -> None:
        self._collections.setdefault(collection, []).extend(dict(d) for d in documents)

    def _select(self, collection: str, filter: Filter) -> list[dict]:
        return [d for d in self._collections.get(collection, []) if matches(d, filter)]

    async def find(
        self,
        collection: str,
        filter: Filter,
        sort: SortSpec | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        rows = self._select(collection, filter)
        # Apply the least significant key first; list.sort is stable
        for field, direction in reversed(list(sort or [])):
            rows.sort(key=lambda d: bson_sort_key(d.get(field)), reverse=direction < 0)
        if limit:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def aggregate_group_by_day(
        self, collection: str, filter: Filter, date_field: str
    ) -> list[dict]:
        counts: Counter[str] = Counter()
        for doc in self._select(collection, filter):
            value = doc.get(date_field)
            if isinstance(value, datetime):
                counts[as_utc(value).date().isoformat()] += 1
            elif isinstance(value, date):
                counts[value.isoformat()] += 1
        return [{"day": day, "count": n} for day, n in sorted(counts.items())]

    async def aggregate_group_by(
        self, collection: str, filter: Filter, field: str
    ) -> list[dict]:
        counts: dict[Any, int] = {}
        firsts: dict[Any, Any] = {}
        for doc in self._select(collection, filter):
            value = doc.get(field)
            key = (isinstance(value, bool), _hashable(_comparable(value)))
            if key not in counts:
                counts[key] = 0
                firsts[key] = value
            counts[key] += 1
        return [{"value": firsts[k], "count": n} for k, n in counts.items()]

    async def aggregate_histogram(
        self,
        collection: str,
        field: str,
        boundaries: Sequence[float],
        default: str,
    ) -> list[dict]:
        bounds = list(boundaries)
        counts: Counter[int] = Counter()
        overflow = 0
        for doc in self._collections.get(collection, []):
            value = doc.get(field)
            if not _is_number(value) or value < bounds[0]:
                continue
            index = bisect.bisect_right(bounds, value) - 1
            if index >= len(bounds) - 1:
                overflow += 1
            else:
                counts[index] += 1

        rows: list[dict] = [
            {"bucket": bounds[i], "count": counts[i]} for i in sorted(counts)
        ]
        if overflow:
            rows.append({"bucket": default, "count": overflow})
        return rows

    async def count(self, collection: str, filter: Filter) -> int:
        return len(self._select(collection, filter))
