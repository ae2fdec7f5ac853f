"""User identifier resolution across historical storage representations.

The same logical user shows up in dependent collections as a BSON
``ObjectId``, as that id's 24-hex string, or (the oldest records) as a bare
integer.  ``resolve_and_query`` hides that behind a single call: it tries each
plausible representation in priority order and returns the first non-empty
result.

New writes must always use ``canonical_user_id``.  Matches through the
string or integer forms are logged at WARNING so the remaining unmigrated
data can be found; once it is gone this fallback chain can be deleted.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable

from bson import ObjectId
from bson.errors import InvalidId

from src.cycles.errors import InvalidParameter, StorageFailure

logger = logging.getLogger("mimos.cycles.identifiers")

_OBJECT_ID_RE = re.compile(r"^[0-9a-f]{24}$")
_INTEGER_RE = re.compile(r"^-?[0-9]+$")

# BSON integers are signed 64-bit; anything wider can never be stored.
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

QueryFn = Callable[[Any], Awaitable[list[dict]]]


def canonical_user_id(raw_id: str | ObjectId) -> ObjectId:
    """Return the one representation new records must be written with.

    Raises:
        InvalidParameter: If ``raw_id`` is not a 24-hex ObjectId.
    """
    if isinstance(raw_id, ObjectId):
        return raw_id
    if not isinstance(raw_id, str) or not _OBJECT_ID_RE.match(raw_id):
        raise InvalidParameter(f"Not a canonical user id: {raw_id!r}")
    return ObjectId(raw_id)


def candidate_representations(raw_id: str) -> list[Any]:
    """Return the representations of ``raw_id`` worth querying, best first.

    1. ``ObjectId`` when ``raw_id`` is 24 lowercase hex characters.
    2. The raw string, always.
    3. ``int`` when ``raw_id`` is a base-10 integer literal that fits in a
       signed 64-bit BSON integer.
    """
    candidates: list[Any] = []
    if _OBJECT_ID_RE.match(raw_id):
        try:
            candidates.append(ObjectId(raw_id))
        except InvalidId:
            logger.debug("Skipping ObjectId form of %r: parse failed", raw_id)
    candidates.append(raw_id)
    if _INTEGER_RE.match(raw_id):
        value = int(raw_id)
        if _INT64_MIN <= value <= _INT64_MAX:
            candidates.append(value)
        else:
            logger.debug("Skipping integer form of %r: outside int64", raw_id)
    return candidates


def user_filter(representation: Any, field: str = "userId") -> dict:
    return {field: representation}


async def resolve_and_query(raw_id: str, query_fn: QueryFn) -> list[dict]:
    """Run ``query_fn`` against each representation of ``raw_id`` until one hits.

    A ``StorageFailure`` for one representation counts as "no rows" for it and
    the next one is tried.  Only when every attempt failed is the last failure
    re-raised.

    Args:
        raw_id:   User identifier as received from the caller.
        query_fn: Async callable taking one representation and returning rows.

    Returns:
        The first non-empty row list, or ``[]`` if no representation matched.

    Raises:
        StorageFailure: If every attempted representation failed.
    """
    raw_id = str(raw_id)
    attempts = candidate_representations(raw_id)
    last_failure: StorageFailure | None = None
    failures = 0

    for representation in attempts:
        kind = type(representation).__name__
        try:
            rows = await query_fn(representation)
        except StorageFailure as exc:
            failures += 1
            last_failure = exc
            logger.warning("Lookup of %r as %s failed: %s", raw_id, kind, exc)
            continue

        if rows:
            if not isinstance(representation, ObjectId):
                logger.warning(
                    "legacy identifier representation: %r matched %d row(s) as %s",
                    raw_id,
                    len(rows),
                    kind,
                )
            return rows
        logger.debug("Lookup of %r as %s returned no rows", raw_id, kind)

    if last_failure is not None and failures == len(attempts):
        raise last_failure
    return []
