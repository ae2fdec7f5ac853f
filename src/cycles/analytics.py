"""Admin analytics aggregation pipeline.

Four independent aggregate views over raw event collections, each built on
one grouping primitive of the ``DocumentStore``:

- ``growth_series``            — documents per UTC day inside a window (sparse)
- ``categorical_distribution`` — documents per distinct field value, all time
- ``frequency_ranking``        — top-N field values inside a window
- ``range_histogram``          — numeric field bucketed by fixed boundaries

The store does the grouping; this module owns ordering, truncation and
labelling so every store implementation produces identical output.

Windows come from symbolic range tokens (``7d``, ``30d``, ``90d``, ``1y``);
unknown tokens quietly mean the configured default (``30d``).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Sequence

from src.cycles.base import DateWindow, DocumentStore, as_utc, bson_sort_key
from src.cycles.config_loader import AnalyticsConfig, get_engine_config
from src.cycles.errors import InvalidParameter
from src.models.insights import AnalyticsBucket

logger = logging.getLogger("mimos.cycles.analytics")


def _years_back(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return moment.replace(year=moment.year - years, day=28)


def resolve_window(
    range_token: str | None,
    now: datetime | None = None,
    config: AnalyticsConfig | None = None,
) -> DateWindow:
    """Turn a range token into a concrete ``[start, end]`` window ending now.

    Args:
        range_token: ``7d``, ``30d``, ``90d`` or ``1y``.  Anything else,
                     including None, falls back to the default range.
        now:         Window end (defaults to now, UTC).
        config:      Analytics settings (defaults to the global config).
    """
    cfg = config or get_engine_config().analytics
    end = as_utc(now) if now is not None else datetime.now(timezone.utc)

    if range_token not in cfg.ranges:
        logger.debug(
            "Unknown range token %r, using %s", range_token, cfg.default_range
        )
    spec = cfg.range_spec(range_token)

    start = end - timedelta(days=spec.days)
    if spec.years:
        start = _years_back(start, spec.years)
    return DateWindow(start=start, end=end)


async def growth_series(
    store: DocumentStore,
    collection: str,
    date_field: str,
    window: DateWindow,
) -> list[AnalyticsBucket]:
    """Count documents created per UTC day inside ``window``.

    Days without documents are omitted; callers wanting a dense series must
    backfill zeros themselves.
    """
    rows = await store.aggregate_group_by_day(
        collection, window.as_filter(date_field), date_field
    )
    buckets = [AnalyticsBucket(key=r["day"], count=r["count"]) for r in rows]
    buckets.sort(key=lambda b: b.key)
    return buckets


async def categorical_distribution(
    store: DocumentStore,
    collection: str,
    field: str,
) -> list[AnalyticsBucket]:
    """Count every document per distinct raw value of ``field``, ascending by value."""
    rows = await store.aggregate_group_by(collection, {}, field)
    rows = sorted(rows, key=lambda r: bson_sort_key(r["value"]))
    return [AnalyticsBucket(key=_as_key(r["value"]), count=r["count"]) for r in rows]


async def frequency_ranking(
    store: DocumentStore,
    collection: str,
    field: str,
    window: DateWindow,
    date_field: str,
    limit: int = 10,
) -> list[AnalyticsBucket]:
    """Return the ``limit`` most frequent values of ``field`` inside ``window``.

    Sorted by count descending.  Rows with equal counts keep whatever order
    the store emitted them in.
    """
    if limit <= 0:
        raise InvalidParameter(f"limit must be positive, got {limit}")
    rows = await store.aggregate_group_by(
        collection, window.as_filter(date_field), field
    )
    rows = sorted(rows, key=lambda r: r["count"], reverse=True)[:limit]
    return [AnalyticsBucket(key=_as_key(r["value"]), count=r["count"]) for r in rows]


def bucket_label(lower: float | str, width: int = 4) -> str:
    """Display label for a histogram bucket: ``"30-34"`` or the sentinel as-is.

    The upper bound is ``lower + width`` whatever the real boundary spacing;
    it is a display convention.
    """
    if isinstance(lower, str):
        return lower
    if isinstance(lower, float) and lower.is_integer():
        lower = int(lower)
    return f"{lower}-{lower + width}"


async def range_histogram(
    store: DocumentStore,
    collection: str,
    field: str,
    boundaries: Sequence[float],
    sentinel: str = "50+",
    label_width: int = 4,
) -> list[AnalyticsBucket]:
    """Bucket numeric ``field`` into half-open ``[b_i, b_i+1)`` ranges.

    Values at or above the last boundary land in the ``sentinel`` bucket.
    One row per populated bucket, ascending, sentinel last.

    Raises:
        InvalidParameter: If ``boundaries`` is not strictly ascending with at
                          least two entries.
    """
    bounds = list(boundaries)
    if len(bounds) < 2 or any(a >= b for a, b in zip(bounds, bounds[1:])):
        raise InvalidParameter(
            f"boundaries must be strictly ascending with 2+ entries, got {bounds}"
        )
    rows = await store.aggregate_histogram(collection, field, bounds, sentinel)
    return [
        AnalyticsBucket(key=bucket_label(r["bucket"], label_width), count=r["count"])
        for r in rows
    ]


def _as_key(value: object) -> str | int | float | None:
    if value is None or (isinstance(value, (str, int, float)) and not isinstance(value, bool)):
        return value
    return str(value)
