"""Calendar arithmetic for cycle predictions.

Pure functions: given a last-period start date, a cycle length and "now",
compute the current cycle day, the next expected period and the ovulation
date.  Every date is reduced to its UTC calendar day first, so a period
logged late in the evening in one timezone lands on the same day number
everywhere.

"Now" is injectable for tests and replays; it defaults to the current UTC
instant.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Union

from src.cycles.errors import InvalidParameter
from src.models.insights import CyclePrediction

logger = logging.getLogger("mimos.cycles.cycle_math")

DateLike = Union[date, datetime, str]


def to_utc_date(value: DateLike) -> date:
    """Reduce ``value`` to a UTC calendar day.

    Naive datetimes are taken to be UTC already.  Strings are parsed as
    ISO-8601 dates or datetimes (a trailing ``Z`` is accepted).

    Raises:
        InvalidParameter: If ``value`` is not a date or cannot be parsed.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return to_utc_date(datetime.fromisoformat(text))
        except ValueError as exc:
            raise InvalidParameter(f"Malformed date: {value!r}") from exc
    raise InvalidParameter(f"Expected a date, got {type(value).__name__}")


def _check_cycle_length(cycle_length: object) -> int:
    if isinstance(cycle_length, bool) or not isinstance(cycle_length, int):
        raise InvalidParameter(f"cycle_length must be an integer, got {cycle_length!r}")
    if cycle_length <= 0:
        raise InvalidParameter(f"cycle_length must be positive, got {cycle_length}")
    return cycle_length


def cycle_day(
    last_period_start: DateLike,
    cycle_length: int,
    now: DateLike | None = None,
) -> int:
    """Return the 1-indexed day of the current cycle.

    Whole days elapsed since ``last_period_start`` are wrapped by
    ``cycle_length``, so the result stays in ``[1, cycle_length]`` even when
    several cycles went unlogged or the start date lies in the future.

    Raises:
        InvalidParameter: Non-positive ``cycle_length`` or malformed date.
    """
    length = _check_cycle_length(cycle_length)
    start = to_utc_date(last_period_start)
    today = to_utc_date(now if now is not None else datetime.now(timezone.utc))
    elapsed = (today - start).days
    # Python's % is floored: negative elapsed still lands in [0, length)
    return elapsed % length + 1


def next_period(last_period_start: DateLike, cycle_length: int) -> date:
    """Return the expected start of the next period."""
    length = _check_cycle_length(cycle_length)
    return to_utc_date(last_period_start) + timedelta(days=length)


def ovulation_date(last_period_start: DateLike, cycle_length: int) -> date:
    """Return the expected ovulation day, halfway through the cycle (rounded down)."""
    length = _check_cycle_length(cycle_length)
    return to_utc_date(last_period_start) + timedelta(days=length // 2)


def predict(
    last_period_start: DateLike,
    cycle_length: int,
    now: DateLike | None = None,
) -> CyclePrediction:
    """Bundle the three calendar computations into one prediction.

    Args:
        last_period_start: First day of the most recent logged period.
        cycle_length:      Cycle length in days (already defaulted by the caller).
        now:               Reference instant (defaults to now, UTC).

    Returns:
        CyclePrediction for the cycle anchored at ``last_period_start``.
    """
    start = to_utc_date(last_period_start)
    prediction = CyclePrediction(
        current_cycle_day=cycle_day(start, cycle_length, now),
        next_period_date=next_period(start, cycle_length),
        ovulation_date=ovulation_date(start, cycle_length),
        cycle_length=cycle_length,
        last_period_start=start,
    )
    logger.debug(
        "Predicted day %d of %d (anchor %s)",
        prediction.current_cycle_day,
        cycle_length,
        start,
    )
    return prediction
