"""Cycle engine facade.

Composes calendar arithmetic, identifier resolution and the analytics
pipeline into the operations the handler layer calls.  Inputs are plain
scalars; outputs are the Pydantic models in ``src.models.insights`` and
``src.models.tracking``; no driver type crosses this boundary.

Every operation is a read.  A ``CycleEngine`` holds no per-request state and
may be shared by concurrent tasks.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Coroutine

from pydantic import ValidationError

from src.cycles import analytics
from src.cycles.base import DESCENDING, DocumentStore, as_utc
from src.cycles.config_loader import EngineConfig, get_engine_config
from src.cycles.cycle_math import predict
from src.cycles.errors import InvalidParameter, NotFound
from src.cycles.identifiers import resolve_and_query, user_filter
from src.models.insights import (
    AdminAnalytics,
    AdminStats,
    CyclePrediction,
    UserCycleStats,
)
from src.models.tracking import CycleRecord

logger = logging.getLogger("mimos.cycles.engine")

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


async def _run_all(*coros: Coroutine[Any, Any, Any]) -> list[Any]:
    """Await ``coros`` concurrently; the first failure cancels the rest.

    The first exception is re-raised unwrapped so callers see the same
    ``StorageFailure`` they would from a single query.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except ExceptionGroup as eg:
        raise eg.exceptions[0]
    return [task.result() for task in tasks]


class CycleEngine:
    """Per-user predictions and admin analytics over a ``DocumentStore``.

    Usage::

        engine = CycleEngine(MongoDocumentStore(get_database()))
        status = await engine.get_user_cycle_status("65a1f0c2e4b0a1b2c3d4e5f6")
        status.next_period_date
        report = await engine.get_admin_analytics("7d")
    """

    def __init__(
        self,
        store: DocumentStore,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._config = config or get_engine_config()
        self._clock = clock or _utc_now

    @property
    def config(self) -> EngineConfig:
        return self._config

    def _now(self) -> datetime:
        return as_utc(self._clock())

    # ------------------------------------------------------------------
    # Per-user
    # ------------------------------------------------------------------

    async def _user_cycle_docs(self, user_id: str, limit: int | None = None) -> list[dict]:
        cols = self._config.collections
        fields = self._config.fields

        async def query(representation: Any) -> list[dict]:
            return await self._store.find(
                cols.cycles,
                user_filter(representation, fields.user_id),
                sort=[(fields.cycle_start, DESCENDING)],
                limit=limit,
            )

        return await resolve_and_query(user_id, query)

    async def get_user_cycles(
        self, user_id: str, limit: int | None = None
    ) -> list[CycleRecord]:
        """Return the user's cycle records, newest first."""
        docs = await self._user_cycle_docs(user_id, limit)
        try:
            return [CycleRecord.model_validate(d) for d in docs]
        except ValidationError as exc:
            raise InvalidParameter(f"Malformed cycle record for user {user_id}: {exc}") from exc

    async def get_user_cycle_status(self, user_id: str) -> CyclePrediction:
        """Predict the user's current cycle day, next period and ovulation.

        Uses the most recent cycle record; a missing or non-positive cycle
        length is replaced by the configured default.

        Raises:
            NotFound:        The user has no cycle records.
            InvalidParameter: The stored start date is unusable.
            StorageFailure:  Every lookup attempt failed.
        """
        cycles = await self.get_user_cycles(user_id, limit=1)
        if not cycles:
            raise NotFound(f"No cycle records for user {user_id}")

        latest = cycles[0]
        length = self._config.defaults.effective_cycle_length(latest.cycle_length)
        if length != latest.cycle_length:
            logger.debug(
                "Cycle %s has cycle_length=%r, using default %d",
                latest.id,
                latest.cycle_length,
                length,
            )
        return predict(latest.start_date, length, now=self._now())

    async def get_user_cycle_stats(self, user_id: str) -> UserCycleStats:
        """Summarise every cycle the user has logged.

        Averages count missing lengths as the configured defaults and round
        half up.  A user without cycles gets the defaults and a zero count.
        """
        defaults = self._config.defaults
        cycles = await self.get_user_cycles(user_id)
        if not cycles:
            return UserCycleStats(
                cycles_tracked=0,
                avg_cycle_length=defaults.cycle_length,
                avg_period_length=defaults.period_length,
            )

        cycle_total = sum(defaults.effective_cycle_length(c.cycle_length) for c in cycles)
        period_total = sum(defaults.effective_period_length(c.period_length) for c in cycles)
        return UserCycleStats(
            cycles_tracked=len(cycles),
            avg_cycle_length=_round_half_up(cycle_total / len(cycles)),
            avg_period_length=_round_half_up(period_total / len(cycles)),
        )

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def get_admin_analytics(self, range_token: str | None = None) -> AdminAnalytics:
        """Build the four admin dashboard series for ``range_token``.

        Empty collections give empty series; only store failures propagate.
        """
        cfg = self._config
        window = analytics.resolve_window(range_token, now=self._now(), config=cfg.analytics)
        logger.debug("Admin analytics for %r: %s → %s", range_token, window.start, window.end)

        growth, distribution, frequency, histogram = await _run_all(
            analytics.growth_series(
                self._store, cfg.collections.users, cfg.fields.created_at, window
            ),
            analytics.categorical_distribution(
                self._store, cfg.collections.users, cfg.fields.cycle_length
            ),
            analytics.frequency_ranking(
                self._store,
                cfg.collections.symptoms,
                cfg.fields.symptom,
                window,
                date_field=cfg.fields.created_at,
                limit=cfg.analytics.top_n,
            ),
            analytics.range_histogram(
                self._store,
                cfg.collections.users,
                cfg.fields.age,
                cfg.analytics.age_boundaries,
                sentinel=cfg.analytics.histogram_sentinel,
                label_width=cfg.analytics.histogram_label_width,
            ),
        )
        return AdminAnalytics(
            user_growth=growth,
            cycle_distribution=distribution,
            symptom_frequency=frequency,
            age_histogram=histogram,
        )

    async def get_admin_stats(self) -> AdminStats:
        """Headline counters for the admin dashboard."""
        cfg = self._config
        active_since = self._now() - timedelta(days=cfg.analytics.active_user_days)

        total_users, active_users, total_cycles, total_symptoms = await _run_all(
            self._store.count(cfg.collections.users, {}),
            self._store.count(
                cfg.collections.users, {cfg.fields.last_active: {"$gte": active_since}}
            ),
            self._store.count(cfg.collections.cycles, {}),
            self._store.count(cfg.collections.symptoms, {}),
        )
        return AdminStats(
            total_users=total_users,
            active_users=active_users,
            total_cycles=total_cycles,
            total_symptoms=total_symptoms,
        )
