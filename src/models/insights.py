"""Result models returned by the cycle engine to the handler layer.

None of these are persisted; they are recomputed on every request.
``model_dump(by_alias=True, mode="json")`` yields the camelCase payload the
dashboard consumes.
"""

from __future__ import annotations

from datetime import date

from pydantic import Field

from src.models.base import MimosBase


class CyclePrediction(MimosBase):
    """Where a user is in her cycle and what comes next."""

    current_cycle_day: int = Field(ge=1)
    next_period_date: date
    ovulation_date: date
    cycle_length: int = Field(ge=1)
    last_period_start: date


class AnalyticsBucket(MimosBase):
    """One aggregated row: an ISO day, a categorical value or a range label."""

    key: str | int | float | None
    count: int = Field(ge=0)


class AdminAnalytics(MimosBase):
    user_growth: list[AnalyticsBucket] = Field(default_factory=list)
    cycle_distribution: list[AnalyticsBucket] = Field(default_factory=list)
    symptom_frequency: list[AnalyticsBucket] = Field(default_factory=list)
    age_histogram: list[AnalyticsBucket] = Field(default_factory=list)


class UserCycleStats(MimosBase):
    cycles_tracked: int = Field(ge=0)
    avg_cycle_length: int
    avg_period_length: int


class AdminStats(MimosBase):
    total_users: int = Field(ge=0)
    active_users: int = Field(ge=0)
    total_cycles: int = Field(ge=0)
    total_symptoms: int = Field(ge=0)
