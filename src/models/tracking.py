"""Pydantic models for user-entered tracking data: menstrual cycles and symptoms.

Raw documents from the store are validated through these models before the
engine reads them.  Identifiers come back as plain strings whatever their
stored representation, so no store-specific type leaves this layer.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from src.models.base import TimestampMixin, stringify_id


# ---------- Enums ----------

class FlowLevel(str, Enum):
    spotting = "spotting"
    light = "light"
    medium = "medium"
    heavy = "heavy"


class SymptomSeverity(str, Enum):
    mild = "mild"
    moderate = "moderate"
    severe = "severe"


# ---------- Cycles ----------

class CycleRecord(TimestampMixin):
    """One logged period / cycle.

    ``cycle_length`` and ``period_length`` are kept exactly as stored (they may
    be missing or zero on legacy documents); the engine applies the configured
    defaults when it reads them.
    """

    id: str | None = Field(default=None, alias="_id")
    user_id: str
    start_date: datetime | date
    end_date: datetime | date | None = None
    cycle_length: int | None = None
    period_length: int | None = None
    flow: FlowLevel | str | None = None
    mood: str | None = None
    symptoms: list[Any] = Field(default_factory=list)
    temperature: float | None = None
    notes: str | None = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _ids_as_strings(cls, value: Any) -> Any:
        return stringify_id(value)

    @field_validator("symptoms", mode="before")
    @classmethod
    def _symptom_refs_as_strings(cls, value: Any) -> Any:
        if value is None:
            return []
        return [stringify_id(v) if not isinstance(v, dict) else v for v in value]


# ---------- Symptoms ----------

class SymptomRecord(TimestampMixin):
    """A single symptom log entry.

    Older clients wrote the label as ``type`` or ``name`` and the strength as
    ``intensity``; all spellings are accepted.
    """

    id: str | None = Field(default=None, alias="_id")
    user_id: str
    symptom: str = Field(validation_alias=AliasChoices("symptom", "type", "name"))
    severity: SymptomSeverity | int | str | None = Field(
        default=None, validation_alias=AliasChoices("severity", "intensity")
    )
    logged_on: datetime | date | str | None = Field(default=None, alias="date")
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _ids_as_strings(cls, value: Any) -> Any:
        return stringify_id(value)
