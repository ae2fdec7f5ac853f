"""Shared Pydantic base models and utilities."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def stringify_id(value: Any) -> Any:
    """Render store identifiers (ObjectId, int) as plain strings."""
    if value is None or isinstance(value, str):
        return value
    return str(value)


class MimosBase(BaseModel):
    """Base model with shared config for all Mimos schemas.

    Fields are snake_case in Python and camelCase in stored documents and
    serialized output (``model_dump(by_alias=True)``).
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        extra="ignore",
    )


class TimestampMixin(MimosBase):
    created_at: datetime | None = None
    updated_at: datetime | None = None
