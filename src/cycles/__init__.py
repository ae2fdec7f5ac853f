"""Mimos cycle prediction and analytics engine.

Modules:
    cycle_math     — Cycle day, next period and ovulation date arithmetic
    identifiers    — User id resolution across ObjectId / string / int forms
    analytics      — Admin aggregation pipeline (growth, distribution, ranking, histogram)
    engine         — CycleEngine facade consumed by the handler layer
    base           — DocumentStore contract
    memory_store   — In-process DocumentStore for tests and local development
    config_loader  — Load/validate/hot-reload cycle_config.yaml
    errors         — InvalidParameter / NotFound / StorageFailure
"""

from src.cycles.base import DateWindow, DocumentStore
from src.cycles.config_loader import EngineConfig, get_engine_config
from src.cycles.engine import CycleEngine
from src.cycles.errors import (
    CycleEngineError,
    InvalidParameter,
    NotFound,
    StorageFailure,
)

__all__ = [
    "CycleEngine",
    "DocumentStore",
    "DateWindow",
    "EngineConfig",
    "get_engine_config",
    "CycleEngineError",
    "InvalidParameter",
    "NotFound",
    "StorageFailure",
]
