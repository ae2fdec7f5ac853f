"""Shared fixtures and sample documents for cycle engine tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

from src.cycles.config_loader import EngineConfig, load_engine_config
from src.cycles.engine import CycleEngine
from src.cycles.memory_store import InMemoryDocumentStore

# Canonical test user, in all three historical representations
TEST_USER_HEX = "65a1f0c2e4b0a1b2c3d4e5f6"
TEST_USER_OID = ObjectId(TEST_USER_HEX)
LEGACY_USER_INT = 1042

# Fixed "now" for every engine test
TEST_NOW = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    """Load the real bundled engine config for tests."""
    return load_engine_config()


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------


def make_cycle_doc(user_id, start: datetime, cycle_length=28, period_length=5, **extra) -> dict:
    doc = {
        "_id": ObjectId(),
        "userId": user_id,
        "startDate": start,
        "cycleLength": cycle_length,
        "periodLength": period_length,
        "flow": "medium",
        "symptoms": [],
        "createdAt": start,
    }
    doc.update(extra)
    return doc


def make_user_doc(created_at: datetime, age=None, cycle_length=28, last_active=None) -> dict:
    return {
        "_id": ObjectId(),
        "email": f"user{ObjectId()}@example.com",
        "age": age,
        "cycleLength": cycle_length,
        "createdAt": created_at,
        "lastActive": last_active,
    }


def make_symptom_doc(user_id, symptom: str, created_at: datetime) -> dict:
    return {
        "_id": ObjectId(),
        "userId": user_id,
        "symptom": symptom,
        "severity": "mild",
        "date": created_at.date().isoformat(),
        "createdAt": created_at,
    }


@pytest.fixture
def cycle_docs() -> list[dict]:
    """Three cycles for the test user, newest on 2024-01-01."""
    return [
        make_cycle_doc(TEST_USER_OID, datetime(2023, 11, 6, tzinfo=timezone.utc), 28, 5),
        make_cycle_doc(TEST_USER_OID, datetime(2023, 12, 4, tzinfo=timezone.utc), 28, 4),
        make_cycle_doc(TEST_USER_OID, datetime(2024, 1, 1, tzinfo=timezone.utc), 28, 5),
    ]


@pytest.fixture
def user_docs() -> list[dict]:
    base = TEST_NOW
    return [
        make_user_doc(base - timedelta(days=1), age=18, cycle_length=28, last_active=base),
        make_user_doc(base - timedelta(days=1), age=25, cycle_length=30, last_active=base),
        make_user_doc(base - timedelta(days=3), age=29, cycle_length=28),
        make_user_doc(base - timedelta(days=20), age=34, cycle_length=26),
        make_user_doc(base - timedelta(days=200), age=52, cycle_length=None,
                      last_active=base - timedelta(days=45)),
    ]


@pytest.fixture
def symptom_docs() -> list[dict]:
    docs = []
    recent = TEST_NOW - timedelta(days=2)
    for name, n in [("cramps", 5), ("headache", 3), ("bloating", 2), ("fatigue", 1)]:
        docs.extend(make_symptom_doc(TEST_USER_OID, name, recent) for _ in range(n))
    # Outside every 7d/30d window
    docs.extend(
        make_symptom_doc(TEST_USER_OID, "acne", TEST_NOW - timedelta(days=100))
        for _ in range(9)
    )
    return docs


@pytest.fixture
def memory_store(cycle_docs, user_docs, symptom_docs) -> InMemoryDocumentStore:
    return InMemoryDocumentStore(
        {"cycles": cycle_docs, "users": user_docs, "symptoms": symptom_docs}
    )


@pytest.fixture
def engine(memory_store, engine_config) -> CycleEngine:
    return CycleEngine(memory_store, config=engine_config, clock=lambda: TEST_NOW)


# ---------------------------------------------------------------------------
# Mock Motor database
# ---------------------------------------------------------------------------


def mock_cursor(rows: list[dict]) -> MagicMock:
    """A Motor-like cursor whose chaining methods return itself."""
    cursor = MagicMock()
    cursor.sort = MagicMock(return_value=cursor)
    cursor.limit = MagicMock(return_value=cursor)
    cursor.to_list = AsyncMock(return_value=rows)
    return cursor


@pytest.fixture
def mock_collection() -> MagicMock:
    collection = MagicMock()
    collection.find = MagicMock(return_value=mock_cursor([]))
    collection.aggregate = MagicMock(return_value=mock_cursor([]))
    collection.count_documents = AsyncMock(return_value=0)
    return collection


@pytest.fixture
def mock_db(mock_collection) -> MagicMock:
    db = MagicMock()
    db.__getitem__ = MagicMock(return_value=mock_collection)
    return db
