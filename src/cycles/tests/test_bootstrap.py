"""Tests for settings and the engine bootstrap in src.main."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.config import Settings
from src.cycles.engine import CycleEngine
from src.main import create_engine, engine_lifespan, log_level_for
from src.services import mongo
from src.services.mongo import MongoDocumentStore, close_client, get_client, init_client


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.setenv("MONGODB_DB", "mimos_test")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    return Settings(_env_file=None)


class TestSettings:
    def test_environment_overrides(self, settings: Settings) -> None:
        assert settings.mongodb_db == "mimos_test"
        assert settings.mongodb_uri == "mongodb://localhost:27017"
        assert settings.cycle_config_path is None

    def test_defaults(self) -> None:
        s = Settings(_env_file=None)
        assert s.app_name == "Mimos"
        assert s.mongodb_timeout_ms == 5000

    def test_log_level_from_env(self, settings: Settings) -> None:
        assert log_level_for(settings) == "DEBUG"
        settings.log_level = "warning"
        assert log_level_for(settings) == "WARNING"

    def test_debug_flag_forces_debug_logging(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert log_level_for(Settings(_env_file=None)) == "DEBUG"


class TestMongoClientLifecycle:
    def test_get_client_before_init_raises(self) -> None:
        close_client()
        with pytest.raises(RuntimeError, match="not initialized"):
            get_client()

    @pytest.mark.asyncio
    async def test_init_and_close(self, settings: Settings) -> None:
        client = init_client(settings)
        try:
            assert get_client() is client
            assert mongo.get_database(settings).name == "mimos_test"
        finally:
            close_client()
        assert mongo._client is None


class TestEngineFactory:
    @pytest.mark.asyncio
    async def test_create_engine_uses_bundled_config(self, settings: Settings) -> None:
        init_client(settings)
        try:
            engine = create_engine(settings)
        finally:
            close_client()
        assert isinstance(engine, CycleEngine)
        assert engine.config.defaults.cycle_length == 28

    @pytest.mark.asyncio
    async def test_create_engine_with_config_override(
        self, settings: Settings, tmp_path: Path
    ) -> None:
        path = tmp_path / "cycle_config.yaml"
        path.write_text(
            'cycle_defaults: {cycle_length: 32}\n'
            'analytics: {ranges: {"30d": {days: 30}}}\n'
        )
        settings.cycle_config_path = path
        init_client(settings)
        try:
            engine = create_engine(settings)
        finally:
            close_client()
        assert engine.config.defaults.cycle_length == 32

    @pytest.mark.asyncio
    async def test_lifespan_opens_and_closes_client(self, settings: Settings) -> None:
        async with engine_lifespan(settings) as engine:
            assert isinstance(engine, CycleEngine)
            assert isinstance(engine._store, MongoDocumentStore)
            assert mongo._client is not None
        assert mongo._client is None
