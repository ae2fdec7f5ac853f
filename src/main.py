"""Mimos engine bootstrap.

Wires settings, logging, the Mongo client and the cycle engine together for
whatever host process serves the handler layer::

    async with engine_lifespan() as engine:
        status = await engine.get_user_cycle_status(user_id)
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from src.config import Settings, get_settings
from src.cycles.config_loader import get_engine_config, load_engine_config
from src.cycles.engine import CycleEngine
from src.services.mongo import MongoDocumentStore, close_client, get_database, init_client

logger = logging.getLogger("mimos")


# ---------- Logging ----------

def log_level_for(settings: Settings) -> str:
    """DEBUG forces debug logging regardless of LOG_LEVEL."""
    return "DEBUG" if settings.debug else settings.log_level.upper()


def configure_logging(settings: Settings | None = None) -> None:
    s = settings or get_settings()
    logging.basicConfig(
        level=log_level_for(s),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


# ---------- Engine factory ----------

def create_engine(settings: Settings | None = None) -> CycleEngine:
    """Build a CycleEngine over the already-initialized Mongo client."""
    s = settings or get_settings()
    config = (
        load_engine_config(s.cycle_config_path)
        if s.cycle_config_path
        else get_engine_config()
    )
    return CycleEngine(MongoDocumentStore(get_database(s)), config=config)


@asynccontextmanager
async def engine_lifespan(
    settings: Settings | None = None,
) -> AsyncGenerator[CycleEngine, None]:
    """Startup / shutdown hooks around one engine instance."""
    s = settings or get_settings()
    configure_logging(s)
    logger.info("Starting %s engine v%s [%s]", s.app_name, s.app_version, s.environment)
    init_client(s)
    try:
        yield create_engine(s)
    finally:
        close_client()
        logger.info("%s engine shut down", s.app_name)
