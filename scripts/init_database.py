#!/usr/bin/env python3
"""Initialize database tables and the default system settings row."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from mlm_app.config.settings import settings
from mlm_app.initialization import create_engine, create_session_maker, init_models
from mlm_app.services.settings_service import SystemSettingsService

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level=settings.log_level)


async def init_database() -> None:
    """Create all database tables."""
    logger.info("Connecting to database...")
    engine = create_engine()

    logger.info("Creating tables (checkfirst=True)...")
    await init_models(engine)

    session_maker = create_session_maker(engine)
    async with session_maker() as session:
        system_settings = await SystemSettingsService(session).get_settings()
        logger.info(f"System settings ready: {system_settings!r}")

    await engine.dispose()
    logger.success("Database tables created successfully!")


if __name__ == "__main__":
    asyncio.run(init_database())
