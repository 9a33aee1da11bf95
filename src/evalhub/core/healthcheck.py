# evalhub/core/healthcheck.py
from __future__ import annotations

import logging

from sqlalchemy import text

from evalhub.db.engine import get_engine

logger = logging.getLogger(__name__)


async def is_healthy() -> bool:
    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.debug("Database connectivity: OK")
    except Exception as exc:
        logger.error("Database connectivity failed: %s", exc)
        return False

    return True
