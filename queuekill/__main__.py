"""
Process entry point: ``python -m queuekill``.

Exits 1 when the database is unreachable at startup or on an uncaught
exception. SIGTERM / SIGINT are handled by uvicorn, which stops the
listener and runs the lifespan shutdown (closing the database) before
exiting 0.
"""

from __future__ import annotations

import asyncio
import logging
import sys

import uvicorn
from sqlalchemy import text

from queuekill.core.config import settings
from queuekill.db.session import engine
from queuekill.main import asgi_app

logger = logging.getLogger("queuekill")


async def _check_database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    # The server runs on its own event loop; drop connections made here
    await engine.dispose()


def _log_uncaught(exc_type, exc, tb) -> None:
    # The interpreter still exits with status 1 afterwards
    logger.critical("Uncaught exception", exc_info=(exc_type, exc, tb))


def main() -> None:
    sys.excepthook = _log_uncaught

    try:
        asyncio.run(_check_database())
    except Exception as e:
        logger.error("❌ Failed to connect to database: %s", e)
        sys.exit(1)
    logger.info("✅ Connected to database")

    uvicorn.run(
        asgi_app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
