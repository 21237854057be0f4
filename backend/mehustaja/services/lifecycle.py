"""Application startup / shutdown.

Used as FastAPI's lifespan:

    from mehustaja.services.lifecycle import lifespan
    app = FastAPI(lifespan=lifespan, ...)

On startup: configure logging, create missing tables, start the event
bus (the Redis bus opens its subscription here).  On shutdown: stop the
bus and dispose of the connection pool.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mehustaja.config import settings
from mehustaja.database import create_tables, engine
from mehustaja.deps import get_event_bus

logger = logging.getLogger("mehustaja.lifecycle")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await create_tables()

    bus = get_event_bus()
    await bus.start()
    logger.info("Event bus started (%s)", settings.event_backend)
    try:
        yield
    finally:
        await bus.stop()
        await engine.dispose()
        logger.info("Event bus stopped, database pool closed")
