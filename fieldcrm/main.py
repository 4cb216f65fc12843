"""FieldCRM API process: logging, database, analytics bus and HTTP routes.

Usage:
    python -m fieldcrm.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from fieldcrm.analytics.events import start_event_system, stop_event_system, subscribe, unsubscribe
from fieldcrm.analytics.recorder import persist_analytics_event
from fieldcrm.api.appointments import router as appointments_router
from fieldcrm.config import settings
from fieldcrm.db.engine import db_lifespan
from fieldcrm.log import configure_logging

configure_logging(settings.log_level, json_logs=settings.is_production)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("FieldCRM starting (env=%s)", settings.environment)

    async with db_lifespan():
        # Every tracked event is written to analytics_events
        subscribe(persist_analytics_event)
        await start_event_system()
        try:
            yield
        finally:
            # Flush queued analytics while the pool is still open
            await stop_event_system()
            unsubscribe(persist_analytics_event)

    logger.info("FieldCRM stopped")


app = FastAPI(
    title="FieldCRM API",
    description="Appointment scheduling for field-service teams",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(appointments_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok", "environment": settings.environment}


if __name__ == "__main__":
    uvicorn.run(
        "fieldcrm.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
