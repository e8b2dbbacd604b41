"""FastAPI application for the lead sync service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .worker import sync_worker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev); other databases use Alembic migrations
    if "sqlite" in settings.database_url:
        from .database import create_all
        await create_all()
    if settings.sync_enabled:
        logger.info("Meta sync scheduled every %.0fs", settings.sync_interval_seconds)
        sync_worker.start()
    try:
        yield
    finally:
        await sync_worker.stop()


app = FastAPI(title=settings.app_title, lifespan=lifespan)

from .routers import health, integrations  # noqa: E402

app.include_router(integrations.router)
app.include_router(health.router)
