"""Liveness and readiness for the lead sync service."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..sync.sync_engine import sync_runner
from ..worker import sync_worker

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    await db.execute(text("SELECT 1"))
    return {"status": "healthy", "service": "leadsync", "sync_running": sync_runner.running}


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Store reachable; reports whether a sync could run with current settings."""
    await db.execute(text("SELECT 1"))
    return {
        "status": "ready",
        "service": "leadsync",
        "meta_configured": bool(settings.meta_access_token.strip() and settings.ad_account_id_list),
        "scheduler": sync_worker.started,
    }
