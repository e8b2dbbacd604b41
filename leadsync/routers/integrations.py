"""Manual sync triggers for the advertising platform integration."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.sync import MetaSyncRequest, MetaSyncResponse
from ..security import require_sync_key
from ..sync.options import ConfigurationError, SyncOptions
from ..sync.sync_engine import sync_campaigns, sync_leads

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/integrations/meta",
    tags=["integrations"],
    dependencies=[Depends(require_sync_key)],
)


def _options(body: MetaSyncRequest | None) -> SyncOptions:
    if body is None:
        return SyncOptions()
    return SyncOptions(
        ad_account_ids=body.ad_account_ids or None,
        form_ids=body.form_ids,
        page_limit=body.page_limit,
        since=body.since,
    )


def _config_error(exc: ConfigurationError) -> JSONResponse:
    logger.error("Meta sync misconfigured: %s", exc)
    return JSONResponse(
        status_code=500,
        content=MetaSyncResponse(success=False, error=str(exc)).model_dump(),
    )


@router.post("/sync", response_model=MetaSyncResponse)
async def trigger_lead_sync(
    body: MetaSyncRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    try:
        summary = await sync_leads(db, _options(body))
    except ConfigurationError as exc:
        return _config_error(exc)
    return MetaSyncResponse(summary=summary)


@router.post("/campaigns/sync", response_model=MetaSyncResponse)
async def trigger_campaign_sync(
    body: MetaSyncRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    try:
        summary = await sync_campaigns(db, _options(body))
    except ConfigurationError as exc:
        return _config_error(exc)
    return MetaSyncResponse(summary=summary)
