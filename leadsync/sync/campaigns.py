"""Import ad campaigns and their headline metrics."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..meta.client import GraphClient, account_path
from ..models.campaign import Campaign
from ..schemas.sync import SyncSummary
from .leads import parse_graph_time

logger = logging.getLogger(__name__)

CAMPAIGN_FIELDS = ",".join([
    "id",
    "name",
    "status",
    "start_time",
    "stop_time",
    "daily_budget",
    "lifetime_budget",
    "objective",
    "insights{impressions,clicks,spend,cpc,ctr,actions}",
])

STATUS_MAP: dict[str, str] = {
    "ACTIVE": "active",
    "PAUSED": "paused",
    "COMPLETED": "completed",
    "ARCHIVED": "completed",
}

LEAD_ACTION_TYPES = ("lead", "leadgen.other")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_dict(value: Any) -> dict:
    if isinstance(value, dict):
        return value
    return {}


def _number(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def map_campaign_status(status: Any) -> str:
    return STATUS_MAP.get(str(status or "").upper(), "draft")


def normalize_budget(row: dict) -> float:
    """Budgets arrive in minor currency units; prefer daily over lifetime."""
    for key in ("daily_budget", "lifetime_budget"):
        amount = _number(row.get(key))
        if amount:
            return amount / 100
    return 0.0


def extract_metrics(row: dict) -> dict[str, float | int]:
    # Insights come back as {"data": [{...}]} aggregated over the campaign lifetime.
    data = _to_dict(row.get("insights")).get("data")
    insights = data[0] if isinstance(data, list) and data and isinstance(data[0], dict) else {}

    leads = 0
    actions = insights.get("actions")
    for action in actions if isinstance(actions, list) else []:
        if isinstance(action, dict) and action.get("action_type") in LEAD_ACTION_TYPES:
            leads = int(_number(action.get("value")))
            break

    return {
        "impressions": int(_number(insights.get("impressions"))),
        "clicks": int(_number(insights.get("clicks"))),
        "spend": _number(insights.get("spend")),
        "leads": leads,
        "ctr": _number(insights.get("ctr")),
        "cpc": _number(insights.get("cpc")),
    }


async def upsert_campaign(db: AsyncSession, row: dict, *, ad_account_id: str) -> bool:
    """Create or overwrite the local campaign for a platform campaign row.

    Every tracked field is replaced; the operator roster is left alone.
    Returns True when the campaign was created.
    """
    external_id = str(row.get("id") or "")
    if not external_id:
        raise ValueError("campaign row has no id")

    values: dict[str, Any] = {
        "name": str(row.get("name") or external_id),
        "platform": "facebook",
        "status": map_campaign_status(row.get("status")),
        "objective": row.get("objective"),
        "start_date": parse_graph_time(row["start_time"]) if row.get("start_time") else _utcnow(),
        "end_date": parse_graph_time(row["stop_time"]) if row.get("stop_time") else None,
        "budget": normalize_budget(row),
        "provider": "meta",
        "ad_account_id": account_path(ad_account_id),
        "last_sync_at": _utcnow(),
        **extract_metrics(row),
    }

    stmt = select(Campaign).where(Campaign.external_id == external_id)
    campaign = (await db.execute(stmt)).scalar_one_or_none()
    created = campaign is None
    if created:
        campaign = Campaign(external_id=external_id, **values)
        db.add(campaign)
    else:
        for key, value in values.items():
            setattr(campaign, key, value)

    await db.commit()
    return created


async def sync_account_campaigns(
    client: GraphClient,
    db: AsyncSession,
    ad_account_id: str,
    summary: SyncSummary,
    *,
    effective_status: list[str] | None = None,
    page_size: int = 100,
) -> None:
    """Page through an account's campaigns, upserting each page before the next.

    Row failures are recorded under ``campaign-upsert``; upstream errors
    propagate to the caller, which abandons this account only.
    """
    params = {
        "fields": CAMPAIGN_FIELDS,
        "limit": page_size,
        "effective_status": json.dumps(effective_status or ["ACTIVE", "PAUSED", "ARCHIVED"]),
    }
    async for rows in client.iter_pages(f"{account_path(ad_account_id)}/campaigns", params):
        summary.campaigns_fetched += len(rows)
        for row in rows:
            campaign_id = str(row.get("id") or "")
            try:
                await upsert_campaign(db, row, ad_account_id=ad_account_id)
            except Exception as exc:
                await db.rollback()
                logger.error("Failed to upsert campaign %s: %s", campaign_id, exc)
                summary.add_error("campaign-upsert", campaign_id, str(exc))
                continue
            summary.campaigns_upserted += 1
