"""Stream a form's leads page by page and store each lead exactly once."""

from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..meta.client import GraphClient
from ..models.lead import Lead
from ..schemas.sync import SyncSummary
from .assignment import RosterCache, pick_operator
from .attribution import AdAttribution
from .fields import normalize_field_data

logger = logging.getLogger(__name__)

LEAD_FIELDS = "created_time,id,ad_id,adset_id,campaign_id,form_id,field_data"
PLATFORM = "meta"
NEW_STATUS = "new"

BatchHandler = Callable[[list[dict]], Awaitable[None]]


@dataclass(frozen=True)
class UpsertResult:
    inserted: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _str_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def parse_graph_time(value: Any) -> datetime:
    """Platform timestamps look like ``2024-01-15T10:00:00+0000``; missing means now."""
    if value is None or value == "":
        return _utcnow()
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value).strip()
    try:
        parsed = datetime.strptime(text, "%Y-%m-%dT%H:%M:%S%z")
    except ValueError:
        # Raises ValueError for anything unparseable; the batch handler records it.
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def process_form_leads(
    client: GraphClient,
    form_id: str,
    *,
    page_size: int = 100,
    since: int | None = None,
    on_batch: BatchHandler,
) -> int:
    """Fetch a form's leads one page at a time, handing each page to ``on_batch``.

    The next page is requested only after ``on_batch`` returns, so at most one
    page of raw rows is held regardless of how many leads the form has.
    Returns the number of rows fetched.
    """
    params: dict[str, Any] = {"fields": LEAD_FIELDS, "limit": page_size}
    if since:
        params["filtering"] = json.dumps([
            {"field": "time_created", "operator": "GREATER_THAN_OR_EQUAL", "value": int(since)},
        ])

    fetched = 0
    async for rows in client.iter_pages(f"{form_id}/leads", params):
        if rows:
            await on_batch(rows)
            fetched += len(rows)
    return fetched


def build_lead(
    raw: dict,
    *,
    form_id: str | None,
    attribution: AdAttribution | None,
    fields: list[dict],
    assigned_operator_id: str | None,
    source: str,
) -> Lead:
    """Lead row for a raw platform lead; raw attribution wins over the ad index."""
    external_id = str(raw["id"])
    attr = attribution or AdAttribution(ad_id="")
    return Lead(
        legacy_id=external_id,
        external_lead_id=external_id,
        platform=PLATFORM,
        source=source,
        form_id=_str_or_none(raw.get("form_id")) or form_id,
        ad_id=_str_or_none(raw.get("ad_id")) or attr.ad_id or None,
        adset_id=_str_or_none(raw.get("adset_id")) or attr.adset_id,
        campaign_id=_str_or_none(raw.get("campaign_id")) or attr.campaign_id,
        ad_creative_id=attr.ad_creative_id,
        submitted_at=parse_graph_time(raw.get("created_time")),
        fields=fields,
        status=NEW_STATUS,
        assigned_operator_id=assigned_operator_id,
    )


async def _lead_exists(db: AsyncSession, external_id: str) -> bool:
    stmt = select(Lead.id).where(
        or_(Lead.external_lead_id == external_id, Lead.legacy_id == external_id)
    ).limit(1)
    return (await db.execute(stmt)).first() is not None


async def upsert_lead(
    db: AsyncSession,
    raw: dict,
    *,
    form_id: str | None = None,
    attribution: AdAttribution | None = None,
    roster_cache: RosterCache | None = None,
    rng: random.Random | None = None,
    lead_source: str = "Facebook",
    country: str = "IN",
) -> UpsertResult:
    """Insert the lead if its external id is new; never touch an existing lead.

    An operator is only drawn for leads that are actually inserted. A unique
    violation from a concurrent insert counts as already present.
    """
    external_id = _str_or_none(raw.get("id"))
    if not external_id:
        logger.warning("Skipping lead without id (form %s)", form_id)
        return UpsertResult(inserted=False)

    if await _lead_exists(db, external_id):
        return UpsertResult(inserted=False)

    fields = normalize_field_data(raw.get("field_data"), lead_source=lead_source, country=country)
    campaign_id = _str_or_none(raw.get("campaign_id")) or (attribution.campaign_id if attribution else None)
    roster = await (roster_cache or RosterCache()).get(db, campaign_id)

    lead = build_lead(
        raw,
        form_id=form_id,
        attribution=attribution,
        fields=fields.to_list(),
        assigned_operator_id=pick_operator(roster, rng),
        source=lead_source,
    )
    db.add(lead)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("Lead %s inserted concurrently; skipping", external_id)
        return UpsertResult(inserted=False)
    return UpsertResult(inserted=True)


def make_batch_handler(
    db: AsyncSession,
    summary: SyncSummary,
    *,
    form_id: str,
    attribution_index: dict[str, AdAttribution],
    roster_cache: RosterCache,
    rng: random.Random | None = None,
    lead_source: str = "Facebook",
    country: str = "IN",
) -> BatchHandler:
    """Batch callback that stores every row of a page and tallies the outcome.

    A failing row is recorded under ``lead-upsert`` and the rest of the page
    still gets processed.
    """

    async def handle(rows: list[dict]) -> None:
        summary.leads_fetched += len(rows)
        for raw in rows:
            ad_id = _str_or_none(raw.get("ad_id"))
            attribution = attribution_index.get(ad_id) if ad_id else None
            try:
                result = await upsert_lead(
                    db,
                    raw,
                    form_id=form_id,
                    attribution=attribution,
                    roster_cache=roster_cache,
                    rng=rng,
                    lead_source=lead_source,
                    country=country,
                )
            except Exception as exc:
                await db.rollback()
                lead_id = _str_or_none(raw.get("id")) or ""
                logger.error("Lead upsert failed for %s (form %s): %s", lead_id, form_id, exc)
                summary.add_error("lead-upsert", lead_id, str(exc))
                continue
            if result.inserted:
                summary.leads_inserted += 1
            else:
                summary.leads_skipped += 1

    return handle
