"""Sync orchestrator - campaign and lead sync entry points.

Accounts, forms and pages are processed one after another; nothing here fans
out in parallel, which keeps the upstream rate limits predictable. A failure
is contained to the smallest scope that produced it (row, form, account) and
recorded in the returned ``SyncSummary``. Only missing configuration raises.
"""

from __future__ import annotations

import logging
import random

from sqlalchemy.ext.asyncio import AsyncSession

from ..meta.client import GraphClient, UpstreamError
from ..schemas.sync import SyncSummary
from .assignment import RosterCache
from .attribution import build_attribution_index
from .campaigns import sync_account_campaigns
from .forms import detect_form_ids, filter_allowed, list_ads_with_creatives
from .leads import make_batch_handler, process_form_leads
from .options import ResolvedOptions, SyncOptions, resolve_options

logger = logging.getLogger(__name__)


def _error_message(exc: Exception) -> str:
    if isinstance(exc, UpstreamError):
        return exc.message
    return str(exc) or exc.__class__.__name__


async def _sync_campaigns(client: GraphClient, db: AsyncSession, opts: ResolvedOptions) -> SyncSummary:
    summary = SyncSummary()
    for ad_account_id in opts.ad_account_ids:
        summary.ad_accounts += 1
        logger.info("Fetching campaigns for ad account %s", ad_account_id)
        try:
            await sync_account_campaigns(
                client, db, ad_account_id, summary,
                effective_status=opts.campaign_effective_status,
            )
        except Exception as exc:
            await db.rollback()
            logger.error("Campaign sync failed for ad account %s: %s", ad_account_id, exc)
            summary.add_error("ad-account", ad_account_id, _error_message(exc))
    return summary


async def sync_campaigns(
    db: AsyncSession,
    options: SyncOptions | None = None,
    *,
    client: GraphClient | None = None,
) -> SyncSummary:
    """Upsert every campaign of the configured ad accounts."""
    opts = resolve_options(options)
    if client is not None:
        return await _sync_campaigns(client, db, opts)
    async with GraphClient(opts.access_token) as graph:
        return await _sync_campaigns(graph, db, opts)


async def _sync_account_leads(
    client: GraphClient,
    db: AsyncSession,
    ad_account_id: str,
    opts: ResolvedOptions,
    summary: SyncSummary,
    roster_cache: RosterCache,
    rng: random.Random | None,
) -> None:
    logger.info("Scanning ad account %s for creatives/forms", ad_account_id)
    ads = await list_ads_with_creatives(
        client, ad_account_id,
        effective_status=opts.ad_effective_status,
        limit=opts.ads_page_limit,
    )
    attribution_index = build_attribution_index(ads)

    detected = detect_form_ids(ads)
    summary.forms_detected += len(detected)
    form_ids = filter_allowed(detected, opts.form_ids)

    for form_id in form_ids:
        summary.forms_synced += 1
        logger.info("Fetching leads for form %s", form_id)
        handler = make_batch_handler(
            db, summary,
            form_id=form_id,
            attribution_index=attribution_index,
            roster_cache=roster_cache,
            rng=rng,
            lead_source=opts.lead_source,
            country=opts.country,
        )
        try:
            await process_form_leads(
                client, form_id,
                page_size=opts.page_limit,
                since=opts.since,
                on_batch=handler,
            )
        except Exception as exc:
            await db.rollback()
            logger.error("Lead sync failed for form %s: %s", form_id, exc)
            summary.add_error("form", form_id, _error_message(exc))


async def _sync_leads(
    client: GraphClient,
    db: AsyncSession,
    opts: ResolvedOptions,
    rng: random.Random | None,
) -> SyncSummary:
    summary = SyncSummary()
    roster_cache = RosterCache()
    for ad_account_id in opts.ad_account_ids:
        summary.ad_accounts += 1
        try:
            await _sync_account_leads(client, db, ad_account_id, opts, summary, roster_cache, rng)
        except Exception as exc:
            await db.rollback()
            logger.error("Lead sync failed for ad account %s: %s", ad_account_id, exc)
            summary.add_error("ad-account", ad_account_id, _error_message(exc))
    return summary


async def sync_leads(
    db: AsyncSession,
    options: SyncOptions | None = None,
    *,
    client: GraphClient | None = None,
    rng: random.Random | None = None,
) -> SyncSummary:
    """Discover lead forms through ad creatives and store their new leads."""
    opts = resolve_options(options)
    if client is not None:
        return await _sync_leads(client, db, opts, rng)
    async with GraphClient(opts.access_token) as graph:
        return await _sync_leads(graph, db, opts, rng)


class SyncRunner:
    """Runs campaigns-then-leads, refusing to overlap with itself."""

    def __init__(self, session_factory=None) -> None:
        self._session_factory = session_factory
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def _sessions(self):
        if self._session_factory is None:
            from ..database import async_session_factory
            return async_session_factory
        return self._session_factory

    async def run(
        self, reason: str, options: SyncOptions | None = None
    ) -> tuple[SyncSummary, SyncSummary] | None:
        if self._running:
            logger.info("Meta sync skipped (%s): already running", reason)
            return None
        self._running = True
        try:
            async with self._sessions()() as db:
                # Campaigns first so new leads can pick up their rosters.
                campaigns = await sync_campaigns(db, options)
                leads = await sync_leads(db, options)
            logger.info(
                "Meta sync completed (%s): %d campaigns upserted, %d leads inserted, %d skipped, %d errors",
                reason,
                campaigns.campaigns_upserted,
                leads.leads_inserted,
                leads.leads_skipped,
                len(campaigns.errors) + len(leads.errors),
            )
            return campaigns, leads
        finally:
            self._running = False


sync_runner = SyncRunner()


async def run_meta_sync(reason: str, options: SyncOptions | None = None):
    return await sync_runner.run(reason, options)
