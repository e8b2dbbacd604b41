"""Campaign import: field mapping and upsert."""

from __future__ import annotations

import json

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leadsync.meta.client import GraphClient
from leadsync.models.campaign import Campaign, CampaignCaller
from leadsync.schemas.sync import SyncSummary
from leadsync.sync.campaigns import (
    extract_metrics,
    map_campaign_status,
    normalize_budget,
    sync_account_campaigns,
    upsert_campaign,
)
from leadsync.tests.conftest import FakeGraph


def _row(**overrides) -> dict:
    row = {
        "id": "C1",
        "name": "Spring Promo",
        "status": "ACTIVE",
        "objective": "OUTCOME_LEADS",
        "start_time": "2026-03-01T00:00:00+0530",
        "daily_budget": "150000",
        "insights": {"data": [{
            "impressions": "12000",
            "clicks": "340",
            "spend": "1520.75",
            "ctr": "2.83",
            "cpc": "4.47",
            "actions": [
                {"action_type": "link_click", "value": "340"},
                {"action_type": "lead", "value": "37"},
            ],
        }]},
    }
    row.update(overrides)
    return row


async def _campaign(db: AsyncSession, external_id: str) -> Campaign:
    stmt = select(Campaign).where(Campaign.external_id == external_id)
    return (await db.execute(stmt)).scalar_one()


@pytest.mark.parametrize(
    "status,expected",
    [
        ("ACTIVE", "active"),
        ("PAUSED", "paused"),
        ("COMPLETED", "completed"),
        ("ARCHIVED", "completed"),
        ("active", "active"),
        ("DELETED", "draft"),
        (None, "draft"),
    ],
)
def test_map_campaign_status(status, expected):
    assert map_campaign_status(status) == expected


def test_budget_prefers_daily_and_converts_minor_units():
    assert normalize_budget({"daily_budget": "150000", "lifetime_budget": "999"}) == 1500.0
    assert normalize_budget({"lifetime_budget": "2500"}) == 25.0
    assert normalize_budget({"daily_budget": "0", "lifetime_budget": "2500"}) == 25.0
    assert normalize_budget({}) == 0.0
    assert normalize_budget({"daily_budget": "n/a"}) == 0.0


def test_extract_metrics():
    assert extract_metrics(_row()) == {
        "impressions": 12000,
        "clicks": 340,
        "spend": 1520.75,
        "leads": 37,
        "ctr": 2.83,
        "cpc": 4.47,
    }


def test_extract_metrics_without_insights():
    metrics = extract_metrics({"id": "C1"})
    assert metrics == {"impressions": 0, "clicks": 0, "spend": 0.0, "leads": 0, "ctr": 0.0, "cpc": 0.0}


@pytest.mark.asyncio
async def test_upsert_creates_campaign(db: AsyncSession):
    created = await upsert_campaign(db, _row(stop_time="2026-04-01T00:00:00+0530"), ad_account_id="42")

    assert created is True
    camp = await _campaign(db, "C1")
    assert camp.name == "Spring Promo"
    assert camp.status == "active"
    assert camp.provider == "meta"
    assert camp.platform == "facebook"
    assert camp.ad_account_id == "act_42"
    assert camp.budget == 1500.0
    assert camp.leads == 37
    assert camp.impressions == 12000
    assert camp.end_date is not None
    assert camp.last_sync_at is not None


@pytest.mark.asyncio
async def test_upsert_overwrites_fields_and_keeps_roster(db: AsyncSession, campaign: Campaign):
    created = await upsert_campaign(
        db,
        _row(name="Spring Promo v2", status="PAUSED", daily_budget=None, lifetime_budget="50000", insights=None),
        ad_account_id="act_1",
    )

    assert created is False
    camp = await _campaign(db, "C1")
    assert camp.name == "Spring Promo v2"
    assert camp.status == "paused"
    assert camp.budget == 500.0
    assert camp.leads == 0
    assert camp.clicks == 0

    rows = (await db.execute(
        select(CampaignCaller.operator_id).where(CampaignCaller.campaign_id == camp.id)
    )).scalars().all()
    assert sorted(rows) == ["op-a", "op-b"]


@pytest.mark.asyncio
async def test_upsert_requires_id(db: AsyncSession):
    with pytest.raises(ValueError):
        await upsert_campaign(db, _row(id=None), ad_account_id="1")


@pytest.mark.asyncio
async def test_sync_account_campaigns_pages_and_records_row_errors(
    db: AsyncSession, graph: GraphClient, fake_graph: FakeGraph
):
    fake_graph.add_pages("act_7/campaigns", [
        [_row(id="C1"), _row(id="C2", start_time="not a date")],
        [_row(id="C3", status="ARCHIVED")],
    ])
    summary = SyncSummary()

    await sync_account_campaigns(graph, db, "7", summary, effective_status=["ACTIVE"])

    assert summary.campaigns_fetched == 3
    assert summary.campaigns_upserted == 2
    assert [(e.scope, e.identifier) for e in summary.errors] == [("campaign-upsert", "C2")]
    assert (await _campaign(db, "C3")).status == "completed"
    params = fake_graph.requests[0].url.params
    assert json.loads(params["effective_status"]) == ["ACTIVE"]
    assert "insights{" in params["fields"]
