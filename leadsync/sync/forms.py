"""Discover lead-gen forms referenced by an ad account's creatives."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..meta.client import GraphClient, account_path

AD_FIELDS = ",".join([
    "id",
    "name",
    "campaign_id",
    "adset_id",
    "creative{id,object_story_spec,asset_feed_spec,call_to_action,effective_object_story_id}",
])


def _to_dict(value: Any) -> dict:
    if isinstance(value, dict):
        return value
    return {}


def _str_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class AdSummary:
    id: str
    name: str | None = None
    campaign_id: str | None = None
    adset_id: str | None = None
    creative: dict = field(default_factory=dict)

    @classmethod
    def from_graph(cls, row: dict) -> "AdSummary":
        return cls(
            id=str(row.get("id", "")),
            name=_str_or_none(row.get("name")),
            campaign_id=_str_or_none(row.get("campaign_id")),
            adset_id=_str_or_none(row.get("adset_id")),
            creative=_to_dict(row.get("creative")),
        )


async def list_ads_with_creatives(
    client: GraphClient,
    ad_account_id: str,
    *,
    effective_status: list[str] | None = None,
    limit: int = 200,
) -> list[AdSummary]:
    """All ads of an account with their creative payloads.

    Ad volume per account is bounded, so every page is kept.
    """
    params = {
        "fields": AD_FIELDS,
        "limit": limit,
        "effective_status": json.dumps(effective_status or ["ACTIVE"]),
    }
    ads: list[AdSummary] = []
    async for rows in client.iter_pages(f"{account_path(ad_account_id)}/ads", params):
        ads.extend(AdSummary.from_graph(row) for row in rows if row.get("id"))
    return ads


def _cta_form_id(container: Any) -> str | None:
    cta = _to_dict(_to_dict(container).get("call_to_action"))
    return _str_or_none(_to_dict(cta.get("value")).get("lead_gen_form_id"))


def extract_form_ids(creative: Any) -> set[str]:
    """Lead form ids referenced by a creative's call-to-action.

    Only the known CTA locations are read. Creatives also hold page, post and
    asset ids, so scanning the whole payload would pick up bogus forms.
    """
    creative = _to_dict(creative)
    story = _to_dict(creative.get("object_story_spec"))
    candidates = (
        _cta_form_id(story.get("link_data")),
        _cta_form_id(story.get("video_data")),
        _cta_form_id(creative),
    )
    return {form_id for form_id in candidates if form_id}


def detect_form_ids(ads: Iterable[AdSummary]) -> set[str]:
    form_ids: set[str] = set()
    for ad in ads:
        form_ids |= extract_form_ids(ad.creative)
    return form_ids


def filter_allowed(form_ids: Iterable[str], allow_list: Iterable[str] | None) -> list[str]:
    """Keep only allow-listed forms; an empty allow-list keeps everything."""
    allowed = {str(form_id) for form_id in (allow_list or []) if form_id}
    ordered = sorted({str(form_id) for form_id in form_ids})
    if not allowed:
        return ordered
    return [form_id for form_id in ordered if form_id in allowed]
