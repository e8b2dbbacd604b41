"""Ad -> ad set / campaign / creative lookup for backfilling lead attribution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .forms import AdSummary


@dataclass(frozen=True)
class AdAttribution:
    ad_id: str
    adset_id: str | None = None
    campaign_id: str | None = None
    ad_creative_id: str | None = None


def build_attribution_index(ads: Iterable[AdSummary]) -> dict[str, AdAttribution]:
    index: dict[str, AdAttribution] = {}
    for ad in ads:
        if not ad.id:
            continue
        creative_id = ad.creative.get("id")
        index[ad.id] = AdAttribution(
            ad_id=ad.id,
            adset_id=ad.adset_id,
            campaign_id=ad.campaign_id,
            ad_creative_id=str(creative_id) if creative_id else None,
        )
    return index
