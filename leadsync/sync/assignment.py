"""Weighted routing of new leads to operators."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.campaign import Campaign, CampaignCaller


@dataclass(frozen=True)
class RosterEntry:
    operator_id: str
    percentage: float = 0.0


def pick_operator(
    roster: Sequence[RosterEntry], rng: random.Random | None = None
) -> str | None:
    """Pick one operator, weighted by percentage.

    Percentages need not sum to 100. When they sum to zero every entry is
    equally likely. An empty roster leaves the lead unassigned.
    """
    if not roster:
        return None
    rng = rng or random

    weights = [max(float(entry.percentage or 0), 0.0) for entry in roster]
    total = sum(weights)
    if total <= 0:
        return roster[int(rng.random() * len(roster)) % len(roster)].operator_id

    r = rng.random() * total
    chosen = None
    for entry, weight in zip(roster, weights):
        # A draw of exactly 0.0 stops at the first entry, whatever its weight.
        r -= weight
        if r <= 0:
            return entry.operator_id
        if weight > 0:
            chosen = entry
    # Float rounding can leave r a hair above zero after the last entry.
    return chosen.operator_id if chosen else None


class RosterCache:
    """Campaign rosters loaded once per sync run.

    Keyed by the platform campaign id. Holds plain ``RosterEntry`` values, not
    ORM rows, so a session rollback mid-run does not invalidate it.
    """

    def __init__(self) -> None:
        self._rosters: dict[str, list[RosterEntry]] = {}

    def __len__(self) -> int:
        return len(self._rosters)

    def clear(self) -> None:
        self._rosters.clear()

    async def get(self, db: AsyncSession, campaign_external_id: str | None) -> list[RosterEntry]:
        if not campaign_external_id:
            return []
        if campaign_external_id in self._rosters:
            return self._rosters[campaign_external_id]

        stmt = (
            select(CampaignCaller.operator_id, CampaignCaller.percentage)
            .join(Campaign, Campaign.id == CampaignCaller.campaign_id)
            .where(Campaign.external_id == campaign_external_id)
            .order_by(CampaignCaller.position)
        )
        rows = (await db.execute(stmt)).all()
        roster = [RosterEntry(operator_id=row.operator_id, percentage=row.percentage or 0) for row in rows]
        self._rosters[campaign_external_id] = roster
        return roster
