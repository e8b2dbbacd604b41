"""Campaign and CampaignCaller models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin


class Campaign(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "campaign"

    name: Mapped[str] = mapped_column(String(300))
    platform: Mapped[str] = mapped_column(String(20), default="facebook")
    status: Mapped[str] = mapped_column(String(20), default="draft")  # active/paused/completed/draft
    objective: Mapped[str | None] = mapped_column(String(100), default=None)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    budget: Mapped[float] = mapped_column(Float, default=0.0)

    # Integration
    provider: Mapped[str] = mapped_column(String(20), default="none")
    external_id: Mapped[str | None] = mapped_column(String(100), default=None, unique=True)
    ad_account_id: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    # Synced metrics, replaced wholesale on each sync
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    spend: Mapped[float] = mapped_column(Float, default=0.0)
    leads: Mapped[int] = mapped_column(Integer, default=0)
    ctr: Mapped[float] = mapped_column(Float, default=0.0)  # percent
    cpc: Mapped[float] = mapped_column(Float, default=0.0)

    # Relationships
    assigned_callers: Mapped[list["CampaignCaller"]] = relationship(
        back_populates="campaign", cascade="all, delete-orphan",
        order_by="CampaignCaller.position",
    )


class CampaignCaller(UUIDMixin, Base):
    """One roster entry: an operator and the share of new leads they receive."""

    __tablename__ = "campaign_caller"

    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("campaign.id", ondelete="CASCADE"), index=True
    )
    operator_id: Mapped[str] = mapped_column(String(100))
    percentage: Mapped[float] = mapped_column(Float, default=0.0)
    position: Mapped[int] = mapped_column(Integer, default=0)

    campaign: Mapped["Campaign"] = relationship(back_populates="assigned_callers")
