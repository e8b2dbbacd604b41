"""Lead model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class Lead(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "lead"
    __table_args__ = (
        Index("ix_lead_campaign_submitted", "campaign_id", "submitted_at"),
        Index("ix_lead_platform_submitted", "platform", "submitted_at"),
    )

    # Stable local id; equals external_lead_id for platform-sourced leads.
    legacy_id: Mapped[str] = mapped_column(String(100), unique=True)
    external_lead_id: Mapped[str | None] = mapped_column(String(100), default=None, unique=True)

    platform: Mapped[str] = mapped_column(String(20), default="")
    source: Mapped[str] = mapped_column(String(50), default="")

    # Attribution
    form_id: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    ad_id: Mapped[str | None] = mapped_column(String(100), default=None)
    adset_id: Mapped[str | None] = mapped_column(String(100), default=None)
    campaign_id: Mapped[str | None] = mapped_column(String(100), default=None)
    ad_creative_id: Mapped[str | None] = mapped_column(String(100), default=None)

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    # Ordered [{"name": ..., "values": [...]}, ...]
    fields: Mapped[list] = mapped_column(JSON, default=list)

    status: Mapped[str] = mapped_column(String(50), default="new", index=True)
    assigned_operator_id: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
