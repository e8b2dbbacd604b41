"""Lead sync models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, TimestampMixin
from .campaign import Campaign, CampaignCaller
from .lead import Lead

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "Campaign",
    "CampaignCaller",
    "Lead",
]
