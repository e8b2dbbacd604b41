"""Per-run sync options resolved against settings."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..config import LeadSyncSettings, settings as default_settings


class ConfigurationError(Exception):
    """Required sync configuration is missing."""


@dataclass
class SyncOptions:
    access_token: str | None = None
    ad_account_ids: list[str] | None = None
    form_ids: list[str] | None = None
    page_limit: int | None = None
    since: int | None = None
    ad_effective_status: list[str] | None = None
    campaign_effective_status: list[str] | None = None


@dataclass
class ResolvedOptions:
    access_token: str
    ad_account_ids: list[str]
    form_ids: list[str] = field(default_factory=list)
    page_limit: int = 100
    ads_page_limit: int = 200
    since: int | None = None
    ad_effective_status: list[str] = field(default_factory=lambda: ["ACTIVE"])
    campaign_effective_status: list[str] = field(
        default_factory=lambda: ["ACTIVE", "PAUSED", "ARCHIVED"]
    )
    lead_source: str = "Facebook"
    country: str = "IN"


def resolve_options(
    options: SyncOptions | None = None,
    config: LeadSyncSettings | None = None,
) -> ResolvedOptions:
    """Merge explicit options over settings; raise if token or accounts are missing."""
    options = options or SyncOptions()
    config = config or default_settings

    access_token = (options.access_token or config.meta_access_token or "").strip()
    if not access_token:
        raise ConfigurationError("LEADSYNC_META_ACCESS_TOKEN is missing")

    ad_account_ids = [
        str(a).strip() for a in (options.ad_account_ids or config.ad_account_id_list) if str(a).strip()
    ]
    if not ad_account_ids:
        raise ConfigurationError("LEADSYNC_META_AD_ACCOUNT_IDS is missing/empty (comma-separated)")

    form_ids = options.form_ids if options.form_ids is not None else config.form_id_allow_list
    page_limit = int(options.page_limit or config.meta_sync_page_limit or 100)
    if page_limit <= 0:
        raise ConfigurationError("page limit must be positive")

    return ResolvedOptions(
        access_token=access_token,
        ad_account_ids=ad_account_ids,
        form_ids=[str(f).strip() for f in form_ids if str(f).strip()],
        page_limit=page_limit,
        ads_page_limit=config.meta_ads_page_limit,
        since=options.since if options.since is not None else config.meta_sync_since,
        ad_effective_status=list(options.ad_effective_status or config.ad_effective_status_list),
        campaign_effective_status=list(
            options.campaign_effective_status or config.campaign_effective_status_list
        ),
        lead_source=config.meta_lead_source,
        country=config.geo_country,
    )
