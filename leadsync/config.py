"""Lead sync configuration via pydantic-settings."""

from __future__ import annotations

import json

from pydantic_settings import BaseSettings

DEFAULT_AD_EFFECTIVE_STATUS = ["ACTIVE"]
DEFAULT_CAMPAIGN_EFFECTIVE_STATUS = ["ACTIVE", "PAUSED", "ARCHIVED"]


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def _json_list(value: str, fallback: list[str]) -> list[str]:
    if not value or not value.strip():
        return list(fallback)
    try:
        parsed = json.loads(value)
    except ValueError:
        return list(fallback)
    if not isinstance(parsed, list):
        return list(fallback)
    return [str(item) for item in parsed if item is not None]


class LeadSyncSettings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///leadsync.db"
    echo_sql: bool = False
    app_title: str = "Lead Sync"

    # Advertising platform (Graph API)
    meta_access_token: str = ""
    meta_ad_account_ids: str = ""
    meta_form_ids: str = ""
    meta_graph_base_url: str = "https://graph.facebook.com"
    meta_graph_version: str = "v19.0"
    meta_sync_page_limit: int = 100
    meta_ads_page_limit: int = 200
    meta_sync_since: int | None = None
    # JSON-encoded lists, e.g. '["ACTIVE","PAUSED"]'
    meta_ad_effective_status: str = ""
    meta_campaign_effective_status: str = ""
    meta_request_timeout_seconds: float = 30.0
    meta_max_attempts: int = 6
    meta_lead_source: str = "Facebook"

    geo_country: str = "IN"
    # geonamescache ships city sets at 500, 1000, 5000 and 15000 inhabitants.
    geo_min_city_population: int = 5000

    # Periodic sync worker
    sync_enabled: bool = False
    sync_interval_seconds: float = 600.0
    sync_run_on_start: bool = False
    sync_start_delay_seconds: float = 5.0
    sync_api_key: str = ""

    model_config = {"env_prefix": "LEADSYNC_", "env_file": ".env", "extra": "ignore"}

    @property
    def graph_url(self) -> str:
        return f"{self.meta_graph_base_url.rstrip('/')}/{self.meta_graph_version.strip('/')}"

    @property
    def ad_account_id_list(self) -> list[str]:
        return _split_csv(self.meta_ad_account_ids)

    @property
    def form_id_allow_list(self) -> list[str]:
        return _split_csv(self.meta_form_ids)

    @property
    def ad_effective_status_list(self) -> list[str]:
        return _json_list(self.meta_ad_effective_status, DEFAULT_AD_EFFECTIVE_STATUS)

    @property
    def campaign_effective_status_list(self) -> list[str]:
        return _json_list(self.meta_campaign_effective_status, DEFAULT_CAMPAIGN_EFFECTIVE_STATUS)


settings = LeadSyncSettings()
