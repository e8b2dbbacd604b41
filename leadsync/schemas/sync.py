"""Sync run schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SyncError(BaseModel):
    scope: str
    identifier: str = ""
    message: str


class SyncSummary(BaseModel):
    ad_accounts: int = 0
    campaigns_fetched: int = 0
    campaigns_upserted: int = 0
    forms_detected: int = 0
    forms_synced: int = 0
    leads_fetched: int = 0
    leads_inserted: int = 0
    leads_skipped: int = 0
    errors: list[SyncError] = []

    def add_error(self, scope: str, identifier: str | None, message: str) -> SyncError:
        error = SyncError(scope=scope, identifier=str(identifier or ""), message=message)
        self.errors.append(error)
        return error


class MetaSyncRequest(BaseModel):
    """Optional overrides accepted by the HTTP trigger."""

    ad_account_ids: list[str] | None = None
    form_ids: list[str] | None = None
    page_limit: int | None = Field(default=None, ge=1, le=500)
    since: int | None = None


class MetaSyncResponse(BaseModel):
    success: bool = True
    summary: SyncSummary | None = None
    error: str | None = None
